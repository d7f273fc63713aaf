import pytest
import requests

import supabase_auth
from supabase_auth import AuthServiceError, SupabaseAuthClient


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body or {}

    def json(self):
        return self._body


def _patch_get(monkeypatch, response):
    calls = []

    def fake_get(url, headers=None, timeout=None):
        calls.append((url, headers))
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(supabase_auth.requests, "get", fake_get)
    return calls


def test_get_user_simplifies_payload(monkeypatch):
    calls = _patch_get(
        monkeypatch,
        FakeResponse(
            body={
                "id": "user-1",
                "email": "ada@example.com",
                "user_metadata": {"display_name": "Ada"},
            }
        ),
    )
    client = SupabaseAuthClient(base_url="https://proj.supabase.co/", service_key="svc")
    assert client.get_user("tok") == {
        "id": "user-1",
        "email": "ada@example.com",
        "display_name": "Ada",
    }
    url, headers = calls[0]
    assert url == "https://proj.supabase.co/auth/v1/user"
    assert headers == {"apikey": "svc", "Authorization": "Bearer tok"}


@pytest.mark.parametrize("status", [401, 403])
def test_rejected_token_is_none(monkeypatch, status):
    _patch_get(monkeypatch, FakeResponse(status_code=status))
    client = SupabaseAuthClient(base_url="https://proj.supabase.co", service_key="svc")
    assert client.get_user("tok") is None


def test_service_failure_raises(monkeypatch):
    _patch_get(monkeypatch, FakeResponse(status_code=502))
    client = SupabaseAuthClient(base_url="https://proj.supabase.co", service_key="svc")
    with pytest.raises(AuthServiceError):
        client.get_user("tok")


def test_unreachable_service_raises(monkeypatch):
    _patch_get(monkeypatch, requests.ConnectionError("down"))
    client = SupabaseAuthClient(base_url="https://proj.supabase.co", service_key="svc")
    with pytest.raises(AuthServiceError):
        client.get_user("tok")


def test_unconfigured_url_raises():
    client = SupabaseAuthClient(base_url="", service_key="svc")
    client.base_url = ""
    with pytest.raises(AuthServiceError):
        client.get_user("tok")


@pytest.mark.parametrize(
    "header,expected",
    [
        ("Bearer abc", "abc"),
        ("Bearer   ", None),
        ("Basic abc", None),
        (None, None),
    ],
)
def test_extract_bearer_token(header, expected):
    assert supabase_auth.extract_bearer_token(header) == expected
