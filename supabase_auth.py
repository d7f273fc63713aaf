import logging
import os
from typing import Any, Dict, Optional

import requests

SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

logger = logging.getLogger(__name__)


class AuthServiceError(RuntimeError):
    """The auth endpoint could not be reached or answered unexpectedly."""


class SupabaseAuthClient:
    """Resolves bearer tokens to users through the hosted auth endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        service_key: Optional[str] = None,
        timeout: int = 10,
    ) -> None:
        self.base_url = (base_url or SUPABASE_URL).rstrip("/")
        self.service_key = service_key if service_key is not None else SUPABASE_SERVICE_ROLE_KEY
        self.timeout = timeout

    def _request(self, path: str, token: str) -> Optional[Dict[str, Any]]:
        if not self.base_url:
            raise AuthServiceError("SUPABASE_URL is not configured")
        url = f"{self.base_url}{path}"
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {token}",
        }
        try:
            response = requests.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise AuthServiceError("Unable to reach authentication service") from exc
        if response.status_code in (401, 403):
            return None
        if response.status_code >= 400:
            logger.warning("Auth endpoint answered %s for %s", response.status_code, path)
            raise AuthServiceError(f"Authentication service error ({response.status_code})")
        return response.json()

    def get_user(self, token: str) -> Optional[Dict[str, Any]]:
        if not token:
            return None
        payload = self._request("/auth/v1/user", token)
        if not payload or not payload.get("id"):
            return None
        return self._simplify_user(payload)

    def _simplify_user(self, user: Dict[str, Any]) -> Dict[str, Any]:
        metadata = user.get("user_metadata") or {}
        return {
            "id": user.get("id"),
            "email": user.get("email"),
            "display_name": metadata.get("display_name") or metadata.get("full_name"),
        }


_default_client: Optional[SupabaseAuthClient] = None


def get_client() -> SupabaseAuthClient:
    global _default_client
    if _default_client is None:
        _default_client = SupabaseAuthClient()
    return _default_client


def get_user(token: str) -> Optional[Dict[str, Any]]:
    return get_client().get_user(token)


def extract_bearer_token(header: Optional[str]) -> Optional[str]:
    if not header or not header.startswith("Bearer "):
        return None
    token = header.split(" ", 1)[1].strip()
    return token or None
