import logging
import threading
import time
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

EXPIRY_MARGIN_SECONDS = 2.0
DEFAULT_DISPLAY_NAME = "User"


@dataclass(frozen=True)
class Session:
    access_token: str
    user_id: str
    expires_at: Optional[float] = None


class DisplayNameCache:
    """Read-through cache of profile display names, keyed by user id."""

    def __init__(self, loader: Callable[[str], Optional[str]], default: str = DEFAULT_DISPLAY_NAME) -> None:
        self._loader = loader
        self._default = default
        self._names: Dict[str, str] = {}

    def get(self, user_id: str) -> str:
        cached = self._names.get(user_id)
        if cached:
            return cached
        name = self._loader(user_id)
        if name:
            self._names[user_id] = name
            return name
        return self._default

    def invalidate(self, user_id: Optional[str] = None) -> None:
        if user_id is None:
            self._names.clear()
        else:
            self._names.pop(user_id, None)


class SessionMonitor:
    """Holds the current session and signs it out when the credential expires.

    The expiry timer fires ``EXPIRY_MARGIN_SECONDS`` before ``expires_at``.
    Signing out, by timer or explicitly, drops the session, invalidates the
    display-name cache and calls ``on_logout`` (typically a redirect to the
    login view).
    """

    def __init__(
        self,
        sign_out: Callable[[], None],
        on_logout: Callable[[], None],
        name_cache: Optional[DisplayNameCache] = None,
        clock: Callable[[], float] = time.time,
        timer_factory=threading.Timer,
    ) -> None:
        self._sign_out = sign_out
        self._on_logout = on_logout
        self._name_cache = name_cache
        self._clock = clock
        self._timer_factory = timer_factory
        self._timer = None
        self._lock = threading.Lock()
        self.session: Optional[Session] = None

    def start(self, session: Session) -> None:
        with self._lock:
            self._cancel_timer()
            self.session = session
        self._arm(session)

    def token_refreshed(self, session: Session) -> None:
        self.start(session)

    def token(self) -> Optional[str]:
        session = self.session
        return session.access_token if session else None

    def sign_out(self) -> None:
        with self._lock:
            self._cancel_timer()
            session = self.session
            self.session = None
        self._sign_out()
        if self._name_cache is not None:
            self._name_cache.invalidate(session.user_id if session else None)
        self._on_logout()

    def stop(self) -> None:
        with self._lock:
            self._cancel_timer()

    def _arm(self, session: Session) -> None:
        if session.expires_at is None:
            return
        delay = session.expires_at - self._clock() - EXPIRY_MARGIN_SECONDS
        if delay <= 0:
            self._expire(session)
            return
        timer = self._timer_factory(delay, partial(self._expire, session))
        timer.daemon = True
        with self._lock:
            # signed out or replaced while arming
            if self.session is not session:
                return
            self._timer = timer
            timer.start()

    def _expire(self, session: Session) -> None:
        with self._lock:
            if self.session is not session:
                return
        logger.info("Session expired, signing out")
        self.sign_out()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
