import logging
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"
INFO = "info"
WARNING = "warning"

_LOG_LEVELS = {
    SUCCESS: logging.INFO,
    INFO: logging.INFO,
    WARNING: logging.WARNING,
    ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class Notification:
    level: str
    title: str
    message: str


class Notifier:
    """Collects user-visible notifications, newest last."""

    def __init__(self) -> None:
        self.items: List[Notification] = []

    def _show(self, level: str, message: str, title: str) -> Notification:
        notification = Notification(level=level, title=title, message=message)
        self.items.append(notification)
        logger.log(_LOG_LEVELS[level], "%s: %s", title, message)
        return notification

    def success(self, message: str, title: str = "Success") -> Notification:
        return self._show(SUCCESS, message, title)

    def error(self, message: str, title: str = "Error") -> Notification:
        return self._show(ERROR, message, title)

    def info(self, message: str, title: str = "Info") -> Notification:
        return self._show(INFO, message, title)

    def warning(self, message: str, title: str = "Warning") -> Notification:
        return self._show(WARNING, message, title)

    @property
    def last(self):
        return self.items[-1] if self.items else None

    def clear(self) -> None:
        self.items.clear()
