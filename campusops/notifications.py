import logging
from typing import Literal

logger = logging.getLogger(__name__)

NotificationKind = Literal["success", "error"]


class Notifier:
    """Informational side channel. Calls are fire-and-forget."""

    def notify(self, kind: NotificationKind, message: str) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    def notify(self, kind, message):
        if kind == "error":
            logger.warning("%s", message)
        else:
            logger.info("%s", message)


def emit(notifier: Notifier, kind: NotificationKind, message: str) -> None:
    """Send a notification; a failing notifier never affects the caller."""
    if notifier is None:
        return
    try:
        notifier.notify(kind, message)
    except Exception:
        logger.exception("Notifier %r failed to deliver %r", notifier, message)
