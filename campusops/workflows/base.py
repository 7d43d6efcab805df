import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from .. import errors
from ..config import settings
from ..notifications import Notifier, emit
from ..policy import can_perform
from ..schemas import CurrentUser
from ..store import DocumentStore

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Convert naive or tz-aware datetime to UTC-aware datetime."""
    if dt.tzinfo is None:  # naive input is taken to be UTC already
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class Workflow:
    """Shared plumbing for the workflows: store, clock, retries, notifications."""

    def __init__(
        self,
        store: DocumentStore,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = utcnow,
        read_retries: int = settings.STORE_READ_RETRIES,
        retry_backoff: float = settings.STORE_RETRY_BACKOFF_SECONDS,
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self.read_retries = read_retries
        self.retry_backoff = retry_backoff

    def now(self) -> datetime:
        return to_utc(self.clock())

    def _read(self, fn, *args, **kwargs):
        """Run a read-only store call, retrying StoreUnavailable a few times.

        Writes never go through here: a write with an unknown outcome must be
        re-checked by the caller, not blindly repeated.
        """
        attempt = 0
        while True:
            try:
                return fn(*args, **kwargs)
            except errors.StoreUnavailable:
                if attempt >= self.read_retries:
                    raise
                attempt += 1
                logger.warning("Store read failed, retrying (%d/%d)", attempt, self.read_retries)
                if self.retry_backoff:
                    time.sleep(self.retry_backoff * attempt)

    def _require(self, user: CurrentUser, action, resource, message: str = None) -> None:
        if not can_perform(user.role, action, resource):
            raise errors.Forbidden(message)

    def _notify(self, message: str) -> None:
        emit(self.notifier, "success", message)
