from functools import lru_cache

from fastapi import Depends

from . import auth, schemas
from .config import settings
from .notifications import LogNotifier, Notifier
from .store import DocumentStore, create_store
from .workflows import BookingWorkflow, ElectionWorkflow


# One store per process; which implementation is decided by configuration
@lru_cache(maxsize=None)
def get_store() -> DocumentStore:
    return create_store(settings)


def get_notifier() -> Notifier:
    return LogNotifier()


# Extract current user from JWT (returns Pydantic CurrentUser)
def get_current_user(
    user: schemas.CurrentUser = Depends(auth.get_current_user),
) -> schemas.CurrentUser:
    return user


def get_election_workflow(
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> ElectionWorkflow:
    return ElectionWorkflow(store, notifier)


def get_booking_workflow(
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> BookingWorkflow:
    return BookingWorkflow(store, notifier)
