from datetime import datetime, timedelta, timezone

import pytest

from campusops.database import Base, build_engine, build_session_factory
from campusops.models import Role
from campusops.schemas import CandidateCreate, CurrentUser, ElectionCreate, FacilityCreate
from campusops.store import MemoryDocumentStore, SqlAlchemyDocumentStore
from campusops.workflows import BookingWorkflow, ElectionWorkflow

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class Clock:
    """A settable clock handed to the workflows."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self):
        self.messages = []

    def notify(self, kind, message):
        self.messages.append((kind, message))


def make_sql_store(url="sqlite://"):
    engine = build_engine(url)
    Base.metadata.create_all(bind=engine)
    return SqlAlchemyDocumentStore(build_session_factory(engine))


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return MemoryDocumentStore()
    return make_sql_store()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def elections(store, notifier, clock):
    return ElectionWorkflow(store, notifier, clock=clock, retry_backoff=0)


@pytest.fixture
def bookings(store, notifier, clock):
    return BookingWorkflow(store, notifier, clock=clock, retry_backoff=0)


@pytest.fixture
def student():
    return CurrentUser(id="student-1", role=Role.student)


@pytest.fixture
def other_student():
    return CurrentUser(id="student-2", role=Role.student)


@pytest.fixture
def faculty():
    return CurrentUser(id="faculty-1", role=Role.faculty)


@pytest.fixture
def admin():
    return CurrentUser(id="admin-1", role=Role.admin)


@pytest.fixture
def make_election(elections, admin):
    def make(starts_in=timedelta(days=-1), lasts=timedelta(days=2), positions=("President", "Treasurer")):
        return elections.create_election(admin, ElectionCreate(
            title="Student Council Election",
            description="Annual council vote",
            start_date=NOW + starts_in,
            end_date=NOW + starts_in + lasts,
            positions=list(positions),
        ))
    return make


@pytest.fixture
def active_election(make_election):
    return make_election()


@pytest.fixture
def upcoming_election(make_election):
    return make_election(starts_in=timedelta(days=1))


@pytest.fixture
def make_candidate(elections, admin):
    """Nominate an already-approved candidate."""
    def make(election_id, name="Jane Smith", position="President"):
        return elections.nominate_candidate(admin, election_id, CandidateCreate(name=name, position=position))
    return make


@pytest.fixture
def make_voter():
    def make(index):
        return CurrentUser(id=f"voter-{index}", role=Role.student)
    return make


@pytest.fixture
def facility(bookings, admin):
    return bookings.create_facility(admin, FacilityCreate(name="Main Auditorium", capacity=200, location="Block A"))
