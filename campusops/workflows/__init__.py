from .base import Workflow, to_utc, utcnow
from .bookings import BookingWorkflow, facility_status, windows_overlap
from .elections import ElectionWorkflow, election_status

__all__ = [
    "BookingWorkflow",
    "ElectionWorkflow",
    "Workflow",
    "election_status",
    "facility_status",
    "to_utc",
    "utcnow",
    "windows_overlap",
]
