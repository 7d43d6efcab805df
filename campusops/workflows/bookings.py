"""Facility booking requests and their approval lifecycle.

::

    (none) --create--> pending --approve--> approved
                               --reject---> rejected
                               --cancel---> cancelled   (requester only)

approved, rejected and cancelled are terminal. Overlap between bookings of
one facility is only checked when a request is approved; pending requests
may overlap freely so approvers can see every contender.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Iterable, List, Optional

from .. import errors
from ..models import BookingStatus, FacilityStatus
from ..policy import Action, Resource
from ..schemas import BookingCreate, BookingResponse, CurrentUser, FacilityCreate, FacilityResponse
from ..store import DocumentNotFound, PreconditionFailed
from .base import Workflow, to_utc

logger = logging.getLogger(__name__)

FACILITIES = "facilities"
BOOKINGS = "bookings"


def windows_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open windows overlap; ``[10:00, 11:00)`` and ``[11:00, 12:00)`` do not."""
    return start_a < end_b and start_b < end_a


def facility_status(facility: dict, approved_bookings: Iterable[dict], now: datetime) -> FacilityStatus:
    if facility.get("under_maintenance"):
        return FacilityStatus.maintenance
    for booking in approved_bookings:
        if booking["start_time"] <= now < booking["end_time"]:
            return FacilityStatus.booked
    return FacilityStatus.available


class BookingWorkflow(Workflow):

    # ---------------- Helpers ----------------
    def _load_facility(self, facility_id: str) -> dict:
        try:
            return self._read(self.store.get, FACILITIES, facility_id)
        except DocumentNotFound:
            raise errors.NotFound("Facility not found. It may have been removed or the ID is incorrect.")

    def _load_booking(self, booking_id: str) -> dict:
        try:
            return self._read(self.store.get, BOOKINGS, booking_id)
        except DocumentNotFound:
            raise errors.NotFound("Booking request not found. It may have been removed or the ID is incorrect.")

    def _approved_bookings(self, facility_id: Optional[str] = None) -> List[dict]:
        filters = {"status": BookingStatus.approved.value}
        if facility_id is not None:
            filters["facility_id"] = facility_id
        return self._read(self.store.list, BOOKINGS, **filters)

    def _facility_response(self, facility: dict, approved_bookings: Optional[List[dict]] = None) -> FacilityResponse:
        if approved_bookings is None:
            approved_bookings = self._approved_bookings(facility["id"])
        current = facility_status(facility, approved_bookings, self.now())
        return FacilityResponse.model_validate({**facility, "status": current})

    @staticmethod
    def _ensure_pending(booking: dict) -> None:
        if booking["status"] != BookingStatus.pending:
            raise errors.InvalidState(f"This booking request is already {booking['status']}.")

    def _ensure_no_conflict(self, booking: dict) -> None:
        for other in self._approved_bookings(booking["facility_id"]):
            if other["id"] != booking["id"] and windows_overlap(
                booking["start_time"], booking["end_time"], other["start_time"], other["end_time"]
            ):
                logger.info("Booking %s overlaps approved booking %s", booking["id"], other["id"])
                raise errors.FacilityConflict(
                    "This facility is already booked during the requested time slot. "
                    "Resolve the conflicting approved booking first."
                )

    def _decide(self, booking: dict, new_status: BookingStatus, actor: CurrentUser, notes: Optional[str]) -> dict:
        """Move a pending booking to ``new_status``.

        Written as a conditional update on ``status = pending`` so that two
        deciders racing on the same request cannot both win.
        """
        fields = {
            "status": new_status.value,
            "decision_notes": notes,
            "decided_by": actor.id,
            "updated_at": self.now(),
        }
        expected = {"status": BookingStatus.pending.value}
        if not self.store.supports_conditional_writes:
            # best effort: re-read right before an unconditional write
            self._ensure_pending(self._load_booking(booking["id"]))
            expected = None
        try:
            return self.store.update(BOOKINGS, booking["id"], fields, expected=expected)
        except DocumentNotFound:
            raise errors.NotFound("Booking request not found. It may have been removed or the ID is incorrect.")
        except PreconditionFailed as exc:
            logger.warning("Booking %s was decided concurrently: %s", booking["id"], exc)
            raise errors.InvalidState("This booking request has already been decided.") from exc

    # ---------------- Facilities ----------------
    def create_facility(self, actor: CurrentUser, data: FacilityCreate) -> FacilityResponse:
        self._require(actor, Action.create, Resource.facility, "Only administrators can register facilities.")
        facility = self.store.create(FACILITIES, {
            "name": data.name,
            "capacity": data.capacity,
            "location": data.location,
            "description": data.description,
            "under_maintenance": False,
            "created_at": self.now(),
        })
        logger.info("Facility %s registered by %s", facility["id"], actor.id)
        self._notify(f"Facility '{facility['name']}' registered.")
        return self._facility_response(facility, [])

    def set_facility_maintenance(self, actor: CurrentUser, facility_id: str, under_maintenance: bool) -> FacilityResponse:
        self._require(actor, Action.update, Resource.facility, "Only administrators can change facility status.")
        try:
            facility = self.store.update(FACILITIES, facility_id, {"under_maintenance": under_maintenance})
        except DocumentNotFound:
            raise errors.NotFound("Facility not found. It may have been removed or the ID is incorrect.")
        logger.info("Facility %s maintenance=%s set by %s", facility_id, under_maintenance, actor.id)
        return self._facility_response(facility)

    def get_facility(self, facility_id: str) -> FacilityResponse:
        return self._facility_response(self._load_facility(facility_id))

    def list_facilities(self) -> List[FacilityResponse]:
        by_facility = defaultdict(list)
        for booking in self._approved_bookings():
            by_facility[booking["facility_id"]].append(booking)
        facilities = self._read(self.store.list, FACILITIES)
        facilities.sort(key=lambda facility: (facility["name"], facility["id"]))
        return [self._facility_response(facility, by_facility[facility["id"]]) for facility in facilities]

    # ---------------- Booking Requests ----------------
    def create_booking(self, requester: CurrentUser, data: BookingCreate) -> BookingResponse:
        self._require(requester, Action.create, Resource.booking, "You are not allowed to book facilities.")
        start_time, end_time = to_utc(data.start_time), to_utc(data.end_time)
        now = self.now()
        if start_time >= end_time:
            raise errors.InvalidWindow("The booking must end after it starts.")
        if start_time < now:
            raise errors.InvalidWindow("Bookings cannot start in the past.")

        facility = self._load_facility(data.facility_id)
        if facility["under_maintenance"]:
            raise errors.InvalidState("This facility is under maintenance and cannot be booked.")
        if data.attendees is not None and data.attendees > facility["capacity"]:
            raise errors.InvalidInput(f"This facility holds at most {facility['capacity']} people.")

        booking = self.store.create(BOOKINGS, {
            "facility_id": facility["id"],
            "requester_id": requester.id,
            "start_time": start_time,
            "end_time": end_time,
            "purpose": data.purpose,
            "attendees": data.attendees,
            "status": BookingStatus.pending.value,
            "decision_notes": None,
            "decided_by": None,
            "created_at": now,
            "updated_at": now,
        })
        logger.info("Booking %s requested by %s for facility %s", booking["id"], requester.id, facility["id"])
        self._notify("Your booking request has been submitted for approval.")
        return BookingResponse.model_validate(booking)

    def approve_booking(self, booking_id: str, approver: CurrentUser, notes: Optional[str] = None) -> BookingResponse:
        """Approve a pending request unless an approved booking overlaps it.

        On conflict the request stays pending and the other booking is left
        alone. The overlap query runs right before the conditional write;
        two overlapping requests approved at the same instant can still both
        pass it (see DESIGN.md).
        """
        self._require(
            approver, Action.manage, Resource.booking,
            "Only faculty members and administrators can approve booking requests.",
        )
        booking = self._load_booking(booking_id)
        self._ensure_pending(booking)
        self._ensure_no_conflict(booking)
        booking = self._decide(booking, BookingStatus.approved, approver, notes or "")
        logger.info("Booking %s approved by %s", booking_id, approver.id)
        self._notify("The booking request has been approved.")
        return BookingResponse.model_validate(booking)

    def reject_booking(self, booking_id: str, approver: CurrentUser, reason: str) -> BookingResponse:
        self._require(
            approver, Action.manage, Resource.booking,
            "Only faculty members and administrators can reject booking requests.",
        )
        if not reason or not reason.strip():
            raise errors.MissingReason()
        booking = self._load_booking(booking_id)
        self._ensure_pending(booking)
        booking = self._decide(booking, BookingStatus.rejected, approver, reason.strip())
        logger.info("Booking %s rejected by %s", booking_id, approver.id)
        self._notify("The booking request has been rejected.")
        return BookingResponse.model_validate(booking)

    def cancel_booking(self, booking_id: str, requester: CurrentUser) -> BookingResponse:
        """Withdraw one's own pending request.

        Only the original requester may cancel; administrators reject instead.
        """
        self._require(requester, Action.cancel, Resource.booking)
        booking = self._load_booking(booking_id)
        if booking["requester_id"] != requester.id:
            raise errors.Forbidden("Only the person who requested this booking can cancel it.")
        self._ensure_pending(booking)
        booking = self._decide(booking, BookingStatus.cancelled, requester, booking["decision_notes"])
        logger.info("Booking %s cancelled by its requester", booking_id)
        self._notify("Your booking request has been cancelled.")
        return BookingResponse.model_validate(booking)

    def list_pending_bookings(self, facility_ids: Optional[Iterable[str]] = None) -> List[BookingResponse]:
        """Pending requests, optionally limited to an approver's facilities."""
        bookings = self._read(self.store.list, BOOKINGS, status=BookingStatus.pending.value)
        if facility_ids is not None:
            scope = set(facility_ids)
            bookings = [booking for booking in bookings if booking["facility_id"] in scope]
        bookings.sort(key=lambda booking: (booking["start_time"], booking["id"]))
        return [BookingResponse.model_validate(booking) for booking in bookings]

    def list_user_bookings(self, user_id: str) -> List[BookingResponse]:
        bookings = self._read(self.store.list, BOOKINGS, requester_id=user_id)
        bookings.sort(key=lambda booking: (booking["created_at"], booking["id"]), reverse=True)
        return [BookingResponse.model_validate(booking) for booking in bookings]
