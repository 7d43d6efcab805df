from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from .. import schemas
from ..dependencies import get_current_user, get_booking_workflow
from ..workflows import BookingWorkflow

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=schemas.BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    booking_in: schemas.BookingCreate,
    workflow: BookingWorkflow = Depends(get_booking_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    """Request a facility; the request waits for faculty/admin approval"""
    return workflow.create_booking(current_user, booking_in)


@router.get("/mine", response_model=List[schemas.BookingResponse])
def my_bookings(
    workflow: BookingWorkflow = Depends(get_booking_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    return workflow.list_user_bookings(current_user.id)


@router.get("/pending", response_model=List[schemas.BookingResponse])
def pending_bookings(
    facility_id: Optional[List[str]] = Query(None),
    workflow: BookingWorkflow = Depends(get_booking_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    """Pending requests, optionally scoped to the given facilities"""
    return workflow.list_pending_bookings(facility_id)


@router.post("/{booking_id}/approve", response_model=schemas.BookingResponse)
def approve_booking(
    booking_id: str,
    approval_in: Optional[schemas.BookingApproval] = None,
    workflow: BookingWorkflow = Depends(get_booking_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    notes = approval_in.notes if approval_in else None
    return workflow.approve_booking(booking_id, current_user, notes)


@router.post("/{booking_id}/reject", response_model=schemas.BookingResponse)
def reject_booking(
    booking_id: str,
    rejection_in: schemas.BookingRejection,
    workflow: BookingWorkflow = Depends(get_booking_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    return workflow.reject_booking(booking_id, current_user, rejection_in.reason)


@router.post("/{booking_id}/cancel", response_model=schemas.BookingResponse)
def cancel_booking(
    booking_id: str,
    workflow: BookingWorkflow = Depends(get_booking_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    """Withdraw your own pending request"""
    return workflow.cancel_booking(booking_id, current_user)
