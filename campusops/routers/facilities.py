from fastapi import APIRouter, Depends, status
from typing import List
from .. import schemas
from ..dependencies import get_current_user, get_booking_workflow
from ..workflows import BookingWorkflow

router = APIRouter(prefix="/facilities", tags=["Facilities"])


@router.get("", response_model=List[schemas.FacilityResponse])
def list_facilities(
    workflow: BookingWorkflow = Depends(get_booking_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    return workflow.list_facilities()


@router.post("", response_model=schemas.FacilityResponse, status_code=status.HTTP_201_CREATED)
def create_facility(
    facility_in: schemas.FacilityCreate,
    workflow: BookingWorkflow = Depends(get_booking_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    return workflow.create_facility(current_user, facility_in)


@router.get("/{facility_id}", response_model=schemas.FacilityResponse)
def get_facility(
    facility_id: str,
    workflow: BookingWorkflow = Depends(get_booking_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    return workflow.get_facility(facility_id)


@router.put("/{facility_id}/maintenance", response_model=schemas.FacilityResponse)
def set_maintenance(
    facility_id: str,
    maintenance_in: schemas.FacilityMaintenance,
    workflow: BookingWorkflow = Depends(get_booking_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    """Take a facility out of (or back into) service"""
    return workflow.set_facility_maintenance(current_user, facility_id, maintenance_in.under_maintenance)
