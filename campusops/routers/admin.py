from fastapi import APIRouter, Depends, status
from .. import schemas
from ..dependencies import get_current_user, get_election_workflow
from ..workflows import ElectionWorkflow

router = APIRouter(prefix="/admin", tags=["Admin"])


# ---------------- Election Management ----------------
@router.post("/elections", response_model=schemas.ElectionResponse, status_code=status.HTTP_201_CREATED)
def create_election(
    election_in: schemas.ElectionCreate,
    workflow: ElectionWorkflow = Depends(get_election_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    return workflow.create_election(current_user, election_in)


@router.put("/elections/{election_id}", response_model=schemas.ElectionResponse)
def update_election(
    election_id: str,
    election_in: schemas.ElectionUpdate,
    workflow: ElectionWorkflow = Depends(get_election_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    return workflow.update_election(current_user, election_id, election_in)


@router.post("/elections/{election_id}/cancel", response_model=schemas.ElectionResponse)
def cancel_election(
    election_id: str,
    workflow: ElectionWorkflow = Depends(get_election_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    return workflow.cancel_election(current_user, election_id)


@router.delete("/elections/{election_id}", response_model=schemas.ElectionDeletion)
def delete_election(
    election_id: str,
    workflow: ElectionWorkflow = Depends(get_election_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    """Delete an election; one that already has votes is cancelled instead"""
    return workflow.delete_election(current_user, election_id)


# ---------------- Candidate Management ----------------
@router.post("/elections/{election_id}/candidates", response_model=schemas.CandidateResponse, status_code=status.HTTP_201_CREATED)
def add_candidate(
    election_id: str,
    candidate_in: schemas.CandidateCreate,
    workflow: ElectionWorkflow = Depends(get_election_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    return workflow.nominate_candidate(current_user, election_id, candidate_in)
