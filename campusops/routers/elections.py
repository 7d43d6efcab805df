from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from .. import schemas
from ..models import ElectionStatus
from ..dependencies import get_current_user, get_election_workflow
from ..workflows import ElectionWorkflow

router = APIRouter(prefix="/elections", tags=["Elections"])


@router.get('', response_model=List[schemas.ElectionResponse])
def list_elections(
    status_filter: Optional[ElectionStatus] = Query(None, alias="status"),
    workflow: ElectionWorkflow = Depends(get_election_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    """List elections with their current status, optionally filtered by it."""
    return workflow.list_elections(status_filter)


@router.get('/{election_id}', response_model=schemas.ElectionResponse)
def get_election(
    election_id: str,
    workflow: ElectionWorkflow = Depends(get_election_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    return workflow.get_election(election_id)


@router.get('/{election_id}/candidates', response_model=List[schemas.CandidateResponse])
def list_candidates(
    election_id: str,
    include_unapproved: bool = False,
    workflow: ElectionWorkflow = Depends(get_election_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    """Ballot candidates; reviewers pass include_unapproved to see every application."""
    return workflow.list_candidates(election_id, include_unapproved=include_unapproved)


@router.post('/{election_id}/candidates', response_model=schemas.CandidateResponse, status_code=status.HTTP_201_CREATED)
def submit_candidacy(
    election_id: str,
    candidate_in: schemas.CandidateCreate,
    workflow: ElectionWorkflow = Depends(get_election_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    """Apply to stand as a candidate; the application starts out pending."""
    return workflow.submit_candidacy(election_id, current_user, candidate_in)


@router.post('/{election_id}/vote', response_model=schemas.VoteResponse, status_code=status.HTTP_201_CREATED)
def cast_vote(
    election_id: str,
    vote_in: schemas.VoteCreate,
    workflow: ElectionWorkflow = Depends(get_election_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    """Cast the caller's single vote in an election"""
    return workflow.cast_vote(election_id, vote_in.candidate_id, current_user)


@router.get('/{election_id}/has-voted', response_model=schemas.HasVotedResponse)
def has_voted(
    election_id: str,
    workflow: ElectionWorkflow = Depends(get_election_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    candidate_id = workflow.has_voted(election_id, current_user.id)
    return schemas.HasVotedResponse(has_voted=candidate_id is not None, candidate_id=candidate_id)


@router.get('/{election_id}/results', response_model=schemas.TallyResponse)
def election_results(
    election_id: str,
    workflow: ElectionWorkflow = Depends(get_election_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),  # any logged-in user
):
    """Return the tally (visible to every role)"""
    return workflow.tally(election_id)
