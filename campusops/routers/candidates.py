from fastapi import APIRouter, Depends
from .. import schemas
from ..dependencies import get_current_user, get_election_workflow
from ..workflows import ElectionWorkflow

router = APIRouter(prefix="/candidates", tags=["Candidates"])


@router.patch("/{candidate_id}/review", response_model=schemas.CandidateResponse)
def review_candidate(
    candidate_id: str,
    review_in: schemas.CandidateReview,
    workflow: ElectionWorkflow = Depends(get_election_workflow),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    """Approve or reject a candidate application (faculty and admins)"""
    return workflow.review_candidate(candidate_id, current_user, review_in.decision)
