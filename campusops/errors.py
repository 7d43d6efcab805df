"""Domain errors raised by the workflows.

Each error carries a user-visible message, a stable ``code`` and the HTTP
status the API answers with.
"""
from fastapi import status


class WorkflowError(Exception):
    code = "workflow_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "The request could not be completed."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(WorkflowError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "The requested record was not found."


class Forbidden(WorkflowError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action."


class InvalidState(WorkflowError):
    code = "invalid_state"
    status_code = status.HTTP_409_CONFLICT
    default_message = "This action is not allowed in the record's current state."


class InvalidWindow(WorkflowError):
    code = "invalid_window"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "The start time must be in the future and before the end time."


class InvalidInput(WorkflowError):
    code = "invalid_input"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "The submitted data is invalid."


class AlreadyVoted(WorkflowError):
    code = "already_voted"
    status_code = status.HTTP_409_CONFLICT
    default_message = "You have already voted in this election. Each voter may only vote once."


class DuplicateCandidacy(WorkflowError):
    code = "duplicate_candidacy"
    status_code = status.HTTP_409_CONFLICT
    default_message = "You have already submitted an application for this election."


class CandidateNotEligible(WorkflowError):
    code = "candidate_not_eligible"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Candidate not found or not approved for this election."


class ElectionNotActive(WorkflowError):
    code = "election_not_active"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Voting is only allowed while an election is active."


class FacilityConflict(WorkflowError):
    code = "facility_conflict"
    status_code = status.HTTP_409_CONFLICT
    default_message = "This facility is already booked during the requested time slot."


class MissingReason(WorkflowError):
    code = "missing_reason"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "A reason is required to reject a booking request."


class StoreUnavailable(WorkflowError):
    code = "store_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "The data store is unavailable. Please try again later."
