"""Election lifecycle, candidacies, vote casting and tallying.

An election's status is never stored. Every read recomputes it from the
clock and the stored ``cancelled`` override (see :func:`election_status`).
"""
import logging
from collections import Counter
from datetime import datetime
from typing import List, Optional

from .. import errors
from ..models import CandidateStatus, ElectionStatus
from ..policy import Action, Resource
from ..schemas import (
    CandidateCreate,
    CandidateResponse,
    CandidateTally,
    CurrentUser,
    ElectionCreate,
    ElectionDeletion,
    ElectionResponse,
    ElectionUpdate,
    TallyResponse,
    VoteResponse,
)
from ..store import DocumentNotFound, DuplicateKey, PreconditionFailed
from .base import Workflow, to_utc

logger = logging.getLogger(__name__)

ELECTIONS = "elections"
CANDIDATES = "candidates"
VOTES = "votes"

TERMINAL_STATES = frozenset({ElectionStatus.completed, ElectionStatus.cancelled})


def election_status(now: datetime, start_date: datetime, end_date: datetime, cancelled: bool = False) -> ElectionStatus:
    """Resolve the observable status; ``cancelled`` overrides the clock."""
    if cancelled:
        return ElectionStatus.cancelled
    if now < start_date:
        return ElectionStatus.upcoming
    if now < end_date:
        return ElectionStatus.active
    return ElectionStatus.completed


def _check_schedule(start_date: datetime, end_date: datetime, positions: List[str]) -> None:
    if end_date <= start_date:
        raise errors.InvalidInput("End date must be after start date. Please adjust your dates.")
    if any(not position for position in positions):
        raise errors.InvalidInput("Position names cannot be blank.")
    if len(set(positions)) != len(positions):
        raise errors.InvalidInput("Position names must be unique within an election.")


class ElectionWorkflow(Workflow):

    # ---------------- Helpers ----------------
    def _load_election(self, election_id: str) -> dict:
        try:
            return self._read(self.store.get, ELECTIONS, election_id)
        except DocumentNotFound:
            raise errors.NotFound("Election not found. It may have been deleted or the ID is incorrect.")

    def _load_candidate(self, candidate_id: str) -> dict:
        try:
            return self._read(self.store.get, CANDIDATES, candidate_id)
        except DocumentNotFound:
            raise errors.NotFound("Candidate application not found. It may have been deleted or the ID is incorrect.")

    def _status(self, election: dict) -> ElectionStatus:
        return election_status(
            self.now(), election["start_date"], election["end_date"], election.get("cancelled", False)
        )

    def _election_response(self, election: dict) -> ElectionResponse:
        return ElectionResponse.model_validate({**election, "status": self._status(election)})

    @staticmethod
    def _check_position(election: dict, position: str) -> str:
        position = position.strip()
        if election["positions"] and position not in election["positions"]:
            raise errors.InvalidInput(f"'{position}' is not a position in this election.")
        return position

    def _candidate_fields(self, election: dict, data: CandidateCreate) -> dict:
        now = self.now()
        return {
            "election_id": election["id"],
            "name": data.name,
            "position": self._check_position(election, data.position),
            "department": data.department,
            "image_ref": data.image_ref,
            "manifesto": data.manifesto,
            "reviewed_by": None,
            "submitted_at": now,
            "updated_at": now,
        }

    # ---------------- Election Management ----------------
    def create_election(self, actor: CurrentUser, data: ElectionCreate) -> ElectionResponse:
        self._require(actor, Action.create, Resource.election, "Only administrators can create elections.")
        start_date, end_date = to_utc(data.start_date), to_utc(data.end_date)
        positions = [position.strip() for position in data.positions]
        _check_schedule(start_date, end_date, positions)

        now = self.now()
        election = self.store.create(ELECTIONS, {
            "title": data.title,
            "description": data.description,
            "start_date": start_date,
            "end_date": end_date,
            "positions": positions,
            "cancelled": False,
            "created_by": actor.id,
            "created_at": now,
            "updated_at": now,
        })
        logger.info("Election %s created by %s", election["id"], actor.id)
        self._notify(f"Election '{election['title']}' created. Candidates can now submit their applications.")
        return self._election_response(election)

    def update_election(self, actor: CurrentUser, election_id: str, changes: ElectionUpdate) -> ElectionResponse:
        self._require(actor, Action.update, Resource.election, "Only administrators can edit elections.")
        election = self._load_election(election_id)
        if self._status(election) in TERMINAL_STATES:
            raise errors.InvalidState("Completed or cancelled elections can no longer be edited.")

        fields = changes.model_dump(exclude_unset=True, exclude_none=True)
        for name in ("start_date", "end_date"):
            if name in fields:
                fields[name] = to_utc(fields[name])
        if "positions" in fields:
            fields["positions"] = [position.strip() for position in fields["positions"]]
        merged = {**election, **fields}
        _check_schedule(merged["start_date"], merged["end_date"], merged["positions"])

        fields["updated_at"] = self.now()
        try:
            election = self.store.update(ELECTIONS, election_id, fields, expected={"cancelled": False})
        except DocumentNotFound:
            raise errors.NotFound("Election not found. It may have been deleted or the ID is incorrect.")
        except PreconditionFailed as exc:
            logger.warning("Election %s was cancelled during an edit: %s", election_id, exc)
            raise errors.InvalidState("Completed or cancelled elections can no longer be edited.") from exc
        logger.info("Election %s updated by %s", election_id, actor.id)
        self._notify(f"Election '{election['title']}' updated.")
        return self._election_response(election)

    def cancel_election(self, actor: CurrentUser, election_id: str) -> ElectionResponse:
        self._require(actor, Action.cancel, Resource.election, "Only administrators can cancel elections.")
        election = self._load_election(election_id)
        current = self._status(election)
        if current not in (ElectionStatus.upcoming, ElectionStatus.active):
            raise errors.InvalidState(
                f"Only upcoming or active elections can be cancelled. This election is {current.value}."
            )
        try:
            election = self.store.update(
                ELECTIONS, election_id, {"cancelled": True, "updated_at": self.now()}, expected={"cancelled": False}
            )
        except DocumentNotFound:
            raise errors.NotFound("Election not found. It may have been deleted or the ID is incorrect.")
        except PreconditionFailed as exc:
            logger.warning("Election %s was already cancelled: %s", election_id, exc)
            raise errors.InvalidState("This election has already been cancelled.") from exc
        logger.info("Election %s cancelled by %s", election_id, actor.id)
        self._notify(f"Election '{election['title']}' has been cancelled.")
        return self._election_response(election)

    def delete_election(self, actor: CurrentUser, election_id: str) -> ElectionDeletion:
        """Delete an election, or cancel it when votes have already been cast.

        The election is marked cancelled first so that no vote can be cast
        while its candidates are being removed.
        """
        self._require(actor, Action.delete, Resource.election, "Only administrators can delete elections.")
        election = self._load_election(election_id)
        try:
            if not election["cancelled"]:
                self.store.update(ELECTIONS, election_id, {"cancelled": True, "updated_at": self.now()})

            if self._read(self.store.list, VOTES, election_id=election_id):
                logger.info("Election %s has votes; cancelled instead of deleted", election_id)
                self._notify("This election has votes and cannot be deleted. It has been marked as cancelled instead.")
                return ElectionDeletion(election_id=election_id, outcome="cancelled")

            for candidate in self._read(self.store.list, CANDIDATES, election_id=election_id):
                try:
                    self.store.delete(CANDIDATES, candidate["id"])
                except DocumentNotFound:
                    continue  # removed by a concurrent delete
            self.store.delete(ELECTIONS, election_id)
        except DocumentNotFound:
            raise errors.NotFound("Election not found. It may have been deleted or the ID is incorrect.")

        logger.info("Election %s deleted by %s", election_id, actor.id)
        self._notify("Election deleted successfully.")
        return ElectionDeletion(election_id=election_id, outcome="deleted")

    def get_election(self, election_id: str) -> ElectionResponse:
        return self._election_response(self._load_election(election_id))

    def list_elections(self, status: Optional[ElectionStatus] = None) -> List[ElectionResponse]:
        elections = [self._election_response(doc) for doc in self._read(self.store.list, ELECTIONS)]
        if status is not None:
            elections = [election for election in elections if election.status == status]
        return sorted(elections, key=lambda election: (election.start_date, election.id))

    # ---------------- Candidates ----------------
    def submit_candidacy(self, election_id: str, applicant: CurrentUser, data: CandidateCreate) -> CandidateResponse:
        self._require(applicant, Action.create, Resource.candidate, "You are not allowed to apply as a candidate.")
        election = self._load_election(election_id)
        if self._status(election) in TERMINAL_STATES:
            raise errors.InvalidState("Candidate applications are closed for this election.")

        fields = self._candidate_fields(election, data)
        fields["applicant_id"] = applicant.id
        fields["approval_status"] = CandidateStatus.pending.value
        try:
            candidate = self.store.create_unique(CANDIDATES, ("election_id", "applicant_id"), fields)
        except DuplicateKey as exc:
            logger.warning("Duplicate candidacy by %s in election %s: %s", applicant.id, election_id, exc)
            raise errors.DuplicateCandidacy() from exc
        logger.info("Candidacy %s submitted by %s for election %s", candidate["id"], applicant.id, election_id)
        self._notify("Your candidate application has been submitted successfully. It will be reviewed shortly.")
        return CandidateResponse.model_validate(candidate)

    def nominate_candidate(self, actor: CurrentUser, election_id: str, data: CandidateCreate) -> CandidateResponse:
        """Add a candidate directly to the ballot, already approved."""
        self._require(actor, Action.nominate, Resource.candidate, "Only administrators can add candidates directly.")
        election = self._load_election(election_id)
        if self._status(election) in TERMINAL_STATES:
            raise errors.InvalidState("Candidates cannot be added to a completed or cancelled election.")

        fields = self._candidate_fields(election, data)
        fields["applicant_id"] = None
        fields["approval_status"] = CandidateStatus.approved.value
        fields["reviewed_by"] = actor.id
        candidate = self.store.create(CANDIDATES, fields)
        logger.info("Candidate %s nominated by %s for election %s", candidate["id"], actor.id, election_id)
        self._notify(f"Added candidate {candidate['name']} to the election.")
        return CandidateResponse.model_validate(candidate)

    def review_candidate(self, candidate_id: str, reviewer: CurrentUser, decision: str) -> CandidateResponse:
        """Approve or reject a candidacy.

        Repeating a decision simply writes the same status again.
        """
        actions = {"approve": (Action.approve, CandidateStatus.approved), "reject": (Action.reject, CandidateStatus.rejected)}
        if decision not in actions:
            raise errors.InvalidInput("Decision must be either 'approve' or 'reject'.")
        action, new_status = actions[decision]
        self._require(
            reviewer, action, Resource.candidate,
            "Only administrators and faculty members can review candidate applications.",
        )

        candidate = self._load_candidate(candidate_id)
        election = self._load_election(candidate["election_id"])
        if self._status(election) in TERMINAL_STATES:
            raise errors.InvalidState("Candidates of a completed or cancelled election can no longer be changed.")

        try:
            candidate = self.store.update(CANDIDATES, candidate_id, {
                "approval_status": new_status.value,
                "reviewed_by": reviewer.id,
                "updated_at": self.now(),
            })
        except DocumentNotFound:
            raise errors.NotFound("Candidate application not found. It may have been deleted or the ID is incorrect.")
        logger.info("Candidate %s %s by %s", candidate_id, new_status.value, reviewer.id)
        self._notify(f"Candidate application {new_status.value}.")
        return CandidateResponse.model_validate(candidate)

    def list_candidates(self, election_id: str, include_unapproved: bool = False) -> List[CandidateResponse]:
        election = self._load_election(election_id)
        filters = {"election_id": election_id}
        if not include_unapproved:
            filters["approval_status"] = CandidateStatus.approved.value
        candidates = self._read(self.store.list, CANDIDATES, **filters)

        positions = election["positions"]

        def ballot_order(candidate):
            position = candidate["position"]
            index = positions.index(position) if position in positions else len(positions)
            return index, candidate["name"], candidate["id"]

        return [CandidateResponse.model_validate(candidate) for candidate in sorted(candidates, key=ballot_order)]

    # ---------------- Voting ----------------
    def cast_vote(self, election_id: str, candidate_id: str, voter: CurrentUser) -> VoteResponse:
        """Record ``voter``'s single vote in an election.

        The at-most-one-vote rule is enforced by the store's natural-key
        create on ``(election_id, voter_id)``, not by a prior lookup, so
        concurrent casts by the same voter cannot both succeed.
        """
        self._require(voter, Action.create, Resource.vote, "Only students and faculty members can vote.")

        election = self._load_election(election_id)
        current = self._status(election)
        if current != ElectionStatus.active:
            raise errors.ElectionNotActive(
                f"You cannot vote in this election because it is {current.value}. "
                "Voting is only allowed for active elections."
            )

        try:
            candidate = self._read(self.store.get, CANDIDATES, candidate_id)
        except DocumentNotFound:
            raise errors.CandidateNotEligible()
        if candidate["election_id"] != election_id or candidate["approval_status"] != CandidateStatus.approved:
            raise errors.CandidateNotEligible()

        try:
            vote = self.store.create_unique(VOTES, ("election_id", "voter_id"), {
                "election_id": election_id,
                "candidate_id": candidate_id,
                "voter_id": voter.id,
                "cast_at": self.now(),
            })
        except DuplicateKey as exc:
            logger.warning("Second vote by %s in election %s refused: %s", voter.id, election_id, exc)
            raise errors.AlreadyVoted() from exc

        logger.info("Vote %s recorded in election %s", vote["id"], election_id)
        self._notify("Your vote has been cast successfully.")
        return VoteResponse.model_validate(vote)

    def has_voted(self, election_id: str, voter_id: str) -> Optional[str]:
        """Return the candidate ``voter_id`` voted for, or ``None``."""
        votes = self._read(self.store.list, VOTES, election_id=election_id, voter_id=voter_id)
        return votes[0]["candidate_id"] if votes else None

    def tally(self, election_id: str) -> TallyResponse:
        """Count votes per candidate.

        Ordered by vote count descending, then candidate id. Ties are not
        broken: tied candidates share a rank (1, 1, 3, ...).
        """
        self._load_election(election_id)
        candidates = self._read(self.store.list, CANDIDATES, election_id=election_id)
        votes = self._read(self.store.list, VOTES, election_id=election_id)
        counts = Counter(vote["candidate_id"] for vote in votes)

        rows = [
            candidate for candidate in candidates
            if candidate["approval_status"] == CandidateStatus.approved or counts[candidate["id"]]
        ]
        rows.sort(key=lambda candidate: (-counts[candidate["id"]], candidate["id"]))

        per_candidate = []
        rank, previous = 0, None
        for place, candidate in enumerate(rows, start=1):
            vote_count = counts[candidate["id"]]
            if vote_count != previous:
                rank, previous = place, vote_count
            per_candidate.append(CandidateTally(
                candidate_id=candidate["id"],
                name=candidate["name"],
                position=candidate["position"],
                vote_count=vote_count,
                rank=rank,
            ))
        return TallyResponse(election_id=election_id, total_votes=len(votes), per_candidate=per_candidate)
