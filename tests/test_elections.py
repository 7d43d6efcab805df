import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from campusops import errors
from campusops.models import CandidateStatus, ElectionStatus
from campusops.schemas import CandidateCreate, ElectionCreate, ElectionUpdate
from campusops.store import MemoryDocumentStore
from campusops.workflows import ElectionWorkflow, election_status

from conftest import NOW, make_sql_store


# ---------------- Status ----------------
@pytest.mark.parametrize("offset, expected", [
    (timedelta(hours=-1), ElectionStatus.upcoming),
    (timedelta(0), ElectionStatus.active),
    (timedelta(hours=5), ElectionStatus.active),
    (timedelta(days=1), ElectionStatus.completed),
    (timedelta(days=3), ElectionStatus.completed),
])
def test_status_follows_the_clock(offset, expected):
    start, end = NOW, NOW + timedelta(days=1)
    assert election_status(NOW + offset, start, end) == expected


def test_cancelled_overrides_the_clock():
    for offset in (timedelta(hours=-1), timedelta(hours=1), timedelta(days=2)):
        assert election_status(NOW + offset, NOW, NOW + timedelta(days=1), cancelled=True) == ElectionStatus.cancelled


def test_status_is_recomputed_on_every_read(elections, upcoming_election, clock):
    assert elections.get_election(upcoming_election.id).status == ElectionStatus.upcoming
    clock.advance(days=1)
    assert elections.get_election(upcoming_election.id).status == ElectionStatus.active
    clock.advance(days=2)
    assert elections.get_election(upcoming_election.id).status == ElectionStatus.completed


# ---------------- Election management ----------------
def test_create_election(elections, admin, notifier):
    election = elections.create_election(admin, ElectionCreate(
        title="Faculty Senate Election",
        start_date=NOW + timedelta(days=2),
        end_date=NOW + timedelta(days=3),
        positions=[" Chair ", "Secretary"],
    ))
    assert election.status == ElectionStatus.upcoming
    assert election.positions == ["Chair", "Secretary"]
    assert election.created_by == admin.id
    assert notifier.messages and notifier.messages[-1][0] == "success"


@pytest.mark.parametrize("user", ["student", "faculty"])
def test_only_admin_creates_elections(elections, user, request):
    with pytest.raises(errors.Forbidden):
        elections.create_election(request.getfixturevalue(user), ElectionCreate(
            title="Unauthorised Election", start_date=NOW, end_date=NOW + timedelta(days=1),
        ))


def test_create_election_rejects_bad_schedule(elections, admin):
    with pytest.raises(errors.InvalidInput):
        elections.create_election(admin, ElectionCreate(
            title="Backwards Election", start_date=NOW, end_date=NOW - timedelta(hours=1),
        ))
    with pytest.raises(errors.InvalidInput):
        elections.create_election(admin, ElectionCreate(
            title="Repeated Positions", start_date=NOW, end_date=NOW + timedelta(days=1),
            positions=["President", "President"],
        ))


def test_update_election(elections, admin, upcoming_election):
    updated = elections.update_election(admin, upcoming_election.id, ElectionUpdate(
        title="Renamed Council Election", end_date=upcoming_election.end_date + timedelta(days=1),
    ))
    assert updated.title == "Renamed Council Election"
    assert updated.end_date == upcoming_election.end_date + timedelta(days=1)
    assert updated.description == upcoming_election.description


def test_update_rejects_window_that_ends_before_it_starts(elections, admin, upcoming_election):
    with pytest.raises(errors.InvalidInput):
        elections.update_election(admin, upcoming_election.id, ElectionUpdate(
            end_date=upcoming_election.start_date - timedelta(hours=1),
        ))


def test_completed_election_cannot_be_edited(elections, admin, active_election, clock):
    clock.advance(days=5)
    with pytest.raises(errors.InvalidState):
        elections.update_election(admin, active_election.id, ElectionUpdate(title="Too Late Now"))


def test_cancel_election(elections, admin, active_election):
    cancelled = elections.cancel_election(admin, active_election.id)
    assert cancelled.status == ElectionStatus.cancelled
    assert elections.get_election(active_election.id).status == ElectionStatus.cancelled

    with pytest.raises(errors.InvalidState):
        elections.cancel_election(admin, active_election.id)


def test_cancel_is_sticky_past_the_end_date(elections, admin, upcoming_election, clock):
    elections.cancel_election(admin, upcoming_election.id)
    clock.advance(days=30)
    assert elections.get_election(upcoming_election.id).status == ElectionStatus.cancelled


def test_completed_election_cannot_be_cancelled(elections, admin, active_election, clock):
    clock.advance(days=5)
    with pytest.raises(errors.InvalidState):
        elections.cancel_election(admin, active_election.id)


def test_cancel_requires_admin(elections, faculty, active_election):
    with pytest.raises(errors.Forbidden):
        elections.cancel_election(faculty, active_election.id)


def test_delete_election_without_votes(elections, admin, store, active_election, make_candidate):
    make_candidate(active_election.id)
    result = elections.delete_election(admin, active_election.id)
    assert result.outcome == "deleted"
    assert store.list("candidates", election_id=active_election.id) == []
    with pytest.raises(errors.NotFound):
        elections.get_election(active_election.id)


def test_delete_election_with_votes_cancels_instead(elections, admin, student, active_election, make_candidate):
    candidate = make_candidate(active_election.id)
    elections.cast_vote(active_election.id, candidate.id, student)

    result = elections.delete_election(admin, active_election.id)
    assert result.outcome == "cancelled"
    assert elections.get_election(active_election.id).status == ElectionStatus.cancelled
    assert elections.tally(active_election.id).total_votes == 1


def test_list_elections_filters_on_computed_status(elections, make_election):
    active = make_election()
    upcoming = make_election(starts_in=timedelta(days=1))
    make_election(starts_in=timedelta(days=-10))

    assert [e.id for e in elections.list_elections(ElectionStatus.active)] == [active.id]
    assert [e.id for e in elections.list_elections(ElectionStatus.upcoming)] == [upcoming.id]
    assert len(elections.list_elections()) == 3


# ---------------- Candidates ----------------
def test_submit_candidacy_is_pending(elections, student, active_election):
    candidate = elections.submit_candidacy(active_election.id, student, CandidateCreate(
        name="Sam Lee", position="Treasurer", department="Economics",
    ))
    assert candidate.approval_status == CandidateStatus.pending
    assert candidate.applicant_id == student.id
    assert candidate.election_id == active_election.id


def test_submit_candidacy_allowed_before_start(elections, faculty, upcoming_election):
    candidate = elections.submit_candidacy(upcoming_election.id, faculty, CandidateCreate(name="Dr Who", position="President"))
    assert candidate.approval_status == CandidateStatus.pending


def test_submit_candidacy_closed_once_completed(elections, student, active_election, clock):
    clock.advance(days=5)
    with pytest.raises(errors.InvalidState):
        elections.submit_candidacy(active_election.id, student, CandidateCreate(name="Sam Lee", position="President"))


def test_submit_candidacy_closed_when_cancelled(elections, admin, student, active_election):
    elections.cancel_election(admin, active_election.id)
    with pytest.raises(errors.InvalidState):
        elections.submit_candidacy(active_election.id, student, CandidateCreate(name="Sam Lee", position="President"))


def test_one_candidacy_per_applicant(elections, student, active_election):
    elections.submit_candidacy(active_election.id, student, CandidateCreate(name="Sam Lee", position="President"))
    with pytest.raises(errors.DuplicateCandidacy):
        elections.submit_candidacy(active_election.id, student, CandidateCreate(name="Sam Lee", position="Treasurer"))


def test_candidacy_needs_a_declared_position(elections, student, active_election):
    with pytest.raises(errors.InvalidInput):
        elections.submit_candidacy(active_election.id, student, CandidateCreate(name="Sam Lee", position="Emperor"))


def test_candidacy_for_unknown_election(elections, student):
    with pytest.raises(errors.NotFound):
        elections.submit_candidacy("missing", student, CandidateCreate(name="Sam Lee", position="President"))


def test_review_candidate(elections, student, faculty, active_election):
    candidate = elections.submit_candidacy(active_election.id, student, CandidateCreate(name="Sam Lee", position="President"))
    reviewed = elections.review_candidate(candidate.id, faculty, "approve")
    assert reviewed.approval_status == CandidateStatus.approved
    assert reviewed.reviewed_by == faculty.id


def test_approving_twice_is_idempotent(elections, student, admin, active_election):
    candidate = elections.submit_candidacy(active_election.id, student, CandidateCreate(name="Sam Lee", position="President"))
    elections.review_candidate(candidate.id, admin, "approve")
    again = elections.review_candidate(candidate.id, admin, "approve")
    assert again.approval_status == CandidateStatus.approved


def test_reject_candidate(elections, student, faculty, active_election):
    candidate = elections.submit_candidacy(active_election.id, student, CandidateCreate(name="Sam Lee", position="President"))
    assert elections.review_candidate(candidate.id, faculty, "reject").approval_status == CandidateStatus.rejected


def test_students_cannot_review(elections, student, other_student, active_election):
    candidate = elections.submit_candidacy(active_election.id, student, CandidateCreate(name="Sam Lee", position="President"))
    with pytest.raises(errors.Forbidden):
        elections.review_candidate(candidate.id, other_student, "approve")


def test_review_missing_candidate(elections, faculty):
    with pytest.raises(errors.NotFound):
        elections.review_candidate("missing", faculty, "approve")


def test_review_rejects_unknown_decision(elections, faculty, active_election, make_candidate):
    candidate = make_candidate(active_election.id)
    with pytest.raises(errors.InvalidInput):
        elections.review_candidate(candidate.id, faculty, "maybe")


def test_candidates_are_frozen_after_completion(elections, faculty, active_election, make_candidate, clock):
    candidate = make_candidate(active_election.id)
    clock.advance(days=5)
    with pytest.raises(errors.InvalidState):
        elections.review_candidate(candidate.id, faculty, "reject")


def test_nominated_candidates_are_approved(elections, faculty, active_election, make_candidate):
    candidate = make_candidate(active_election.id)
    assert candidate.approval_status == CandidateStatus.approved
    assert candidate.applicant_id is None
    with pytest.raises(errors.Forbidden):
        elections.nominate_candidate(faculty, active_election.id, CandidateCreate(name="Al Ng", position="President"))


def test_ballot_lists_approved_candidates_by_position(elections, student, active_election, make_candidate):
    treasurer = make_candidate(active_election.id, name="Ann Treasurer", position="Treasurer")
    president = make_candidate(active_election.id, name="Bob President", position="President")
    pending = elections.submit_candidacy(active_election.id, student, CandidateCreate(name="Sam Lee", position="President"))

    assert [c.id for c in elections.list_candidates(active_election.id)] == [president.id, treasurer.id]
    everyone = elections.list_candidates(active_election.id, include_unapproved=True)
    assert {c.id for c in everyone} == {president.id, treasurer.id, pending.id}


# ---------------- Voting ----------------
def test_cast_vote(elections, student, active_election, make_candidate):
    candidate = make_candidate(active_election.id)
    vote = elections.cast_vote(active_election.id, candidate.id, student)
    assert vote.election_id == active_election.id
    assert vote.candidate_id == candidate.id
    assert vote.voter_id == student.id
    assert vote.cast_at == NOW


def test_second_vote_is_refused(elections, student, active_election, make_candidate):
    first = make_candidate(active_election.id, name="Ann")
    second = make_candidate(active_election.id, name="Bob")
    elections.cast_vote(active_election.id, first.id, student)
    with pytest.raises(errors.AlreadyVoted):
        elections.cast_vote(active_election.id, second.id, student)
    assert elections.has_voted(active_election.id, student.id) == first.id


def test_vote_in_upcoming_election(elections, student, upcoming_election, make_candidate):
    candidate = make_candidate(upcoming_election.id)
    with pytest.raises(errors.ElectionNotActive):
        elections.cast_vote(upcoming_election.id, candidate.id, student)


def test_vote_in_completed_election(elections, student, active_election, make_candidate, clock):
    candidate = make_candidate(active_election.id)
    clock.advance(days=5)
    with pytest.raises(errors.ElectionNotActive):
        elections.cast_vote(active_election.id, candidate.id, student)


def test_vote_in_cancelled_election(elections, admin, student, active_election, make_candidate):
    candidate = make_candidate(active_election.id)
    elections.cancel_election(admin, active_election.id)
    with pytest.raises(errors.ElectionNotActive):
        elections.cast_vote(active_election.id, candidate.id, student)


def test_vote_in_deleted_election(elections, admin, student, active_election, make_candidate):
    candidate = make_candidate(active_election.id)
    elections.delete_election(admin, active_election.id)
    with pytest.raises(errors.NotFound):
        elections.cast_vote(active_election.id, candidate.id, student)


def test_vote_for_pending_candidate(elections, student, other_student, active_election):
    candidate = elections.submit_candidacy(active_election.id, other_student, CandidateCreate(name="Sam Lee", position="President"))
    with pytest.raises(errors.CandidateNotEligible):
        elections.cast_vote(active_election.id, candidate.id, student)


def test_vote_for_candidate_of_another_election(elections, student, make_election, make_candidate):
    election = make_election()
    elsewhere = make_candidate(make_election().id)
    with pytest.raises(errors.CandidateNotEligible):
        elections.cast_vote(election.id, elsewhere.id, student)


def test_vote_for_unknown_candidate(elections, student, active_election):
    with pytest.raises(errors.CandidateNotEligible):
        elections.cast_vote(active_election.id, "missing", student)


def test_admin_cannot_vote(elections, admin, active_election, make_candidate):
    candidate = make_candidate(active_election.id)
    with pytest.raises(errors.Forbidden):
        elections.cast_vote(active_election.id, candidate.id, admin)


def test_has_voted_before_voting(elections, student, active_election):
    assert elections.has_voted(active_election.id, student.id) is None


@pytest.mark.parametrize("backend", ["memory", "sql"])
def test_concurrent_votes_by_one_voter_record_exactly_one(backend, tmp_path, clock, student, admin):
    if backend == "memory":
        store = MemoryDocumentStore()
    else:
        store = make_sql_store(f"sqlite:///{tmp_path}/votes.db")
    workflow = ElectionWorkflow(store, clock=clock, retry_backoff=0)
    election = workflow.create_election(admin, ElectionCreate(
        title="Concurrent Election", start_date=NOW - timedelta(hours=1), end_date=NOW + timedelta(hours=1),
    ))
    candidate = workflow.nominate_candidate(admin, election.id, CandidateCreate(name="Jane Smith", position="President"))

    attempts = 8
    barrier = threading.Barrier(attempts)

    def attempt(_):
        barrier.wait()
        try:
            workflow.cast_vote(election.id, candidate.id, student)
        except errors.AlreadyVoted:
            return "refused"
        return "recorded"

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        outcomes = list(pool.map(attempt, range(attempts)))

    assert outcomes.count("recorded") == 1
    assert outcomes.count("refused") == attempts - 1
    assert len(store.list("votes", election_id=election.id)) == 1


# ---------------- Tally ----------------
def test_tally_orders_by_votes(elections, active_election, make_candidate, make_voter):
    a = make_candidate(active_election.id, name="Ann")
    b = make_candidate(active_election.id, name="Bob")
    c = make_candidate(active_election.id, name="Cat")
    for index, candidate in enumerate([a, a, b, c, c, c]):
        elections.cast_vote(active_election.id, candidate.id, make_voter(index))

    result = elections.tally(active_election.id)
    assert result.total_votes == 6
    assert [(row.candidate_id, row.vote_count) for row in result.per_candidate] == [(c.id, 3), (a.id, 2), (b.id, 1)]
    assert [row.rank for row in result.per_candidate] == [1, 2, 3]


def test_tally_reports_ties_with_equal_rank(elections, active_election, make_candidate, make_voter):
    a = make_candidate(active_election.id, name="Ann")
    b = make_candidate(active_election.id, name="Bob")
    c = make_candidate(active_election.id, name="Cat")
    for index, candidate in enumerate([a, b, a, b, c]):
        elections.cast_vote(active_election.id, candidate.id, make_voter(index))

    rows = elections.tally(active_election.id).per_candidate
    tied = sorted([a.id, b.id])
    assert [row.candidate_id for row in rows] == tied + [c.id]
    assert [row.rank for row in rows] == [1, 1, 3]


def test_tally_includes_candidates_without_votes_but_not_pending_ones(
    elections, student, active_election, make_candidate
):
    nominee = make_candidate(active_election.id)
    elections.submit_candidacy(active_election.id, student, CandidateCreate(name="Sam Lee", position="Treasurer"))

    result = elections.tally(active_election.id)
    assert result.total_votes == 0
    assert [(row.candidate_id, row.vote_count, row.rank) for row in result.per_candidate] == [(nominee.id, 0, 1)]


def test_tally_of_unknown_election(elections):
    with pytest.raises(errors.NotFound):
        elections.tally("missing")
