from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text, Boolean, JSON, UniqueConstraint, Enum
from .database import Base
import enum


# --- ENUMS for consistency ---
class Role(str, enum.Enum):
    student = "Student"
    faculty = "Faculty"
    admin = "Admin"


class ElectionStatus(str, enum.Enum):
    upcoming = "upcoming"
    active = "active"
    completed = "completed"
    cancelled = "cancelled"


class CandidateStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class BookingStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class FacilityStatus(str, enum.Enum):
    available = "available"
    booked = "booked"
    maintenance = "maintenance"


# --- MODELS ---
# Each table backs one document-store collection; ids are opaque strings.
class Election(Base):
    __tablename__ = "elections"

    id = Column(String(64), primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    positions = Column(JSON, nullable=False, default=list)
    # status is derived on read; only the cancellation override is stored
    cancelled = Column(Boolean, nullable=False, default=False)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class Candidate(Base):
    __tablename__ = "candidates"

    id = Column(String(64), primary_key=True, index=True)
    election_id = Column(String(64), ForeignKey("elections.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    position = Column(String, nullable=False, index=True)
    department = Column(String, nullable=True)
    image_ref = Column(String, nullable=True)
    manifesto = Column(Text, nullable=True)
    applicant_id = Column(String(64), nullable=True)  # NULL for admin nominations
    approval_status = Column(Enum(CandidateStatus), default=CandidateStatus.pending, nullable=False, index=True)
    reviewed_by = Column(String(64), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        # One application per applicant per election
        UniqueConstraint("election_id", "applicant_id", name="uq_candidate_election_applicant"),
    )


class Vote(Base):
    __tablename__ = "votes"

    id = Column(String(64), primary_key=True, index=True)
    election_id = Column(String(64), ForeignKey("elections.id", ondelete="CASCADE"), nullable=False, index=True)
    candidate_id = Column(String(64), ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True)
    voter_id = Column(String(64), nullable=False)
    cast_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        # Ensure a voter can only vote once in a given election
        UniqueConstraint("election_id", "voter_id", name="uq_vote_election_voter"),
    )


class Facility(Base):
    __tablename__ = "facilities"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String, nullable=False)
    capacity = Column(Integer, nullable=False)
    location = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    under_maintenance = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


class BookingRequest(Base):
    __tablename__ = "bookings"

    id = Column(String(64), primary_key=True, index=True)
    facility_id = Column(String(64), ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False, index=True)
    requester_id = Column(String(64), nullable=False, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    purpose = Column(Text, nullable=False)
    attendees = Column(Integer, nullable=True)
    status = Column(Enum(BookingStatus), default=BookingStatus.pending, nullable=False, index=True)
    decision_notes = Column(Text, nullable=True)
    decided_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
