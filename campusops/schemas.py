from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Literal, Annotated
from datetime import datetime

from .models import Role, ElectionStatus, CandidateStatus, BookingStatus, FacilityStatus


# ======================
# IDENTITY
# ======================

class CurrentUser(BaseModel):
    id: str
    role: Role


class TokenPayload(BaseModel):
    sub: Optional[str] = None   # user id (subject)
    exp: Optional[int] = None   # expiration timestamp
    role: Optional[str] = None  # role string


# ======================
# CANDIDATES
# ======================

class CandidateBase(BaseModel):
    name: Annotated[str, Field(min_length=2, max_length=100, examples=["Jane Smith"])]
    position: str = Field(..., examples=["President"])
    department: Optional[str] = Field(None, examples=["Computer Science"])
    image_ref: Optional[str] = None
    manifesto: Optional[str] = Field(None, max_length=1000, examples=["Transparency and Innovation"])


class CandidateCreate(CandidateBase):
    pass


class CandidateResponse(CandidateBase):
    id: str
    election_id: str
    applicant_id: Optional[str] = None
    approval_status: CandidateStatus
    reviewed_by: Optional[str] = None
    submitted_at: datetime
    updated_at: datetime


class CandidateReview(BaseModel):
    decision: Literal["approve", "reject"]


# ======================
# ELECTIONS
# ======================

class ElectionBase(BaseModel):
    title: Annotated[str, Field(min_length=5, max_length=100, examples=["Student Council Election 2026"])]
    description: str = Field("", max_length=1000)
    start_date: datetime = Field(..., alias="startDate")
    end_date: datetime = Field(..., alias="endDate")
    positions: List[str] = Field(default_factory=list, examples=[["President", "Treasurer"]])

    # allows both start_date and startDate
    model_config = ConfigDict(populate_by_name=True)


class ElectionCreate(ElectionBase):
    pass


class ElectionUpdate(BaseModel):
    title: Optional[Annotated[str, Field(min_length=5, max_length=100)]] = None
    description: Optional[Annotated[str, Field(max_length=1000)]] = None
    start_date: Optional[datetime] = Field(None, alias="startDate")
    end_date: Optional[datetime] = Field(None, alias="endDate")
    positions: Optional[List[str]] = None

    model_config = ConfigDict(populate_by_name=True)


class ElectionResponse(ElectionBase):
    id: str
    status: ElectionStatus
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ElectionDeletion(BaseModel):
    election_id: str
    outcome: Literal["deleted", "cancelled"]


# ======================
# VOTING
# ======================

class VoteCreate(BaseModel):
    candidate_id: str = Field(..., examples=["3f2a9c"])


class VoteResponse(BaseModel):
    id: str
    election_id: str
    candidate_id: str
    voter_id: str
    cast_at: datetime


class HasVotedResponse(BaseModel):
    has_voted: bool
    candidate_id: Optional[str] = None


# ======================
# RESULTS
# ======================

class CandidateTally(BaseModel):
    candidate_id: str
    name: str
    position: str
    vote_count: int
    rank: int


class TallyResponse(BaseModel):
    election_id: str
    total_votes: int
    per_candidate: List[CandidateTally]


# ======================
# FACILITIES
# ======================

class FacilityCreate(BaseModel):
    name: Annotated[str, Field(min_length=2, max_length=100, examples=["Main Auditorium"])]
    capacity: Annotated[int, Field(gt=0, examples=[250])]
    location: str = Field(..., examples=["Block A"])
    description: Optional[str] = None


class FacilityMaintenance(BaseModel):
    under_maintenance: bool


class FacilityResponse(FacilityCreate):
    id: str
    under_maintenance: bool
    status: FacilityStatus
    created_at: datetime


# ======================
# BOOKINGS
# ======================

class BookingCreate(BaseModel):
    facility_id: str
    start_time: datetime
    end_time: datetime
    purpose: Annotated[str, Field(min_length=1, max_length=500)]
    attendees: Optional[Annotated[int, Field(gt=0)]] = None


class BookingApproval(BaseModel):
    notes: Optional[str] = None


class BookingRejection(BaseModel):
    reason: str = ""


class BookingResponse(BaseModel):
    id: str
    facility_id: str
    requester_id: str
    start_time: datetime
    end_time: datetime
    purpose: str
    attendees: Optional[int] = None
    status: BookingStatus
    decision_notes: Optional[str] = None
    decided_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
