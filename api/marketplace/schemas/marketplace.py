"""
Pydantic records for marketplace entities.

Each entity has a stored record (what storage returns), a payload accepted
from clients, and, where it can change, a partial update model. Nested JSON
shapes are explicit models that reject unknown keys.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, Field

from marketplace.core.config import AuthProvider


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive values are taken to be UTC; aware values are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCDatetime = Annotated[datetime, AfterValidator(as_utc)]


def new_id() -> str:
    return str(uuid.uuid4())


class UserRole(str, Enum):
    """Business classification of a user. Drives authorization."""

    VENDOR = "vendor"
    GOVERNMENT = "government"
    CONTRACTING_OFFICER = "contracting_officer"
    ADMIN = "admin"


GOVERNMENT_ROLES = (UserRole.GOVERNMENT, UserRole.CONTRACTING_OFFICER)


class BusinessSize(str, Enum):
    SMALL = "small"
    LARGE = "large"
    NONTRADITIONAL = "nontraditional"


class ChallengeType(str, Enum):
    XTECH = "xtech"
    OPEN_CALL = "open_call"
    AOS_CALL = "aos_call"


class ChallengeStatus(str, Enum):
    OPEN = "open"
    ACTIVE = "active"
    CLOSED = "closed"


class SolutionStatus(str, Enum):
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    AWARDABLE = "awardable"
    REJECTED = "rejected"


class ApplicationStatus(str, Enum):
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# =============================================================================
# Nested shapes
# =============================================================================


class ChallengePhase(BaseModel):
    """One stage of a challenge, e.g. white paper then live pitch."""

    model_config = {"extra": "forbid"}

    name: str = Field(..., min_length=1)
    description: str | None = None
    requirements: str | None = None
    prize: str | None = None


class EligibilityRequirements(BaseModel):
    model_config = {"extra": "forbid"}

    organizations: list[str] = Field(default_factory=list)
    requirements: list[str] = Field(default_factory=list)


class Procurement(BaseModel):
    """A unit that has already bought or fielded a solution."""

    model_config = {"extra": "forbid"}

    unit: str = Field(..., min_length=1)
    contact_name: str | None = None
    contact_email: str | None = None
    contract_value: str | None = None
    deployment_date: str | None = None


class SubmissionData(BaseModel):
    """Free-text sections of a challenge application."""

    model_config = {"extra": "forbid"}

    summary: str | None = None
    technical_approach: str | None = None
    army_application: str | None = None
    team: str | None = None
    notes: str | None = None


# =============================================================================
# Users
# =============================================================================


class UserCreate(BaseModel):
    """Input for creating a user record. Passwords arrive already hashed."""

    email: str | None = None
    password_hash: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None
    role: UserRole = UserRole.VENDOR
    organization: str | None = None
    uei: str | None = None
    cage: str | None = None
    nato_eligible: bool = False
    security_clearance: str | None = None
    business_size: BusinessSize | None = None
    auth_provider: AuthProvider = AuthProvider.LOCAL
    external_id: str | None = None


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile. Role and email are fixed."""

    model_config = {"extra": "forbid"}

    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None
    organization: str | None = None
    uei: str | None = None
    cage: str | None = None
    nato_eligible: bool | None = None
    security_clearance: str | None = None
    business_size: BusinessSize | None = None


class User(UserCreate):
    model_config = {"from_attributes": True}

    id: str
    created_at: UTCDatetime
    updated_at: UTCDatetime

    def to_public(self) -> "PublicUser":
        return PublicUser.model_validate(self.model_dump())


class PublicUser(BaseModel):
    """User as returned by the API: no credentials, no provider ids."""

    id: str
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None
    role: UserRole
    organization: str | None = None
    uei: str | None = None
    cage: str | None = None
    nato_eligible: bool = False
    security_clearance: str | None = None
    business_size: BusinessSize | None = None
    auth_provider: AuthProvider = AuthProvider.LOCAL


# =============================================================================
# Challenges
# =============================================================================


class ChallengeCreate(BaseModel):
    model_config = {"extra": "forbid"}

    title: str = Field(..., min_length=1, max_length=300)
    description: str = Field(..., min_length=1)
    type: ChallengeType
    status: ChallengeStatus = ChallengeStatus.OPEN
    phases: list[ChallengePhase] = Field(default_factory=list)
    prize_pool: float | None = Field(None, ge=0)
    application_deadline: UTCDatetime | None = None
    finals_date: UTCDatetime | None = None
    eligibility_requirements: EligibilityRequirements | None = None
    focus_areas: list[str] = Field(default_factory=list)


class ChallengeUpdate(BaseModel):
    model_config = {"extra": "forbid"}

    title: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = Field(None, min_length=1)
    type: ChallengeType | None = None
    status: ChallengeStatus | None = None
    phases: list[ChallengePhase] | None = None
    prize_pool: float | None = Field(None, ge=0)
    application_deadline: UTCDatetime | None = None
    finals_date: UTCDatetime | None = None
    eligibility_requirements: EligibilityRequirements | None = None
    focus_areas: list[str] | None = None


class Challenge(ChallengeCreate):
    model_config = {"from_attributes": True}

    id: str
    created_at: UTCDatetime
    updated_at: UTCDatetime


# =============================================================================
# Solutions
# =============================================================================


class SolutionSubmission(BaseModel):
    """What a vendor sends when submitting a technology."""

    model_config = {"extra": "forbid"}

    title: str = Field(..., min_length=1, max_length=300)
    description: str = Field(..., min_length=1)
    trl: int | None = Field(None, ge=1, le=9, description="Technology Readiness Level")
    nato_compatible: bool = False
    security_cleared: bool = False
    capability_areas: list[str] = Field(default_factory=list)
    pitch_video_url: str | None = None
    document_urls: list[str] = Field(default_factory=list)
    procurements: list[Procurement] = Field(default_factory=list)


class SolutionCreate(SolutionSubmission):
    vendor_id: str
    status: SolutionStatus = SolutionStatus.SUBMITTED


class SolutionUpdate(BaseModel):
    model_config = {"extra": "forbid"}

    title: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = Field(None, min_length=1)
    trl: int | None = Field(None, ge=1, le=9)
    nato_compatible: bool | None = None
    security_cleared: bool | None = None
    capability_areas: list[str] | None = None
    pitch_video_url: str | None = None
    document_urls: list[str] | None = None
    procurements: list[Procurement] | None = None
    status: SolutionStatus | None = None


class Solution(SolutionCreate):
    model_config = {"from_attributes": True}

    id: str
    created_at: UTCDatetime
    updated_at: UTCDatetime


# =============================================================================
# Reviews
# =============================================================================


class ReviewSubmission(BaseModel):
    model_config = {"extra": "forbid"}

    rating: int = Field(..., ge=1, le=5)
    title: str | None = Field(None, max_length=300)
    description: str | None = None
    readiness_score: int | None = Field(None, ge=1, le=10)
    interoperability_score: int | None = Field(None, ge=1, le=10)
    support_score: int | None = Field(None, ge=1, le=10)
    field_tested: bool = False
    test_date: UTCDatetime | None = None


class ReviewCreate(ReviewSubmission):
    solution_id: str
    reviewer_id: str
    helpful_votes: int = 0
    total_votes: int = 0


class Review(ReviewCreate):
    model_config = {"from_attributes": True}

    id: str
    created_at: UTCDatetime
    updated_at: UTCDatetime


# =============================================================================
# Applications
# =============================================================================


class ApplicationSubmission(BaseModel):
    model_config = {"extra": "forbid"}

    challenge_id: str
    solution_id: str | None = None
    phase: int = Field(1, ge=1)
    white_paper_url: str | None = None
    video_url: str | None = None
    submission_data: SubmissionData | None = None


class ApplicationCreate(ApplicationSubmission):
    vendor_id: str
    status: ApplicationStatus = ApplicationStatus.SUBMITTED
    feedback: str | None = None


class ApplicationUpdate(BaseModel):
    model_config = {"extra": "forbid"}

    solution_id: str | None = None
    phase: int | None = Field(None, ge=1)
    white_paper_url: str | None = None
    video_url: str | None = None
    submission_data: SubmissionData | None = None
    status: ApplicationStatus | None = None
    feedback: str | None = None


class Application(ApplicationCreate):
    model_config = {"from_attributes": True}

    id: str
    created_at: UTCDatetime
    updated_at: UTCDatetime


# =============================================================================
# Chat
# =============================================================================


class ChatMessageCreate(BaseModel):
    user_id: str
    message: str
    response: str | None = None
    context: dict[str, Any] | None = None


class ChatMessage(ChatMessageCreate):
    model_config = {"from_attributes": True}

    id: str
    created_at: UTCDatetime


# =============================================================================
# List filters
# =============================================================================


class ChallengeFilters(BaseModel):
    status: ChallengeStatus | None = None
    type: ChallengeType | None = None


class SolutionFilters(BaseModel):
    vendor_id: str | None = None
    status: SolutionStatus | None = None
    trl: int | None = None
    nato_compatible: bool | None = None
    security_cleared: bool | None = None
    capability_area: str | None = None


class ApplicationFilters(BaseModel):
    challenge_id: str | None = None
    vendor_id: str | None = None
    status: ApplicationStatus | None = None
