"""
Request and response models for the AI assistant and matching endpoints.
"""
from typing import Any

from pydantic import BaseModel, Field

from marketplace.schemas.marketplace import Review, SolutionStatus


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)
    context: dict[str, Any] | None = None


class ChatReply(BaseModel):
    message: str
    context: dict[str, Any] | None = None


class MatchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=2000)


class SemanticMatch(BaseModel):
    id: str
    title: str
    score: float = Field(..., ge=0.0, le=1.0)
    explanation: str = ""


class MatchingResponse(BaseModel):
    matches: list[SemanticMatch] = Field(default_factory=list)
    total_matches: int = 0


class CapabilitySearchRequest(BaseModel):
    requirement: str = Field(..., max_length=4000)


class RankedSolution(BaseModel):
    """Model-produced ranking entry, before it is joined to the catalog."""

    id: str
    match_percentage: float = Field(..., ge=0, le=100)
    relevance: str = ""


class CapabilityMatch(BaseModel):
    """A ranked solution. Every field except the ranking comes from storage."""

    id: str
    title: str
    description: str
    vendor_id: str
    trl: int | None = None
    capability_areas: list[str] = Field(default_factory=list)
    nato_compatible: bool = False
    security_cleared: bool = False
    status: SolutionStatus
    match_percentage: float
    relevance: str = ""
    reviews: list[Review] | None = None


class CapabilitySearchResponse(BaseModel):
    matches: list[CapabilityMatch] = Field(default_factory=list)
    total_matches: int = 0
    message: str | None = None


class SubmissionTipsResponse(BaseModel):
    challenge_id: str
    tips: str


class FeedbackAnalysis(BaseModel):
    summary: str
    trends: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
