"""
AI-assisted discovery: semantic matching, commander capability search and
challenge submission tips.
"""
import logging

from fastapi import APIRouter

from marketplace.core.errors import RecordNotFoundError, ValidationFailed
from marketplace.dependencies import AIServiceDep, CurrentUserDep, OptionalUserDep, StorageDep
from marketplace.schemas.ai import (
    CapabilitySearchRequest,
    CapabilitySearchResponse,
    MatchingResponse,
    MatchRequest,
    SubmissionTipsResponse,
)
from marketplace.schemas.marketplace import GOVERNMENT_ROLES, UserRole

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/match", response_model=MatchingResponse)
def semantic_match(payload: MatchRequest, storage: StorageDep, ai: AIServiceDep, user: CurrentUserDep):
    return ai.semantic_matching(payload.query, storage.list_solutions(), storage.list_challenges())


@router.post("/capability-search", response_model=CapabilitySearchResponse)
def capability_search(
    payload: CapabilitySearchRequest,
    storage: StorageDep,
    ai: AIServiceDep,
    user: OptionalUserDep,
):
    """Rank catalog solutions against an operational requirement.

    Public. Field-test reviews are attached to each match only for
    government users and admins.
    """
    if not payload.requirement.strip():
        raise ValidationFailed("Requirement description is required")

    solutions = storage.list_solutions()
    logger.info(f"Capability search over {len(solutions)} solutions")
    result = ai.capability_search(payload.requirement, solutions)

    if user is not None and (user.role in GOVERNMENT_ROLES or user.role == UserRole.ADMIN):
        for match in result.matches:
            match.reviews = storage.list_reviews_by_solution(match.id)
    return result


@router.get("/challenges/{challenge_id}/tips", response_model=SubmissionTipsResponse)
def submission_tips(challenge_id: str, storage: StorageDep, ai: AIServiceDep, user: CurrentUserDep):
    challenge = storage.get_challenge(challenge_id)
    if challenge is None:
        raise RecordNotFoundError("Challenge", challenge_id)

    profile = user.to_public().model_dump(
        mode="json",
        include={"role", "organization", "business_size", "nato_eligible", "security_clearance"},
    )
    tips = ai.submission_tips(challenge.type.value, profile)
    return SubmissionTipsResponse(challenge_id=challenge_id, tips=tips)
