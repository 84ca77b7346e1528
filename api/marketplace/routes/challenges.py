"""
Challenge endpoints. Anyone may browse; admins create and update.
"""
import logging

from fastapi import APIRouter

from marketplace.core.errors import RecordNotFoundError
from marketplace.dependencies import AdminDep, StorageDep
from marketplace.schemas.marketplace import (
    Challenge,
    ChallengeCreate,
    ChallengeFilters,
    ChallengeStatus,
    ChallengeType,
    ChallengeUpdate,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=list[Challenge])
async def list_challenges(
    storage: StorageDep,
    status: ChallengeStatus | None = None,
    type: ChallengeType | None = None,
):
    return storage.list_challenges(ChallengeFilters(status=status, type=type))


@router.get("/{challenge_id}", response_model=Challenge)
async def get_challenge(challenge_id: str, storage: StorageDep):
    challenge = storage.get_challenge(challenge_id)
    if challenge is None:
        raise RecordNotFoundError("Challenge", challenge_id)
    return challenge


@router.post("", response_model=Challenge, status_code=201)
async def create_challenge(payload: ChallengeCreate, storage: StorageDep, admin: AdminDep):
    challenge = storage.create_challenge(payload)
    logger.info(f"Admin {admin.id} created challenge {challenge.id}")
    return challenge


@router.patch("/{challenge_id}", response_model=Challenge)
async def update_challenge(
    challenge_id: str, payload: ChallengeUpdate, storage: StorageDep, admin: AdminDep
):
    """Edit a challenge or move it between open, active and closed."""
    challenge = storage.update_challenge(challenge_id, payload)
    logger.info(f"Admin {admin.id} updated challenge {challenge_id}")
    return challenge
