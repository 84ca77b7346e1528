"""
Profile endpoint for the signed-in user.
"""
import logging

from fastapi import APIRouter

from marketplace.dependencies import CurrentUserDep, StorageDep
from marketplace.schemas.marketplace import ProfileUpdate, PublicUser

logger = logging.getLogger(__name__)
router = APIRouter()


@router.patch("", response_model=PublicUser)
async def update_profile(payload: ProfileUpdate, storage: StorageDep, user: CurrentUserDep):
    """Update names, picture and organization metadata. Role and email are fixed."""
    updated = storage.update_user(user.id, payload)
    logger.info(f"User {user.id} updated profile: {sorted(payload.model_fields_set)}")
    return updated.to_public()
