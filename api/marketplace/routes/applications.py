"""
Challenge applications.

Vendors apply to challenges and see their own applications; government
users and admins see every application and record decisions on them.
"""
import logging

from fastapi import APIRouter

from marketplace.core.errors import PermissionDenied, RecordNotFoundError, ValidationFailed
from marketplace.dependencies import CurrentUserDep, StorageDep, VendorDep
from marketplace.schemas.marketplace import (
    GOVERNMENT_ROLES,
    Application,
    ApplicationCreate,
    ApplicationFilters,
    ApplicationStatus,
    ApplicationSubmission,
    ApplicationUpdate,
    User,
    UserRole,
)
from marketplace.storage.base import MarketplaceStorage

logger = logging.getLogger(__name__)
router = APIRouter()

# Fields only a reviewer may set
DECISION_FIELDS = {"status", "feedback"}


def _is_reviewer(user: User) -> bool:
    return user.role in GOVERNMENT_ROLES or user.role == UserRole.ADMIN


def _check_solution_link(storage: MarketplaceStorage, solution_id: str | None, vendor: User) -> None:
    if solution_id is None:
        return
    solution = storage.get_solution(solution_id)
    if solution is None:
        raise RecordNotFoundError("Solution", solution_id)
    if solution.vendor_id != vendor.id:
        raise ValidationFailed("Applications can only reference your own solutions")


@router.get("", response_model=list[Application])
async def list_applications(
    storage: StorageDep,
    user: CurrentUserDep,
    challenge_id: str | None = None,
    status: ApplicationStatus | None = None,
    vendor_id: str | None = None,
):
    if not _is_reviewer(user):
        # Vendors only ever see their own
        vendor_id = user.id
    return storage.list_applications(
        ApplicationFilters(challenge_id=challenge_id, vendor_id=vendor_id, status=status)
    )


@router.get("/{application_id}", response_model=Application)
async def get_application(application_id: str, storage: StorageDep, user: CurrentUserDep):
    application = storage.get_application(application_id)
    if application is None:
        raise RecordNotFoundError("Application", application_id)
    if application.vendor_id != user.id and not _is_reviewer(user):
        raise PermissionDenied("You can only view your own applications")
    return application


@router.post("", response_model=Application, status_code=201)
async def create_application(payload: ApplicationSubmission, storage: StorageDep, vendor: VendorDep):
    if storage.get_challenge(payload.challenge_id) is None:
        raise RecordNotFoundError("Challenge", payload.challenge_id)
    _check_solution_link(storage, payload.solution_id, vendor)

    application = storage.create_application(
        ApplicationCreate(**payload.model_dump(), vendor_id=vendor.id)
    )
    logger.info(f"Vendor {vendor.id} applied to challenge {payload.challenge_id}: {application.id}")
    return application


@router.patch("/{application_id}", response_model=Application)
async def update_application(
    application_id: str, payload: ApplicationUpdate, storage: StorageDep, user: CurrentUserDep
):
    """Vendors edit their submission; reviewers set status and feedback."""
    application = storage.get_application(application_id)
    if application is None:
        raise RecordNotFoundError("Application", application_id)
    changes = set(payload.model_dump(exclude_unset=True, exclude_none=True))

    if _is_reviewer(user):
        if changes - DECISION_FIELDS:
            raise PermissionDenied("Only the applying vendor can edit submission content")
    elif application.vendor_id == user.id:
        if changes & DECISION_FIELDS:
            raise PermissionDenied("Only government users or admins can set status or feedback")
        _check_solution_link(storage, payload.solution_id, user)
    else:
        raise PermissionDenied("You can only modify your own applications")

    updated = storage.update_application(application_id, payload)
    logger.info(f"User {user.id} updated application {application_id}: {sorted(changes)}")
    return updated
