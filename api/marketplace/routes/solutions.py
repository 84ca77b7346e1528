"""
Solution catalog and government reviews.
"""
import logging

from fastapi import APIRouter
from pydantic import BaseModel

from marketplace.core.errors import PermissionDenied, RecordNotFoundError
from marketplace.dependencies import (
    AIServiceDep,
    CurrentUserDep,
    GovernmentOrAdminDep,
    ReviewerDep,
    StorageDep,
    VendorDep,
)
from marketplace.schemas.ai import FeedbackAnalysis
from marketplace.schemas.marketplace import (
    GOVERNMENT_ROLES,
    Review,
    ReviewCreate,
    ReviewSubmission,
    Solution,
    SolutionCreate,
    SolutionFilters,
    SolutionStatus,
    SolutionSubmission,
    SolutionUpdate,
    UserRole,
)
from marketplace.storage.base import MarketplaceStorage, matches_solution_filters

logger = logging.getLogger(__name__)
router = APIRouter()


class SolutionFiles(BaseModel):
    """Uploaded file URLs to attach to a solution."""

    model_config = {"extra": "forbid"}

    pitch_video_url: str | None = None
    document_urls: list[str] = []


def _get_solution_or_404(storage: MarketplaceStorage, solution_id: str) -> Solution:
    solution = storage.get_solution(solution_id)
    if solution is None:
        raise RecordNotFoundError("Solution", solution_id)
    return solution


@router.get("", response_model=list[Solution])
async def list_solutions(
    storage: StorageDep,
    vendor_id: str | None = None,
    status: SolutionStatus | None = None,
    trl: int | None = None,
    nato_compatible: bool | None = None,
    security_cleared: bool | None = None,
    capability_area: str | None = None,
    search: str | None = None,
):
    """List solutions. All given filters must match; ``search`` is a substring match."""
    filters = SolutionFilters(
        vendor_id=vendor_id,
        status=status,
        trl=trl,
        nato_compatible=nato_compatible,
        security_cleared=security_cleared,
        capability_area=capability_area,
    )
    if search and search.strip():
        return [s for s in storage.search_solutions(search) if matches_solution_filters(s, filters)]
    return storage.list_solutions(filters)


@router.get("/{solution_id}", response_model=Solution)
async def get_solution(solution_id: str, storage: StorageDep):
    return _get_solution_or_404(storage, solution_id)


@router.post("", response_model=Solution, status_code=201)
async def create_solution(payload: SolutionSubmission, storage: StorageDep, vendor: VendorDep):
    solution = storage.create_solution(
        SolutionCreate(**payload.model_dump(), vendor_id=vendor.id)
    )
    logger.info(f"Vendor {vendor.id} submitted solution {solution.id}")
    return solution


@router.patch("/{solution_id}", response_model=Solution)
async def update_solution(
    solution_id: str, payload: SolutionUpdate, storage: StorageDep, user: CurrentUserDep
):
    """The owning vendor edits content; government users and admins set status."""
    solution = _get_solution_or_404(storage, solution_id)
    changes = set(payload.model_dump(exclude_unset=True, exclude_none=True))

    if user.role in GOVERNMENT_ROLES or user.role == UserRole.ADMIN:
        if changes - {"status"}:
            raise PermissionDenied("Only the owning vendor can edit solution content")
    elif user.id == solution.vendor_id:
        if "status" in changes:
            raise PermissionDenied("Only government users or admins can change solution status")
    else:
        raise PermissionDenied("You can only modify your own solutions")

    updated = storage.update_solution(solution_id, payload)
    logger.info(f"User {user.id} updated solution {solution_id}: {sorted(changes)}")
    return updated


@router.put("/{solution_id}/files", response_model=Solution)
async def attach_files(
    solution_id: str, payload: SolutionFiles, storage: StorageDep, user: CurrentUserDep
):
    """Attach uploaded pitch video and document URLs to the caller's solution."""
    solution = _get_solution_or_404(storage, solution_id)
    if solution.vendor_id != user.id:
        raise PermissionDenied("You can only modify your own solutions")

    changes = {}
    if payload.pitch_video_url:
        changes["pitch_video_url"] = payload.pitch_video_url
    if payload.document_urls:
        merged = list(solution.document_urls)
        merged.extend(url for url in payload.document_urls if url not in merged)
        changes["document_urls"] = merged
    return storage.update_solution(solution_id, SolutionUpdate(**changes))


# Reviews


@router.get("/{solution_id}/reviews", response_model=list[Review])
async def list_reviews(solution_id: str, storage: StorageDep, user: GovernmentOrAdminDep):
    _get_solution_or_404(storage, solution_id)
    return storage.list_reviews_by_solution(solution_id)


@router.post("/{solution_id}/reviews", response_model=Review, status_code=201)
async def create_review(
    solution_id: str, payload: ReviewSubmission, storage: StorageDep, reviewer: ReviewerDep
):
    _get_solution_or_404(storage, solution_id)
    review = storage.create_review(
        ReviewCreate(**payload.model_dump(), solution_id=solution_id, reviewer_id=reviewer.id)
    )
    logger.info(f"Reviewer {reviewer.id} reviewed solution {solution_id}")
    return review


@router.get("/{solution_id}/reviews/analysis", response_model=FeedbackAnalysis)
def analyze_reviews(
    solution_id: str, storage: StorageDep, ai: AIServiceDep, user: GovernmentOrAdminDep
):
    """AI summary of the trends and recommendations in a solution's reviews."""
    _get_solution_or_404(storage, solution_id)
    return ai.analyze_feedback(storage.list_reviews_by_solution(solution_id))
