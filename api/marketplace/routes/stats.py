"""
Dashboard statistics.
"""
from fastapi import APIRouter
from pydantic import BaseModel

from marketplace.dependencies import StorageDep
from marketplace.schemas.marketplace import ChallengeFilters, ChallengeStatus, SolutionStatus

router = APIRouter()


class MarketplaceStats(BaseModel):
    vendors: int
    solutions: int
    challenges: int
    applications: int
    awardable_solutions: int


@router.get("", response_model=MarketplaceStats)
async def get_stats(storage: StorageDep):
    """Counts for the landing page. ``challenges`` counts open challenges only."""
    solutions = storage.list_solutions()
    return MarketplaceStats(
        vendors=len({s.vendor_id for s in solutions}),
        solutions=len(solutions),
        challenges=len(storage.list_challenges(ChallengeFilters(status=ChallengeStatus.OPEN))),
        applications=len(storage.list_applications()),
        awardable_solutions=sum(1 for s in solutions if s.status == SolutionStatus.AWARDABLE),
    )
