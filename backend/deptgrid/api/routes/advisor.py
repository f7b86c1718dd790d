from fastapi import APIRouter, Depends

from deptgrid.api.deps import get_advisor, get_advisory_cache
from deptgrid.services.advisor import AdvisoryCache, ConstraintAdvisor

router = APIRouter()


@router.get("/cache")
def advisory_cache_stats(
    cache: AdvisoryCache = Depends(get_advisory_cache),
    advisor: ConstraintAdvisor | None = Depends(get_advisor),
) -> dict:
    return {"advisorEnabled": advisor is not None, **cache.stats()}


@router.delete("/cache")
def clear_advisory_cache(cache: AdvisoryCache = Depends(get_advisory_cache)) -> dict:
    cache.clear()
    return cache.stats()
