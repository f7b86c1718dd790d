from functools import lru_cache

from deptgrid.core.config import get_settings
from deptgrid.services.advisor import AdvisoryCache, ConstraintAdvisor, GroqConstraintAdvisor


@lru_cache
def get_advisory_cache() -> AdvisoryCache:
    settings = get_settings()
    return AdvisoryCache(
        max_entries=settings.advisor_cache_max_entries,
        ttl_seconds=settings.advisor_cache_ttl_seconds,
    )


@lru_cache
def get_advisor() -> ConstraintAdvisor | None:
    settings = get_settings()
    if not settings.advisor_enabled:
        return None
    return GroqConstraintAdvisor(settings)
