import logging

from devstats.domain.fetcher_interface import IResourceFetcher
from devstats.domain.models import RateBudgetStatus

logger = logging.getLogger(__name__)

# One call each for profile, repositories and events
CALLS_PER_ENTITY = 3


class RateBudget:
    """
    Advisory check of the remaining API call budget before a batch.
    It never blocks a batch; a shortfall only becomes a warning on the result.
    """

    def __init__(self, fetcher: IResourceFetcher):
        self.fetcher = fetcher

    @staticmethod
    def estimate_calls(entity_count: int) -> int:
        return entity_count * CALLS_PER_ENTITY

    async def check(self, entity_count: int) -> RateBudgetStatus:
        try:
            rate_status = await self.fetcher.get_rate_status()
        except Exception as e:
            # Fail open: an unavailable rate endpoint must not stop the batch
            logger.error(f"Error checking rate limit: {e}")
            return RateBudgetStatus(sufficient=True)

        estimated = self.estimate_calls(entity_count)
        status = RateBudgetStatus(
            sufficient=rate_status.remaining >= estimated,
            remaining=rate_status.remaining,
            limit=rate_status.limit,
            reset_at=rate_status.reset_at,
        )
        if not status.sufficient:
            logger.warning(
                f"Rate limit may be exceeded. Remaining: {rate_status.remaining}, "
                f"Needed: ~{estimated}. Reset at {status.describe_reset()}."
            )
        return status
