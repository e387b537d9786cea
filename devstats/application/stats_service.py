import logging
from typing import Dict, Iterable, Optional

from devstats.application.aggregation import aggregate, derive_commit_series, repository_stats
from devstats.application.batch_orchestrator import BatchFetchOutcome, BatchOrchestrator
from devstats.application.date_range import filter_languages_by_date, filter_series_by_date
from devstats.application.entity_cache import EntityCache
from devstats.application.rate_budget import RateBudget
from devstats.domain.fetcher_interface import IResourceFetcher
from devstats.domain.models import (
    BatchResult,
    CacheEntry,
    EntityId,
    EntityRecord,
    EntitySummary,
    FailureKind,
    RateStatus,
)

logger = logging.getLogger(__name__)

__all__ = ["StatsService", "filter_series_by_date", "filter_languages_by_date"]

TOTAL_FAILURE_MESSAGE = "No data could be fetched for any of the requested users."
RATE_LIMITED_MESSAGE = "GitHub API rate limit exceeded for every requested user."


class StatsService:
    """
    One statistics session: owns the entity cache and runs batches against
    a resource fetcher.

    The cache lives as long as the service instance. Two overlapping batches
    asking for the same uncached id will both fetch it.
    """

    def __init__(self, fetcher: IResourceFetcher, cache: Optional[EntityCache] = None):
        self.fetcher = fetcher
        self.cache = cache if cache is not None else EntityCache()
        self.rate_budget = RateBudget(fetcher)
        self.orchestrator = BatchOrchestrator(fetcher)

    async def run_batch(self, entity_ids: Iterable[EntityId]) -> BatchResult:
        """
        Resolves a batch of ids into per-entity records and aggregate analytics.

        Cached ids are served from the cache; the rest are fetched. This method
        never raises: every failure is encoded in the returned BatchResult.
        """
        requested = list(dict.fromkeys(entity_ids))
        try:
            return await self._run_batch(requested)
        except Exception as e:
            logger.exception(f"Error in run_batch: {e}")
            message = str(e) or "An unknown error occurred while fetching data"
            records = {entity_id: EntityRecord.failure(message, FailureKind.UNEXPECTED) for entity_id in requested}
            return BatchResult(
                records=records,
                aggregate=aggregate(records),
                failed=bool(requested),
                failure_kind=FailureKind.UNEXPECTED,
                message=message,
            )

    async def _run_batch(self, requested) -> BatchResult:
        cached, to_fetch = self.cache.partition(requested)
        if cached:
            logger.info(f"Using cached data for {len(cached)} users")

        warning = None
        outcome = BatchFetchOutcome()
        if to_fetch:
            logger.info(f"Fetching data for {len(to_fetch)} new users")
            budget = await self.rate_budget.check(len(to_fetch))
            warning = budget.warning_message()
            outcome = await self.orchestrator.fetch(to_fetch)
            self.cache.store(outcome.records)

        records = self.cache.merge(cached, outcome.records, order=requested)
        result = aggregate(records, rate_limit_warning=warning)

        if to_fetch and not cached and not outcome.any_succeeded:
            if warning is not None or outcome.all_rate_limited:
                kind, message = FailureKind.RATE_LIMITED, warning or RATE_LIMITED_MESSAGE
            else:
                kind, message = FailureKind.TOTAL, TOTAL_FAILURE_MESSAGE
            logger.warning(f"Batch failed ({kind.value}): {message}")
            return BatchResult(
                records=records,
                aggregate=result,
                failed=True,
                failure_kind=kind,
                message=message,
                rate_limit_warning=warning,
            )

        return BatchResult(records=records, aggregate=result, rate_limit_warning=warning)

    async def lookup(self, entity_id: EntityId) -> EntitySummary:
        """
        Single-profile view. Served from the cache when possible, otherwise
        fetched resource by resource and cached.

        Raises:
            EntityNotFoundException, RateLimitExceededException,
            UnknownTransportException: straight from the fetcher.
        """
        entry = self.cache.get(entity_id)
        if entry is not None:
            logger.info(f"Using cached data for {entity_id}")
            return self._summarize(entity_id, entry, from_cache=True)

        profile = await self.fetcher.fetch_profile(entity_id)
        repositories = await self.fetcher.fetch_repositories(entity_id)
        events = await self.fetcher.fetch_events(entity_id)

        entry = self.cache.put(entity_id, profile, repositories, derive_commit_series(events))
        return self._summarize(entity_id, entry, from_cache=False)

    @staticmethod
    def _summarize(entity_id: EntityId, entry: CacheEntry, from_cache: bool) -> EntitySummary:
        return EntitySummary(
            entity_id=entity_id,
            profile=entry.profile,
            repositories=entry.repositories,
            repository_stats=repository_stats(entry.repositories),
            commit_series=entry.commit_series,
            from_cache=from_cache,
        )

    async def rate_status(self) -> RateStatus:
        return await self.fetcher.get_rate_status()
