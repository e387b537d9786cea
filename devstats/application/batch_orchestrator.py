import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from devstats.domain.exceptions import EntityNotFoundException, RateLimitExceededException
from devstats.domain.fetcher_interface import IResourceFetcher
from devstats.domain.models import EntityId, EntityRecord, FailureKind

logger = logging.getLogger(__name__)


class BatchFetchOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    records: Dict[EntityId, EntityRecord] = Field(default_factory=dict)
    any_succeeded: bool = False

    @property
    def all_rate_limited(self) -> bool:
        return bool(self.records) and all(
            record.error_kind == FailureKind.RATE_LIMITED for record in self.records.values()
        )


def classify_failure(error: BaseException) -> FailureKind:
    if isinstance(error, EntityNotFoundException):
        return FailureKind.NOT_FOUND
    if isinstance(error, RateLimitExceededException):
        return FailureKind.RATE_LIMITED
    return FailureKind.UNKNOWN


def _message(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


class BatchOrchestrator:
    """
    Fetches profile, repositories and events for a batch of entities.

    Each resource kind is one phase: all eligible entities are fetched
    concurrently and the phase is joined before the next one starts. A failed
    profile removes the entity from later phases; a failed repository or
    event fetch only marks that resource on the entity's record.
    """

    def __init__(self, fetcher: IResourceFetcher):
        self.fetcher = fetcher

    @staticmethod
    async def _settle(
        entity_ids: Sequence[EntityId],
        call: Callable[[EntityId], Awaitable],
    ) -> List[Tuple[EntityId, object]]:
        """Runs `call` for every id concurrently and pairs each id with its result or exception."""
        results = await asyncio.gather(*(call(entity_id) for entity_id in entity_ids), return_exceptions=True)
        for result in results:
            # Cancellation is not a per-entity failure
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
        return list(zip(entity_ids, results))

    async def fetch(self, entity_ids: Sequence[EntityId]) -> BatchFetchOutcome:
        records: Dict[EntityId, EntityRecord] = {}

        # Phase 1: profiles
        for entity_id, result in await self._settle(entity_ids, self.fetcher.fetch_profile):
            if isinstance(result, Exception):
                logger.error(f"Error fetching data for {entity_id}: {result}")
                records[entity_id] = EntityRecord.failure(_message(result), classify_failure(result))
            else:
                records[entity_id] = EntityRecord(profile=result)

        eligible = [entity_id for entity_id in entity_ids if records[entity_id].succeeded]
        logger.info(f"Profiles resolved: {len(eligible)}/{len(entity_ids)}.")

        # Phase 2: repositories
        for entity_id, result in await self._settle(eligible, self.fetcher.fetch_repositories):
            if isinstance(result, Exception):
                logger.warning(f"Error fetching repositories for {entity_id}: {result}")
                update = {"repositories_error": _message(result)}
            else:
                update = {"repositories": result}
            records[entity_id] = records[entity_id].with_update(**update)

        # Phase 3: events
        for entity_id, result in await self._settle(eligible, self.fetcher.fetch_events):
            if isinstance(result, Exception):
                logger.warning(f"Error fetching events for {entity_id}: {result}")
                update = {"events_error": _message(result)}
            else:
                update = {"events": result}
            records[entity_id] = records[entity_id].with_update(**update)

        return BatchFetchOutcome(records=records, any_succeeded=bool(eligible))
