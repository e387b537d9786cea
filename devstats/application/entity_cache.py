import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from devstats.application.aggregation import derive_commit_series
from devstats.domain.models import CacheEntry, CommitSeries, EntityId, EntityRecord, Profile, Repository

logger = logging.getLogger(__name__)


class EntityCache:
    """
    In-memory store of resolved entities, owned by one stats session.

    Policy: entries live as long as the cache object. There is no eviction
    and no TTL; `cached_at` is recorded for display only and is never used to
    invalidate an entry. Raw events are not kept, only the derived commit
    series.
    """

    def __init__(self):
        self._entries: Dict[EntityId, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entity_id: EntityId) -> bool:
        return entity_id in self._entries

    def get(self, entity_id: EntityId) -> Optional[CacheEntry]:
        return self._entries.get(entity_id)

    def put(
        self,
        entity_id: EntityId,
        profile: Profile,
        repositories: Optional[List[Repository]] = None,
        commit_series: Optional[CommitSeries] = None,
    ) -> CacheEntry:
        entry = CacheEntry(
            profile=profile,
            repositories=repositories or [],
            commit_series=commit_series or CommitSeries(),
            cached_at=datetime.now(timezone.utc),
        )
        self._entries[entity_id] = entry
        return entry

    def partition(self, entity_ids: Iterable[EntityId]) -> Tuple[Dict[EntityId, CacheEntry], List[EntityId]]:
        """Splits ids into cache hits and ids that still need fetching."""
        hits: Dict[EntityId, CacheEntry] = {}
        misses: List[EntityId] = []
        for entity_id in entity_ids:
            entry = self._entries.get(entity_id)
            if entry is not None:
                hits[entity_id] = entry
            else:
                misses.append(entity_id)
        return hits, misses

    def store(self, records: Mapping[EntityId, EntityRecord]) -> int:
        """
        Caches every record whose profile fetch succeeded, even if its
        repositories or events failed. Failed records leave the cache untouched.
        """
        stored = 0
        for entity_id, record in records.items():
            if not record.succeeded:
                continue
            self.put(
                entity_id,
                record.profile,
                record.repositories or [],
                derive_commit_series(record.events or []),
            )
            stored += 1
        logger.debug(f"Cached {stored} of {len(records)} fetched entities.")
        return stored

    @staticmethod
    def to_record(entry: CacheEntry) -> EntityRecord:
        # Raw events are gone, so cached entities read as having no activity
        return EntityRecord(profile=entry.profile, repositories=list(entry.repositories), events=[])

    def merge(
        self,
        cached_subset: Mapping[EntityId, CacheEntry],
        fresh_subset: Mapping[EntityId, EntityRecord],
        order: Optional[Iterable[EntityId]] = None,
    ) -> Dict[EntityId, EntityRecord]:
        """
        Combines cache hits and freshly fetched records for aggregation.

        A fresh record wins over a cache entry for the same id. The result
        follows `order` when given, otherwise cached ids then fresh ids.
        """
        combined: Dict[EntityId, EntityRecord] = {
            entity_id: self.to_record(entry) for entity_id, entry in cached_subset.items()
        }
        combined.update(fresh_subset)

        if order is None:
            return combined
        return {entity_id: combined[entity_id] for entity_id in order if entity_id in combined}
