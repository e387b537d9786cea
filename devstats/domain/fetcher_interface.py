"""Resource fetcher interface (port) for per-entity GitHub data.

The application layer depends only on this port; the aiohttp client in the
infrastructure layer implements it.
"""
from abc import ABC, abstractmethod
from typing import List

from devstats.domain.models import ActivityEvent, EntityId, Profile, RateStatus, Repository


class IResourceFetcher(ABC):
    """Abstract interface for the three per-entity resources and the rate status.

    Every fetch method raises EntityNotFoundException, RateLimitExceededException
    or UnknownTransportException on failure.
    """

    @abstractmethod
    async def fetch_profile(self, entity_id: EntityId) -> Profile:
        pass

    @abstractmethod
    async def fetch_repositories(self, entity_id: EntityId) -> List[Repository]:
        pass

    @abstractmethod
    async def fetch_events(self, entity_id: EntityId) -> List[ActivityEvent]:
        pass

    @abstractmethod
    async def get_rate_status(self) -> RateStatus:
        """Return the remaining call budget and when it resets."""
        pass
