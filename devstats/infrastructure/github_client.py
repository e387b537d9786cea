import aiohttp
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, TypeVar
from urllib.parse import quote

from pydantic import ValidationError

from devstats.domain.exceptions import (
    EntityNotFoundException,
    RateLimitExceededException,
    UnknownTransportException,
)
from devstats.domain.fetcher_interface import IResourceFetcher
from devstats.domain.models import ActivityEvent, EntityId, Profile, RateStatus, Repository
from devstats.infrastructure.acl import GitHubTranslator

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_API_URL = "https://api.github.com"
REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=30, connect=10)
# Limit concurrent connections so a large batch does not open one socket per user
CONNECTOR_LIMIT = 10
PAGE_SIZE = 100


class GitHubRestClient(IResourceFetcher):
    """
    Client for the GitHub REST API.
    Handles authentication headers and maps HTTP failures onto domain exceptions.
    No retries are attempted: every failure is reported to the caller as-is.

    Use it as an async context manager so the underlying session is closed:

        async with GitHubRestClient(token) as client:
            profile = await client.fetch_profile("octocat")
    """

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        connector_limit: int = CONNECTOR_LIMIT,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "devstats",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        # Unauthenticated requests are allowed, with a much smaller budget
        if token:
            self.headers["Authorization"] = f"token {token}"
        self.has_token = bool(token)
        self.api_url = api_url.rstrip("/")
        self.connector_limit = connector_limit
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "GitHubRestClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=self.connector_limit),
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.close()
        return False

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    @staticmethod
    def _rate_limit_reset(headers) -> Optional[datetime]:
        raw_reset = headers.get("X-RateLimit-Reset")
        if not raw_reset:
            return None
        return datetime.fromtimestamp(int(raw_reset), tz=timezone.utc)

    async def _get(self, path: str, entity_id: Optional[EntityId] = None) -> Any:
        """
        Performs a single GET request and returns the decoded JSON body.

        Raises:
            EntityNotFoundException: on 404 for an entity-scoped path.
            RateLimitExceededException: on 403/429 with an exhausted budget.
            UnknownTransportException: on any other failure.
        """
        if self._session is None:
            raise UnknownTransportException("GitHubRestClient used outside of its session context.")

        url = f"{self.api_url}{path}"
        try:
            async with self._session.get(url, headers=self.headers, timeout=REQUEST_TIMEOUT) as response:
                if response.status == 404 and entity_id is not None:
                    raise EntityNotFoundException(entity_id)

                if response.status in {403, 429} and response.headers.get("X-RateLimit-Remaining") == "0":
                    reset_at = self._rate_limit_reset(response.headers)
                    logger.warning(f"Rate limit exhausted on {path}. Resets at {reset_at}.")
                    raise RateLimitExceededException(reset_at=reset_at)

                response.raise_for_status()
                return await response.json()

        except aiohttp.ClientResponseError as e:
            raise UnknownTransportException(f"GitHub API error ({e.status}) on {path}: {e.message}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Request to {path} failed: {e!r}")
            raise UnknownTransportException(f"Request to {path} failed: {e!r}") from e

    @staticmethod
    def _user_path(entity_id: EntityId, resource: str = "") -> str:
        # Ids are opaque; a slash or query character must not change the endpoint
        return f"/users/{quote(entity_id, safe='')}{resource}"

    @staticmethod
    def _translate(path: str, translate: Callable[[Any], T], data: Any) -> T:
        """Runs an ACL translation, reporting malformed payloads as transport failures."""
        try:
            return translate(data)
        except (ValidationError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Malformed payload from {path}: {e}")
            raise UnknownTransportException(f"Malformed payload from {path}: {e}") from e

    async def fetch_profile(self, entity_id: EntityId) -> Profile:
        path = self._user_path(entity_id)
        data = await self._get(path, entity_id)
        return self._translate(path, GitHubTranslator.to_profile, data)

    async def fetch_repositories(self, entity_id: EntityId) -> List[Repository]:
        """Public repositories, most recently updated first (first page only)."""
        path = self._user_path(entity_id, f"/repos?sort=updated&per_page={PAGE_SIZE}")
        data = await self._get(path, entity_id)
        return self._translate(path, lambda raw: [GitHubTranslator.to_repository(repo) for repo in raw if repo], data)

    async def fetch_events(self, entity_id: EntityId) -> List[ActivityEvent]:
        """Recent public activity; GitHub keeps roughly the last 90 days."""
        path = self._user_path(entity_id, f"/events?per_page={PAGE_SIZE}")
        data = await self._get(path, entity_id)
        return self._translate(path, lambda raw: [GitHubTranslator.to_event(event) for event in raw if event], data)

    async def get_rate_status(self) -> RateStatus:
        data = await self._get("/rate_limit")
        return self._translate("/rate_limit", GitHubTranslator.to_rate_status, data)

    async def fetch_authenticated_user(self) -> Optional[Dict[str, Any]]:
        """
        Returns the `/user` payload for the configured token, or None when no
        token is configured or the lookup fails.
        """
        if not self.has_token:
            return None
        try:
            return await self._get("/user")
        except (RateLimitExceededException, UnknownTransportException) as e:
            logger.error(f"Error initializing authenticated user: {e}")
            return None
