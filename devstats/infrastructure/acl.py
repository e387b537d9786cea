from datetime import datetime, timezone
from typing import Any, Dict

from devstats.domain.models import ActivityEvent, Profile, RateStatus, Repository


def _parse_timestamp(raw_date: str) -> datetime:
    return datetime.fromisoformat(raw_date.replace("Z", "+00:00"))


class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub REST JSON payloads into domain models.
    """

    @staticmethod
    def to_profile(raw_user: Dict[str, Any]) -> Profile:
        """
        Transforms a raw `/users/{login}` payload into a Profile.

        Args:
            raw_user (Dict[str, Any]): The raw JSON object from GitHub.

        Returns:
            Profile: The domain model instance representing the user.
        """
        login = raw_user.get('login')
        if not login:
            raise ValueError("login is required to build Profile.")

        return Profile(
            login=login,
            display_name=raw_user.get('name'),
            avatar_url=raw_user.get('avatar_url') or '',
            bio=raw_user.get('bio'),
            repository_count=raw_user.get('public_repos') or 0,
            followers=raw_user.get('followers') or 0,
            following=raw_user.get('following') or 0,
            gists=raw_user.get('public_gists') or 0,
        )

    @staticmethod
    def to_repository(raw_repo: Dict[str, Any]) -> Repository:
        raw_date = raw_repo.get('updated_at')
        if not raw_date:
            raise ValueError("updated_at is required to build Repository.")

        return Repository(
            name=raw_repo.get('name', ''),
            language=raw_repo.get('language'),
            stars=raw_repo.get('stargazers_count') or 0,
            forks=raw_repo.get('forks_count') or 0,
            watchers=raw_repo.get('watchers_count') or 0,
            updated_at=_parse_timestamp(raw_date),
            description=raw_repo.get('description'),
            url=raw_repo.get('html_url') or '',
        )

    @staticmethod
    def to_event(raw_event: Dict[str, Any]) -> ActivityEvent:
        raw_date = raw_event.get('created_at')
        if not raw_date:
            raise ValueError("created_at is required to build ActivityEvent.")

        # Only push payloads carry a commit count
        payload = raw_event.get('payload') or {}
        return ActivityEvent(
            kind=raw_event.get('type', ''),
            created_at=_parse_timestamp(raw_date),
            size=payload.get('size') or 0,
        )

    @staticmethod
    def to_rate_status(raw_rate_limit: Dict[str, Any]) -> RateStatus:
        """Reads `resources.core` of a `/rate_limit` payload."""
        core = raw_rate_limit.get('resources', {}).get('core')
        if core is None:
            raise ValueError("Rate limit payload does not expose the core resource.")

        return RateStatus(
            remaining=core.get('remaining', 0),
            limit=core.get('limit', 0),
            reset_at=datetime.fromtimestamp(int(core.get('reset', 0)), tz=timezone.utc),
        )
