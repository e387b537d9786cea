import unittest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import aiohttp

from devstats.domain.exceptions import (
    EntityNotFoundException,
    RateLimitExceededException,
    UnknownTransportException,
)
from devstats.infrastructure.github_client import GitHubRestClient


def _response(status: int, payload=None, headers=None):
    response = AsyncMock()
    response.status = status
    response.headers = headers or {}
    response.raise_for_status = MagicMock()
    response.json = AsyncMock(return_value=payload)
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=False)
    return response


def _client(*responses) -> GitHubRestClient:
    session = MagicMock()
    session.get = MagicMock(side_effect=list(responses))
    return GitHubRestClient(token="test-token", session=session)


class TestGitHubRestClientHeaders(unittest.TestCase):
    def test_token_sets_authorization_header(self) -> None:
        client = GitHubRestClient(token="test-token")

        self.assertEqual(client.headers["Authorization"], "token test-token")
        self.assertIn("User-Agent", client.headers)
        self.assertEqual(client.headers["Accept"], "application/vnd.github.v3+json")

    def test_no_token_means_no_authorization_header(self) -> None:
        client = GitHubRestClient()

        self.assertNotIn("Authorization", client.headers)
        self.assertFalse(client.has_token)


class TestGitHubRestClientRequests(unittest.IsolatedAsyncioTestCase):
    async def test_fetch_profile_translates_payload(self) -> None:
        client = _client(_response(200, {"login": "octocat", "public_repos": 8, "followers": 3}))

        profile = await client.fetch_profile("octocat")

        self.assertEqual(profile.login, "octocat")
        self.assertEqual(profile.repository_count, 8)
        url = client._session.get.call_args.args[0]
        self.assertEqual(url, "https://api.github.com/users/octocat")

    async def test_fetch_repositories_requests_recently_updated_first(self) -> None:
        payload = [{"name": "a", "language": "Go", "stargazers_count": 1, "updated_at": "2024-01-02T03:04:05Z"}]
        client = _client(_response(200, payload))

        repositories = await client.fetch_repositories("octocat")

        self.assertEqual([repo.name for repo in repositories], ["a"])
        url = client._session.get.call_args.args[0]
        self.assertIn("/users/octocat/repos?sort=updated&per_page=100", url)

    async def test_404_raises_entity_not_found(self) -> None:
        client = _client(_response(404))

        with self.assertRaises(EntityNotFoundException) as ctx:
            await client.fetch_profile("nobody")

        self.assertEqual(ctx.exception.entity_id, "nobody")

    async def test_exhausted_budget_raises_rate_limited(self) -> None:
        headers = {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1704067200"}
        client = _client(_response(403, headers=headers))

        with self.assertRaises(RateLimitExceededException) as ctx:
            await client.fetch_events("octocat")

        self.assertEqual(ctx.exception.reset_at, datetime(2024, 1, 1, tzinfo=timezone.utc))

    async def test_forbidden_with_budget_left_is_unknown_transport(self) -> None:
        response = _response(403, headers={"X-RateLimit-Remaining": "12"})
        response.raise_for_status = MagicMock(
            side_effect=aiohttp.ClientResponseError(request_info=MagicMock(), history=(), status=403, message="Forbidden")
        )
        client = _client(response)

        with self.assertRaises(UnknownTransportException):
            await client.fetch_repositories("octocat")

    async def test_connection_error_is_unknown_transport(self) -> None:
        session = MagicMock()
        session.get = MagicMock(side_effect=aiohttp.ClientConnectionError("connection reset"))
        client = GitHubRestClient(session=session)

        with self.assertRaises(UnknownTransportException):
            await client.fetch_profile("octocat")

    async def test_get_rate_status(self) -> None:
        payload = {"resources": {"core": {"limit": 60, "remaining": 42, "reset": 1704067200}}}
        client = _client(_response(200, payload))

        status = await client.get_rate_status()

        self.assertEqual(status.remaining, 42)
        self.assertEqual(status.limit, 60)

    async def test_authenticated_user_is_none_without_token(self) -> None:
        session = MagicMock()
        client = GitHubRestClient(session=session)

        self.assertIsNone(await client.fetch_authenticated_user())
        session.get.assert_not_called()

    async def test_authenticated_user_failure_returns_none(self) -> None:
        response = _response(401)
        response.raise_for_status = MagicMock(
            side_effect=aiohttp.ClientResponseError(request_info=MagicMock(), history=(), status=401, message="Bad credentials")
        )
        client = _client(response)

        self.assertIsNone(await client.fetch_authenticated_user())

    async def test_used_outside_session_raises(self) -> None:
        client = GitHubRestClient(token="t")

        with self.assertRaises(UnknownTransportException):
            await client.fetch_profile("octocat")

    async def test_profile_without_login_is_unknown_transport(self) -> None:
        client = _client(_response(200, {"public_repos": 3}))

        with self.assertRaises(UnknownTransportException):
            await client.fetch_profile("octocat")

    async def test_malformed_repository_is_unknown_transport(self) -> None:
        client = _client(_response(200, [{"name": "a", "stargazers_count": -1, "updated_at": "2024-01-02T03:04:05Z"}]))

        with self.assertRaises(UnknownTransportException):
            await client.fetch_repositories("octocat")

    async def test_non_list_events_payload_is_unknown_transport(self) -> None:
        client = _client(_response(200, {"message": "unexpected"}))

        with self.assertRaises(UnknownTransportException):
            await client.fetch_events("octocat")

    async def test_entity_id_is_escaped_in_path(self) -> None:
        client = _client(_response(404))

        with self.assertRaises(EntityNotFoundException):
            await client.fetch_profile("a/repos?x=1")

        url = client._session.get.call_args.args[0]
        self.assertEqual(url, "https://api.github.com/users/a%2Frepos%3Fx%3D1")

    async def test_escaped_entity_id_keeps_resource_query(self) -> None:
        client = _client(_response(200, []))

        await client.fetch_events("a b")

        url = client._session.get.call_args.args[0]
        self.assertEqual(url, "https://api.github.com/users/a%20b/events?per_page=100")
