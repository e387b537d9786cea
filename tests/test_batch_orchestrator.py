import asyncio
import unittest
from datetime import datetime, timezone

from devstats.application.batch_orchestrator import BatchOrchestrator
from devstats.domain.exceptions import EntityNotFoundException, RateLimitExceededException
from devstats.domain.models import ActivityEvent, FailureKind, Profile, Repository

UPDATED_AT = datetime(2024, 1, 2, tzinfo=timezone.utc)


class _RecordingFetcher:
    """Fake fetcher that logs when each call starts and ends."""

    def __init__(self, delays=None, failures=None) -> None:
        self.delays = delays or {}
        self.failures = failures or {}
        self.log = []

    async def _call(self, kind, entity_id, value):
        self.log.append(("start", kind, entity_id))
        await asyncio.sleep(self.delays.get((kind, entity_id), 0))
        self.log.append(("end", kind, entity_id))
        error = self.failures.get((kind, entity_id))
        if error is not None:
            raise error
        return value

    async def fetch_profile(self, entity_id):
        return await self._call("profile", entity_id, Profile(login=entity_id, repository_count=1, followers=2))

    async def fetch_repositories(self, entity_id):
        repo = Repository(name=f"{entity_id}-repo", language="Go", stars=1, updated_at=UPDATED_AT)
        return await self._call("repositories", entity_id, [repo])

    async def fetch_events(self, entity_id):
        event = ActivityEvent(kind="PushEvent", created_at=UPDATED_AT, size=2)
        return await self._call("events", entity_id, [event])

    async def get_rate_status(self):
        raise NotImplementedError

    def calls(self, kind):
        return [entity_id for step, k, entity_id in self.log if step == "start" and k == kind]


class TestBatchOrchestrator(unittest.IsolatedAsyncioTestCase):
    async def test_all_entities_succeed(self) -> None:
        fetcher = _RecordingFetcher()

        outcome = await BatchOrchestrator(fetcher).fetch(["a", "b"])

        self.assertTrue(outcome.any_succeeded)
        self.assertEqual(list(outcome.records), ["a", "b"])
        for record in outcome.records.values():
            self.assertTrue(record.succeeded)
            self.assertFalse(record.is_partial)
            self.assertEqual(len(record.repositories), 1)
            self.assertEqual(len(record.events), 1)

    async def test_phases_are_barrier_synchronised(self) -> None:
        # "slow" finishes its profile long after "fast"; no repository call may start before that
        fetcher = _RecordingFetcher(delays={("profile", "slow"): 0.05, ("repositories", "fast"): 0.02})

        await BatchOrchestrator(fetcher).fetch(["fast", "slow"])

        def index(entry):
            return fetcher.log.index(entry)

        last_profile_end = max(index(("end", "profile", e)) for e in ("fast", "slow"))
        first_repo_start = min(index(("start", "repositories", e)) for e in ("fast", "slow"))
        last_repo_end = max(index(("end", "repositories", e)) for e in ("fast", "slow"))
        first_event_start = min(index(("start", "events", e)) for e in ("fast", "slow"))
        self.assertLess(last_profile_end, first_repo_start)
        self.assertLess(last_repo_end, first_event_start)

    async def test_profiles_fetched_concurrently(self) -> None:
        fetcher = _RecordingFetcher(delays={("profile", "a"): 0.02, ("profile", "b"): 0.02})

        await BatchOrchestrator(fetcher).fetch(["a", "b"])

        # Both profile calls start before either finishes
        self.assertEqual([step for step, kind, _ in fetcher.log[:2]], ["start", "start"])

    async def test_failed_profile_is_isolated_and_skipped_later(self) -> None:
        fetcher = _RecordingFetcher(failures={("profile", "b"): EntityNotFoundException("b")})

        outcome = await BatchOrchestrator(fetcher).fetch(["a", "b"])

        self.assertTrue(outcome.records["a"].succeeded)
        failed = outcome.records["b"]
        self.assertIsNotNone(failed.error)
        self.assertEqual(failed.error_kind, FailureKind.NOT_FOUND)
        self.assertIsNone(failed.profile)
        self.assertEqual(fetcher.calls("repositories"), ["a"])
        self.assertEqual(fetcher.calls("events"), ["a"])

    async def test_repository_failure_is_partial(self) -> None:
        fetcher = _RecordingFetcher(failures={("repositories", "a"): RuntimeError("boom")})

        outcome = await BatchOrchestrator(fetcher).fetch(["a"])

        record = outcome.records["a"]
        self.assertTrue(record.succeeded)
        self.assertTrue(record.is_partial)
        self.assertEqual(record.repositories_error, "boom")
        self.assertIsNone(record.repositories)
        # events still fetched after a repository failure
        self.assertEqual(len(record.events), 1)

    async def test_event_failure_is_partial(self) -> None:
        fetcher = _RecordingFetcher(failures={("events", "a"): RuntimeError("events down")})

        outcome = await BatchOrchestrator(fetcher).fetch(["a"])

        record = outcome.records["a"]
        self.assertEqual(record.events_error, "events down")
        self.assertEqual(len(record.repositories), 1)
        self.assertTrue(outcome.any_succeeded)

    async def test_every_profile_rate_limited(self) -> None:
        fetcher = _RecordingFetcher(
            failures={
                ("profile", "a"): RateLimitExceededException(reset_at=None),
                ("profile", "b"): RateLimitExceededException(reset_at=None),
            }
        )

        outcome = await BatchOrchestrator(fetcher).fetch(["a", "b"])

        self.assertFalse(outcome.any_succeeded)
        self.assertTrue(outcome.all_rate_limited)
        self.assertEqual(fetcher.calls("repositories"), [])

    async def test_empty_batch(self) -> None:
        outcome = await BatchOrchestrator(_RecordingFetcher()).fetch([])

        self.assertEqual(outcome.records, {})
        self.assertFalse(outcome.any_succeeded)
        self.assertFalse(outcome.all_rate_limited)
