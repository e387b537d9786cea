"""Pure aggregation over entity records. No I/O happens here."""
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional

from devstats.domain.models import (
    ActivityEvent,
    AggregateResult,
    CommitSeries,
    CommitSeriesSet,
    ComparisonPoint,
    Comparisons,
    EntityId,
    EntityRecord,
    EntitySeries,
    LanguageCount,
    Repository,
    RepositoryStats,
)

TOP_LANGUAGES = 5
RECENTLY_UPDATED = 5


def event_date(event: ActivityEvent) -> date:
    """Calendar date of an event in UTC."""
    created_at = event.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return created_at.astimezone(timezone.utc).date()


def commits_by_date(events: Iterable[ActivityEvent]) -> Dict[date, int]:
    totals: Dict[date, int] = defaultdict(int)
    for event in events:
        if event.is_push:
            totals[event_date(event)] += event.size
    return dict(totals)


def derive_commit_series(events: Iterable[ActivityEvent]) -> CommitSeries:
    """Commit counts per date for one entity, dates ascending."""
    totals = commits_by_date(events)
    dates = sorted(totals)
    return CommitSeries(dates=dates, values=[totals[d] for d in dates])


def count_languages(repositories: Iterable[Repository]) -> Dict[str, int]:
    """One increment per repository that declares a language. Keys in first-seen order."""
    counts: Dict[str, int] = {}
    for repo in repositories:
        if repo.language:
            counts[repo.language] = counts.get(repo.language, 0) + 1
    return counts


def rank_languages(distribution: Mapping[str, int]) -> List[LanguageCount]:
    """Languages by descending count; ties keep their first-seen order."""
    ranked = sorted(distribution.items(), key=lambda item: -item[1])
    return [LanguageCount(language=language, count=count) for language, count in ranked]


def repository_stats(repositories: Optional[List[Repository]]) -> RepositoryStats:
    """Totals, top languages and most recently updated repositories of one entity."""
    if not repositories:
        return RepositoryStats()

    distribution = count_languages(repositories)
    recently_updated = sorted(repositories, key=lambda repo: repo.updated_at, reverse=True)
    return RepositoryStats(
        total_repositories=len(repositories),
        total_stars=sum(repo.stars for repo in repositories),
        total_forks=sum(repo.forks for repo in repositories),
        total_watchers=sum(repo.watchers for repo in repositories),
        language_distribution=distribution,
        top_languages=rank_languages(distribution)[:TOP_LANGUAGES],
        recently_updated=recently_updated[:RECENTLY_UPDATED],
    )


def _has_event_data(record: Optional[EntityRecord]) -> bool:
    return record is not None and record.error is None and record.events is not None


def build_commit_series(
    records: Mapping[EntityId, EntityRecord],
    today: Optional[date] = None,
) -> CommitSeriesSet:
    """
    Puts every entity's commit counts on one shared, sorted date axis.

    Entities without usable event data still get a row of zeros. When nobody
    pushed anything the axis is a single placeholder date so the result can
    always be charted.
    """
    per_entity: Dict[EntityId, Dict[date, int]] = {}
    all_dates = set()
    for entity_id, record in records.items():
        if not _has_event_data(record):
            continue
        totals = commits_by_date(record.events)
        per_entity[entity_id] = totals
        all_dates.update(totals)

    if not all_dates:
        all_dates.add(today or datetime.now(timezone.utc).date())

    dates = sorted(all_dates)
    series = []
    for entity_id in records:
        totals = per_entity.get(entity_id, {})
        series.append(EntitySeries(entity_id=entity_id, values=[totals.get(d, 0) for d in dates]))

    return CommitSeriesSet(dates=dates, series=series)


def aggregate(
    records: Mapping[EntityId, EntityRecord],
    rate_limit_warning: Optional[str] = None,
    today: Optional[date] = None,
) -> AggregateResult:
    """
    Builds totals, comparison arrays, language distribution and the shared
    commit series from a batch of entity records.

    Every entity occupies one slot in every comparison array, in the mapping's
    order. Failed entities, or entities without a profile, contribute zeros.
    Stars, forks and languages come only from fetched repositories.
    """
    total_repositories = 0
    total_stars = 0
    total_forks = 0
    total_followers = 0
    language_distribution: Dict[str, int] = {}
    comparisons: Dict[str, List[ComparisonPoint]] = {
        "repositories": [],
        "followers": [],
        "stars": [],
        "forks": [],
    }

    for entity_id, record in records.items():
        values = {"repositories": 0, "followers": 0, "stars": 0, "forks": 0}

        if record is not None and record.succeeded:
            repositories = record.repositories or []
            values["repositories"] = record.profile.repository_count
            values["followers"] = record.profile.followers
            values["stars"] = sum(repo.stars for repo in repositories)
            values["forks"] = sum(repo.forks for repo in repositories)

            for language, count in count_languages(repositories).items():
                language_distribution[language] = language_distribution.get(language, 0) + count

        total_repositories += values["repositories"]
        total_followers += values["followers"]
        total_stars += values["stars"]
        total_forks += values["forks"]
        for metric, value in values.items():
            comparisons[metric].append(ComparisonPoint(entity_id=entity_id, value=value))

    return AggregateResult(
        total_entities=len(records),
        total_repositories=total_repositories,
        total_stars=total_stars,
        total_forks=total_forks,
        total_followers=total_followers,
        language_distribution=language_distribution,
        language_ranking=rank_languages(language_distribution),
        comparisons=Comparisons(**comparisons),
        commit_series=build_commit_series(records, today=today),
        rate_limit_warning=rate_limit_warning,
    )
