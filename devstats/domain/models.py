from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

EntityId = str

PUSH_EVENT = "PushEvent"


class FailureKind(str, Enum):
    """Why an entity, or a whole batch, did not produce data."""
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"
    TOTAL = "total"
    UNEXPECTED = "unexpected"


class Profile(BaseModel):
    """
    Immutable domain model representing a GitHub user profile.
    Only the fields consumed by the statistics engine are kept.
    """
    model_config = ConfigDict(frozen=True)

    login: str = Field(..., description="Login name of the user")
    display_name: Optional[str] = Field(None, description="Human readable name")
    avatar_url: str = Field("", description="URL of the avatar image")
    bio: Optional[str] = None
    repository_count: int = Field(0, ge=0, description="Number of public repositories")
    followers: int = Field(0, ge=0)
    following: int = Field(0, ge=0)
    gists: int = Field(0, ge=0, description="Number of public gists")


class Repository(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    language: Optional[str] = None
    stars: int = Field(0, ge=0)
    forks: int = Field(0, ge=0)
    watchers: int = Field(0, ge=0)
    updated_at: datetime = Field(..., description="Timestamp of the last update")
    description: Optional[str] = None
    url: str = ""


class ActivityEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str = Field(..., description="Raw GitHub event type, e.g. PushEvent")
    created_at: datetime
    size: int = Field(0, ge=0, description="Number of commits in a push")

    @property
    def is_push(self) -> bool:
        return self.kind == PUSH_EVENT


class RateStatus(BaseModel):
    """Snapshot of the core rate limit as reported by the API."""
    model_config = ConfigDict(frozen=True)

    remaining: int
    limit: int
    reset_at: datetime


class CommitSeries(BaseModel):
    """Commits per calendar date for a single entity."""
    model_config = ConfigDict(frozen=True)

    dates: List[date] = Field(default_factory=list)
    values: List[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _aligned(self) -> "CommitSeries":
        if len(self.dates) != len(self.values):
            raise ValueError("dates and values must have the same length.")
        return self


class EntityRecord(BaseModel):
    """
    Outcome of one fetch attempt for one entity.

    Reachable states:
      failed    -> error set, nothing else
      pending   -> profile only (between phases)
      success   -> profile + repositories + events
      partial   -> profile + repositories_error and/or events_error
      cached    -> profile + repositories + empty events
    """
    model_config = ConfigDict(frozen=True)

    profile: Optional[Profile] = None
    repositories: Optional[List[Repository]] = None
    events: Optional[List[ActivityEvent]] = None
    error: Optional[str] = None
    error_kind: Optional[FailureKind] = None
    repositories_error: Optional[str] = None
    events_error: Optional[str] = None

    @model_validator(mode="after")
    def _reachable(self) -> "EntityRecord":
        if self.error is not None and any(
            value is not None
            for value in (self.profile, self.repositories, self.events, self.repositories_error, self.events_error)
        ):
            raise ValueError("A failed record cannot carry resource data.")
        if self.repositories is not None and self.repositories_error is not None:
            raise ValueError("repositories and repositories_error are mutually exclusive.")
        if self.events is not None and self.events_error is not None:
            raise ValueError("events and events_error are mutually exclusive.")
        return self

    @classmethod
    def failure(cls, message: str, kind: FailureKind = FailureKind.UNKNOWN) -> "EntityRecord":
        return cls(error=message, error_kind=kind)

    def with_update(self, **update) -> "EntityRecord":
        """Copy with some fields replaced. Unlike model_copy, the result is validated."""
        return EntityRecord(**{**dict(self), **update})

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.profile is not None

    @property
    def is_partial(self) -> bool:
        return self.succeeded and (self.repositories_error is not None or self.events_error is not None)


class CacheEntry(BaseModel):
    """A resolved entity kept for the session. Raw events are not retained."""
    model_config = ConfigDict(frozen=True)

    profile: Profile
    repositories: List[Repository] = Field(default_factory=list)
    commit_series: CommitSeries = Field(default_factory=CommitSeries)
    cached_at: datetime


class RateBudgetStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    sufficient: bool
    remaining: Optional[int] = None
    limit: Optional[int] = None
    reset_at: Optional[datetime] = None

    def describe_reset(self) -> str:
        if self.reset_at is None:
            return "an unknown time"
        return self.reset_at.astimezone().strftime("%H:%M:%S")

    def warning_message(self) -> Optional[str]:
        if self.sufficient:
            return None
        return (
            "GitHub API rate limit may be exceeded. Consider adding a token or reducing "
            f"the number of users. Limit resets at {self.describe_reset()}."
        )


class ComparisonPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    entity_id: EntityId
    value: int


class Comparisons(BaseModel):
    model_config = ConfigDict(frozen=True)

    repositories: List[ComparisonPoint] = Field(default_factory=list)
    followers: List[ComparisonPoint] = Field(default_factory=list)
    stars: List[ComparisonPoint] = Field(default_factory=list)
    forks: List[ComparisonPoint] = Field(default_factory=list)


class EntitySeries(BaseModel):
    model_config = ConfigDict(frozen=True)

    entity_id: EntityId
    values: List[int]


class CommitSeriesSet(BaseModel):
    """Commit series of several entities sharing one date axis."""
    model_config = ConfigDict(frozen=True)

    dates: List[date]
    series: List[EntitySeries]


class LanguageCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    language: str
    count: int


class LanguageHistogram(BaseModel):
    """Chart-ready language counts, labels and data aligned."""
    model_config = ConfigDict(frozen=True)

    labels: List[str] = Field(default_factory=list)
    data: List[int] = Field(default_factory=list)


class AggregateResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_entities: int = 0
    total_repositories: int = 0
    total_stars: int = 0
    total_forks: int = 0
    total_followers: int = 0
    language_distribution: Dict[str, int] = Field(default_factory=dict)
    language_ranking: List[LanguageCount] = Field(default_factory=list)
    comparisons: Comparisons = Field(default_factory=Comparisons)
    commit_series: CommitSeriesSet
    rate_limit_warning: Optional[str] = None


class RepositoryStats(BaseModel):
    """Totals for a single entity's repositories."""
    model_config = ConfigDict(frozen=True)

    total_repositories: int = 0
    total_stars: int = 0
    total_forks: int = 0
    total_watchers: int = 0
    language_distribution: Dict[str, int] = Field(default_factory=dict)
    top_languages: List[LanguageCount] = Field(default_factory=list)
    recently_updated: List[Repository] = Field(default_factory=list)


class EntitySummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    entity_id: EntityId
    profile: Profile
    repositories: List[Repository]
    repository_stats: RepositoryStats
    commit_series: CommitSeries
    from_cache: bool = False


class BatchResult(BaseModel):
    """Final outcome of one batch. Failure is encoded here, never raised."""
    model_config = ConfigDict(frozen=True)

    records: Dict[EntityId, EntityRecord] = Field(default_factory=dict)
    aggregate: AggregateResult
    failed: bool = False
    failure_kind: Optional[FailureKind] = None
    message: Optional[str] = None
    rate_limit_warning: Optional[str] = None
