"""
Data models for the bynger scheduling core.

Defines Pydantic models for schedulable media (episodes and movies),
persisted scheduled events, and the constraints a distribution run works
within. All date-times are stored in UTC; local-time presentation is left
to the caller.
"""

from datetime import date
from datetime import datetime
from datetime import time
from datetime import timedelta
from datetime import timezone
from enum import Enum
from typing import Annotated
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Literal
from typing import Optional
from typing import Union
from uuid import UUID
from uuid import uuid4

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator

DEFAULT_RUNTIME = 60


class MediaType(str, Enum):
    """Kind of media wrapped by a scheduled event."""

    TV = "tv"
    MOVIE = "movie"


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` in UTC; naive values are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def fuzzy_runtime(
    runtime: Optional[int],
    show_runtimes: Optional[Iterable[Optional[int]]] = None,
    default: int = DEFAULT_RUNTIME,
) -> int:
    """
    Resolve an episode runtime, falling back to show-level data.

    Args:
        runtime: The episode's own runtime in minutes, if the catalog has one
        show_runtimes: Runtimes declared at show level (e.g. TMDB episode_run_time)
        default: Used when neither the episode nor the show declares a runtime

    Returns:
        The episode runtime, else the longest show runtime, else ``default``
    """
    if runtime:
        return runtime

    declared = [r for r in (show_runtimes or []) if r]
    return max(declared) if declared else default


class Episode(BaseModel):
    """
    A single TV episode that can be placed on the calendar.

    Built per scheduling session from catalog data and discarded afterwards;
    only the copy embedded in a ScheduledEvent is persisted.
    """

    model_config = ConfigDict(frozen=True)

    show_id: int = Field(
        ...,
        description="Catalog identifier of the show"
    )

    show_name: str = Field(
        ...,
        min_length=1,
        description="Display name of the show"
    )

    season_number: int = Field(
        ...,
        ge=0,
        description="Season number (0 is used for specials)"
    )

    episode_number: int = Field(
        ...,
        ge=0,
        description="Episode number within the season"
    )

    name: str = Field(
        default="",
        description="Episode title"
    )

    air_date: str = Field(
        default="",
        description="Original air date as reported by the catalog"
    )

    still_path: Optional[str] = Field(
        default=None,
        description="Catalog reference to the episode still image"
    )

    runtime: int = Field(
        default=DEFAULT_RUNTIME,
        ge=0,
        description="Runtime in minutes"
    )

    @field_validator("name", "air_date", mode="before")
    @classmethod
    def none_to_empty(cls, v: Optional[str]) -> str:
        """Catalog payloads use null for unknown text fields."""
        return v if v is not None else ""

    @property
    def code(self) -> str:
        """Season/episode code, e.g. ``s01e02``."""
        return f"s{self.season_number:02}e{self.episode_number:02}"

    @classmethod
    def from_catalog(
        cls,
        show_id: int,
        show_name: str,
        payload: Dict[str, Any],
        show_runtimes: Optional[Iterable[Optional[int]]] = None,
        default_runtime: int = DEFAULT_RUNTIME,
    ) -> "Episode":
        """Build an episode from a catalog episode payload, applying fuzzy runtime."""
        return cls(
            show_id=show_id,
            show_name=show_name,
            season_number=payload["season_number"],
            episode_number=payload["episode_number"],
            name=payload.get("name"),
            air_date=payload.get("air_date"),
            still_path=payload.get("still_path"),
            runtime=fuzzy_runtime(payload.get("runtime"), show_runtimes, default_runtime),
        )


class Movie(BaseModel):
    """A movie that can be placed on the calendar as a single event."""

    model_config = ConfigDict(frozen=True)

    movie_id: int = Field(
        ...,
        description="Catalog identifier of the movie"
    )

    show_name: str = Field(
        ...,
        min_length=1,
        description="Movie title"
    )

    release_date: str = Field(
        default="",
        description="Release date as reported by the catalog"
    )

    runtime: int = Field(
        default=DEFAULT_RUNTIME,
        ge=0,
        description="Runtime in minutes"
    )

    @field_validator("release_date", mode="before")
    @classmethod
    def none_to_empty(cls, v: Optional[str]) -> str:
        return v if v is not None else ""

    @classmethod
    def from_catalog(cls, payload: Dict[str, Any], default_runtime: int = DEFAULT_RUNTIME) -> "Movie":
        """Build a movie from a catalog movie payload."""
        return cls(
            movie_id=payload["id"],
            show_name=payload.get("title") or payload.get("original_title") or "",
            release_date=payload.get("release_date"),
            runtime=payload.get("runtime") or default_runtime,
        )


Schedulable = Union[Episode, Movie]


class TvMedia(BaseModel):
    """Scheduled event payload for a TV episode."""

    model_config = ConfigDict(frozen=True)

    media_type: Literal["tv"] = "tv"
    episode: Episode


class MovieMedia(BaseModel):
    """Scheduled event payload for a movie."""

    model_config = ConfigDict(frozen=True)

    media_type: Literal["movie"] = "movie"
    movie: Movie


Media = Annotated[Union[TvMedia, MovieMedia], Field(discriminator="media_type")]


def wrap_item(item: Schedulable) -> Union[TvMedia, MovieMedia]:
    """Wrap a schedulable item in its matching media variant."""
    if isinstance(item, Episode):
        return TvMedia(episode=item)
    if isinstance(item, Movie):
        return MovieMedia(movie=item)
    raise TypeError(f"Cannot schedule {type(item).__name__}; expected Episode or Movie")


class ScheduledEvent(BaseModel):
    """
    A persisted watch slot: one episode or movie at one UTC date-time.

    The media payload is a tagged variant, so the discriminator and the
    populated record always agree. Records in the legacy flat layout
    (``uuid``, ``media_type``, ``episode``, ``movie``) are folded into the
    variant on load.
    """

    id: UUID = Field(
        default_factory=uuid4,
        description="Stable identifier, generated once and never reused"
    )

    scheduled_date: datetime = Field(
        ...,
        description="Scheduled start in UTC"
    )

    media: Media = Field(
        ...,
        description="The scheduled episode or movie"
    )

    watched: bool = Field(
        default=False,
        description="Whether the user has marked the event as watched"
    )

    @model_validator(mode="before")
    @classmethod
    def fold_flat_record(cls, data: Any) -> Any:
        """Accept the flat layout with a separate discriminator and optional fields."""
        if not isinstance(data, dict) or "media" in data or "media_type" not in data:
            return data

        data = dict(data)
        media_type = str(data.pop("media_type")).lower()
        episode = data.pop("episode", None)
        movie = data.pop("movie", None)
        if "uuid" in data and "id" not in data:
            data["id"] = data.pop("uuid")

        if media_type == MediaType.TV.value and episode is not None and movie is None:
            data["media"] = {"media_type": MediaType.TV.value, "episode": episode}
        elif media_type == MediaType.MOVIE.value and movie is not None and episode is None:
            data["media"] = {"media_type": MediaType.MOVIE.value, "movie": movie}
        else:
            raise ValueError(
                f"media_type '{media_type}' does not match the populated episode/movie fields"
            )
        return data

    @field_validator("scheduled_date")
    @classmethod
    def normalize_scheduled_date(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def media_type(self) -> MediaType:
        return MediaType(self.media.media_type)

    @property
    def episode(self) -> Optional[Episode]:
        return self.media.episode if isinstance(self.media, TvMedia) else None

    @property
    def movie(self) -> Optional[Movie]:
        return self.media.movie if isinstance(self.media, MovieMedia) else None

    @property
    def item(self) -> Schedulable:
        """The wrapped episode or movie."""
        if isinstance(self.media, TvMedia):
            return self.media.episode
        return self.media.movie

    @property
    def runtime(self) -> int:
        return self.item.runtime

    @property
    def title(self) -> str:
        return self.item.show_name

    @property
    def end_date(self) -> datetime:
        """Scheduled start plus runtime."""
        return self.scheduled_date + timedelta(minutes=self.runtime)

    @property
    def subject(self) -> str:
        """One-line label used by exports and listings."""
        if isinstance(self.media, TvMedia):
            return f"{self.media.episode.show_name} | {self.media.episode.code}"
        return f"{self.media.movie.show_name} | Runtime: {self.media.movie.runtime}"

    @property
    def description(self) -> str:
        if isinstance(self.media, TvMedia):
            return self.media.episode.name
        if self.media.movie.release_date:
            return f"Released: {self.media.movie.release_date}"
        return ""

    @property
    def date_only(self) -> date:
        """Get just the UTC date portion for grouping."""
        return self.scheduled_date.date()


class SchedulingBoundaries(BaseModel):
    """Inclusive window the distribution packs items into (UTC)."""

    start_date: date
    start_time: time
    end_date: date
    end_time: time

    @field_validator("start_time", "end_time")
    @classmethod
    def drop_tzinfo(cls, v: time) -> time:
        return v.replace(tzinfo=None)

    @model_validator(mode="after")
    def validate_window(self) -> "SchedulingBoundaries":
        if self.end_date < self.start_date:
            raise ValueError(
                f"end_date {self.end_date} is before start_date {self.start_date}"
            )
        return self

    @property
    def start(self) -> datetime:
        return datetime.combine(self.start_date, self.start_time, tzinfo=timezone.utc)

    @property
    def end(self) -> datetime:
        return datetime.combine(self.end_date, self.end_time, tzinfo=timezone.utc)

    @property
    def is_overnight(self) -> bool:
        """True when the daily window runs past midnight."""
        return self.end_time <= self.start_time

    def day_start(self, day: date) -> datetime:
        """Cursor position at the start of ``day``."""
        return datetime.combine(day, self.start_time, tzinfo=timezone.utc)

    def day_end(self, day: date) -> datetime:
        """End of the daily window that opens on ``day``."""
        end_day = day + timedelta(days=1) if self.is_overnight else day
        return datetime.combine(end_day, self.end_time, tzinfo=timezone.utc)


class SchedulingOptions(BaseModel):
    """Weekday allow-list, per-day quota and end-boundary policy."""

    days_of_week: Dict[int, bool] = Field(
        default_factory=lambda: {day: True for day in range(7)},
        description="Weekday (Monday=0 .. Sunday=6) to availability"
    )

    eps_per_day: int = Field(
        default=0,
        ge=0,
        description="Items per day; 0 fills each day up to the window end time"
    )

    use_end_date: bool = Field(
        default=False,
        description="Report items scheduled past the end boundary"
    )

    on_overflow: Literal["warn", "error"] = Field(
        default="warn",
        description="With use_end_date: keep scheduling and warn, or fail the run"
    )

    @field_validator("days_of_week", mode="before")
    @classmethod
    def coerce_days_of_week(cls, v: Any) -> Any:
        """Accept seven booleans in weekday order as well as a mapping."""
        if isinstance(v, (list, tuple)):
            return {day: bool(flag) for day, flag in enumerate(v)}
        return v

    @field_validator("days_of_week")
    @classmethod
    def validate_days_of_week(cls, v: Dict[int, bool]) -> Dict[int, bool]:
        if set(v) != set(range(7)):
            raise ValueError(
                f"days_of_week must map every weekday 0-6, got {sorted(v)}"
            )
        return v

    @property
    def any_day_available(self) -> bool:
        return any(self.days_of_week.values())

    def is_available(self, day: date) -> bool:
        return self.days_of_week[day.weekday()]


class DistributionResult(BaseModel):
    """
    Outcome of a distribution run.

    ``events`` always holds one event per input item; window overflow is
    reported through ``warnings`` rather than by dropping items.
    """

    events: List[ScheduledEvent] = Field(default_factory=list)

    warnings: List[str] = Field(default_factory=list)

    overflow_count: int = Field(
        default=0,
        ge=0,
        description="Number of events scheduled past the end boundary"
    )

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)
