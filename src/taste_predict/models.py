"""Plain data records shared by the extractor, aggregator and predictor."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class MediaType(Enum):
    """Kinds of catalog items a user can rate."""

    MOVIE = "movie"
    TV = "tv"
    BOOK = "book"
    PODCAST = "podcast"

    @classmethod
    def parse(cls, value: "str | MediaType") -> "MediaType":
        """Accept enum members, canonical values and the 'show' alias."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized in ("show", "shows", "tv_show"):
            return cls.TV
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown media type: {value!r}") from None

    @property
    def plural(self) -> str:
        return "shows" if self is MediaType.TV else f"{self.value}s"


@dataclass
class CatalogItem:
    id: str
    media_type: MediaType = MediaType.MOVIE
    title: str | None = None
    genre_ids: list[int] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)  # "director:<name>" / "actor:<name>"
    year: int | None = None
    runtime: int | None = None
    keywords: list[str] = field(default_factory=list)
    original_language: str | None = None
    production_countries: list[str] = field(default_factory=list)
    popularity: float | None = None
    vote_average: float | None = None
    vote_count: int | None = None

    # External critic scores, kept as the strings the providers return
    imdb_rating: str | None = None       # "8.0"
    metacritic: str | None = None        # "70"
    rotten_tomatoes: str | None = None   # "90%"

    def __post_init__(self) -> None:
        self.media_type = MediaType.parse(self.media_type)

    @classmethod
    def from_dict(cls, payload: dict) -> "CatalogItem":
        return cls(
            id=str(payload["id"]),
            media_type=payload.get("media_type") or MediaType.MOVIE,
            title=payload.get("title"),
            genre_ids=[int(g) for g in payload.get("genre_ids") or []],
            tags=list(payload.get("tags") or []),
            year=payload.get("year"),
            runtime=payload.get("runtime"),
            keywords=list(payload.get("keywords") or []),
            original_language=payload.get("original_language"),
            production_countries=list(payload.get("production_countries") or []),
            popularity=payload.get("popularity"),
            vote_average=payload.get("vote_average"),
            vote_count=payload.get("vote_count"),
            imdb_rating=payload.get("imdb_rating"),
            metacritic=payload.get("metacritic"),
            rotten_tomatoes=payload.get("rotten_tomatoes"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "media_type": self.media_type.value,
            "title": self.title,
            "genre_ids": list(self.genre_ids),
            "tags": list(self.tags),
            "year": self.year,
            "runtime": self.runtime,
            "keywords": list(self.keywords),
            "original_language": self.original_language,
            "production_countries": list(self.production_countries),
            "popularity": self.popularity,
            "vote_average": self.vote_average,
            "vote_count": self.vote_count,
            "imdb_rating": self.imdb_rating,
            "metacritic": self.metacritic,
            "rotten_tomatoes": self.rotten_tomatoes,
        }


@dataclass(frozen=True)
class ExplicitRating:
    """A rating the user entered, on the 0-100 display scale."""

    user_id: str
    item_id: str
    value: float


@dataclass(frozen=True)
class ImplicitSignal:
    """The user logged the item as watched without rating it."""

    user_id: str
    item_id: str
    watched_on: date | None = None


@dataclass
class UserHistory:
    """Merged history for one identity (optionally including guest records)."""

    user_id: str
    ratings: list[ExplicitRating] = field(default_factory=list)
    signals: list[ImplicitSignal] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.ratings and not self.signals


@dataclass
class PredictionResult:
    score: float
    confidence: float
    reasons: list[str] = field(default_factory=list)
    trace: str | None = None
