"""
Attribute keys and extraction.

A catalog item is described by a set of canonical attribute keys (genre,
genre pair, talent, decade, age bucket, keyword, runtime bucket, language,
country, popularity tier, community rating tier). Rating history is
partitioned along these keys, and candidates are scored by looking the same
keys up again.

Keys are small frozen dataclasses, so two keys are equal when they have the
same kind and the same value. ``str(key)`` gives the canonical string form
(``genre:28``, ``combo:28-35``, ``director:christopher_nolan`` ...) used in
diagnostics.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from itertools import combinations
from typing import Iterator

from .config import (
    AGE_BUCKETS,
    AGE_BUCKET_OLDEST,
    RUNTIME_BUCKETS,
    RUNTIME_BUCKET_LONGEST,
    POPULARITY_TIERS,
    POPULARITY_TIER_LOWEST,
    COMMUNITY_TIERS,
    COMMUNITY_TIER_LOWEST,
    COMMUNITY_MIN_VOTES,
)
from .models import CatalogItem


class AttributeKey:
    """Base class for every attribute key."""

    __slots__ = ()


@dataclass(frozen=True)
class Genre(AttributeKey):
    genre_id: int

    def __str__(self) -> str:
        return f"genre:{self.genre_id}"


@dataclass(frozen=True)
class GenreCombo(AttributeKey):
    first: int   # always the smaller id
    second: int

    def __str__(self) -> str:
        return f"combo:{self.first}-{self.second}"


@dataclass(frozen=True)
class Talent(AttributeKey):
    kind: str    # "director" or "actor"
    name: str    # normalized: lower-case, underscores

    @property
    def is_director(self) -> bool:
        return self.kind == "director"

    def __str__(self) -> str:
        return f"{self.kind}:{self.name}"


@dataclass(frozen=True)
class Decade(AttributeKey):
    decade: int

    def __str__(self) -> str:
        return f"decade:{self.decade}"


@dataclass(frozen=True)
class Age(AttributeKey):
    bucket: str

    def __str__(self) -> str:
        return f"age:{self.bucket}"


@dataclass(frozen=True)
class Keyword(AttributeKey):
    word: str

    def __str__(self) -> str:
        return f"keyword:{self.word}"


@dataclass(frozen=True)
class Runtime(AttributeKey):
    bucket: str

    def __str__(self) -> str:
        return f"runtime:{self.bucket}"


@dataclass(frozen=True)
class Language(AttributeKey):
    code: str

    def __str__(self) -> str:
        return f"lang:{self.code}"


@dataclass(frozen=True)
class Country(AttributeKey):
    code: str

    def __str__(self) -> str:
        return f"country:{self.code}"


@dataclass(frozen=True)
class Popularity(AttributeKey):
    tier: str

    def __str__(self) -> str:
        return f"popularity:{self.tier}"


@dataclass(frozen=True)
class CommunityRating(AttributeKey):
    tier: str

    def __str__(self) -> str:
        return f"tmdb:{self.tier}"


@dataclass(frozen=True)
class CommunityBias(AttributeKey):
    """Collects every rating of an item with reliable community data."""

    def __str__(self) -> str:
        return "tmdb:bias"


_TALENT_PREFIXES = {
    "director:": "director",
    "dir:": "director",
    "actor:": "actor",
}


def normalize_name(raw: str) -> str:
    """Lower-case, strip punctuation, and join words with underscores."""
    cleaned = re.sub(r"[^\w\s]", "", raw.strip().lower())
    return re.sub(r"\s+", "_", cleaned).strip("_")


def parse_talent_tag(tag: str) -> Talent | None:
    lowered = tag.strip().lower()
    for prefix, kind in _TALENT_PREFIXES.items():
        if lowered.startswith(prefix):
            name = normalize_name(tag.strip()[len(prefix):])
            return Talent(kind, name) if name else None
    return None


def age_bucket(year: int, reference_year: int) -> str:
    age = reference_year - year
    for limit, bucket in AGE_BUCKETS:
        if age < limit:
            return bucket
    return AGE_BUCKET_OLDEST


def runtime_bucket(minutes: int) -> str:
    for limit, bucket in RUNTIME_BUCKETS:
        if minutes < limit:
            return bucket
    return RUNTIME_BUCKET_LONGEST


def popularity_tier(popularity: float) -> str:
    for threshold, tier in POPULARITY_TIERS:
        if popularity > threshold:
            return tier
    return POPULARITY_TIER_LOWEST


def community_tier(vote_average: float) -> str:
    for threshold, tier in COMMUNITY_TIERS:
        if vote_average >= threshold:
            return tier
    return COMMUNITY_TIER_LOWEST


def has_reliable_community_rating(item: CatalogItem) -> bool:
    return (
        item.vote_average is not None
        and item.vote_count is not None
        and item.vote_count > COMMUNITY_MIN_VOTES
    )


@dataclass
class ItemAttributes:
    """All attribute keys of one item, grouped by kind."""

    genres: list[Genre] = field(default_factory=list)
    combos: list[GenreCombo] = field(default_factory=list)
    talent: list[Talent] = field(default_factory=list)
    decade: Decade | None = None
    age: Age | None = None
    keywords: list[Keyword] = field(default_factory=list)
    runtime: Runtime | None = None
    language: Language | None = None
    countries: list[Country] = field(default_factory=list)
    popularity: Popularity | None = None
    community: CommunityRating | None = None
    community_bias: CommunityBias | None = None

    def keys(self) -> Iterator[AttributeKey]:
        yield from self.genres
        yield from self.combos
        yield from self.talent
        for single in (self.decade, self.age):
            if single is not None:
                yield single
        yield from self.keywords
        if self.runtime is not None:
            yield self.runtime
        if self.language is not None:
            yield self.language
        yield from self.countries
        for single in (self.popularity, self.community, self.community_bias):
            if single is not None:
                yield single


def _unique(keys):
    return list(dict.fromkeys(keys))


def extract_attributes(item: CatalogItem, reference_year: int) -> ItemAttributes:
    """
    Convert a catalog item into its attribute keys.

    Only fields that are present produce keys. Genre pairs are formed from
    the sorted, de-duplicated genre ids so the same pair always yields the
    same key. Community keys need more than ``COMMUNITY_MIN_VOTES`` votes.
    """
    attrs = ItemAttributes()

    genre_ids = sorted(set(item.genre_ids))
    attrs.genres = [Genre(g) for g in genre_ids]
    attrs.combos = [GenreCombo(a, b) for a, b in combinations(genre_ids, 2)]

    attrs.talent = _unique(t for t in map(parse_talent_tag, item.tags) if t is not None)

    if item.year:
        attrs.decade = Decade(item.year - item.year % 10)
        attrs.age = Age(age_bucket(item.year, reference_year))

    attrs.keywords = _unique(
        Keyword(word) for word in (k.strip().lower() for k in item.keywords) if word
    )

    if item.runtime is not None and item.runtime > 0:
        attrs.runtime = Runtime(runtime_bucket(item.runtime))

    if item.original_language and item.original_language.strip():
        attrs.language = Language(item.original_language.strip().lower())

    attrs.countries = _unique(
        Country(code.strip().upper()) for code in item.production_countries if code and code.strip()
    )

    if item.popularity is not None:
        attrs.popularity = Popularity(popularity_tier(item.popularity))

    if has_reliable_community_rating(item):
        attrs.community = CommunityRating(community_tier(item.vote_average))
        attrs.community_bias = CommunityBias()

    return attrs
