"""
Signal scorers.

Each scorer looks the candidate's attribute keys up in the user's attribute
map and returns a ``Signal`` (score on 0-10, confidence, label) or ``None``
when it has nothing to say. Scorers are independent of each other; the
combiner decides how much each one counts.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .attributes import (
    CommunityBias,
    Genre,
    ItemAttributes,
    has_reliable_community_rating,
)
from .config import (
    CONFIDENCE_RAMPS,
    GENRE_COMBO_MULTIPLIER,
    GENRE_CONSISTENCY_VARIANCE,
    GENRE_CONSISTENCY_BONUS,
    GENRE_EXTREMITY_GAP,
    GENRE_EXTREMITY_HIGH,
    GENRE_EXTREMITY_LOW,
    GENRE_EXTREMITY_PULL,
    TALENT_DIRECTOR_WEIGHT,
    TALENT_ACTOR_WEIGHT,
    ORIGIN_LANGUAGE_WEIGHT,
    ORIGIN_COUNTRY_WEIGHT,
    COMMUNITY_BIAS_PIVOT,
    COMMUNITY_BIAS_FACTOR,
    COMMUNITY_FALLBACK_CONFIDENCE,
    BASELINE_CONSISTENT_STD,
    BASELINE_CONSISTENT_BONUS,
    CRITIC_NEUTRAL_SCORE,
)
from .models import CatalogItem
from .names import country_name, genre_name, language_name, person_name
from .profile import AttributeScoreMap, TasteProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Signal:
    method: str
    score: float
    confidence: float
    label: str


ScorerFunc = Callable[
    [CatalogItem, ItemAttributes, AttributeScoreMap, TasteProfile],
    Optional[Signal],
]


def _ramp(method: str, n: float) -> float:
    divisor, cap = CONFIDENCE_RAMPS[method]
    return min(n / divisor, cap)


def _weighted(pairs: list[tuple[float, float]]) -> float:
    """Weighted mean of (value, weight) pairs."""
    values, weights = zip(*pairs)
    return float(np.average(values, weights=weights))


def score_genre(
    item: CatalogItem,
    attrs: ItemAttributes,
    scores: AttributeScoreMap,
    profile: TasteProfile,
) -> Signal | None:
    """
    Sample-count weighted genre average.

    Genre pairs count three times as much as a single genre, and genres the
    user rates consistently (variance < 1) get a 1.5x weight. A standout
    genre average (above 8, or below 4) pulls the result 60% toward itself
    when it sits more than one point away from the blend.
    """
    matched_genres: list[tuple[Genre, float, float]] = []
    for key in attrs.genres:
        if key not in scores:
            continue
        weight = scores.count(key)
        if scores.variance(key) < GENRE_CONSISTENCY_VARIANCE:
            weight *= GENRE_CONSISTENCY_BONUS
        matched_genres.append((key, scores.mean(key), weight))

    matched_combos = [
        (key, scores.mean(key), scores.count(key) * GENRE_COMBO_MULTIPLIER)
        for key in attrs.combos
        if key in scores
    ]

    contributions = matched_genres + matched_combos
    if not contributions:
        return None

    blended = _weighted([(avg, weight) for _, avg, weight in contributions])

    if matched_genres:
        averages = [avg for _, avg, _ in matched_genres]
        highest, lowest = max(averages), min(averages)
        if highest - blended > GENRE_EXTREMITY_GAP and highest > GENRE_EXTREMITY_HIGH:
            blended = blended * (1 - GENRE_EXTREMITY_PULL) + highest * GENRE_EXTREMITY_PULL
        elif blended - lowest > GENRE_EXTREMITY_GAP and lowest < GENRE_EXTREMITY_LOW:
            blended = blended * (1 - GENRE_EXTREMITY_PULL) + lowest * GENRE_EXTREMITY_PULL

    top = sorted(matched_genres, key=lambda m: -m[2])[:2]
    if top:
        label = "Genre: " + ", ".join(genre_name(key.genre_id) for key, _, _ in top)
    else:
        label = "Genre combo match"

    return Signal("genre", blended, _ramp("genre", len(contributions)), label)


def score_talent(
    item: CatalogItem,
    attrs: ItemAttributes,
    scores: AttributeScoreMap,
    profile: TasteProfile,
) -> Signal | None:
    """Directors count twice as much as actors."""
    matched = [key for key in attrs.talent if key in scores]
    if not matched:
        return None

    pairs = []
    for key in matched:
        kind_weight = TALENT_DIRECTOR_WEIGHT if key.is_director else TALENT_ACTOR_WEIGHT
        pairs.append((scores.mean(key), scores.count(key) * kind_weight))

    first = matched[0]
    if first.is_director:
        label = f"Director: {person_name(first.name)}"
    else:
        label = f"Stars {person_name(first.name)}"

    return Signal("talent", _weighted(pairs), _ramp("talent", len(matched)), label)


def score_era(
    item: CatalogItem,
    attrs: ItemAttributes,
    scores: AttributeScoreMap,
    profile: TasteProfile,
) -> Signal | None:
    """Pool decade and age-bucket samples into one average."""
    if attrs.decade is None:
        return None

    values: list[float] = []
    weights: list[float] = []
    for key in (attrs.decade, attrs.age):
        if key is not None and key in scores:
            values.extend(scores.samples(key))
            weights.extend(scores.weights(key))
    if not values:
        return None

    score = float(np.average(values, weights=weights))
    confidence = _ramp("era", sum(weights))
    return Signal("era", score, confidence, f"{attrs.decade.decade}s era")


def score_keyword(
    item: CatalogItem,
    attrs: ItemAttributes,
    scores: AttributeScoreMap,
    profile: TasteProfile,
) -> Signal | None:
    matched = [(key, scores.mean(key), scores.count(key)) for key in attrs.keywords if key in scores]
    if not matched:
        return None

    score = _weighted([(avg, weight) for _, avg, weight in matched])
    if len(matched) > 2:
        label = f"{len(matched)} matching keywords"
    else:
        top_key = max(matched, key=lambda m: m[2])[0]
        label = f"Keyword: {top_key.word}"

    return Signal("keyword", score, _ramp("keyword", len(matched)), label)


def score_runtime(
    item: CatalogItem,
    attrs: ItemAttributes,
    scores: AttributeScoreMap,
    profile: TasteProfile,
) -> Signal | None:
    key = attrs.runtime
    if key is None or key not in scores:
        return None
    return Signal(
        "runtime",
        scores.mean(key),
        _ramp("runtime", scores.count(key)),
        f"{key.bucket.capitalize()} runtime",
    )


def score_origin(
    item: CatalogItem,
    attrs: ItemAttributes,
    scores: AttributeScoreMap,
    profile: TasteProfile,
) -> Signal | None:
    """Language matches weigh 1.5x, each country match 1x."""
    matched: list[tuple[str, float, float]] = []
    if attrs.language is not None and attrs.language in scores:
        key = attrs.language
        matched.append((
            f"{language_name(key.code)} language",
            scores.mean(key),
            scores.count(key) * ORIGIN_LANGUAGE_WEIGHT,
        ))
    for key in attrs.countries:
        if key in scores:
            matched.append((
                f"From {country_name(key.code)}",
                scores.mean(key),
                scores.count(key) * ORIGIN_COUNTRY_WEIGHT,
            ))
    if not matched:
        return None

    score = _weighted([(avg, weight) for _, avg, weight in matched])
    label = max(matched, key=lambda m: m[2])[0]
    return Signal("origin", score, _ramp("origin", len(matched)), label)


_POPULARITY_LABELS = {
    "blockbuster": "Blockbuster",
    "mainstream": "Mainstream hit",
    "moderate": "Cult following",
    "indie": "Indie pick",
}


def score_popularity(
    item: CatalogItem,
    attrs: ItemAttributes,
    scores: AttributeScoreMap,
    profile: TasteProfile,
) -> Signal | None:
    key = attrs.popularity
    if key is None or key not in scores:
        return None
    return Signal(
        "popularity",
        scores.mean(key),
        _ramp("popularity", scores.count(key)),
        _POPULARITY_LABELS.get(key.tier, key.tier.capitalize()),
    )


def score_community(
    item: CatalogItem,
    attrs: ItemAttributes,
    scores: AttributeScoreMap,
    profile: TasteProfile,
) -> Signal | None:
    """
    How the user rates items in the candidate's audience-rating tier.

    Falls back to the audience average shifted by the user's general
    leniency toward well-rated items. Deliberately low confidence either way.
    """
    if not has_reliable_community_rating(item):
        return None

    key = attrs.community
    if key is not None and key in scores:
        return Signal(
            "community",
            scores.mean(key),
            _ramp("community", scores.count(key)),
            f"Audiences rate it {key.tier}",
        )

    bias_key = CommunityBias()
    if bias_key in scores:
        bias = scores.mean(bias_key)
        score = item.vote_average + (bias - COMMUNITY_BIAS_PIVOT) * COMMUNITY_BIAS_FACTOR
        return Signal(
            "community",
            score,
            COMMUNITY_FALLBACK_CONFIDENCE,
            f"Audience score {item.vote_average:.1f}",
        )
    return None


def score_baseline(
    item: CatalogItem,
    attrs: ItemAttributes,
    scores: AttributeScoreMap,
    profile: TasteProfile,
) -> Signal | None:
    """The user's own mean rating, nudged up for consistent raters."""
    avg, std = profile.rating_stats(item.media_type)
    if avg is None:
        return None
    if std is not None and std <= BASELINE_CONSISTENT_STD:
        avg += BASELINE_CONSISTENT_BONUS
    return Signal("baseline", avg, 1.0, f"Your average rating: {avg:.1f}")


_NUMBER = re.compile(r"\d+(?:\.\d+)?")


def _parse_number(raw: str | None, source: str) -> float | None:
    if raw is None:
        return None
    match = _NUMBER.search(str(raw))
    if not match:
        if str(raw).strip():
            logger.debug(f"Skipping unparseable {source} score {raw!r}")
        return None
    return float(match.group())


def critic_consensus(item: CatalogItem) -> float | None:
    """Mean of the available critic scores on a 0-10 scale, or None."""
    values = []
    imdb = _parse_number(item.imdb_rating, "IMDb")
    if imdb is not None:
        values.append(imdb)
    metacritic = _parse_number(item.metacritic, "Metacritic")
    if metacritic is not None:
        values.append(metacritic / 10.0)
    rotten = _parse_number(item.rotten_tomatoes, "Rotten Tomatoes")
    if rotten is not None:
        values.append(rotten / 10.0)
    if not values:
        return None
    return sum(values) / len(values)


def critic_score(item: CatalogItem) -> float:
    """Critic consensus with the neutral default when no critic data exists."""
    consensus = critic_consensus(item)
    return CRITIC_NEUTRAL_SCORE if consensus is None else consensus


def score_critic(
    item: CatalogItem,
    attrs: ItemAttributes,
    scores: AttributeScoreMap,
    profile: TasteProfile,
) -> Signal | None:
    """Low-weight anchor; the neutral default never counts as a real signal."""
    score = critic_score(item)
    if score == CRITIC_NEUTRAL_SCORE:
        return None
    return Signal("critic", score, 1.0, f"Critics: {score:.1f}/10")


DEFAULT_SCORERS: list[ScorerFunc] = [
    score_genre,
    score_talent,
    score_keyword,
    score_origin,
    score_era,
    score_runtime,
    score_popularity,
    score_community,
    score_baseline,
    score_critic,
]


def run_scorers(
    item: CatalogItem,
    attrs: ItemAttributes,
    scores: AttributeScoreMap,
    profile: TasteProfile,
    scorers: list[ScorerFunc] | None = None,
) -> list[Signal]:
    signals = []
    for scorer in scorers or DEFAULT_SCORERS:
        signal = scorer(item, attrs, scores, profile)
        if signal is not None:
            signals.append(signal)
    return signals
