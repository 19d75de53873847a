import logging
from collections import defaultdict
from dataclasses import dataclass, field
from statistics import mean, pstdev

import numpy as np

from .attributes import AttributeKey, extract_attributes
from .config import (
    CROSS_MEDIA_WEIGHT,
    GUEST_USER_ID,
    IMPLICIT_RATING,
    RATING_SCALE_DIVISOR,
)
from .models import CatalogItem, ExplicitRating, MediaType, UserHistory

logger = logging.getLogger(__name__)


class AttributeScoreMap:
    """
    Attribute key -> ordered rating samples (0-10) for one target media type.

    Every sample carries an insertion weight: 1.0 for the target media type
    and a reduced weight for other media types. Counts reported here are
    effective counts (the sum of weights). Keys only exist once a sample with
    positive weight has been added.
    """

    def __init__(self) -> None:
        self._values: dict[AttributeKey, list[float]] = {}
        self._weights: dict[AttributeKey, list[float]] = {}

    def add(self, key: AttributeKey, value: float, weight: float = 1.0) -> None:
        if weight <= 0:
            return
        self._values.setdefault(key, []).append(value)
        self._weights.setdefault(key, []).append(weight)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self):
        return iter(self._values)

    def samples(self, key: AttributeKey) -> list[float]:
        return list(self._values.get(key, ()))

    def weights(self, key: AttributeKey) -> list[float]:
        return list(self._weights.get(key, ()))

    def count(self, key: AttributeKey) -> float:
        return float(sum(self._weights.get(key, ())))

    def mean(self, key: AttributeKey) -> float | None:
        if key not in self._values:
            return None
        return float(np.average(self._values[key], weights=self._weights[key]))

    def variance(self, key: AttributeKey) -> float | None:
        """Weighted population variance of the samples."""
        if key not in self._values:
            return None
        values = np.asarray(self._values[key])
        weights = np.asarray(self._weights[key])
        avg = np.average(values, weights=weights)
        return float(np.average((values - avg) ** 2, weights=weights))


@dataclass
class TasteProfile:
    """Everything derived from one scan of a user's rating history."""

    user_id: str
    reference_year: int
    cross_media_weight: float = CROSS_MEDIA_WEIGHT
    n_explicit: int = 0
    n_implicit: int = 0
    unresolved: int = 0

    # Rescaled explicit ratings per media type (0-10)
    explicit_ratings: dict[MediaType, list[float]] = field(default_factory=dict)

    # Raw samples tagged with the media type they came from
    entries: dict[AttributeKey, list[tuple[float, MediaType]]] = field(default_factory=dict)

    _views: dict[MediaType, AttributeScoreMap] = field(default_factory=dict, repr=False)

    @property
    def has_history(self) -> bool:
        return (self.n_explicit + self.n_implicit) > 0

    def explicit_count(self, media_type: MediaType) -> int:
        return len(self.explicit_ratings.get(media_type, ()))

    def all_ratings(self) -> list[float]:
        return [v for values in self.explicit_ratings.values() for v in values]

    def baseline_ratings(self, media_type: MediaType) -> list[float]:
        """Ratings of the same media type when there are any, else all ratings."""
        same_type = self.explicit_ratings.get(media_type)
        return list(same_type) if same_type else self.all_ratings()

    def rating_stats(self, media_type: MediaType) -> tuple[float | None, float | None]:
        """(mean, population std) of the baseline ratings; std needs two ratings."""
        ratings = self.baseline_ratings(media_type)
        if not ratings:
            return None, None
        return mean(ratings), (pstdev(ratings) if len(ratings) > 1 else None)

    def scores_for(self, media_type: MediaType) -> AttributeScoreMap:
        """Weighted attribute map for a target media type, built on first use."""
        view = self._views.get(media_type)
        if view is None:
            view = AttributeScoreMap()
            for key, samples in self.entries.items():
                for value, sample_type in samples:
                    weight = 1.0 if sample_type == media_type else self.cross_media_weight
                    view.add(key, value, weight)
            self._views[media_type] = view
        return view


def _rescale(value: float) -> float:
    return max(0.0, min(10.0, value / RATING_SCALE_DIVISOR))


def _dedupe_ratings(ratings: list[ExplicitRating]) -> dict[str, ExplicitRating]:
    """One rating per item: the user's own beats the guest's, else the last one wins."""
    chosen: dict[str, ExplicitRating] = {}
    for rating in ratings:
        current = chosen.get(rating.item_id)
        if current is not None and rating.user_id == GUEST_USER_ID and current.user_id != GUEST_USER_ID:
            continue
        chosen[rating.item_id] = rating
    return chosen


def build_profile(
    history: UserHistory,
    catalog,
    reference_year: int,
    cross_media_weight: float = CROSS_MEDIA_WEIGHT,
) -> TasteProfile:
    """
    Aggregate a user's history into attribute samples.

    Args:
        history: Merged explicit ratings and implicit signals for one identity
        catalog: Catalog accessor (``get_items(ids) -> dict[id, CatalogItem]``)
        reference_year: Year used for the age buckets
        cross_media_weight: Sample weight for media types other than the target

    Explicit ratings are rescaled from 0-100 to 0-10. Implicit signals count
    as a fixed ``IMPLICIT_RATING`` and only for items without an explicit
    rating. Items the catalog cannot resolve are skipped.
    """
    profile = TasteProfile(
        user_id=history.user_id,
        reference_year=reference_year,
        cross_media_weight=cross_media_weight,
    )

    ratings = _dedupe_ratings(history.ratings)
    implicit_ids = list(dict.fromkeys(
        s.item_id for s in history.signals if s.item_id not in ratings
    ))

    items: dict[str, CatalogItem] = catalog.get_items(list(ratings) + implicit_ids)

    entries: dict[AttributeKey, list[tuple[float, MediaType]]] = defaultdict(list)
    explicit_ratings: dict[MediaType, list[float]] = defaultdict(list)

    def _accumulate(item: CatalogItem, value: float) -> None:
        for key in extract_attributes(item, reference_year).keys():
            entries[key].append((value, item.media_type))

    for item_id, rating in ratings.items():
        item = items.get(item_id)
        if item is None:
            profile.unresolved += 1
            continue
        value = _rescale(rating.value)
        explicit_ratings[item.media_type].append(value)
        _accumulate(item, value)
        profile.n_explicit += 1

    for item_id in implicit_ids:
        item = items.get(item_id)
        if item is None:
            profile.unresolved += 1
            continue
        _accumulate(item, IMPLICIT_RATING)
        profile.n_implicit += 1

    profile.entries = dict(entries)
    profile.explicit_ratings = dict(explicit_ratings)

    if profile.unresolved:
        logger.debug(f"{profile.unresolved} history items for {history.user_id} not in catalog, skipped")
    logger.debug(
        f"Built profile for {history.user_id}: {profile.n_explicit} rated, "
        f"{profile.n_implicit} watched-only, {len(profile.entries)} attribute keys"
    )
    return profile
