"""
Preference prediction for a user and a catalog item.

``PreferencePredictor`` builds the user's taste profile from the injected
history and catalog accessors, runs every signal scorer against it and
blends the signals. Single and batch predictions share the same path, so a
batch of one always equals a single prediction.
"""

import asyncio
import logging
from datetime import date
from typing import Iterable

from .attributes import extract_attributes
from .cache import ProfileCache
from .combiner import (
    CRITIC_REASON,
    combine,
    count_data_points,
    critic_only_result,
)
from .config import (
    CROSS_MEDIA_WEIGHT,
    CONFIDENCE_NO_HISTORY,
    CONFIDENCE_OTHER_MEDIA_ONLY,
    PREDICTION_TIMEOUT_SECONDS,
)
from .models import CatalogItem, PredictionResult
from .profile import TasteProfile, build_profile
from .scorer_weights import ScorerWeights, load_scorer_weights
from .scorers import ScorerFunc, critic_score, run_scorers

logger = logging.getLogger(__name__)


def rate_prompt(item: CatalogItem) -> str:
    return f"Rate some {item.media_type.plural} to get personalized predictions"


class PreferencePredictor:
    """
    Predict how much a user will like catalog items.

    Args:
        catalog: Accessor with ``get_item``/``get_items`` (and optionally ``generation()``)
        history: Accessor with ``load_history(user_id, include_guest)``
            (and optionally ``generation(user_id, include_guest)``)
        reference_date: Date the age buckets are computed against (default: today)
        weights: Scorer multipliers (default: weights file, else config defaults)
        scorers: Scorer functions in declaration order (default: all of them)
        cache: Profile cache; pass ``False`` to disable caching
        cross_media_weight: Sample weight for media types other than the target
    """

    def __init__(
        self,
        catalog,
        history,
        reference_date: date | None = None,
        weights: ScorerWeights | None = None,
        scorers: list[ScorerFunc] | None = None,
        cache: ProfileCache | None | bool = None,
        cross_media_weight: float = CROSS_MEDIA_WEIGHT,
    ):
        self.catalog = catalog
        self.history = history
        self.reference_date = reference_date or date.today()
        self.weights = weights or load_scorer_weights() or ScorerWeights()
        self.scorers = scorers
        self.cross_media_weight = cross_media_weight
        if cache is False:
            self.cache = None
        else:
            self.cache = cache if isinstance(cache, ProfileCache) else ProfileCache()

    @property
    def reference_year(self) -> int:
        return self.reference_date.year

    def _cache_key(self, user_id: str, include_guest: bool):
        history_gen_fn = getattr(self.history, "generation", None)
        catalog_gen_fn = getattr(self.catalog, "generation", None)
        if history_gen_fn is None or catalog_gen_fn is None:
            return None
        history_gen = history_gen_fn(user_id, include_guest)
        catalog_gen = catalog_gen_fn()
        if history_gen is None or catalog_gen is None:
            return None
        return (
            user_id,
            include_guest,
            history_gen,
            catalog_gen,
            self.reference_year,
            self.cross_media_weight,
        )

    def profile_for(self, user_id: str, include_guest: bool = True) -> TasteProfile:
        """Taste profile for ``user_id``, from the cache when the data is unchanged."""
        key = self._cache_key(user_id, include_guest) if self.cache is not None else None
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Profile cache hit for {user_id}")
                return cached
            logger.debug(f"Profile cache miss for {user_id}")

        history = self.history.load_history(user_id, include_guest=include_guest)
        profile = build_profile(
            history,
            self.catalog,
            reference_year=self.reference_year,
            cross_media_weight=self.cross_media_weight,
        )
        if key is not None:
            self.cache.put(key, profile)
        return profile

    def predict_with_profile(self, item: CatalogItem, profile: TasteProfile) -> PredictionResult:
        """Score one item against an already built profile."""
        if not profile.has_history:
            return critic_only_result(
                item,
                CONFIDENCE_NO_HISTORY,
                [CRITIC_REASON],
                trace=f"No history | Critic: {critic_score(item):.2f}",
            )

        same_type = profile.explicit_count(item.media_type)
        if same_type == 0:
            return critic_only_result(
                item,
                CONFIDENCE_OTHER_MEDIA_ONLY,
                [rate_prompt(item), CRITIC_REASON],
                trace=f"No {item.media_type.value} ratings | Critic: {critic_score(item):.2f}",
            )

        attrs = extract_attributes(item, profile.reference_year)
        scores = profile.scores_for(item.media_type)
        signals = run_scorers(item, attrs, scores, profile, self.scorers)
        return combine(signals, self.weights, count_data_points(same_type, signals, self.weights))

    def predict(self, item: CatalogItem, user_id: str, include_guest: bool = True) -> PredictionResult:
        return self.predict_with_profile(item, self.profile_for(user_id, include_guest))

    def predict_batch(
        self,
        items: Iterable[CatalogItem],
        user_id: str,
        include_guest: bool = True,
    ) -> dict[str, PredictionResult]:
        """Build the profile once and score every item against it."""
        profile = self.profile_for(user_id, include_guest)
        return {item.id: self.predict_with_profile(item, profile) for item in items}

    async def predict_async(
        self,
        item: CatalogItem,
        user_id: str,
        include_guest: bool = True,
        timeout: float | None = None,
    ) -> PredictionResult:
        """Run ``predict`` on a worker thread; raises ``asyncio.TimeoutError`` past the timeout."""
        return await asyncio.wait_for(
            asyncio.to_thread(self.predict, item, user_id, include_guest),
            timeout=PREDICTION_TIMEOUT_SECONDS if timeout is None else timeout,
        )

    async def predict_batch_async(
        self,
        items: Iterable[CatalogItem],
        user_id: str,
        include_guest: bool = True,
        timeout: float | None = None,
    ) -> dict[str, PredictionResult]:
        return await asyncio.wait_for(
            asyncio.to_thread(self.predict_batch, list(items), user_id, include_guest),
            timeout=PREDICTION_TIMEOUT_SECONDS if timeout is None else timeout,
        )
