"""
Compare-with-a-friend: how two people are likely to feel about one item.
"""

import logging
from dataclasses import dataclass

from .config import (
    AGREEMENT_MAX_GAP,
    RATING_SCALE_DIVISOR,
    VERDICT_GREAT_AVERAGE,
    VERDICT_GREAT_GAP,
    VERDICT_SOLID_AVERAGE,
    VERDICT_SOLID_GAP,
    VERDICT_DISAGREE_GAP,
    VERDICT_SKIP_AVERAGE,
)
from .models import CatalogItem, PredictionResult
from .predictor import PreferencePredictor

logger = logging.getLogger(__name__)


@dataclass
class Comparison:
    item_id: str
    user_score: float
    friend_score: float
    user_prediction: PredictionResult
    friend_prediction: PredictionResult | None = None  # None when the friend rated it
    friend_rating: float | None = None                 # Friend's actual rating, 0-10

    @property
    def friend_has_rated(self) -> bool:
        return self.friend_rating is not None

    @property
    def gap(self) -> float:
        return abs(self.user_score - self.friend_score)

    @property
    def average(self) -> float:
        return (self.user_score + self.friend_score) / 2

    @property
    def likely_agree(self) -> bool:
        return self.gap <= AGREEMENT_MAX_GAP

    @property
    def verdict(self) -> str:
        if self.average >= VERDICT_GREAT_AVERAGE and self.gap < VERDICT_GREAT_GAP:
            return "Great pick"
        if self.average >= VERDICT_SOLID_AVERAGE and self.gap < VERDICT_SOLID_GAP:
            return "Solid choice"
        if self.gap > VERDICT_DISAGREE_GAP:
            return "You might disagree"
        if self.average < VERDICT_SKIP_AVERAGE:
            return "Maybe skip"
        return "Could work"


def friend_rating_for(predictor: PreferencePredictor, item: CatalogItem, friend_id: str) -> float | None:
    """The friend's most recent own rating of the item on 0-10, if any."""
    history = predictor.history.load_history(friend_id, include_guest=False)
    values = [r.value for r in history.ratings if r.item_id == item.id]
    if not values:
        return None
    return max(0.0, min(10.0, values[-1] / RATING_SCALE_DIVISOR))


def compare_with_friend(
    predictor: PreferencePredictor,
    item: CatalogItem,
    user_id: str,
    friend_id: str,
) -> Comparison:
    """
    Predict the item for both people.

    The friend's actual rating wins over a prediction. Guest records belong
    to whoever is using this device, so they are never merged into the
    friend's history.
    """
    user_prediction = predictor.predict(item, user_id)

    friend_rating = friend_rating_for(predictor, item, friend_id)
    if friend_rating is not None:
        logger.debug(f"{friend_id} already rated {item.id}, using actual rating")
        return Comparison(
            item_id=item.id,
            user_score=user_prediction.score,
            friend_score=friend_rating,
            user_prediction=user_prediction,
            friend_rating=friend_rating,
        )

    friend_prediction = predictor.predict(item, friend_id, include_guest=False)
    return Comparison(
        item_id=item.id,
        user_score=user_prediction.score,
        friend_score=friend_prediction.score,
        user_prediction=user_prediction,
        friend_prediction=friend_prediction,
    )
