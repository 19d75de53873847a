"""
Blend scorer signals into one prediction.

The same combiner backs single-item and batch predictions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import (
    POSITION_BOOST,
    POSITION_BOOST_COUNT,
    AMPLIFY_MIN_WEIGHT,
    AMPLIFY_SHIFT,
    DISAGREEMENT_SPREAD,
    DISAGREEMENT_BLEND,
    SCORE_MIN,
    SCORE_MAX,
    CONFIDENCE_DATA_POINTS,
    CONFIDENCE_MAX,
    CRITIC_NEUTRAL_SCORE,
    MAX_REASONS,
)
from .models import CatalogItem, PredictionResult
from .scorer_weights import ScorerWeights
from .scorers import Signal, critic_score

logger = logging.getLogger(__name__)

CRITIC_REASON = "Based on critic consensus"


@dataclass(frozen=True)
class WeightedSignal:
    signal: Signal
    weight: float


def clamp_score(score: float) -> float:
    return max(SCORE_MIN, min(SCORE_MAX, score))


def clamp_confidence(confidence: float) -> float:
    return max(0.0, min(CONFIDENCE_MAX, confidence))


def weigh_signals(signals: list[Signal], weights: ScorerWeights) -> list[WeightedSignal]:
    """Attach confidence x method multiplier and sort strongest first (stable on ties)."""
    weighted = [WeightedSignal(s, s.confidence * weights.factor(s.method)) for s in signals]
    return sorted(weighted, key=lambda ws: -ws.weight)


def count_data_points(same_type_ratings: int, signals: list[Signal], weights: ScorerWeights) -> int:
    """Same-type explicit ratings, plus one each for a contributing genre and talent match."""
    methods = {ws.signal.method for ws in weigh_signals(signals, weights) if ws.weight > 0}
    return same_type_ratings + int("genre" in methods) + int("talent" in methods)


def _trace(ranked: list[WeightedSignal], blended: float) -> str:
    top = ", ".join(f"{ws.signal.label}({ws.signal.score:.1f})" for ws in ranked[:MAX_REASONS])
    return f"Signals: {len(ranked)}, Top: {top} | Blended: {blended:.2f}"


def combine(
    signals: list[Signal],
    weights: ScorerWeights,
    data_points: int,
    fallback_score: float = CRITIC_NEUTRAL_SCORE,
) -> PredictionResult:
    """
    Merge signals into a score, a confidence and the top reasons.

    1. Weighted average where the two strongest signals get a 1.5x boost.
    2. Amplification: a strongest signal with weight >= 3 pulls the blend
       halfway toward itself.
    3. Disagreement: if signal scores span more than 2 points, lean 40%
       toward the strongest signal.
    4. Clamp to [1, 10]; confidence = min(data_points / 8, 0.9).
    """
    ranked = [ws for ws in weigh_signals(signals, weights) if ws.weight > 0]

    if ranked:
        weighted_sum = 0.0
        total_weight = 0.0
        for position, ws in enumerate(ranked):
            boost = POSITION_BOOST if position < POSITION_BOOST_COUNT else 1.0
            weighted_sum += ws.signal.score * ws.weight * boost
            total_weight += ws.weight * boost
        blended = weighted_sum / total_weight

        strongest = ranked[0]
        if strongest.weight >= AMPLIFY_MIN_WEIGHT:
            blended += (strongest.signal.score - blended) * AMPLIFY_SHIFT

        scores = [ws.signal.score for ws in ranked]
        if max(scores) - min(scores) > DISAGREEMENT_SPREAD:
            blended = blended * (1 - DISAGREEMENT_BLEND) + strongest.signal.score * DISAGREEMENT_BLEND
    else:
        logger.debug("No contributing signals, using fallback score")
        blended = fallback_score

    reasons = list(dict.fromkeys(ws.signal.label for ws in ranked))[:MAX_REASONS]

    return PredictionResult(
        score=clamp_score(blended),
        confidence=clamp_confidence(data_points / CONFIDENCE_DATA_POINTS),
        reasons=reasons,
        trace=_trace(ranked, blended),
    )


def critic_only_result(
    item: CatalogItem,
    confidence: float,
    reasons: list[str],
    trace: str,
) -> PredictionResult:
    """Prediction from critic consensus alone, for users without usable history."""
    return PredictionResult(
        score=clamp_score(critic_score(item)),
        confidence=clamp_confidence(confidence),
        reasons=reasons[:MAX_REASONS],
        trace=trace,
    )
