import pytest

from taste_predict.combiner import (
    combine,
    count_data_points,
    critic_only_result,
    weigh_signals,
)
from taste_predict.models import CatalogItem
from taste_predict.scorer_weights import ScorerWeights
from taste_predict.scorers import Signal


def _signal(method, score, confidence=1.0, label=None):
    return Signal(method, score, confidence, label or f"{method} label")


def test_weigh_signals_sorts_by_weight_and_keeps_ties_in_order():
    weights = ScorerWeights()
    ranked = weigh_signals(
        [
            _signal("runtime", 7.0, 0.5),   # 0.75
            _signal("critic", 7.0, 1.0),    # 0.75
            _signal("genre", 7.0, 0.2),     # 1.0
        ],
        weights,
    )

    assert [ws.signal.method for ws in ranked] == ["genre", "runtime", "critic"]
    assert ranked[0].weight == pytest.approx(1.0)


def test_disagreement_blend_matches_boundary_example():
    # genre weight 0.25 x 5 = 1.25, baseline weight 1.0: both boosted, blend is 7.0
    result = combine(
        [_signal("genre", 9.0, 0.25), _signal("baseline", 4.5, 1.0)],
        ScorerWeights(),
        data_points=6,
    )

    # No amplification (1.25 < 3); spread 4.5 > 2: 7.0 * 0.6 + 9.0 * 0.4
    assert result.score == pytest.approx(7.8)
    assert result.confidence == pytest.approx(0.75)


def test_amplification_pulls_halfway_toward_strong_signal():
    result = combine(
        [_signal("genre", 8.0), _signal("baseline", 6.0)],
        ScorerWeights(),
        data_points=3,
    )

    # Blend (8 x 7.5 + 6 x 1.5) / 9 = 23/3, then halfway to 8.0; spread is exactly 2
    assert result.score == pytest.approx(47 / 6)


def test_only_top_two_signals_get_position_boost():
    result = combine(
        [_signal("genre", 8.0), _signal("talent", 8.0), _signal("critic", 2.0)],
        ScorerWeights(),
        data_points=3,
    )

    blended = (8.0 * 5 * 1.5 + 8.0 * 4 * 1.5 + 2.0 * 0.75) / (5 * 1.5 + 4 * 1.5 + 0.75)
    blended += (8.0 - blended) * 0.5
    blended = blended * 0.6 + 8.0 * 0.4
    assert result.score == pytest.approx(blended)


def test_scores_clamp_to_exact_bounds():
    high = combine([_signal("genre", 12.0), _signal("talent", 11.0)], ScorerWeights(), 10)
    low = combine([_signal("genre", 0.2), _signal("talent", 0.5)], ScorerWeights(), 10)

    assert high.score == 10.0
    assert low.score == 1.0
    assert high.confidence == 0.9


def test_reasons_are_deduplicated_and_capped():
    result = combine(
        [
            _signal("genre", 7.0, label="Genre: Drama"),
            _signal("talent", 7.0, label="Genre: Drama"),
            _signal("keyword", 7.0, label="Keyword: heist"),
            _signal("origin", 7.0, label="French language"),
            _signal("critic", 7.0, label="Critics: 7.0/10"),
        ],
        ScorerWeights(),
        data_points=5,
    )

    assert result.reasons == ["Genre: Drama", "Keyword: heist", "French language"]
    assert result.trace.startswith("Signals: 5, Top: Genre: Drama(7.0)")


def test_zero_multiplier_drops_a_signal():
    weights = ScorerWeights(multipliers={"critic": 0})
    result = combine(
        [_signal("baseline", 5.0), _signal("critic", 9.0)],
        weights,
        data_points=2,
    )

    assert result.score == pytest.approx(5.0)
    assert result.reasons == ["baseline label"]


def test_no_signals_falls_back_to_neutral_score():
    result = combine([], ScorerWeights(), data_points=0)

    assert result.score == 6.0
    assert result.confidence == 0.0
    assert result.reasons == []


def test_count_data_points_adds_genre_and_talent_matches():
    signals = [_signal("genre", 7.0), _signal("talent", 7.0), _signal("critic", 7.0)]

    assert count_data_points(4, signals, ScorerWeights()) == 6
    assert count_data_points(4, signals[2:], ScorerWeights()) == 4


def test_muted_genre_and_talent_do_not_count_as_data_points():
    signals = [_signal("genre", 7.0), _signal("talent", 7.0), _signal("critic", 7.0)]
    muted = ScorerWeights(multipliers={"genre": 0, "talent": 0})

    assert count_data_points(4, signals, muted) == 4
    assert count_data_points(4, [_signal("genre", 7.0, 0.0)], ScorerWeights()) == 4


def test_critic_only_result_clamps():
    item = CatalogItem("x", imdb_rating="25")

    result = critic_only_result(item, 0.2, ["Based on critic consensus"], trace="critic")

    assert result.score == 10.0
    assert result.confidence == 0.2
