import pytest

from taste_predict.attributes import Genre, Talent
from taste_predict.models import (
    CatalogItem,
    ExplicitRating,
    ImplicitSignal,
    MediaType,
    UserHistory,
)
from taste_predict.profile import AttributeScoreMap, build_profile
from taste_predict.sources import InMemoryCatalog


def _catalog():
    return InMemoryCatalog([
        CatalogItem("m1", MediaType.MOVIE, genre_ids=[18], tags=["director:Jane Campion"]),
        CatalogItem("m2", MediaType.MOVIE, genre_ids=[18]),
        CatalogItem("m3", MediaType.MOVIE, genre_ids=[27]),
        CatalogItem("t1", MediaType.TV, genre_ids=[18]),
    ])


def test_media_type_parse_accepts_aliases():
    assert MediaType.parse("movie") is MediaType.MOVIE
    assert MediaType.parse(" Show ") is MediaType.TV
    assert MediaType.parse(MediaType.BOOK) is MediaType.BOOK
    assert MediaType.TV.plural == "shows"
    assert MediaType.PODCAST.plural == "podcasts"
    with pytest.raises(ValueError):
        MediaType.parse("vinyl")


def test_score_map_weighted_mean_count_and_variance():
    scores = AttributeScoreMap()
    key = Genre(18)
    scores.add(key, 8.0)
    scores.add(key, 4.0, weight=0.6)
    scores.add(key, 1.0, weight=0.0)  # ignored

    assert key in scores
    assert scores.count(key) == pytest.approx(1.6)
    assert scores.mean(key) == pytest.approx(6.5)
    # Weighted population variance around 6.5
    assert scores.variance(key) == pytest.approx((1.0 * 1.5 ** 2 + 0.6 * 2.5 ** 2) / 1.6)
    assert scores.mean(Genre(27)) is None
    assert Genre(27) not in scores


def test_explicit_ratings_are_rescaled_and_grouped():
    history = UserHistory("alice", ratings=[
        ExplicitRating("alice", "m1", 90),
        ExplicitRating("alice", "m2", 70),
        ExplicitRating("alice", "t1", 40),
    ])

    profile = build_profile(history, _catalog(), reference_year=2026)

    assert profile.n_explicit == 3
    assert profile.explicit_ratings[MediaType.MOVIE] == [9.0, 7.0]
    assert profile.explicit_count(MediaType.TV) == 1
    assert profile.explicit_count(MediaType.BOOK) == 0
    assert profile.has_history


def test_cross_media_samples_count_at_reduced_weight():
    history = UserHistory("alice", ratings=[
        ExplicitRating("alice", "m2", 80),
        ExplicitRating("alice", "t1", 40),
    ])
    profile = build_profile(history, _catalog(), reference_year=2026, cross_media_weight=0.6)

    movie_view = profile.scores_for(MediaType.MOVIE)
    tv_view = profile.scores_for(MediaType.TV)

    assert movie_view.mean(Genre(18)) == pytest.approx((8.0 + 4.0 * 0.6) / 1.6)
    assert tv_view.mean(Genre(18)) == pytest.approx((8.0 * 0.6 + 4.0) / 1.6)
    # Views are built once per media type
    assert profile.scores_for(MediaType.MOVIE) is movie_view


def test_implicit_signals_only_count_for_unrated_items():
    history = UserHistory(
        "alice",
        ratings=[ExplicitRating("alice", "m1", 30)],
        signals=[
            ImplicitSignal("alice", "m1"),
            ImplicitSignal("alice", "m3"),
            ImplicitSignal("alice", "m3"),
        ],
    )

    profile = build_profile(history, _catalog(), reference_year=2026)
    scores = profile.scores_for(MediaType.MOVIE)

    assert profile.n_implicit == 1
    assert scores.samples(Genre(27)) == [6.5]
    assert scores.samples(Genre(18)) == [3.0]
    assert scores.samples(Talent("director", "jane_campion")) == [3.0]


def test_own_rating_beats_guest_rating_for_same_item():
    history = UserHistory("alice", ratings=[
        ExplicitRating("guest", "m1", 20),
        ExplicitRating("alice", "m1", 100),
        ExplicitRating("guest", "m1", 10),
    ])

    profile = build_profile(history, _catalog(), reference_year=2026)

    assert profile.n_explicit == 1
    assert profile.explicit_ratings[MediaType.MOVIE] == [10.0]


def test_unresolved_items_are_skipped_and_counted():
    history = UserHistory(
        "alice",
        ratings=[ExplicitRating("alice", "missing", 80)],
        signals=[ImplicitSignal("alice", "also-missing")],
    )

    profile = build_profile(history, _catalog(), reference_year=2026)

    assert profile.unresolved == 2
    assert not profile.has_history
    assert profile.entries == {}


def test_rating_stats_fall_back_to_all_media_types():
    history = UserHistory("alice", ratings=[
        ExplicitRating("alice", "t1", 60),
    ])
    profile = build_profile(history, _catalog(), reference_year=2026)

    assert profile.rating_stats(MediaType.MOVIE) == (6.0, None)
    assert profile.rating_stats(MediaType.TV) == (6.0, None)


def test_out_of_range_ratings_are_clamped():
    history = UserHistory("alice", ratings=[
        ExplicitRating("alice", "m1", 150),
        ExplicitRating("alice", "m2", -20),
    ])
    profile = build_profile(history, _catalog(), reference_year=2026)

    assert profile.explicit_ratings[MediaType.MOVIE] == [10.0, 0.0]
