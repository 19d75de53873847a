from taste_predict.attributes import (
    Age,
    CommunityBias,
    CommunityRating,
    Country,
    Decade,
    Genre,
    GenreCombo,
    Keyword,
    Language,
    Popularity,
    Runtime,
    Talent,
    age_bucket,
    community_tier,
    extract_attributes,
    normalize_name,
    parse_talent_tag,
    popularity_tier,
    runtime_bucket,
)
from taste_predict.models import CatalogItem


def _item(**kwargs):
    kwargs.setdefault("id", "m1")
    return CatalogItem(**kwargs)


def test_keys_compare_structurally_and_render_canonically():
    assert Genre(28) == Genre(28)
    assert hash(Genre(28)) == hash(Genre(28))
    # Same payload, different kind
    assert Genre(1990) != Decade(1990)

    assert str(Genre(28)) == "genre:28"
    assert str(GenreCombo(28, 35)) == "combo:28-35"
    assert str(Talent("director", "christopher_nolan")) == "director:christopher_nolan"
    assert str(Decade(1990)) == "decade:1990"
    assert str(Age("classic")) == "age:classic"
    assert str(Keyword("heist")) == "keyword:heist"
    assert str(Runtime("long")) == "runtime:long"
    assert str(Language("en")) == "lang:en"
    assert str(Country("US")) == "country:US"
    assert str(Popularity("indie")) == "popularity:indie"
    assert str(CommunityRating("good")) == "tmdb:good"
    assert str(CommunityBias()) == "tmdb:bias"


def test_normalize_name_and_talent_tags():
    assert normalize_name("  Christopher Nolan ") == "christopher_nolan"
    assert normalize_name("Bong Joon-ho") == "bong_joonho"

    assert parse_talent_tag("director:Greta Gerwig") == Talent("director", "greta_gerwig")
    assert parse_talent_tag("dir:Greta Gerwig") == Talent("director", "greta_gerwig")
    assert parse_talent_tag("actor:Tom Hanks") == Talent("actor", "tom_hanks")
    assert parse_talent_tag("writer:Someone") is None
    assert parse_talent_tag("actor:   ") is None


def test_bucket_boundaries():
    assert age_bucket(2025, 2026) == "new"
    assert age_bucket(2024, 2026) == "recent"
    assert age_bucket(2022, 2026) == "recent"
    assert age_bucket(2021, 2026) == "modern"
    assert age_bucket(2012, 2026) == "modern"
    assert age_bucket(1997, 2026) == "classic"
    assert age_bucket(1996, 2026) == "vintage"

    assert runtime_bucket(89) == "short"
    assert runtime_bucket(90) == "standard"
    assert runtime_bucket(120) == "long"
    assert runtime_bucket(150) == "epic"

    assert popularity_tier(100.0) == "mainstream"
    assert popularity_tier(100.5) == "blockbuster"
    assert popularity_tier(30.0) == "moderate"
    assert popularity_tier(10.0) == "indie"

    assert community_tier(8.0) == "excellent"
    assert community_tier(7.0) == "good"
    assert community_tier(6.0) == "average"
    assert community_tier(5.9) == "poor"


def test_extract_attributes_full_item():
    item = _item(
        genre_ids=[35, 28, 28],
        tags=["director:Edgar Wright", "actor:Simon Pegg", "actor:Simon Pegg"],
        year=2007,
        runtime=121,
        keywords=["Buddy Cop", "village", " "],
        original_language="EN",
        production_countries=["gb", "fr"],
        popularity=45.0,
        vote_average=7.6,
        vote_count=9000,
    )

    attrs = extract_attributes(item, reference_year=2026)

    assert attrs.genres == [Genre(28), Genre(35)]
    assert attrs.combos == [GenreCombo(28, 35)]
    assert attrs.talent == [Talent("director", "edgar_wright"), Talent("actor", "simon_pegg")]
    assert attrs.decade == Decade(2000)
    assert attrs.age == Age("classic")
    assert attrs.keywords == [Keyword("buddy cop"), Keyword("village")]
    assert attrs.runtime == Runtime("long")
    assert attrs.language == Language("en")
    assert attrs.countries == [Country("GB"), Country("FR")]
    assert attrs.popularity == Popularity("mainstream")
    assert attrs.community == CommunityRating("good")
    assert attrs.community_bias == CommunityBias()

    # Kinds come out in a fixed order
    keys = list(attrs.keys())
    assert keys[0] == Genre(28)
    assert keys[-1] == CommunityBias()


def test_extract_attributes_sparse_item_emits_only_present_fields():
    attrs = extract_attributes(_item(genre_ids=[18], vote_average=9.0, vote_count=50), 2026)

    assert list(attrs.keys()) == [Genre(18)]
    assert attrs.combos == []
    assert attrs.decade is None
    # Exactly 50 votes is not enough for community keys
    assert attrs.community is None
    assert attrs.community_bias is None


def test_three_genres_make_three_sorted_pairs():
    attrs = extract_attributes(_item(genre_ids=[878, 12, 28]), 2026)

    assert attrs.combos == [GenreCombo(12, 28), GenreCombo(12, 878), GenreCombo(28, 878)]
