"""
Configuration constants for the taste prediction engine.

This module centralizes all magic numbers and configurable parameters.
Values can be overridden via environment variables or configuration files.
"""
import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def _get_float_env(key: str, default: float, min_val: float = 0) -> float:
    """
    Safely parse float from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated float value
    """
    try:
        val = float(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


def _get_int_env(key: str, default: int, min_val: int = 1) -> int:
    """
    Safely parse integer from environment variable with validation.

    Args:
        key: Environment variable name
        default: Default value if not set or invalid
        min_val: Minimum allowed value

    Returns:
        Validated integer value
    """
    try:
        val = int(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


# Database Configuration
DB_PATH = Path(os.environ.get("TASTE_DB", "data/taste.db"))
SCORER_WEIGHTS_PATH = Path(os.environ.get("TASTE_SCORER_WEIGHTS", "data/scorer_weights.json"))

# Identity
GUEST_USER_ID = "guest"  # Owner of records created before sign-in

# History aggregation
RATING_SCALE_DIVISOR = 10.0  # 0-100 display scale -> 0-10
IMPLICIT_RATING = 6.5        # Watched but never rated: mild positive
CROSS_MEDIA_WEIGHT = _get_float_env("TASTE_CROSS_MEDIA_WEIGHT", 0.6, min_val=0.0)

# Age buckets (years before the reference year)
AGE_BUCKETS = (
    (2, "new"),
    (5, "recent"),
    (15, "modern"),
    (30, "classic"),
)
AGE_BUCKET_OLDEST = "vintage"

# Runtime buckets (minutes)
RUNTIME_BUCKETS = (
    (90, "short"),
    (120, "standard"),
    (150, "long"),
)
RUNTIME_BUCKET_LONGEST = "epic"

# Popularity tiers (strictly greater than)
POPULARITY_TIERS = (
    (100.0, "blockbuster"),
    (30.0, "mainstream"),
    (10.0, "moderate"),
)
POPULARITY_TIER_LOWEST = "indie"

# Community rating tiers (greater than or equal)
COMMUNITY_TIERS = (
    (8.0, "excellent"),
    (7.0, "good"),
    (6.0, "average"),
)
COMMUNITY_TIER_LOWEST = "poor"
COMMUNITY_MIN_VOTES = 50  # Vote count must exceed this
COMMUNITY_BIAS_PIVOT = 7.0
COMMUNITY_BIAS_FACTOR = 0.3
COMMUNITY_FALLBACK_CONFIDENCE = 0.3

# Genre scorer
GENRE_COMBO_MULTIPLIER = 3.0
GENRE_CONSISTENCY_VARIANCE = 1.0
GENRE_CONSISTENCY_BONUS = 1.5
GENRE_EXTREMITY_GAP = 1.0
GENRE_EXTREMITY_HIGH = 8.0
GENRE_EXTREMITY_LOW = 4.0
GENRE_EXTREMITY_PULL = 0.6  # Share taken from the extreme genre average

# Talent / origin weighting
TALENT_DIRECTOR_WEIGHT = 2.0
TALENT_ACTOR_WEIGHT = 1.0
ORIGIN_LANGUAGE_WEIGHT = 1.5
ORIGIN_COUNTRY_WEIGHT = 1.0

# Confidence ramps: (divisor, cap) -> min(n / divisor, cap)
CONFIDENCE_RAMPS = {
    'genre': (4, 1.0),
    'talent': (3, 1.0),
    'era': (5, 0.8),
    'keyword': (3, 1.0),
    'runtime': (5, 0.7),
    'origin': (3, 0.8),
    'popularity': (5, 0.6),
    'community': (6, 0.5),
}

# Personal baseline
BASELINE_CONSISTENT_STD = 1.0
BASELINE_CONSISTENT_BONUS = 0.5

# Critic consensus
CRITIC_NEUTRAL_SCORE = 6.0

# Scorer multipliers (method -> multiplier), strongest to weakest
SCORER_WEIGHTS = {
    'genre': 5.0,
    'talent': 4.0,
    'keyword': 3.5,
    'origin': 2.0,
    'era': 1.5,
    'runtime': 1.5,
    'popularity': 1.2,
    'community': 1.0,
    'baseline': 1.0,
    'critic': 0.75,  # Anchor, kept within 0.5-1.0
}

# Combiner
POSITION_BOOST = 1.5       # Extra weight for the top two signals
POSITION_BOOST_COUNT = 2
AMPLIFY_MIN_WEIGHT = 3.0
AMPLIFY_SHIFT = 0.5
DISAGREEMENT_SPREAD = 2.0
DISAGREEMENT_BLEND = 0.4   # Share given to the strongest signal
SCORE_MIN = 1.0
SCORE_MAX = 10.0
CONFIDENCE_DATA_POINTS = 8
CONFIDENCE_MAX = 0.9
CONFIDENCE_NO_HISTORY = 0.2
CONFIDENCE_OTHER_MEDIA_ONLY = 0.25
MAX_REASONS = 3

# Profile cache
PROFILE_CACHE_SIZE = _get_int_env("TASTE_PROFILE_CACHE_SIZE", 64, min_val=1)

# Async wrappers
PREDICTION_TIMEOUT_SECONDS = _get_float_env("TASTE_PREDICTION_TIMEOUT", 10.0, min_val=0.1)

# Import
IMPORT_CHUNK_SIZE = 500

# Compare with a friend (0-10 scale)
AGREEMENT_MAX_GAP = 1.5
VERDICT_GREAT_AVERAGE = 7.5
VERDICT_GREAT_GAP = 1.5
VERDICT_SOLID_AVERAGE = 6.0
VERDICT_SOLID_GAP = 2.0
VERDICT_DISAGREE_GAP = 3.0
VERDICT_SKIP_AVERAGE = 5.0
