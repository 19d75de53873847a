import argparse
import atexit
import json
import logging
import sys
from datetime import date

from tqdm import tqdm

from .compare import compare_with_friend
from .config import IMPORT_CHUNK_SIZE, GUEST_USER_ID
from .database import (
    init_db, close_pool, upsert_items, add_ratings, add_watch_logs,
    migrate_guest_records, table_counts, count_by_media_type,
    SqliteCatalog, SqliteHistory,
)
from .models import CatalogItem, ExplicitRating, ImplicitSignal, MediaType, PredictionResult
from .predictor import PreferencePredictor

logger = logging.getLogger(__name__)

# Register cleanup on exit
atexit.register(close_pool)


def _validate_user_id(user_id: str) -> str:
    """Identities are opaque; only surrounding whitespace is dropped."""
    cleaned = user_id.strip()
    if not cleaned:
        raise ValueError("User id must not be empty")
    return cleaned


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Invalid date '{value}' (expected YYYY-MM-DD)") from None


def _build_predictor(args: argparse.Namespace) -> PreferencePredictor:
    return PreferencePredictor(
        SqliteCatalog(),
        SqliteHistory(),
        reference_date=_parse_date(getattr(args, "as_of", None)),
    )


def _batched(items: list, size: int = IMPORT_CHUNK_SIZE):
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _log_prediction(result: PredictionResult, indent: str = "  ") -> None:
    logger.info(f"{indent}Score: {result.score:.1f}/10  (confidence {result.confidence:.0%})")
    for reason in result.reasons:
        logger.info(f"{indent}  - {reason}")
    if result.trace:
        logger.debug(f"{indent}{result.trace}")


def cmd_init_db(args: argparse.Namespace) -> None:
    """Create the database schema."""
    init_db()
    logger.info("Database initialized")


def cmd_import(args: argparse.Namespace) -> None:
    """Import catalog items, ratings and watch logs from a JSON file."""
    with open(args.file, 'r') as f:
        data = json.load(f)

    init_db()

    items = [CatalogItem.from_dict(raw) for raw in data.get('items', [])]
    ratings = [
        ExplicitRating(str(raw['user_id']), str(raw['item_id']), float(raw['value']))
        for raw in data.get('ratings', [])
    ]
    watch_logs = [
        ImplicitSignal(
            str(raw['user_id']),
            str(raw['item_id']),
            _parse_date(raw.get('watched_on')),
        )
        for raw in data.get('watch_logs', [])
    ]

    with tqdm(total=len(items) + len(ratings) + len(watch_logs), desc="Importing") as progress:
        for chunk in _batched(items):
            progress.update(upsert_items(chunk))
        for chunk in _batched(ratings):
            progress.update(add_ratings(chunk))
        for chunk in _batched(watch_logs):
            progress.update(add_watch_logs(chunk))

    logger.info(f"Imported {len(items)} items, {len(ratings)} ratings, {len(watch_logs)} watch logs")
    logger.info(f"Import completed from {args.file}")


def cmd_predict(args: argparse.Namespace) -> None:
    """Predict how much a user will like one item."""
    user_id = _validate_user_id(args.user)
    predictor = _build_predictor(args)

    item = predictor.catalog.get_item(args.item_id)
    if item is None:
        logger.error(f"Item '{args.item_id}' not found. Run: taste-predict import FILE")
        return

    result = predictor.predict(item, user_id, include_guest=not args.no_guest)
    logger.info(f"\n{item.title or item.id} ({item.media_type.value}) for {user_id}")
    _log_prediction(result)


def cmd_triage(args: argparse.Namespace) -> None:
    """Rank the catalog items a user has not rated or logged yet."""
    user_id = _validate_user_id(args.user)
    media_type = MediaType.parse(args.media_type) if args.media_type else None
    predictor = _build_predictor(args)

    history = predictor.history.load_history(user_id, include_guest=not args.no_guest)
    seen = {r.item_id for r in history.ratings} | {s.item_id for s in history.signals}
    candidates = [item for item in predictor.catalog.iter_items(media_type) if item.id not in seen]

    if not candidates:
        logger.info("Nothing left to triage")
        return

    results = predictor.predict_batch(candidates, user_id, include_guest=not args.no_guest)
    by_id = {item.id: item for item in candidates}
    ranked = sorted(results.items(), key=lambda kv: (-kv[1].score, -kv[1].confidence, kv[0]))

    logger.info(f"\nTop {min(args.limit, len(ranked))} of {len(ranked)} unrated items for {user_id}:\n")
    for i, (item_id, result) in enumerate(ranked[:args.limit], 1):
        item = by_id[item_id]
        year = f" ({item.year})" if item.year else ""
        logger.info(f"{i:2}. {item.title or item.id}{year} [{item.media_type.value}]")
        _log_prediction(result, indent="      ")


def cmd_compare(args: argparse.Namespace) -> None:
    """Compare predicted scores for a user and a friend."""
    user_id = _validate_user_id(args.user)
    friend_id = _validate_user_id(args.friend)
    predictor = _build_predictor(args)

    item = predictor.catalog.get_item(args.item_id)
    if item is None:
        logger.error(f"Item '{args.item_id}' not found")
        return

    comparison = compare_with_friend(predictor, item, user_id, friend_id)

    logger.info(f"\n{item.title or item.id}: {user_id} vs {friend_id}")
    logger.info(f"  {user_id}:")
    _log_prediction(comparison.user_prediction, indent="    ")
    logger.info(f"  {friend_id}:")
    if comparison.friend_has_rated:
        logger.info(f"    Rated it {comparison.friend_rating:.1f}/10")
    else:
        _log_prediction(comparison.friend_prediction, indent="    ")
    logger.info(f"\n  {comparison.verdict} (average {comparison.average:.1f}, gap {comparison.gap:.1f})")


def cmd_profile(args: argparse.Namespace) -> None:
    """Show the strongest and weakest attributes in a user's taste profile."""
    user_id = _validate_user_id(args.user)
    media_type = MediaType.parse(args.media_type)
    predictor = _build_predictor(args)

    profile = predictor.profile_for(user_id, include_guest=not args.no_guest)
    if not profile.has_history:
        logger.error(f"No history for '{user_id}'. Run: taste-predict import FILE")
        return

    logger.info(f"\nProfile for {user_id} ({media_type.plural})")
    logger.info(f"  Rated: {profile.n_explicit}, watched only: {profile.n_implicit}")
    for mt, values in sorted(profile.explicit_ratings.items(), key=lambda kv: kv[0].value):
        logger.info(f"  {mt.plural}: {len(values)} ratings, average {sum(values) / len(values):.1f}")
    if profile.unresolved:
        logger.info(f"  Not in catalog: {profile.unresolved}")

    scores = profile.scores_for(media_type)
    stats = [
        (str(key), scores.mean(key), scores.count(key))
        for key in scores
        if scores.count(key) >= args.min_count
    ]
    if not stats:
        return

    stats.sort(key=lambda s: (-s[1], -s[2], s[0]))
    logger.info("\nLoves:")
    for name, avg, count in stats[:args.limit]:
        logger.info(f"  {name}: {avg:.2f} (n={count:.1f})")

    logger.info("\nAvoids:")
    for name, avg, count in sorted(stats[args.limit:], key=lambda s: (s[1], -s[2], s[0]))[:args.limit]:
        logger.info(f"  {name}: {avg:.2f} (n={count:.1f})")


def cmd_migrate_guest(args: argparse.Namespace) -> None:
    """Hand every guest-owned record over to a signed-in identity."""
    user_id = _validate_user_id(args.user)
    if user_id == GUEST_USER_ID:
        logger.error("Target identity must not be the guest identity")
        return
    moved = migrate_guest_records(user_id)
    logger.info(f"Moved {moved} records from {GUEST_USER_ID} to {user_id}")


def cmd_stats(args: argparse.Namespace) -> None:
    """Show database statistics."""
    counts = table_counts()
    logger.info("\nDatabase Statistics:")
    logger.info(f"  Items: {counts['items']}")
    logger.info(f"  Ratings: {counts['ratings']}")
    logger.info(f"  Watch logs: {counts['watch_logs']}")

    by_type = count_by_media_type()
    if by_type:
        logger.info("\nItems by media type:")
        for media_type, count in by_type.items():
            logger.info(f"  {media_type}: {count}")


def _add_prediction_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--as-of", help="Reference date for age buckets (YYYY-MM-DD, default: today)")
    parser.add_argument("--no-guest", action="store_true",
                        help="Ignore records made before sign-in")


def main():
    parser = argparse.ArgumentParser(description="Taste prediction engine")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create the database schema")
    init_parser.set_defaults(func=cmd_init_db)

    import_parser = subparsers.add_parser("import", help="Import items, ratings and watch logs from JSON")
    import_parser.add_argument("file", help="JSON file with 'items', 'ratings' and 'watch_logs'")
    import_parser.set_defaults(func=cmd_import)

    predict_parser = subparsers.add_parser("predict", help="Predict a user's score for one item")
    predict_parser.add_argument("user", help="User id")
    predict_parser.add_argument("item_id", help="Catalog item id")
    _add_prediction_args(predict_parser)
    predict_parser.set_defaults(func=cmd_predict)

    triage_parser = subparsers.add_parser("triage", help="Rank unrated items for a user")
    triage_parser.add_argument("user", help="User id")
    triage_parser.add_argument("--media-type", help="Only this media type (movie, tv, book, podcast)")
    triage_parser.add_argument("--limit", type=int, default=20, help="Number of items to show")
    _add_prediction_args(triage_parser)
    triage_parser.set_defaults(func=cmd_triage)

    compare_parser = subparsers.add_parser("compare", help="Compare predictions with a friend")
    compare_parser.add_argument("user", help="Your user id")
    compare_parser.add_argument("friend", help="Friend's user id")
    compare_parser.add_argument("item_id", help="Catalog item id")
    compare_parser.add_argument("--as-of", help="Reference date for age buckets (YYYY-MM-DD)")
    compare_parser.set_defaults(func=cmd_compare)

    profile_parser = subparsers.add_parser("profile", help="Show a user's taste profile")
    profile_parser.add_argument("user", help="User id")
    profile_parser.add_argument("--media-type", default="movie", help="Target media type (default: movie)")
    profile_parser.add_argument("--limit", type=int, default=10, help="Attributes to show per section")
    profile_parser.add_argument("--min-count", type=float, default=2.0,
                                help="Minimum effective sample count per attribute")
    _add_prediction_args(profile_parser)
    profile_parser.set_defaults(func=cmd_profile)

    migrate_parser = subparsers.add_parser("migrate-guest", help="Reassign guest records to a user")
    migrate_parser.add_argument("user", help="Signed-in user id")
    migrate_parser.set_defaults(func=cmd_migrate_guest)

    stats_parser = subparsers.add_parser("stats", help="Show database statistics")
    stats_parser.set_defaults(func=cmd_stats)

    args = parser.parse_args()

    # Configure logging based on verbosity
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        args.func(args)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
