import sqlite3
import json
import logging
import threading
import time
from contextlib import contextmanager
from datetime import date
from typing import Iterable, Iterator

from .config import DB_PATH, GUEST_USER_ID
from .models import CatalogItem, ExplicitRating, ImplicitSignal, MediaType, UserHistory
from .sources import history_owners

logger = logging.getLogger(__name__)

# SQLite caps bound parameters per statement; stay well below it
MAX_QUERY_PARAMS = 900

CATALOG_SCOPE = "catalog"


def _history_scope(user_id: str) -> str:
    return f"history:{user_id}"


class ConnectionPool:
    """
    Thread-safe SQLite connection pool.

    - One connection per thread (SQLite threading requirement)
    - Periodic health checks via SELECT 1
    - Explicit transaction nesting tracking
    """

    def __init__(self, db_path, health_check_interval: int = 300):
        self._db_path = db_path
        self._health_check_interval = health_check_interval

        self._lock = threading.Lock()
        self._connections: dict[int, sqlite3.Connection] = {}
        self._last_health_check: dict[int, float] = {}
        self._transaction_depth: dict[int, int] = {}

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout = 5000")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    def _health_check(self, conn: sqlite3.Connection) -> bool:
        try:
            conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error:
            return False

    def get_connection(self) -> sqlite3.Connection:
        """Get a connection for the current thread, creating if necessary."""
        thread_id = threading.get_ident()
        now = time.time()

        with self._lock:
            conn = self._connections.get(thread_id)

            if conn is not None and now - self._last_health_check.get(thread_id, 0) > self._health_check_interval:
                if self._health_check(conn):
                    self._last_health_check[thread_id] = now
                else:
                    logger.warning(f"Connection for thread {thread_id} failed health check, replacing")
                    try:
                        conn.close()
                    except sqlite3.Error as e:
                        logger.warning(f"Error closing stale connection for thread {thread_id}: {e}")
                    conn = None

            if conn is None:
                conn = self._create_connection()
                self._connections[thread_id] = conn
                self._last_health_check[thread_id] = now
                self._transaction_depth[thread_id] = 0
                logger.debug(f"Created connection for thread {thread_id} (pool size: {len(self._connections)})")

            return conn

    def get_transaction_depth(self) -> int:
        return self._transaction_depth.get(threading.get_ident(), 0)

    def increment_transaction_depth(self):
        thread_id = threading.get_ident()
        with self._lock:
            self._transaction_depth[thread_id] = self._transaction_depth.get(thread_id, 0) + 1

    def decrement_transaction_depth(self):
        thread_id = threading.get_ident()
        with self._lock:
            depth = self._transaction_depth.get(thread_id, 1)
            self._transaction_depth[thread_id] = max(0, depth - 1)

    def close_all(self):
        """Close all connections (call on application shutdown)."""
        with self._lock:
            for thread_id, conn in list(self._connections.items()):
                try:
                    conn.close()
                except sqlite3.Error as e:
                    logger.warning(f"Error closing connection for thread {thread_id}: {e}")

            self._connections.clear()
            self._last_health_check.clear()
            self._transaction_depth.clear()
            logger.debug("Connection pool closed")

    def stats(self) -> dict:
        with self._lock:
            return {
                'active_connections': len(self._connections),
                'thread_ids': list(self._connections.keys()),
            }


# Global pool instance
_pool: ConnectionPool | None = None
_pool_lock = threading.Lock()


def init_db() -> None:
    DB_PATH.parent.mkdir(exist_ok=True, parents=True)
    with get_db() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS items (
                id TEXT PRIMARY KEY,
                media_type TEXT NOT NULL,
                title TEXT,
                genre_ids TEXT,             -- JSON list of ints
                tags TEXT,                  -- JSON list ("director:<name>", "actor:<name>")
                year INTEGER,
                runtime INTEGER,
                keywords TEXT,              -- JSON list
                original_language TEXT,
                production_countries TEXT,  -- JSON list
                popularity REAL,
                vote_average REAL,
                vote_count INTEGER,
                imdb_rating TEXT,
                metacritic TEXT,
                rotten_tomatoes TEXT
            );

            CREATE TABLE IF NOT EXISTS ratings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                item_id TEXT NOT NULL,
                value REAL NOT NULL,        -- 0-100 display scale
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS watch_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                item_id TEXT NOT NULL,
                watched_on TEXT             -- ISO date
            );

            -- Monotonic counters bumped on every write, used as cache keys
            CREATE TABLE IF NOT EXISTS generations (
                scope TEXT PRIMARY KEY,
                value INTEGER NOT NULL DEFAULT 0
            );

            CREATE INDEX IF NOT EXISTS idx_items_media_type ON items(media_type);
            CREATE INDEX IF NOT EXISTS idx_ratings_user ON ratings(user_id);
            CREATE INDEX IF NOT EXISTS idx_ratings_item ON ratings(item_id);
            CREATE INDEX IF NOT EXISTS idx_watch_logs_user ON watch_logs(user_id);
            CREATE INDEX IF NOT EXISTS idx_watch_logs_item ON watch_logs(item_id);
        """)


def _get_pool() -> ConnectionPool:
    """Get or create the global connection pool."""
    global _pool
    if _pool is None:
        with _pool_lock:
            if _pool is None:
                DB_PATH.parent.mkdir(exist_ok=True, parents=True)
                _pool = ConnectionPool(DB_PATH)
    return _pool


@contextmanager
def get_db(read_only: bool = False):
    """
    Get database connection with proper transaction handling.

    Args:
        read_only: If True, skip commit on exit

    Only the outermost context commits or rolls back; nested contexts join
    the enclosing transaction.
    """
    pool = _get_pool()
    conn = pool.get_connection()

    is_outermost = pool.get_transaction_depth() == 0
    pool.increment_transaction_depth()

    try:
        yield conn

        if is_outermost and not read_only:
            conn.commit()

    except Exception:
        if is_outermost:
            conn.rollback()
        raise

    finally:
        pool.decrement_transaction_depth()


def close_pool():
    """Close the connection pool. Call on application shutdown."""
    global _pool
    if _pool is not None:
        _pool.close_all()
        _pool = None


def load_json(val):
    """Safely load JSON from db field."""
    if not val:
        return []
    if isinstance(val, list):
        return val
    try:
        return json.loads(val)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Failed to parse JSON '{val[:50]}...': {e}")
        return []


def _chunks(values: list, size: int = MAX_QUERY_PARAMS) -> Iterator[list]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


def _bump_generation(conn, scope: str) -> None:
    conn.execute("""
        INSERT INTO generations (scope, value) VALUES (?, 1)
        ON CONFLICT(scope) DO UPDATE SET value = value + 1
    """, (scope,))


def get_generation(scope: str) -> int:
    with get_db(read_only=True) as conn:
        row = conn.execute("SELECT value FROM generations WHERE scope = ?", (scope,)).fetchone()
    return row["value"] if row else 0


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

_ITEM_COLUMNS = (
    "id", "media_type", "title", "genre_ids", "tags", "year", "runtime", "keywords",
    "original_language", "production_countries", "popularity", "vote_average",
    "vote_count", "imdb_rating", "metacritic", "rotten_tomatoes",
)
_JSON_COLUMNS = {"genre_ids", "tags", "keywords", "production_countries"}


def item_from_row(row) -> CatalogItem:
    payload = dict(row)
    for column in _JSON_COLUMNS:
        payload[column] = load_json(payload.get(column))
    return CatalogItem.from_dict(payload)


def upsert_items(items: Iterable[CatalogItem]) -> int:
    """Insert or replace catalog items; returns the number written."""
    rows = []
    for item in items:
        record = item.to_dict()
        rows.append(tuple(
            json.dumps(record[c]) if c in _JSON_COLUMNS else record[c]
            for c in _ITEM_COLUMNS
        ))
    if not rows:
        return 0

    placeholders = ", ".join("?" * len(_ITEM_COLUMNS))
    with get_db() as conn:
        conn.executemany(
            f"INSERT OR REPLACE INTO items ({', '.join(_ITEM_COLUMNS)}) VALUES ({placeholders})",
            rows,
        )
        _bump_generation(conn, CATALOG_SCOPE)
    return len(rows)


class SqliteCatalog:
    """Catalog accessor backed by the ``items`` table."""

    def get_item(self, item_id: str) -> CatalogItem | None:
        with get_db(read_only=True) as conn:
            row = conn.execute("SELECT * FROM items WHERE id = ?", (item_id,)).fetchone()
        return item_from_row(row) if row else None

    def get_items(self, item_ids: Iterable[str]) -> dict[str, CatalogItem]:
        ids = list(dict.fromkeys(item_ids))
        result: dict[str, CatalogItem] = {}
        with get_db(read_only=True) as conn:
            for chunk in _chunks(ids):
                placeholders = ",".join("?" * len(chunk))
                for row in conn.execute(f"SELECT * FROM items WHERE id IN ({placeholders})", chunk):
                    result[row["id"]] = item_from_row(row)
        return result

    def iter_items(self, media_type: MediaType | None = None) -> Iterator[CatalogItem]:
        with get_db(read_only=True) as conn:
            if media_type is None:
                rows = conn.execute("SELECT * FROM items ORDER BY id").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM items WHERE media_type = ? ORDER BY id",
                    (MediaType.parse(media_type).value,),
                ).fetchall()
        for row in rows:
            yield item_from_row(row)

    def generation(self) -> int | None:
        return get_generation(CATALOG_SCOPE)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

def add_ratings(ratings: Iterable[ExplicitRating]) -> int:
    rows = [(r.user_id, r.item_id, float(r.value)) for r in ratings]
    if not rows:
        return 0
    with get_db() as conn:
        conn.executemany("INSERT INTO ratings (user_id, item_id, value) VALUES (?, ?, ?)", rows)
        for user_id in {row[0] for row in rows}:
            _bump_generation(conn, _history_scope(user_id))
    return len(rows)


def add_watch_logs(signals: Iterable[ImplicitSignal]) -> int:
    rows = [
        (s.user_id, s.item_id, s.watched_on.isoformat() if s.watched_on else None)
        for s in signals
    ]
    if not rows:
        return 0
    with get_db() as conn:
        conn.executemany("INSERT INTO watch_logs (user_id, item_id, watched_on) VALUES (?, ?, ?)", rows)
        for user_id in {row[0] for row in rows}:
            _bump_generation(conn, _history_scope(user_id))
    return len(rows)


def migrate_guest_records(user_id: str) -> int:
    """
    Reassign every guest-owned rating and watch log to ``user_id``.

    Returns the number of records moved. A no-op when ``user_id`` is the
    guest identity itself.
    """
    if user_id == GUEST_USER_ID:
        logger.warning("Already the guest identity, no migration needed")
        return 0

    with get_db() as conn:
        moved = conn.execute(
            "UPDATE ratings SET user_id = ? WHERE user_id = ?", (user_id, GUEST_USER_ID)
        ).rowcount
        moved += conn.execute(
            "UPDATE watch_logs SET user_id = ? WHERE user_id = ?", (user_id, GUEST_USER_ID)
        ).rowcount
        if moved:
            _bump_generation(conn, _history_scope(user_id))
            _bump_generation(conn, _history_scope(GUEST_USER_ID))

    logger.info(f"Migrated {moved} guest records to {user_id}")
    return moved


class SqliteHistory:
    """History accessor backed by the ``ratings`` and ``watch_logs`` tables."""

    def load_history(self, user_id: str, include_guest: bool = True) -> UserHistory:
        owners = history_owners(user_id, include_guest)
        placeholders = ",".join("?" * len(owners))
        history = UserHistory(user_id=user_id)

        with get_db(read_only=True) as conn:
            for row in conn.execute(f"""
                SELECT user_id, item_id, value FROM ratings
                WHERE user_id IN ({placeholders})
                ORDER BY id
            """, owners):
                history.ratings.append(ExplicitRating(row["user_id"], row["item_id"], row["value"]))

            for row in conn.execute(f"""
                SELECT user_id, item_id, watched_on FROM watch_logs
                WHERE user_id IN ({placeholders})
                ORDER BY id
            """, owners):
                watched_on = date.fromisoformat(row["watched_on"]) if row["watched_on"] else None
                history.signals.append(ImplicitSignal(row["user_id"], row["item_id"], watched_on))

        return history

    def generation(self, user_id: str, include_guest: bool = True) -> int | None:
        owners = history_owners(user_id, include_guest)
        return sum(get_generation(_history_scope(o)) for o in owners)

    def migrate_guest_records(self, user_id: str) -> int:
        return migrate_guest_records(user_id)


def table_counts() -> dict[str, int]:
    """Row counts for the data tables."""
    with get_db(read_only=True) as conn:
        return {
            table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            for table in ("items", "ratings", "watch_logs")
        }


def count_by_media_type() -> dict[str, int]:
    with get_db(read_only=True) as conn:
        rows = conn.execute("""
            SELECT media_type, COUNT(*) AS n FROM items
            GROUP BY media_type ORDER BY n DESC
        """).fetchall()
    return {row["media_type"]: row["n"] for row in rows}
