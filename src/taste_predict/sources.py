"""
Catalog and rating-history accessors.

The engine never reaches into global state: callers hand it a catalog
accessor and a history accessor. Anything with the methods below works;
``InMemoryCatalog`` and ``InMemoryHistory`` are indexed implementations
used by tests and embedding applications, and ``database.py`` provides the
SQLite-backed pair.

``generation`` returns an integer that changes whenever the underlying data
changes, or None when the accessor cannot tell (which disables caching).
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import replace
from typing import Iterable, Protocol

from .config import GUEST_USER_ID
from .models import CatalogItem, ExplicitRating, ImplicitSignal, UserHistory

logger = logging.getLogger(__name__)


class CatalogSource(Protocol):
    def get_item(self, item_id: str) -> CatalogItem | None: ...

    def get_items(self, item_ids: Iterable[str]) -> dict[str, CatalogItem]: ...

    def generation(self) -> int | None: ...


class HistorySource(Protocol):
    def load_history(self, user_id: str, include_guest: bool = True) -> UserHistory: ...

    def generation(self, user_id: str, include_guest: bool = True) -> int | None: ...


def history_owners(user_id: str, include_guest: bool = True) -> list[str]:
    """Identities whose records make up ``user_id``'s history."""
    if include_guest and user_id != GUEST_USER_ID:
        return [user_id, GUEST_USER_ID]
    return [user_id]


class InMemoryCatalog:
    """Catalog items indexed by id."""

    def __init__(self, items: Iterable[CatalogItem] = ()):
        self._items: dict[str, CatalogItem] = {}
        self._generation = 0
        self._lock = threading.Lock()
        for item in items:
            self.add(item)

    def add(self, item: CatalogItem) -> None:
        with self._lock:
            self._items[item.id] = item
            self._generation += 1

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items.values()))

    def get_item(self, item_id: str) -> CatalogItem | None:
        return self._items.get(item_id)

    def get_items(self, item_ids: Iterable[str]) -> dict[str, CatalogItem]:
        return {i: self._items[i] for i in item_ids if i in self._items}

    def generation(self) -> int | None:
        return self._generation


class InMemoryHistory:
    """Ratings and watch logs indexed by owner identity."""

    def __init__(self) -> None:
        self._ratings: dict[str, list[ExplicitRating]] = defaultdict(list)
        self._signals: dict[str, list[ImplicitSignal]] = defaultdict(list)
        self._generations: dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def add_rating(self, rating: ExplicitRating) -> None:
        with self._lock:
            self._ratings[rating.user_id].append(rating)
            self._generations[rating.user_id] += 1

    def add_signal(self, signal: ImplicitSignal) -> None:
        with self._lock:
            self._signals[signal.user_id].append(signal)
            self._generations[signal.user_id] += 1

    def remove_rating(self, user_id: str, item_id: str) -> int:
        with self._lock:
            before = len(self._ratings[user_id])
            self._ratings[user_id] = [r for r in self._ratings[user_id] if r.item_id != item_id]
            removed = before - len(self._ratings[user_id])
            if removed:
                self._generations[user_id] += 1
            return removed

    def load_history(self, user_id: str, include_guest: bool = True) -> UserHistory:
        history = UserHistory(user_id=user_id)
        with self._lock:
            # Guest records first so the user's own records come last
            for owner in reversed(history_owners(user_id, include_guest)):
                history.ratings.extend(self._ratings.get(owner, ()))
                history.signals.extend(self._signals.get(owner, ()))
        return history

    def generation(self, user_id: str, include_guest: bool = True) -> int | None:
        # Counters only grow, so the sum changes whenever any owner changes
        with self._lock:
            return sum(self._generations.get(o, 0) for o in history_owners(user_id, include_guest))

    def migrate_guest_records(self, user_id: str) -> int:
        """Reassign every guest-owned record to ``user_id``; returns records moved."""
        if user_id == GUEST_USER_ID:
            logger.warning("Already the guest identity, no migration needed")
            return 0

        with self._lock:
            ratings = self._ratings.pop(GUEST_USER_ID, [])
            signals = self._signals.pop(GUEST_USER_ID, [])
            self._ratings[user_id].extend(replace(r, user_id=user_id) for r in ratings)
            self._signals[user_id].extend(replace(s, user_id=user_id) for s in signals)
            moved = len(ratings) + len(signals)
            if moved:
                self._generations[user_id] += 1
                self._generations[GUEST_USER_ID] += 1

        logger.info(f"Migrated {moved} guest records to {user_id}")
        return moved
