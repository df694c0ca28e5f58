"""Single-run mutual exclusion backed by the ``indexer_state`` row."""

from __future__ import annotations

import logging

from galleryindex.index.storage import SQLiteIndexStore
from galleryindex.models import IndexerState
from galleryindex.utils.timestamps import utc_now

LOGGER = logging.getLogger(__name__)


class ConcurrencyGuard:
    """Owns the singleton indexer state.

    The flag is persisted, so it is shared by every process using the index
    file. A crash mid-run leaves it set until :meth:`force_reset` runs.
    """

    def __init__(self, store: SQLiteIndexStore) -> None:
        self.store = store

    def try_acquire(self) -> bool:
        with self.store.transaction() as conn:
            cursor = conn.execute(
                "UPDATE indexer_state SET is_indexing = 1 WHERE id = 1 AND is_indexing = 0"
            )
            acquired = cursor.rowcount == 1
        if acquired:
            LOGGER.debug("Indexing guard acquired")
        else:
            LOGGER.debug("Indexing guard already held")
        return acquired

    def release(self) -> None:
        with self.store.transaction() as conn:
            conn.execute(
                "UPDATE indexer_state SET is_indexing = 0, last_indexed = ? WHERE id = 1",
                (utc_now(),),
            )
        LOGGER.debug("Indexing guard released")

    def force_reset(self) -> bool:
        """Clear the flag unconditionally; returns True if it was stuck."""
        with self.store.transaction() as conn:
            cursor = conn.execute(
                "UPDATE indexer_state SET is_indexing = 0 WHERE id = 1 AND is_indexing = 1"
            )
            return cursor.rowcount == 1

    def is_indexing(self) -> bool:
        return self.state().is_indexing

    def state(self) -> IndexerState:
        row = self.store.connection.execute(
            "SELECT is_indexing, last_indexed FROM indexer_state WHERE id = 1"
        ).fetchone()
        return IndexerState(is_indexing=bool(row["is_indexing"]), last_indexed=row["last_indexed"])
