"""Read-only queries over the file index."""

from __future__ import annotations

import os
from pathlib import Path
from typing import List

from galleryindex.index.storage import SQLiteIndexStore
from galleryindex.models import FileRecord, SortOrder


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class FileQuery:
    """High-level API to count and search indexed files."""

    def __init__(self, store: SQLiteIndexStore) -> None:
        self.store = store

    def count_all(self) -> int:
        row = self.store.connection.execute("SELECT COUNT(*) FROM images").fetchone()
        return int(row[0])

    def count_under(self, root: Path) -> int:
        """Count records whose directory is ``root`` or below it."""
        root_str = str(root).rstrip(os.sep) or os.sep
        prefix = root_str if root_str.endswith(os.sep) else root_str + os.sep
        row = self.store.connection.execute(
            """
            SELECT COUNT(*) FROM images
            WHERE path = ? OR substr(path, 1, ?) = ?
            """,
            (root_str, len(prefix), prefix),
        ).fetchone()
        return int(row[0])

    def search_by_name(
        self,
        query: str,
        *,
        page: int = 1,
        limit: int = 10,
        order: SortOrder = SortOrder.ASC,
    ) -> List[FileRecord]:
        """Case-insensitive substring match on the filename, paginated."""
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        direction = "DESC" if SortOrder(order) is SortOrder.DESC else "ASC"
        rows = self.store.connection.execute(
            f"""
            SELECT * FROM images
            WHERE filename LIKE ? ESCAPE '\\'
            ORDER BY filename COLLATE NOCASE {direction}, path {direction}
            LIMIT ? OFFSET ?
            """,
            (_like_pattern(query), limit, (page - 1) * limit),
        ).fetchall()
        return [FileRecord.from_row(row) for row in rows]

    def count_by_name(self, query: str) -> int:
        row = self.store.connection.execute(
            "SELECT COUNT(*) FROM images WHERE filename LIKE ? ESCAPE '\\'",
            (_like_pattern(query),),
        ).fetchone()
        return int(row[0])

    def get(self, directory: str, filename: str) -> FileRecord | None:
        row = self.store.connection.execute(
            "SELECT * FROM images WHERE path = ? AND filename = ?", (directory, filename)
        ).fetchone()
        return FileRecord.from_row(row) if row else None
