"""Tests for FileQuery."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from galleryindex.index.search import FileQuery
from galleryindex.index.storage import SQLiteIndexStore
from galleryindex.index.writer import UpsertWriter
from galleryindex.models import FileRecord, SortOrder

ROOT = os.sep + "photos"


def _record(directory: str, filename: str, size: int = 1) -> FileRecord:
    return FileRecord(
        filename=filename,
        size=size,
        created="2024-01-01T00:00:00+00:00",
        modified="2024-01-01T00:00:00+00:00",
        accessed="2024-01-01T00:00:00+00:00",
        directory=directory,
        extension=os.path.splitext(filename)[1].lower(),
    )


@pytest.fixture
def store(tmp_path: Path):
    store = SQLiteIndexStore(tmp_path / "index.db")
    yield store
    store.close()


@pytest.fixture
def query(store) -> FileQuery:
    writer = UpsertWriter(store)
    for directory, filename in [
        (ROOT, "Beach.jpg"),
        (os.path.join(ROOT, "2023"), "beach-party.png"),
        (os.path.join(ROOT, "2023", "summer"), "sunset.jpg"),
        (ROOT + "2", "beach.gif"),
        (os.sep + "other", "100%_real.jpg"),
        (os.sep + "other", "100x_real.jpg"),
    ]:
        writer.write(_record(directory, filename))
    return FileQuery(store)


class TestCounts:
    """Test index-wide and subtree counts."""

    def test_count_all(self, query) -> None:
        assert query.count_all() == 6

    def test_count_all_empty(self, store) -> None:
        assert FileQuery(store).count_all() == 0

    def test_count_under_includes_nested(self, query) -> None:
        assert query.count_under(Path(ROOT)) == 3

    def test_count_under_excludes_sibling_prefix(self, query) -> None:
        """/photos2 shares a string prefix with /photos but is not below it."""
        assert query.count_under(Path(ROOT + "2")) == 1

    def test_count_under_trailing_separator(self, query) -> None:
        assert query.count_under(ROOT + os.sep) == 3

    def test_count_under_unknown_root(self, query) -> None:
        assert query.count_under(Path(os.sep + "nowhere")) == 0


class TestSearchByName:
    """Test filename substring search."""

    def test_case_insensitive(self, query) -> None:
        names = [record.filename for record in query.search_by_name("BEACH")]

        assert names == ["beach-party.png", "beach.gif", "Beach.jpg"]

    def test_descending(self, query) -> None:
        names = [
            record.filename for record in query.search_by_name("beach", order=SortOrder.DESC)
        ]

        assert names == ["Beach.jpg", "beach.gif", "beach-party.png"]

    def test_pagination(self, query) -> None:
        first = query.search_by_name("beach", page=1, limit=2)
        second = query.search_by_name("beach", page=2, limit=2)
        third = query.search_by_name("beach", page=3, limit=2)

        assert [record.filename for record in first] == ["beach-party.png", "beach.gif"]
        assert [record.filename for record in second] == ["Beach.jpg"]
        assert third == []

    def test_returns_full_records(self, query) -> None:
        record = query.search_by_name("sunset")[0]

        assert record.directory == os.path.join(ROOT, "2023", "summer")
        assert record.extension == ".jpg"
        assert record.indexed is not None

    def test_wildcards_matched_literally(self, query) -> None:
        names = [record.filename for record in query.search_by_name("100%")]

        assert names == ["100%_real.jpg"]
        assert query.count_by_name("0_") == 0
        assert query.count_by_name("%_") == 1

    def test_no_match(self, query) -> None:
        assert query.search_by_name("mountain") == []
        assert query.count_by_name("mountain") == 0

    def test_count_by_name(self, query) -> None:
        assert query.count_by_name("beach") == 3
        assert query.count_by_name("jpg") == 4

    @pytest.mark.parametrize("page, limit", [(0, 10), (1, 0)])
    def test_invalid_pagination(self, query, page, limit) -> None:
        with pytest.raises(ValueError):
            query.search_by_name("beach", page=page, limit=limit)


class TestGet:
    """Test lookup by natural key."""

    def test_found(self, query) -> None:
        record = query.get(ROOT, "Beach.jpg")

        assert record is not None
        assert record.key == (ROOT, "Beach.jpg")

    def test_missing(self, query) -> None:
        assert query.get(ROOT, "nope.jpg") is None
