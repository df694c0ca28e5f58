"""Tests for file utility functions."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

import pytest

from galleryindex.utils.files import extract_metadata, has_allowed_extension, normalize_extension
from galleryindex.utils.timestamps import from_epoch, utc_now


class TestNormalizeExtension:
    """Test normalize_extension function."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("jpg", ".jpg"),
            ("JPG", ".jpg"),
            (".PnG", ".png"),
            ("..tiff", ".tiff"),
            ("  gif ", ".gif"),
            ("", ""),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_extension(raw) == expected


class TestHasAllowedExtension:
    """Test has_allowed_extension function."""

    def test_case_insensitive_match(self) -> None:
        assert has_allowed_extension("Holiday.JPG", {".jpg"})

    def test_no_match(self) -> None:
        assert not has_allowed_extension("notes.txt", {".jpg", ".png"})

    def test_no_suffix(self) -> None:
        assert not has_allowed_extension("README", {".jpg"})

    def test_suffix_must_end_the_name(self) -> None:
        assert has_allowed_extension("scan.tar.png", {".png"})
        assert not has_allowed_extension("scan.png.bak", {".png"})

    def test_dot_named_file(self) -> None:
        assert has_allowed_extension(".jpg", {".jpg"})
        assert has_allowed_extension(".JPG", {".jpg"})

    def test_multi_part_extension(self) -> None:
        assert has_allowed_extension("backup.TAR.GZ", {".tar.gz"})
        assert not has_allowed_extension("backup.gz", {".tar.gz"})


class TestExtractMetadata:
    """Test extract_metadata function."""

    def test_basic_fields(self, tmp_path: Path) -> None:
        """Should read name, size, directory and extension."""
        image = tmp_path / "Photo.JPG"
        image.write_bytes(b"x" * 123)

        record = extract_metadata(image)

        assert record.filename == "Photo.JPG"
        assert record.size == 123
        assert record.directory == str(tmp_path)
        assert record.extension == ".jpg"
        assert record.indexed is None
        assert record.key == (str(tmp_path), "Photo.JPG")

    def test_timestamps(self, tmp_path: Path) -> None:
        """Access and modification times come from the stat result."""
        image = tmp_path / "a.png"
        image.write_bytes(b"data")
        os.utime(image, (1_600_000_000, 1_700_000_000))

        record = extract_metadata(image)

        assert record.accessed == from_epoch(1_600_000_000)
        assert record.modified == from_epoch(1_700_000_000)
        assert datetime.fromisoformat(record.created).tzinfo is not None

    def test_uses_given_stat(self, tmp_path: Path) -> None:
        image = tmp_path / "a.png"
        image.write_bytes(b"data")
        stat = image.stat()
        image.unlink()

        record = extract_metadata(image, stat)

        assert record.size == 4

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            extract_metadata(tmp_path / "gone.jpg")


class TestTimestamps:
    """Test timestamp helpers."""

    def test_utc_now_is_aware(self) -> None:
        assert datetime.fromisoformat(utc_now()).utcoffset().total_seconds() == 0

    def test_from_epoch(self) -> None:
        assert from_epoch(0) == "1970-01-01T00:00:00+00:00"
