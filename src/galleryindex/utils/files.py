"""Utility helpers for working with files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from galleryindex.models import FileRecord
from galleryindex.utils.timestamps import from_epoch


def normalize_extension(ext: str) -> str:
    """Return ``ext`` lower-cased with exactly one leading dot."""
    ext = ext.strip().lower()
    if not ext:
        return ""
    return "." + ext.lstrip(".")


def has_allowed_extension(name: str, allowed: Iterable[str]) -> bool:
    """Check whether ``name`` ends with one of the normalized ``allowed`` extensions.

    Dot-named files such as ``.jpg`` and multi-part extensions such as
    ``.tar.gz`` match too.
    """
    lowered = name.lower()
    return any(lowered.endswith(ext) for ext in allowed if ext)


def extract_metadata(path: Path, stat: os.stat_result | None = None) -> FileRecord:
    """Build a FileRecord for ``path``, stat'ing it unless a result is given."""
    if stat is None:
        stat = path.stat()
    # st_birthtime only exists on macOS/BSD (and Windows on 3.12+)
    created = getattr(stat, "st_birthtime", None) or stat.st_ctime
    return FileRecord(
        filename=path.name,
        size=stat.st_size,
        created=from_epoch(created),
        modified=from_epoch(stat.st_mtime),
        accessed=from_epoch(stat.st_atime),
        directory=str(path.parent),
        extension=normalize_extension(path.suffix),
    )
