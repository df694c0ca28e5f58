"""Application configuration defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from croniter import croniter

from galleryindex.utils.files import normalize_extension

DEFAULT_DB_PATH = Path("data/galleryindex.db")
DEFAULT_START_PATH = Path("/source_files")
DEFAULT_CRON_SCHEDULE = "0 * * * *"

DEFAULT_FILE_TYPES: tuple[str, ...] = (
    "ase", "art", "bmp", "blp", "cd5", "cit", "cpt", "cr2", "cut",
    "dds", "dib", "djvu", "egt", "exif", "gif", "gpl", "grf", "icns",
    "ico", "iff", "jng", "jpeg", "jpg", "jfif", "jp2", "jps", "lbm",
    "max", "miff", "mng", "msp", "nef", "nitf", "ota", "pbm", "pc1",
    "pc2", "pc3", "pcf", "pcx", "pdn", "pgm", "pi1", "pi2", "pi3",
    "pict", "pct", "pnm", "pns", "ppm", "psb", "psd", "pdd", "psp",
    "px", "pxm", "pxr", "qfx", "raw", "rle", "sct", "sgi", "rgb",
    "int", "bw", "tga", "tiff", "tif", "vtf", "xbm", "xcf", "xpm",
    "3dv", "amf", "ai", "awg", "cgm", "cdr", "cmx", "dxf", "e2d",
    "eps", "fs", "gbr", "odg", "svg", "stl", "vrml", "x3d", "sxd",
    "v2d", "vnd", "wmf", "emf", "xar", "png", "webp", "jxr", "hdp",
    "wdp", "cur", "ecw", "liff", "nrrd", "pam", "pgf", "rgba", "inta",
    "sid", "ras", "sun", "heic", "heif",
)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _normalize_file_types(file_types: tuple[str, ...] | list[str]) -> tuple[str, ...]:
    """Normalize extensions, dropping blanks and duplicates but keeping order."""
    seen: dict[str, None] = {}
    for ext in file_types:
        if not ext or not ext.strip():
            continue
        seen.setdefault(normalize_extension(ext), None)
    return tuple(seen)


@dataclass(slots=True)
class AppConfig:
    db_path: Path = DEFAULT_DB_PATH
    start_path: Path = DEFAULT_START_PATH
    file_types: tuple[str, ...] = DEFAULT_FILE_TYPES
    pause_after: int = 1000
    pause_time_seconds: float = 5.0
    cron_schedule: str = DEFAULT_CRON_SCHEDULE
    run_on_startup: bool = True

    def __post_init__(self) -> None:
        self.db_path = Path(self.db_path)
        self.start_path = Path(self.start_path)
        self.file_types = _normalize_file_types(self.file_types)
        if not self.file_types:
            raise ValueError("At least one file type must be configured")
        if self.pause_after < 1:
            raise ValueError(f"pause_after must be >= 1, got {self.pause_after}")
        if self.pause_time_seconds < 0:
            raise ValueError(
                f"pause_time_seconds must be >= 0, got {self.pause_time_seconds}"
            )
        if not croniter.is_valid(self.cron_schedule):
            raise ValueError(f"Invalid cron schedule: {self.cron_schedule!r}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Build a configuration from ``INDEXER_*`` environment variables."""
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}
        if env.get("INDEXER_DB_PATH"):
            kwargs["db_path"] = Path(env["INDEXER_DB_PATH"])
        if env.get("INDEXER_START_PATH"):
            kwargs["start_path"] = Path(env["INDEXER_START_PATH"])
        if env.get("INDEXER_FILE_TYPES"):
            kwargs["file_types"] = tuple(env["INDEXER_FILE_TYPES"].split(","))
        if env.get("INDEXER_PAUSE_AFTER"):
            kwargs["pause_after"] = int(env["INDEXER_PAUSE_AFTER"])
        if env.get("INDEXER_PAUSE_TIME_SECONDS"):
            kwargs["pause_time_seconds"] = float(env["INDEXER_PAUSE_TIME_SECONDS"])
        if env.get("INDEXER_CRON_SCHEDULE"):
            kwargs["cron_schedule"] = env["INDEXER_CRON_SCHEDULE"]
        if env.get("INDEXER_RUN_ON_STARTUP"):
            kwargs["run_on_startup"] = env["INDEXER_RUN_ON_STARTUP"].strip().lower() in _TRUE_VALUES
        return cls(**kwargs)  # type: ignore[arg-type]

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path.is_absolute() or base_dir is None:
            return self.db_path
        return base_dir / self.db_path
