"""
Result File Archive
Prescription Scanner

Each accepted extraction result is written to its own JSON file under the
results directory. Reads go through the confinement check.
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Union

from app.core.exceptions import ArchiveNotFoundError, MissingResultError, StoreIOError
from app.utils.file_handler import confine

logger = logging.getLogger(__name__)

ARCHIVE_EXTENSION = ".json"


@dataclass(frozen=True)
class ArchivedFile:
    filename: str
    filepath: str


def doctor_slug(result: Mapping[str, Any]) -> str:
    """Doctor name with whitespace runs replaced by underscores, or 'unknown'."""
    metadata = result.get("metadata") or {}
    name = metadata.get("doctor_name") if isinstance(metadata, Mapping) else None
    if not name or not isinstance(name, str):
        return "unknown"
    slug = re.sub(r"\s+", "_", name)
    slug = slug.replace("/", "_").replace("\\", "_")
    return slug or "unknown"


def archive_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 truncated to seconds, ':' and '.' replaced by '-'."""
    moment = moment.astimezone(timezone.utc)
    iso = moment.isoformat(timespec="seconds")[: len("YYYY-MM-DDTHH:MM:SS")]
    return re.sub(r"[:.]", "-", iso)


def archive_filename(result: Mapping[str, Any], moment: datetime) -> str:
    return f"prescription_{doctor_slug(result)}_{archive_timestamp(moment)}{ARCHIVE_EXTENSION}"


class ResultArchive:
    """Directory of individually saved extraction results."""

    def __init__(self, directory: Union[str, Path], clock: Optional[Callable[[], datetime]] = None):
        self.directory = Path(directory)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def ensure_directory(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreIOError(f"Failed to create results directory {self.directory}: {e}") from e

    def _unique_path(self, filename: str) -> Path:
        # Same doctor within the same second gets a counter suffix
        path = self.directory / filename
        stem = path.stem
        counter = 0
        while path.exists():
            counter += 1
            path = self.directory / f"{stem}_{counter}{ARCHIVE_EXTENSION}"
        return path

    def save(self, result: Optional[Mapping[str, Any]]) -> ArchivedFile:
        if not result:
            raise MissingResultError()

        self.ensure_directory()
        path = self._unique_path(archive_filename(result, self._clock()))
        try:
            path.write_text(json.dumps(result, indent=2, ensure_ascii=False), encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            raise StoreIOError(f"Failed to save result: {e}") from e

        logger.info("Archived result to %s", path)
        return ArchivedFile(filename=path.name, filepath=str(path))

    def list(self) -> List[str]:
        if not self.directory.exists():
            return []
        try:
            return sorted(
                entry.name for entry in self.directory.iterdir()
                if entry.name.endswith(ARCHIVE_EXTENSION)
            )
        except OSError as e:
            raise StoreIOError(f"Failed to fetch results: {e}") from e

    def resolve(self, filename: str) -> Path:
        """Confined path of an existing archive file."""
        path = confine(self.directory, filename)
        if not path.is_file():
            raise ArchiveNotFoundError()
        return path

    def read(self, filename: str) -> bytes:
        path = self.resolve(filename)
        try:
            return path.read_bytes()
        except OSError as e:
            raise StoreIOError(f"Failed to read {path.name}: {e}") from e
