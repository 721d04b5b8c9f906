"""Disk-backed artifact cache with bounded retention.

Artifacts are plain files in a directory, keyed by a deterministic
filename. Retention is enforced lazily: every write attempt first evicts
the single oldest file when the directory is over its limit. There is no
locking; concurrent writers may push the directory one file over the limit
until the next eviction, and a file vanishing mid-eviction counts as
already handled.
"""

import os
import re
import uuid
from pathlib import Path
from typing import List, Optional, Tuple, Union

import structlog

from media_gateway.core.metrics import MetricsCollector

logger = structlog.get_logger(__name__)

HOSTILE_CHARS_PATTERN = re.compile(r'[/\\:*?"<>|()]')
WHITESPACE_PATTERN = re.compile(r"\s+")


class StorageError(Exception):
    """Exception raised for storage-related errors."""

    pass


def sanitize_title(title: str, max_length: int = 50) -> str:
    """
    Turn a content title into a filesystem-safe filename stem.

    Filesystem-hostile characters become ``_``, each whitespace run becomes a
    single ``_``, and the result is truncated to ``max_length``.

    Args:
        title: Raw title
        max_length: Maximum stem length

    Returns:
        Sanitized stem
    """
    stem = HOSTILE_CHARS_PATTERN.sub("_", title)
    stem = WHITESPACE_PATTERN.sub("_", stem)
    return stem[:max_length].strip()


def evict_oldest_if_over_limit(
    directory: Union[str, Path], max_files: int = 10
) -> Optional[Path]:
    """
    Delete the single oldest regular file if the directory holds too many.

    Args:
        directory: Cache directory (not searched recursively)
        max_files: Retention cap

    Returns:
        Path of the evicted file, or None when nothing was removed
    """
    directory = Path(directory)
    if not directory.is_dir():
        return None

    entries: List[Tuple[float, Path]] = []
    for path in directory.iterdir():
        try:
            stat = path.stat()
        except FileNotFoundError:
            continue
        if path.is_file():
            entries.append((stat.st_mtime, path))

    if len(entries) <= max_files:
        return None

    entries.sort(key=lambda entry: entry[0])
    oldest = entries[0][1]

    logger.info("evicting_oldest_file", filepath=str(oldest), file_count=len(entries))
    try:
        oldest.unlink()
    except FileNotFoundError:
        logger.debug("evicted_file_already_removed", filepath=str(oldest))

    MetricsCollector.record_eviction(directory.name)
    return oldest


class ArtifactCache:
    """A bounded directory of produced files.

    Example:
        cache = ArtifactCache("downloads", max_files=10)
        cache.initialize()
        path = cache.lookup("My_Video_high.mp4")
    """

    def __init__(self, directory: Union[str, Path], max_files: int = 10):
        self.directory = Path(directory)
        self.max_files = max_files

    def initialize(self) -> None:
        """Create the directory if needed and verify it is writable.

        Raises:
            StorageError: If the directory cannot be created or written.
        """
        try:
            if not self.directory.exists():
                self.directory.mkdir(parents=True, exist_ok=True)
                logger.info("cache_directory_created", path=str(self.directory))

            # Unique name to avoid clashes between workers
            test_file = self.directory / f".write_test_{os.getpid()}_{uuid.uuid4().hex}"
            try:
                test_file.touch()
                test_file.unlink(missing_ok=True)
            except PermissionError as e:
                raise StorageError(
                    f"Insufficient permissions to write to cache directory: {self.directory}"
                ) from e
        except OSError as e:
            raise StorageError(f"Failed to initialize cache directory: {e}") from e

        logger.info("cache_initialized", path=str(self.directory), max_files=self.max_files)

    def path_for(self, filename: str) -> Path:
        """Full path of a cached file."""
        return self.directory / filename

    def lookup(self, filename: str) -> Optional[Path]:
        """
        Find a cached artifact by filename.

        A zero-size file is a leftover of a failed write: it is deleted and
        reported as missing.

        Returns:
            Path to the artifact, or None on a miss
        """
        path = self.path_for(filename)
        try:
            size = path.stat().st_size
        except FileNotFoundError:
            return None

        if not path.is_file():
            return None

        if size == 0:
            logger.warning("empty_cached_file_removed", filepath=str(path))
            path.unlink(missing_ok=True)
            return None

        return path

    def file_count(self) -> int:
        """Number of regular files in the directory; 0 if it does not exist."""
        if not self.directory.is_dir():
            return 0
        return sum(1 for entry in self.directory.iterdir() if entry.is_file())

    def evict(self) -> Optional[Path]:
        """Run one eviction pass over this cache's directory."""
        return evict_oldest_if_over_limit(self.directory, self.max_files)

    def write_text(self, filename: str, content: str) -> Path:
        """Evict, then write a text artifact."""
        self.evict()
        path = self.path_for(filename)
        path.write_text(content, encoding="utf-8")
        logger.info("cache_file_written", filepath=str(path), size_bytes=path.stat().st_size)
        return path
