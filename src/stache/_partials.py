"""Filesystem partial loading.

This module provides the PartialLoader class, which locates partial
templates under a base directory and caches their text. A cached entry is
served only while the file's modification time is not newer than the one
recorded when it was read.

Search strategy for ``{{>name}}`` from a search root:

1. Names containing a separator are tried relative to the base directory,
   then relative to the search root.
2. Plain names are tried in the search root, then depth-first through its
   non-hidden subdirectories. Symlinked directories are not descended into,
   matching list_partials.

Every candidate must resolve inside the base directory.
"""

import os
import threading
from dataclasses import dataclass
from pathlib import Path

from structlog.typing import FilteringBoundLogger

from stache.exceptions import PartialNotFoundError, TemplateSyntaxError

from ._logging import null_logger

DEFAULT_TEMPLATE_SUFFIX = ".html.stache"


@dataclass(frozen=True, slots=True)
class PartialCacheStats:
    """Snapshot of partial cache counters.

    Attributes:
        entries: Number of cached partials.
        hits: Loads served from the cache.
        misses: Loads with no cached entry.
        reads: File reads, including refreshes of stale entries.
    """

    entries: int
    hits: int
    misses: int
    reads: int


@dataclass(frozen=True, slots=True)
class _CacheEntry:
    content: str
    mtime_ns: int
    path: Path


def _is_under(path: Path, base: Path) -> bool:
    try:
        return path.resolve(strict=False).is_relative_to(base)
    except (ValueError, OSError):
        return False


class PartialLoader:
    """Locate and cache partial templates under a base directory.

    Searching is pure and lock-free. Checking the cache, re-reading a stale
    file and storing the new entry happen under one lock owned by the loader.

    Example:
        >>> loader = PartialLoader(Path("templates"))
        >>> loader.load("_header", Path("templates/users"))
        '<header>...</header>'
    """

    __slots__ = (
        "_base",
        "_cache",
        "_hits",
        "_lock",
        "_logger",
        "_misses",
        "_reads",
        "_suffix",
    )

    def __init__(
        self,
        base_directory: Path,
        *,
        suffix: str = DEFAULT_TEMPLATE_SUFFIX,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        """Initialize the loader.

        Args:
            base_directory: Directory that contains every loadable partial.
            suffix: File suffix appended to partial names.
            logger: Logger for cache events.

        Raises:
            ValueError: If the base directory does not exist.
        """
        if not base_directory.is_dir():
            msg = f"Base directory does not exist: {base_directory}"
            raise ValueError(msg)
        self._base: Path = base_directory.resolve()
        self._suffix: str = suffix
        self._logger: FilteringBoundLogger = logger or null_logger()
        self._cache: dict[tuple[Path, str], _CacheEntry] = {}
        self._lock: threading.Lock = threading.Lock()
        self._hits: int = 0
        self._misses: int = 0
        self._reads: int = 0

    @property
    def base_directory(self) -> Path:
        return self._base

    @property
    def suffix(self) -> str:
        return self._suffix

    def _candidate(self, directory: Path, name: str) -> Path | None:
        path = directory / f"{name}{self._suffix}"
        if path.is_file() and _is_under(path, self._base):
            return path
        return None

    def _search(self, directory: Path, name: str) -> Path | None:
        found = self._candidate(directory, name)
        if found is not None:
            return found
        try:
            children = sorted(directory.iterdir())
        except OSError:
            return None
        for child in children:
            if child.name.startswith(".") or child.is_symlink() or not child.is_dir():
                continue
            found = self._search(child, name)
            if found is not None:
                return found
        return None

    def find(self, name: str, current_dir: Path) -> Path | None:
        """Search for a partial file.

        Args:
            name: Partial name as written in the template, without suffix.
            current_dir: Search root, normally the template's directory.

        Returns:
            Path to the partial file, or None if it was not found or the
            search root lies outside the base directory.
        """
        root = current_dir.resolve()
        if not _is_under(root, self._base):
            return None

        if "/" in name or os.sep in name:
            return self._candidate(self._base, name) or self._candidate(root, name)
        return self._search(root, name)

    def exists(self, name: str, current_dir: Path) -> bool:
        """Check whether a partial can be found from ``current_dir``."""
        return self.find(name, current_dir) is not None

    def load(self, name: str, current_dir: Path) -> str:
        """Load a partial's text, using the cache while it is fresh.

        Args:
            name: Partial name as written in the template, without suffix.
            current_dir: Search root, normally the template's directory.

        Returns:
            The partial's template text.

        Raises:
            TemplateSyntaxError: If the search root lies outside the base
                directory, or the file cannot be read.
            PartialNotFoundError: If no partial file matches ``name``.
        """
        root = current_dir.resolve()
        if not _is_under(root, self._base):
            msg = f"Partial search root {root} is outside base directory {self._base}"
            raise TemplateSyntaxError(msg)

        path = self.find(name, root)
        if path is None:
            msg = f"Partial not found: {name}{self._suffix} in {root} or subdirectories"
            raise PartialNotFoundError(msg, name=name, search_root=root)

        key = (root, name)
        with self._lock:
            try:
                mtime_ns = path.stat().st_mtime_ns
                entry = self._cache.get(key)
                if entry is not None and entry.path == path and mtime_ns <= entry.mtime_ns:
                    self._hits += 1
                    self._logger.debug("partial_cache_hit", name=name, path=str(path))
                    return entry.content
                if entry is None:
                    self._misses += 1
                # Content and mtime come from one handle, so a replaced file
                # is never cached under the previous file's mtime.
                with path.open(encoding="utf-8") as f:
                    mtime_ns = os.fstat(f.fileno()).st_mtime_ns
                    content = f.read()
            except (OSError, UnicodeDecodeError) as e:
                msg = f"Failed to read partial {name!r}: {e}"
                raise TemplateSyntaxError(msg, context=str(path), cause=e) from e
            self._reads += 1
            self._cache[key] = _CacheEntry(content, mtime_ns, path)

        self._logger.debug("partial_loaded", name=name, path=str(path))
        return content

    def clear_cache(self) -> None:
        """Drop every cached partial; counters are kept."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        self._logger.debug("partial_cache_cleared", entries=count)

    def cache_stats(self) -> PartialCacheStats:
        with self._lock:
            return PartialCacheStats(
                entries=len(self._cache),
                hits=self._hits,
                misses=self._misses,
                reads=self._reads,
            )

    def list_partials(self, search_dir: Path | None = None) -> list[str]:
        """List partial names under a directory, recursively.

        Hidden directories are skipped. Names are relative to ``search_dir``
        and use ``/`` separators, in sorted order.

        Raises:
            ValueError: If ``search_dir`` lies outside the base directory.
        """
        root = (search_dir or self._base).resolve()
        if not _is_under(root, self._base):
            msg = f"Directory {root} is outside base directory {self._base}"
            raise ValueError(msg)
        if not root.is_dir():
            return []

        names: list[str] = []
        for dirpath, dirnames, filenames in root.walk():
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for filename in filenames:
                if filename.endswith(self._suffix) and len(filename) > len(self._suffix):
                    relative = (dirpath / filename).relative_to(root).as_posix()
                    names.append(relative.removesuffix(self._suffix))
        return sorted(names)
