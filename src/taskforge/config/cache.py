"""File-modification-time cache for read-mostly configuration documents.

The identity document, model registry and learned-pattern table are parsed on
first use and reused until the file's mtime changes. A single ``MtimeCache`` is
created by the caller (CLI or test) and injected into every loader that needs
it.
"""

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar

T = TypeVar("T")


class MtimeCache:
    """Cache of parsed files keyed by path and invalidated on mtime change.

    Callers may be served a stale value until the file is modified; there is no
    time-based expiry.
    """

    def __init__(self) -> None:
        self._entries: dict[Path, tuple[int, Any]] = {}
        self._lock = threading.Lock()

    def get_or_load(self, path: Path, loader: Callable[[Path], T]) -> T:
        """Return the cached value for ``path`` or load it with ``loader``.

        Args:
            path: File the value was parsed from.
            loader: Called with ``path`` when the cache is cold or stale.

        Returns:
            The parsed value.

        Raises:
            Whatever ``loader`` raises; failed loads are not cached.
        """
        key = path.resolve()
        try:
            mtime = key.stat().st_mtime_ns
        except FileNotFoundError:
            self.invalidate(key)
            return loader(path)

        with self._lock:
            entry = self._entries.get(key)
        if entry is not None and entry[0] == mtime:
            return entry[1]  # type: ignore[no-any-return]

        value = loader(path)
        with self._lock:
            self._entries[key] = (mtime, value)
        return value

    def invalidate(self, path: Path | None = None) -> None:
        """Drop one entry, or every entry when ``path`` is None."""
        with self._lock:
            if path is None:
                self._entries.clear()
            else:
                self._entries.pop(path.resolve(), None)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, Path):
            return False
        with self._lock:
            return path.resolve() in self._entries
