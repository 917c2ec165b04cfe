"""
Caches for haplogroup tree sources.

Two independent tiers:

- ``TreeCache`` keeps parsed trees in memory for the life of the process,
  keyed by (source id, target build).
- ``DiskCache`` keeps raw downloaded payloads on disk, keyed by source id,
  so restarts do not need to download the tree again.

Neither tier expires entries. A new tree release should use a new source id.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import shutil
import tempfile
import threading
from pathlib import Path

from haplopath.tree import Tree

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class TreeCache:
    """In-memory cache of parsed trees."""

    def __init__(self) -> None:
        self._trees: dict[tuple[str, str], Tree] = {}
        self._lock = threading.Lock()

    def get(self, source_id: str, build: str) -> Tree | None:
        with self._lock:
            return self._trees.get((source_id, build))

    def put(self, source_id: str, build: str, tree: Tree) -> None:
        with self._lock:
            self._trees[(source_id, build)] = tree

    def clear(self) -> None:
        """Drop every cached tree."""
        with self._lock:
            self._trees.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._trees

    def __len__(self) -> int:
        with self._lock:
            return len(self._trees)


class DiskCache:
    """
    Durable key -> bytes store backed by one file per key.

    Writes go to a temporary file in the cache directory and are published
    with ``os.replace``, so concurrent readers only ever see complete payloads.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        """
        Return the file that stores ``key``.

        The name is the key with unsafe characters replaced, plus a digest of
        the exact key so that distinct keys never share a file.
        """
        if not key:
            raise ValueError("Cache key must not be empty")
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]
        return self.directory / f"{_UNSAFE_CHARS.sub('_', key)}-{digest}.cache"

    def get(self, key: str) -> bytes | None:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def put(self, key: str, data: bytes) -> None:
        path = self.path_for(key)
        self.directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Cached %d bytes for %s at %s", len(data), key, path)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.path_for(key).exists()

    def clear(self) -> None:
        """Delete the cache directory and everything in it."""
        if self.directory.exists():
            shutil.rmtree(self.directory)
