"""In-process store handing generated CSV artifacts from the harvest stream to downloads."""

from __future__ import annotations

import logging
import os
import threading

from cachetools import TTLCache

ARTIFACT_TTL_SECONDS = float(os.getenv("ARTIFACT_TTL_SECONDS", "3600"))
ARTIFACT_MAX_ENTRIES = int(os.getenv("ARTIFACT_MAX_ENTRIES", "256"))

LOGGER = logging.getLogger(__name__)


class ArtifactNotFound(KeyError):
    """No artifact is stored under the requested filename (never stored, or expired)."""


class ArtifactStore:
    """Filename -> CSV text mapping with time-based expiry.

    One instance is created at application startup and shared by every
    request. Entries are written once by a harvest run and may be read any
    number of times until they expire after ``ttl_seconds``; when
    ``max_entries`` is reached the least recently used entry is dropped.
    All access goes through a lock, so a reader never sees a partial entry.
    """

    def __init__(self, ttl_seconds: float = ARTIFACT_TTL_SECONDS, max_entries: int = ARTIFACT_MAX_ENTRIES, timer=None):
        kwargs = {"timer": timer} if timer is not None else {}
        self._entries: TTLCache = TTLCache(maxsize=max_entries, ttl=ttl_seconds, **kwargs)
        self._lock = threading.Lock()

    def put(self, filename: str, content: str) -> None:
        with self._lock:
            self._entries[filename] = content
        LOGGER.info("Stored artifact %s (%s bytes)", filename, len(content))

    def get(self, filename: str) -> str:
        with self._lock:
            try:
                return self._entries[filename]
            except KeyError:
                raise ArtifactNotFound(filename) from None

    def delete(self, filename: str) -> None:
        with self._lock:
            self._entries.pop(filename, None)

    def __contains__(self, filename: object) -> bool:
        with self._lock:
            return filename in self._entries

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)
