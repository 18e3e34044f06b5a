"""
Short-lived, read-once storage for rendered recipe HTML.

The recipe manager imports a recipe by fetching a URL. We stage the generated
HTML here under an unguessable id, hand the manager the URL, and drop the
entry as soon as it has been fetched once or its TTL has elapsed.

Expiry is a monotonic deadline stored with each entry and checked on every
read; `sweep()` only reclaims memory held by entries nobody fetched.

Each process owns its own store. With several workers, a `put` is only
visible to a `get` served by the same worker.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

from recipe_bridge.utils.exceptions import (
    StagedRecipeNotFound,
    StagingStorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60
MAX_ID_ATTEMPTS = 8
# Ids are bearer tokens for the staged page, so logs only carry a prefix
LOGGED_ID_CHARS = 8


def generate_staging_id() -> str:
    """128 random bits, hex encoded."""
    return secrets.token_hex(16)


def loggable_id(recipe_id: str) -> str:
    if len(recipe_id) <= LOGGED_ID_CHARS:
        return "***"
    return recipe_id[:LOGGED_ID_CHARS] + "..."


@dataclass(frozen=True)
class StagedEntry:
    """A staged HTML document and its expiry deadline."""

    id: str
    content: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class StagingStore:
    """In-memory id -> HTML map with TTL and destructive reads."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        id_factory: Callable[[], str] = generate_staging_id,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._id_factory = id_factory
        self._entries: Dict[str, StagedEntry] = {}
        self._lock = threading.Lock()

    def put(self, content: str) -> str:
        """
        Stage `content` and return its id.

        Raises:
            ValidationError: If content is empty or not a string
            StagingStorageError: If no entry could be allocated
        """
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Staged content must be a non-empty string")

        try:
            with self._lock:
                recipe_id = self._allocate_id()
                expires_at = self._clock() + self.ttl_seconds
                self._entries[recipe_id] = StagedEntry(recipe_id, content, expires_at)
                live = len(self._entries)
        except MemoryError as e:
            logger.error("Staging store out of memory", exc_info=True)
            raise StagingStorageError("Out of memory while staging recipe") from e

        logger.info(
            "Staged recipe HTML",
            extra={"staging_id": loggable_id(recipe_id), "size": len(content), "live_entries": live},
        )
        return recipe_id

    def get(self, recipe_id: str) -> str:
        """
        Return and remove the content staged under `recipe_id`.

        Raises:
            StagedRecipeNotFound: If the id is unknown, expired or already read
        """
        with self._lock:
            entry = self._entries.pop(recipe_id, None)
            now = self._clock()

        if entry is None:
            logger.info("Staged recipe not found", extra={"staging_id": loggable_id(recipe_id)})
            raise StagedRecipeNotFound(recipe_id)

        if entry.is_expired(now):
            logger.info("Staged recipe expired", extra={"staging_id": loggable_id(recipe_id)})
            raise StagedRecipeNotFound(recipe_id)

        logger.info("Staged recipe consumed", extra={"staging_id": loggable_id(recipe_id)})
        return entry.content

    def sweep(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
            for k in expired:
                del self._entries[k]

        if expired:
            logger.debug("Swept %d expired staged recipe(s)", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, recipe_id: object) -> bool:
        with self._lock:
            entry = self._entries.get(recipe_id)  # type: ignore[arg-type]
            return entry is not None and not entry.is_expired(self._clock())

    def _allocate_id(self) -> str:
        # Caller holds the lock.
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            if candidate and candidate not in self._entries:
                return candidate
        raise StagingStorageError("Could not allocate a unique staging id")
