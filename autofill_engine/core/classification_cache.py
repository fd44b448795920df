"""Time-bounded cache of statistical classification results."""

import hashlib
import logging
import time
from typing import Callable, Dict, List, Optional

from autofill_engine.core.models import Candidate, FieldDescriptor
from autofill_engine.tools.constants import CACHE_KEY_OPTIONS, CACHE_TTL

logger = logging.getLogger(__name__)


class ClassificationCache:
    """In-memory cache keyed by a stable fingerprint of field metadata."""

    def __init__(self, ttl: float = CACHE_TTL, clock: Callable[[], float] = time.time):
        """
        Initialize the classification cache.

        Args:
            ttl: Time-to-live for cache entries in seconds (default: 5 minutes)
            clock: Time source, injectable for tests
        """
        self.ttl = ttl
        self.clock = clock
        self.memory_cache: Dict[str, Dict] = {}
        logger.info(f"Classification cache initialized with TTL {ttl}s")

    @staticmethod
    def make_key(field: FieldDescriptor) -> str:
        """
        Generate a cache key from field metadata.

        The key covers label text, name, id, input kind, placeholder and the
        first five option texts, so the same question on a re-rendered page
        maps to the same entry.

        Args:
            field: Field to fingerprint

        Returns:
            A short, stable hash string
        """
        parts = [
            field.label_text,
            field.name,
            field.id,
            field.input_type,
            field.placeholder,
            "|".join(field.options[:CACHE_KEY_OPTIONS]),
        ]
        fingerprint = "|".join(parts)
        return hashlib.md5(fingerprint.encode("utf-8")).hexdigest()[:16]

    def get(self, field: FieldDescriptor) -> Optional[List[Candidate]]:
        """
        Get cached candidates for a field if present and not expired.

        Args:
            field: Field to look up

        Returns:
            A copy of the cached candidate list, or None on a miss
        """
        key = self.make_key(field)
        entry = self.memory_cache.get(key)
        if entry is None:
            logger.debug(f"Cache miss: {key[:8]}...")
            return None

        if self.clock() - entry["timestamp"] >= self.ttl:
            del self.memory_cache[key]
            logger.debug(f"Removed expired cache: {key[:8]}...")
            return None

        logger.debug(f"Cache hit: {key[:8]}...")
        return [Candidate(c.type, c.score, list(c.reasons)) for c in entry["candidates"]]

    def store(self, field: FieldDescriptor, candidates: List[Candidate]) -> None:
        """Store candidates for a field, replacing any previous entry."""
        key = self.make_key(field)
        self.memory_cache[key] = {
            "candidates": [Candidate(c.type, c.score, list(c.reasons)) for c in candidates],
            "timestamp": self.clock(),
        }
        logger.debug(f"Stored in cache: {key[:8]}...")

    def invalidate(self, field: FieldDescriptor) -> None:
        self.memory_cache.pop(self.make_key(field), None)

    def clear(self) -> None:
        """Clear all cached entries."""
        self.memory_cache = {}
        logger.info("Classification cache cleared")

    def __len__(self) -> int:
        return len(self.memory_cache)
