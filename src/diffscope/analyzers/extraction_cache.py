"""Content-addressed cache of extracted declarations."""

import hashlib
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple


@dataclass(frozen=True)
class CacheKey:
    """Identifies one extraction: the file path plus a hash of its content."""
    path: str
    content_hash: str

    @classmethod
    def for_content(cls, path: str, content: str) -> 'CacheKey':
        digest = hashlib.sha256(content.encode('utf8', 'surrogatepass')).hexdigest()
        return cls(path=path, content_hash=digest)


class ExtractionCache:
    """In-memory extraction cache with no eviction.

    A value is a pure function of its key's content, so concurrent writers of
    one key always store equal tuples and last-write-wins is safe. Values are
    stored as tuples and inserted in a single assignment.
    """

    def __init__(self):
        self._entries: Dict[CacheKey, Tuple[Any, ...]] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: CacheKey) -> Optional[Tuple[Any, ...]]:
        value = self._entries.get(key)
        if value is None:
            self._misses += 1
        else:
            self._hits += 1
        return value

    def put(self, key: CacheKey, value: Iterable[Any]):
        self._entries[key] = tuple(value)

    def clear(self):
        """Drop every entry and reset the statistics."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def stats(self) -> Dict[str, int]:
        return {
            'entries': len(self._entries),
            'hits': self._hits,
            'misses': self._misses,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
