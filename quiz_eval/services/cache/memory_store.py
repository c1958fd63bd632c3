import time
from typing import Callable, Dict, Optional, Tuple

_Entry = Tuple[str, float]


class InMemoryCacheStore:
    """
    In-process CacheStore with per-key and per-field expiry.
    Acts as a fallback when Redis is unavailable and as the store in tests.

    Expired entries are dropped lazily on access; there is no size bound.
    """
    backend = "in-memory"

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._values: Dict[str, _Entry] = {}
        self._hashes: Dict[str, Dict[str, _Entry]] = {}

    def _alive(self, entry: Optional[_Entry]) -> bool:
        return entry is not None and entry[1] > self._clock()

    async def get(self, key: str) -> Optional[str]:
        entry = self._values.get(key)
        if not self._alive(entry):
            self._values.pop(key, None)
            return None
        return entry[0]

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._values[key] = (value, self._clock() + ttl_seconds)

    async def get_field(self, set_key: str, field_key: str) -> Optional[str]:
        fields = self._hashes.get(set_key, {})
        entry = fields.get(field_key)
        if not self._alive(entry):
            fields.pop(field_key, None)
            return None
        return entry[0]

    async def get_all_fields(self, set_key: str) -> Dict[str, str]:
        fields = self._hashes.get(set_key)
        if not fields:
            return {}
        now = self._clock()
        expired = [k for k, (_, expires_at) in fields.items() if expires_at <= now]
        for k in expired:
            del fields[k]
        return {k: value for k, (value, _) in fields.items()}

    async def set_field(self, set_key: str, field_key: str, value: str, ttl_seconds: int) -> None:
        self._hashes.setdefault(set_key, {})[field_key] = (value, self._clock() + ttl_seconds)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self.clear()

    def clear(self) -> None:
        """Clear all entries."""
        self._values.clear()
        self._hashes.clear()

    def count(self) -> int:
        """Number of stored values and hash fields, expired ones included."""
        return len(self._values) + sum(len(fields) for fields in self._hashes.values())
