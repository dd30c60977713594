import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from config import PLAYLIST_CACHE_KEY, PLAYLIST_CACHE_TTL
from models import ScanResult


@dataclass
class CacheEntry:
	data: ScanResult
	timestamp: float
	ttl: float


class PlaylistCache:
	"""
	In-memory TTL cache for the playlist document.

	The serving path uses a single slot (PLAYLIST_CACHE_KEY). Expired entries
	are evicted lazily on get(). The last document ever stored is kept apart
	from the slot so a failed rescan can still serve it.

	Not thread-safe; meant for one event loop.
	"""

	def __init__(self, default_ttl: float = PLAYLIST_CACHE_TTL, clock: Callable[[], float] = time.monotonic):
		self.default_ttl = default_ttl
		self._clock = clock
		self._entries: Dict[str, CacheEntry] = {}
		self._last_good: Dict[str, ScanResult] = {}

	def get(self, key: str = PLAYLIST_CACHE_KEY) -> Optional[ScanResult]:
		entry = self._entries.get(key)
		if entry is None:
			return None
		if self._clock() - entry.timestamp >= entry.ttl:
			del self._entries[key]
			return None
		return entry.data

	def get_stale(self, key: str = PLAYLIST_CACHE_KEY) -> Optional[ScanResult]:
		"""Last stored document for key, however old."""
		return self._last_good.get(key)

	def set(self, data: ScanResult, ttl: Optional[float] = None, key: str = PLAYLIST_CACHE_KEY) -> None:
		self._entries[key] = CacheEntry(
			data=data,
			timestamp=self._clock(),
			ttl=ttl if ttl is not None else self.default_ttl,
		)
		self._last_good[key] = data

	def invalidate(self, key: str = PLAYLIST_CACHE_KEY) -> None:
		self._entries.pop(key, None)

	def clear(self) -> None:
		self._entries.clear()
		self._last_good.clear()

	def cleanup(self) -> int:
		now = self._clock()
		expired = [k for k, e in self._entries.items() if now - e.timestamp >= e.ttl]
		for key in expired:
			del self._entries[key]
		return len(expired)

	def stats(self) -> dict:
		now = self._clock()
		return {
			"size": len(self._entries),
			"keys": list(self._entries),
			"entries": [
				{
					"key": key,
					"age": now - entry.timestamp,
					"ttl": entry.ttl,
					"expired": now - entry.timestamp >= entry.ttl,
				}
				for key, entry in self._entries.items()
			],
			"has_stale": bool(self._last_good),
		}
