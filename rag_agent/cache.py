"""TTL 기반 인메모리 임베딩 캐시."""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from rag_agent.config import settings

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    data: list[float]
    timestamp: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


class EmbeddingCache:
    """텍스트 fingerprint → 임베딩 벡터 캐시.

    전역 싱글톤이 아니라 조립하는 쪽(서버 lifespan, 테스트)이 생성해서
    HybridRetriever 에 주입한다.
    """

    def __init__(
        self,
        default_ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl or settings.cache_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> list[float] | None:
        """만료되지 않은 벡터를 반환한다. 없거나 만료되었으면 None."""
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self.misses += 1
            logger.debug("캐시 만료: %s", key)
            return None

        self.hits += 1
        return entry.data

    def set(self, key: str, vector: list[float], ttl: float | None = None):
        """벡터를 저장한다. 같은 키는 마지막 쓰기가 이긴다."""
        final_ttl = ttl or self.default_ttl
        self._entries[key] = CacheEntry(data=vector, timestamp=self._clock(), ttl=final_ttl)
        logger.debug("임베딩 캐시 저장: %s (ttl=%ss)", key, final_ttl)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def purge_expired(self) -> int:
        """만료된 항목을 모두 제거하고 제거된 개수를 반환한다."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def flush(self):
        self._entries.clear()
        logger.info("임베딩 캐시 초기화")

    def stats(self) -> dict:
        return {
            "keys": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
        }
