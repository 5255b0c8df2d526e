"""하이브리드 검색 엔진 - 시맨틱 + 키워드 검색, 필터링, 재랭킹, 다양성 선택."""

import asyncio
import base64
import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal, Protocol, Sequence

import numpy as np

from rag_agent.cache import EmbeddingCache
from rag_agent.config import settings
from rag_agent.documents import Document, DocumentVector
from rag_agent.errors import RetrieverNotReadyError
from rag_agent.keywords import extract_keywords
from rag_agent.ranking import (
    FilterSpec,
    ScoredCandidate,
    apply_filters,
    remove_duplicates,
    rerank,
    select_diverse,
)
from rag_agent.similarity import random_vector
from rag_agent.vectorstore import StoreStats, VectorStore

logger = logging.getLogger(__name__)

SEMANTIC_TOP_K = 10
CACHE_KEY_LENGTH = 50

SearchType = Literal["hybrid", "semantic", "keyword"]
DocumentLoader = Callable[[], Sequence[Document] | Awaitable[Sequence[Document]]]


class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> list[float]: ...


class ReadinessState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


@dataclass
class RetrievalQuery:
    query: str
    context: str | None = None
    filters: FilterSpec | None = None
    search_type: SearchType = "hybrid"
    max_results: int = 5


def embedding_cache_key(text: str) -> str:
    """텍스트 fingerprint. base64 인코딩의 앞 50자만 사용한다.

    앞부분이 같은 긴 텍스트끼리는 키가 충돌할 수 있다 (알려진 제약).
    """
    encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
    return f"embedding:{encoded[:CACHE_KEY_LENGTH]}"


class HybridRetriever:
    """문서 코퍼스에 대한 하이브리드 검색 엔진.

    상태 전이: UNINITIALIZED → INITIALIZING → READY | FAILED.
    초기화는 한 번만 수행하며 실패해도 자동 재시도하지 않는다.
    질의는 초기화가 끝날 때까지 기다린 뒤, 실패했다면 RetrieverNotReadyError 를 던진다.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        cache: EmbeddingCache,
        embed_dim: int | None = None,
        rng: np.random.Generator | None = None,
    ):
        self._embedder = embedder
        self._cache = cache
        self._embed_dim = embed_dim or settings.embed_dim
        self._rng = rng or np.random.default_rng()

        self._store = VectorStore(self._embed_dim)
        self._state = ReadinessState.UNINITIALIZED
        self._ready = asyncio.Event()
        self._init_error: BaseException | None = None
        self._write_lock = asyncio.Lock()

    @property
    def state(self) -> ReadinessState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ReadinessState.READY

    # ── 초기화 ─────────────────────────────────────────────────

    def start(self, loader: DocumentLoader) -> asyncio.Task:
        """초기화를 백그라운드 태스크로 시작한다.

        태스크가 실행되기 전에 도착한 질의도 기다리도록 상태를 즉시 INITIALIZING 으로 바꾼다.
        """
        self._begin_initialization()
        # 실패는 로그와 FAILED 상태로 모든 질의에 전달되므로 태스크 예외는 다시 던지지 않는다
        return asyncio.create_task(self._initialize(loader, reraise=False))

    async def initialize(self, documents: Sequence[Document] | DocumentLoader):
        """문서를 임베딩하고 벡터 저장소와 역색인을 구축한다.

        Args:
            documents: 문서 시퀀스 또는 문서를 반환하는 로더 (동기/비동기).

        Raises:
            Exception: 코퍼스 로딩이나 색인 구축이 실패한 경우. 상태는 FAILED 가 된다.
        """
        self._begin_initialization()
        await self._initialize(documents)

    def _begin_initialization(self):
        if self._state is not ReadinessState.UNINITIALIZED:
            raise RuntimeError(f"retriever already {self._state.value}")
        self._state = ReadinessState.INITIALIZING

    async def _initialize(self, source: Sequence[Document] | DocumentLoader, reraise: bool = True):
        logger.info("하이브리드 검색 엔진 초기화 시작")
        try:
            documents = await self._load(source)
            logger.info("문서 %d건 로드, 임베딩 생성 중", len(documents))

            store = VectorStore(self._embed_dim)
            for doc in documents:
                try:
                    embedding = await self._embed_strict(doc.text)
                    store.add(DocumentVector.from_document(doc, embedding))
                except Exception:
                    logger.exception("문서 처리 실패, 건너뜀: %s", doc.id)
                    continue
                logger.debug("문서 처리 완료: %s (len=%d)", doc.id, len(doc.text))
        except Exception as e:
            self._init_error = e
            self._state = ReadinessState.FAILED
            self._ready.set()
            logger.exception("하이브리드 검색 엔진 초기화 실패")
            if reraise:
                raise
            return

        self._store = store
        self._state = ReadinessState.READY
        self._ready.set()
        stats = store.stats()
        logger.info(
            "하이브리드 검색 엔진 초기화 완료 (documents=%d, keywords=%d, categories=%d)",
            stats.document_count, stats.keyword_count, stats.category_count,
        )

    @staticmethod
    async def _load(source: Sequence[Document] | DocumentLoader) -> list[Document]:
        if callable(source):
            loaded = source()
            if inspect.isawaitable(loaded):
                loaded = await loaded
            return list(loaded)
        return list(source)

    async def wait_until_ready(self):
        """초기화 완료를 기다린다.

        Raises:
            RetrieverNotReadyError: 초기화를 시작하지 않았거나 실패한 경우.
        """
        if self._state is ReadinessState.UNINITIALIZED:
            raise RetrieverNotReadyError("Hybrid retriever not initialized")
        await self._ready.wait()
        if self._state is not ReadinessState.READY:
            raise RetrieverNotReadyError("Hybrid retriever not initialized") from self._init_error

    # ── 임베딩 ─────────────────────────────────────────────────

    async def get_embedding(self, text: str) -> list[float]:
        """캐시 → 임베딩 제공자 순으로 벡터를 얻는다.

        제공자가 실패하면 질의 전체를 실패시키는 대신 같은 차원의 난수 벡터를 반환한다.
        이 대체 벡터는 캐시하지 않는다.
        """
        try:
            return await self._embed_strict(text)
        except Exception:
            logger.exception("임베딩 생성 실패: %s", text[:100])
            logger.warning("대체 난수 임베딩 사용 (dim=%d)", self._embed_dim)
            return random_vector(self._embed_dim, self._rng)

    async def _embed_strict(self, text: str) -> list[float]:
        """캐시 → 제공자. 제공자 예외를 그대로 전파한다."""
        key = embedding_cache_key(text)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("캐시된 임베딩 사용: %s", key)
            return cached

        embedding = await self._embedder.embed(text)
        self._cache.set(key, embedding)
        return embedding

    # ── 검색 ───────────────────────────────────────────────────

    async def semantic_search(
        self,
        query: str,
        store: VectorStore | None = None,
        query_embedding: list[float] | None = None,
    ) -> list[DocumentVector]:
        """쿼리 임베딩과 코사인 유사도가 높은 상위 10개 문서."""
        store = store or self._store
        if query_embedding is None:
            query_embedding = await self.get_embedding(query)
        return store.search(query_embedding, top_k=SEMANTIC_TOP_K)

    async def keyword_search(self, query: str, store: VectorStore | None = None) -> list[DocumentVector]:
        """쿼리 키워드가 하나라도 색인된 문서를 저장 순서대로 반환한다."""
        store = store or self._store
        return store.keyword_search(extract_keywords(query))

    async def query(self, request: RetrievalQuery) -> list[ScoredCandidate]:
        """하이브리드 검색 → 필터 → 중복 제거 → 재랭킹 → 다양성 선택."""
        await self.wait_until_ready()

        # 질의 도중 문서가 추가/삭제되어도 시작 시점의 스냅샷만 본다
        store = self._store

        # 검색과 재랭킹이 같은 쿼리 벡터를 쓴다 (대체 난수 벡터도 한 번만 생성)
        query_embedding = await self.get_embedding(request.query)

        candidates: list[DocumentVector] = []
        if request.search_type in ("hybrid", "semantic"):
            candidates.extend(await self.semantic_search(request.query, store, query_embedding))
        if request.search_type in ("hybrid", "keyword"):
            candidates.extend(await self.keyword_search(request.query, store))

        candidates = apply_filters(candidates, request.filters)
        unique = remove_duplicates(candidates)

        context_embedding = await self.get_embedding(request.context) if request.context else None
        ranked = rerank(unique, query_embedding, context_embedding)

        results = select_diverse(ranked, request.max_results)
        logger.debug(
            "검색 완료: query=%r, type=%s, results=%d, top=%s",
            request.query[:100], request.search_type, len(results),
            f"{results[0].final_score:.3f}" if results else None,
        )
        return results

    # ── 문서 변경 ───────────────────────────────────────────────

    async def add_document(self, doc: Document) -> bool:
        """문서를 추가한다. 임베딩에 실패하면 추가하지 않고 False."""
        await self.wait_until_ready()
        try:
            embedding = await self._embed_strict(doc.text)
        except Exception:
            logger.exception("문서 임베딩 실패, 추가하지 않음: %s", doc.id)
            return False

        async with self._write_lock:
            updated = self._store.copy()
            updated.add(DocumentVector.from_document(doc, embedding))
            self._store = updated
        logger.info("문서 추가: %s", doc.id)
        return True

    async def remove_document(self, doc_id: str) -> bool:
        await self.wait_until_ready()
        async with self._write_lock:
            if not self._store.contains(doc_id):
                return False
            updated = self._store.copy()
            updated.remove(doc_id)
            self._store = updated
        logger.info("문서 삭제: %s", doc_id)
        return True

    def get_stats(self) -> StoreStats:
        return self._store.stats()
