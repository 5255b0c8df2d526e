"""인메모리 벡터 저장소 - 문서 벡터와 키워드/카테고리 역색인."""

import copy
from dataclasses import dataclass

from rag_agent.documents import DocumentVector
from rag_agent.keywords import extract_keywords
from rag_agent.similarity import cosine_similarity


@dataclass
class StoreStats:
    document_count: int
    keyword_count: int
    category_count: int
    categories: list[str]


class VectorStore:
    """순서가 유지되는 DocumentVector 컬렉션과 두 개의 역색인.

    저장된 벡터는 수정하지 않는다. 추가/삭제만 가능하며, 동시 질의가 있는
    환경에서는 copy() 로 만든 사본을 변경한 뒤 참조를 통째로 교체한다.
    """

    def __init__(self, dim: int | None = None):
        self._dim = dim
        self._vectors: list[DocumentVector] = []
        self._keyword_index: dict[str, set[str]] = {}
        self._category_index: dict[str, set[str]] = {}
        self._doc_keywords: dict[str, list[str]] = {}

    @property
    def dim(self) -> int | None:
        return self._dim

    @property
    def vectors(self) -> list[DocumentVector]:
        return list(self._vectors)

    def copy(self) -> "VectorStore":
        """인덱스까지 독립적인 사본. DocumentVector 자체는 불변이라 공유한다."""
        clone = VectorStore(self._dim)
        clone._vectors = list(self._vectors)
        clone._keyword_index = copy.deepcopy(self._keyword_index)
        clone._category_index = copy.deepcopy(self._category_index)
        clone._doc_keywords = dict(self._doc_keywords)
        return clone

    def add(self, vector: DocumentVector):
        """벡터를 끝에 추가하고 역색인을 갱신한다. 같은 id 는 교체한다.

        Raises:
            ValueError: 기존 벡터와 차원이 다른 경우.
        """
        if self._dim is None:
            self._dim = len(vector.embedding)
        elif len(vector.embedding) != self._dim:
            raise ValueError(
                f"embedding dimension mismatch for {vector.id}: "
                f"expected {self._dim}, got {len(vector.embedding)}"
            )

        if self.contains(vector.id):
            self.remove(vector.id)

        self._vectors.append(vector)

        keywords = extract_keywords(vector.text)
        self._doc_keywords[vector.id] = keywords
        for keyword in keywords:
            self._keyword_index.setdefault(keyword, set()).add(vector.id)

        category = vector.metadata.category
        if category:
            self._category_index.setdefault(category, set()).add(vector.id)

    def remove(self, doc_id: str) -> bool:
        """문서와 역색인 항목을 제거한다. 빈 색인 키는 삭제한다."""
        target = self.get(doc_id)
        if target is None:
            return False

        self._vectors = [v for v in self._vectors if v.id != doc_id]

        for keyword in self._doc_keywords.pop(doc_id, []):
            ids = self._keyword_index.get(keyword)
            if ids is not None:
                ids.discard(doc_id)
                if not ids:
                    del self._keyword_index[keyword]

        category = target.metadata.category
        if category and category in self._category_index:
            self._category_index[category].discard(doc_id)
            if not self._category_index[category]:
                del self._category_index[category]
        return True

    def get(self, doc_id: str) -> DocumentVector | None:
        for vector in self._vectors:
            if vector.id == doc_id:
                return vector
        return None

    def contains(self, doc_id: str) -> bool:
        return doc_id in self._doc_keywords

    def search(self, query_embedding: list[float], top_k: int = 10) -> list[DocumentVector]:
        """코사인 유사도 내림차순 상위 top_k 벡터. 점수는 반환하지 않는다."""
        scored = [(cosine_similarity(query_embedding, v.embedding), v) for v in self._vectors]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [v for _, v in scored[:top_k]]

    def keyword_search(self, keywords: list[str]) -> list[DocumentVector]:
        """키워드 중 하나라도 색인된 문서를 저장 순서대로 반환한다."""
        matching: set[str] = set()
        for keyword in keywords:
            matching |= self._keyword_index.get(keyword, set())
        return [v for v in self._vectors if v.id in matching]

    def ids_in_category(self, category: str) -> set[str]:
        return set(self._category_index.get(category, set()))

    def count(self) -> int:
        return len(self._vectors)

    def stats(self) -> StoreStats:
        return StoreStats(
            document_count=len(self._vectors),
            keyword_count=len(self._keyword_index),
            category_count=len(self._category_index),
            categories=list(self._category_index.keys()),
        )
