"""후보 필터링, 중복 제거, 재랭킹, 다양성 기반 선택."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

from rag_agent.documents import DocumentMetadata, DocumentVector, parse_date
from rag_agent.similarity import cosine_similarity

# final_score 가중치 (합계 1.0)
RELEVANCE_WEIGHT = 0.5
DIVERSITY_WEIGHT = 0.2
FRESHNESS_WEIGHT = 0.1
CONTEXT_WEIGHT = 0.2

NEUTRAL_FRESHNESS = 0.5
FRESHNESS_DECAY_DAYS = 365.0
DIVERSITY_THRESHOLD = 0.8

ContextType = Literal["exact-match", "semantic-similarity", "related", "conceptual"]


@dataclass
class DateRange:
    start: datetime
    end: datetime

    @classmethod
    def from_strings(cls, start: str, end: str) -> "DateRange":
        """문자열 구간을 파싱한다.

        Raises:
            ValueError: 어느 한쪽이라도 날짜로 해석할 수 없는 경우.
        """
        start_at, end_at = parse_date(start), parse_date(end)
        if start_at is None or end_at is None:
            raise ValueError(f"invalid date range: {start!r} ~ {end!r}")
        return cls(start=start_at, end=end_at)

    def contains(self, moment: datetime) -> bool:
        return _as_utc(self.start) <= moment <= _as_utc(self.end)


@dataclass
class FilterSpec:
    categories: list[str] = field(default_factory=list)
    date_range: DateRange | None = None
    difficulty: str | None = None


@dataclass
class ScoredCandidate:
    id: str
    text: str
    metadata: DocumentMetadata
    embedding: list[float]
    relevance_score: float
    diversity_score: float
    freshness_score: float
    context_score: float
    context_type: ContextType
    final_score: float

    def to_dict(self) -> dict:
        """직렬화용 dict. 임베딩은 크기가 커서 제외한다."""
        return {
            "id": self.id,
            "text": self.text,
            "metadata": self.metadata.to_dict(),
            "relevance_score": self.relevance_score,
            "diversity_score": self.diversity_score,
            "freshness_score": self.freshness_score,
            "context_score": self.context_score,
            "context_type": self.context_type,
            "final_score": self.final_score,
        }


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


# ── 필터링 / 중복 제거 ─────────────────────────────────────────


def matches_filters(metadata: DocumentMetadata, filters: FilterSpec) -> bool:
    """세 조건(카테고리, 난이도, 게시일)을 모두 만족하는지 검사한다."""
    if filters.categories and metadata.category not in filters.categories:
        return False

    # 난이도 정보가 없는 문서는 통과
    if filters.difficulty and metadata.difficulty and metadata.difficulty != filters.difficulty:
        return False

    if filters.date_range is not None:
        published = metadata.published_at
        if published is not None and not filters.date_range.contains(published):
            return False

    return True


def apply_filters(candidates: list[DocumentVector], filters: FilterSpec | None) -> list[DocumentVector]:
    if filters is None:
        return list(candidates)
    return [c for c in candidates if matches_filters(c.metadata, filters)]


def remove_duplicates(candidates: list[DocumentVector]) -> list[DocumentVector]:
    """문서 id 기준 첫 등장만 남긴다 (hybrid 모드에서는 시맨틱 결과가 우선)."""
    seen: set[str] = set()
    unique = []
    for candidate in candidates:
        if candidate.id in seen:
            continue
        seen.add(candidate.id)
        unique.append(candidate)
    return unique


# ── 점수 계산 ─────────────────────────────────────────────────


def diversity_score(vector: DocumentVector, candidates: list[DocumentVector]) -> float:
    """1 - (같은 후보 집합 내 다른 후보들과의 평균 유사도)."""
    similarities = [
        cosine_similarity(vector.embedding, other.embedding)
        for other in candidates
        if other.id != vector.id
    ]
    if not similarities:
        return 1.0
    return 1.0 - sum(similarities) / len(similarities)


def freshness_score(metadata: DocumentMetadata, now: datetime | None = None) -> float:
    """게시일 기준 지수 감쇠 점수. 날짜를 알 수 없으면 0.5."""
    published = metadata.published_at
    if published is None:
        return NEUTRAL_FRESHNESS

    now = _as_utc(now or datetime.now(timezone.utc))
    days_since = (now - published).total_seconds() / 86400
    return math.exp(-days_since / FRESHNESS_DECAY_DAYS)


def classify_context(relevance: float, context: float) -> ContextType:
    if relevance > 0.8:
        return "exact-match"
    if relevance > 0.6:
        return "semantic-similarity"
    if context > 0.5:
        return "related"
    return "conceptual"


def final_score(relevance: float, diversity: float, freshness: float, context: float) -> float:
    return (
        relevance * RELEVANCE_WEIGHT
        + diversity * DIVERSITY_WEIGHT
        + freshness * FRESHNESS_WEIGHT
        + context * CONTEXT_WEIGHT
    )


def rerank(
    candidates: list[DocumentVector],
    query_embedding: list[float],
    context_embedding: list[float] | None = None,
    now: datetime | None = None,
) -> list[ScoredCandidate]:
    """후보마다 복합 점수를 계산해 final_score 내림차순으로 정렬한다.

    정렬은 안정 정렬이므로 동점이면 원래 후보 순서를 유지한다.
    """
    scored = []
    for vector in candidates:
        relevance = cosine_similarity(query_embedding, vector.embedding)
        diversity = diversity_score(vector, candidates)
        freshness = freshness_score(vector.metadata, now)
        context = 0.0
        if context_embedding is not None:
            context = cosine_similarity(context_embedding, vector.embedding)

        scored.append(ScoredCandidate(
            id=vector.id,
            text=vector.text,
            metadata=vector.metadata,
            embedding=vector.embedding,
            relevance_score=relevance,
            diversity_score=diversity,
            freshness_score=freshness,
            context_score=context,
            context_type=classify_context(relevance, context),
            final_score=final_score(relevance, diversity, freshness, context),
        ))

    scored.sort(key=lambda c: c.final_score, reverse=True)
    return scored


def select_diverse(
    ranked: list[ScoredCandidate],
    max_results: int,
    threshold: float = DIVERSITY_THRESHOLD,
) -> list[ScoredCandidate]:
    """순위대로 훑으며 이미 뽑힌 결과와 유사도가 threshold 를 넘는 후보는 건너뛴다.

    탐욕적(greedy) 알고리즘이라 전역 최적 부분집합을 보장하지 않는다.
    """
    selected: list[ScoredCandidate] = []
    for candidate in ranked:
        if len(selected) >= max_results:
            break
        too_similar = any(
            cosine_similarity(chosen.embedding, candidate.embedding) > threshold
            for chosen in selected
        )
        if not too_similar:
            selected.append(candidate)
    return selected
