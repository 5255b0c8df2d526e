"""키워드 추출 - 인덱싱과 키워드 검색이 같은 규칙을 공유한다."""

import re
from collections import Counter

STOP_WORDS: frozenset[str] = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "is", "are", "was", "were", "be", "been", "being",
    "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "can", "this", "that", "these", "those",
})

MIN_KEYWORD_LENGTH = 4
MAX_KEYWORDS = 10

_NON_WORD = re.compile(r"[^\w\s]")


def tokenize(text: str) -> list[str]:
    """소문자화 → 구두점 제거 → 공백 분할 → 짧은 토큰/불용어 제거."""
    words = _NON_WORD.sub(" ", text.lower()).split()
    return [w for w in words if len(w) >= MIN_KEYWORD_LENGTH and w not in STOP_WORDS]


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """빈도 상위 키워드를 반환한다.

    빈도가 같으면 먼저 등장한 단어가 앞선다 (Counter.most_common 은 안정 정렬).
    """
    return [word for word, _ in Counter(tokenize(text)).most_common(limit)]
