"""문서 데이터 모델 - 코퍼스 문서, 메타데이터, 임베딩 벡터."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

# Markdown 문서의 **Published:** 값으로 흔히 쓰이는 형식들
DATE_FORMATS: list[str] = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%B %Y",
]


def parse_date(value: str | None) -> datetime | None:
    """문자열 날짜를 UTC datetime 으로 변환한다. 해석할 수 없으면 None."""
    if not value:
        return None

    text = value.strip()
    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class DocumentMetadata:
    category: str | None = None
    difficulty: str | None = None
    published: str | None = None
    source: str | None = None
    title: str | None = None
    author: str | None = None
    topic: str | None = None
    chunk_index: int | None = None
    total_chunks: int | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> "DocumentMetadata":
        """알려진 키만 골라 메타데이터를 만든다. 모르는 키는 무시한다."""
        data = data or {}
        known = {k: data[k] for k in cls.__dataclass_fields__ if data.get(k) is not None}
        return cls(**known)

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @property
    def published_at(self) -> datetime | None:
        return parse_date(self.published)


@dataclass(frozen=True)
class Document:
    id: str
    text: str
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)


@dataclass(frozen=True)
class DocumentVector:
    id: str
    text: str
    embedding: list[float]
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)

    @classmethod
    def from_document(cls, doc: Document, embedding: list[float]) -> "DocumentVector":
        return cls(id=doc.id, text=doc.text, embedding=embedding, metadata=doc.metadata)
