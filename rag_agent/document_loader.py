"""코퍼스 로딩 - Markdown 파싱 → 메타데이터 추출 → 문장 단위 청킹."""

import logging
import re
from pathlib import Path

from rag_agent.config import settings
from rag_agent.documents import Document, DocumentMetadata

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1000

# (파일명 키워드, 본문 키워드) → 카테고리. 위에서부터 먼저 일치한 것을 사용한다.
CATEGORY_RULES: list[tuple[str, str, str]] = [
    ("wikipedia", "lightweight markup", "markdown-basics"),
    ("webex", "llm-friendly", "ai-content-optimization"),
    ("nextjs", "react-markdown", "technical-implementation"),
    ("john-apostol", "custom-built", "blog-development"),
    ("daext", "blogging with markdown", "markdown-guide"),
]
DEFAULT_CATEGORY = "general"

_AUTHOR_RE = re.compile(r"\*\*Author:\*\*\s*(.+)")
_PUBLISHED_RE = re.compile(r"\*\*Published:\*\*\s*(.+)")
_FRONTMATTER_RE = re.compile(r"^---[\s\S]*?---\s*", re.MULTILINE)
_HEADER_MARK_RE = re.compile(r"^#{1,6}\s+", re.MULTILINE)
_BLANK_LINES_RE = re.compile(r"\n\s*\n\s*\n")
_SENTENCE_END_RE = re.compile(r"(?<=[.!?])\s+")


def detect_category(filename: str, content: str) -> str:
    """파일명과 본문 내용으로 카테고리를 추론한다."""
    lower_name = filename.lower()
    lower_content = content.lower()
    for name_kw, content_kw, category in CATEGORY_RULES:
        if name_kw in lower_name or content_kw in lower_content:
            return category
    return DEFAULT_CATEGORY


def parse_metadata(content: str, filename: str) -> DocumentMetadata:
    title = ""
    for line in content.split("\n"):
        if line.startswith("# "):
            title = line[2:].strip()
            break

    author = _AUTHOR_RE.search(content)
    published = _PUBLISHED_RE.search(content)

    return DocumentMetadata(
        title=title or filename.removesuffix(".md"),
        author=author.group(1).strip() if author else None,
        published=published.group(1).strip() if published else None,
        category=detect_category(filename, content),
        source=filename,
    )


def clean_content(content: str) -> str:
    """frontmatter 와 헤더 기호를 제거하고 연속 빈 줄을 줄인다."""
    cleaned = _FRONTMATTER_RE.sub("", content, count=1)
    cleaned = _HEADER_MARK_RE.sub("", cleaned)
    cleaned = _BLANK_LINES_RE.sub("\n\n", cleaned)
    return cleaned.strip()


def split_sentences(text: str) -> list[str]:
    return [s for s in _SENTENCE_END_RE.split(text) if s.strip()]


def chunk_document(content: str, filename: str, chunk_size: int = CHUNK_SIZE) -> list[Document]:
    """문서를 문장 경계에서 chunk_size 이하 청크로 나눈다.

    전략:
    - 문장을 이어 붙이다가 chunk_size 를 넘기면 새 청크를 시작
    - 한 문장이 chunk_size 보다 길면 그 문장만으로 청크를 만든다
    - 모든 청크는 문서 메타데이터를 공유하고 chunk_index/total_chunks 를 갖는다
    """
    base = parse_metadata(content, filename)
    texts: list[str] = []
    current = ""

    for sentence in split_sentences(clean_content(content)):
        if current and len(current) + len(sentence) > chunk_size:
            texts.append(current.strip())
            current = sentence
        else:
            current = f"{current} {sentence}" if current else sentence

    if current.strip():
        texts.append(current.strip())

    total = len(texts)
    return [
        Document(
            id=f"{filename}-chunk-{i}",
            text=text,
            metadata=DocumentMetadata.from_dict({
                **base.to_dict(),
                "chunk_index": i,
                "total_chunks": total,
            }),
        )
        for i, text in enumerate(texts)
    ]


def load_directory(docs_path: str | Path) -> list[Document]:
    """디렉토리의 *.md 파일을 모두 청킹한다. 읽지 못한 파일은 건너뛴다."""
    path = Path(docs_path)
    if not path.is_dir():
        logger.error("문서 디렉토리를 찾을 수 없음: %s", path)
        return []

    documents: list[Document] = []
    for md_file in sorted(path.glob("*.md")):
        try:
            content = md_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.exception("문서 로드 실패: %s", md_file.name)
            continue
        chunks = chunk_document(content, md_file.name)
        documents.extend(chunks)
        logger.info("문서 로드: %s (%d chunks)", md_file.name, len(chunks))

    logger.info("총 %d개 청크 로드", len(documents))
    return documents


def load_documents(docs_path: str | Path | None = None) -> list[Document]:
    """코퍼스를 로드한다. 디렉토리에서 아무것도 못 읽으면 내장 문서를 사용한다."""
    documents = load_directory(docs_path or settings.docs_path)
    if not documents:
        logger.warning("로드된 문서가 없어 내장 fallback 문서를 사용")
        return fallback_documents()
    return documents


def fallback_documents() -> list[Document]:
    def doc(n: int, topic: str, title: str, text: str) -> Document:
        return Document(
            id=f"markdown-basics-{n}",
            text=text,
            metadata=DocumentMetadata(
                category="markdown-basics",
                topic=topic,
                difficulty="beginner",
                source="fallback",
                title=title,
            ),
        )

    return [
        doc(1, "introduction", "Markdown Basics",
            "Markdown is a lightweight markup language designed to be easy to read and write. "
            "It uses simple syntax to format text, making it popular for documentation, "
            "README files, and content creation."),
        doc(2, "headers", "Markdown Headers",
            "Headers in Markdown are created using the # symbol. One # creates an H1 header, "
            "## creates an H2 header, and so on. This provides a clear hierarchy for document structure."),
        doc(3, "lists", "Markdown Lists",
            "Lists in Markdown can be ordered (using numbers) or unordered (using asterisks, "
            "plus signs, or hyphens). Nested lists are created by indenting items with spaces or tabs."),
        doc(4, "links-images", "Markdown Links and Images",
            "Links in Markdown are created using square brackets for the text and parentheses "
            "for the URL. Images use the same syntax but with an exclamation mark at the beginning."),
        doc(5, "code", "Markdown Code Blocks",
            "Code blocks in Markdown can be inline (using backticks) or block-level (using triple "
            "backticks). Block-level code can specify the language for syntax highlighting."),
    ]
