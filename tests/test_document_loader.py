"""코퍼스 로딩 테스트 - 메타데이터 추출, 청킹, 디렉토리 로드 검증."""

import pytest

from rag_agent.document_loader import (
    DEFAULT_CATEGORY,
    chunk_document,
    clean_content,
    detect_category,
    fallback_documents,
    load_directory,
    load_documents,
    parse_metadata,
    split_sentences,
)

SAMPLE_MD = """\
# Blogging with Markdown

**Author:** Jane Doe
**Published:** 2024-03-15

Markdown keeps posts portable. It is easy to write. Most static site generators support it.
"""


class TestDetectCategory:
    def test_by_filename(self):
        assert detect_category("wikipedia-markdown.md", "") == "markdown-basics"

    def test_by_content(self):
        assert detect_category("post.md", "A guide to blogging with Markdown") == "markdown-guide"

    def test_first_rule_wins(self):
        assert detect_category("nextjs-daext.md", "") == "technical-implementation"

    def test_default(self):
        assert detect_category("notes.md", "nothing relevant") == DEFAULT_CATEGORY


class TestParseMetadata:
    def test_extracts_fields(self):
        meta = parse_metadata(SAMPLE_MD, "daext-blogging.md")

        assert meta.title == "Blogging with Markdown"
        assert meta.author == "Jane Doe"
        assert meta.published == "2024-03-15"
        assert meta.category == "markdown-guide"
        assert meta.source == "daext-blogging.md"

    def test_title_falls_back_to_filename(self):
        meta = parse_metadata("no heading here", "plain-notes.md")

        assert meta.title == "plain-notes"
        assert meta.author is None
        assert meta.published is None


class TestCleanContent:
    def test_strips_frontmatter_and_header_marks(self):
        text = "---\ntitle: x\n---\n## Section\n\n\n\nBody text."
        assert clean_content(text) == "Section\n\nBody text."

    def test_split_sentences(self):
        assert split_sentences("One. Two! Three?") == ["One.", "Two!", "Three?"]


class TestChunkDocument:
    def test_single_chunk(self):
        chunks = chunk_document(SAMPLE_MD, "daext-blogging.md")

        assert len(chunks) == 1
        assert chunks[0].id == "daext-blogging.md-chunk-0"
        assert chunks[0].metadata.chunk_index == 0
        assert chunks[0].metadata.total_chunks == 1

    def test_splits_on_sentence_boundaries(self):
        text = "First sentence here. Second sentence here. Third one."
        chunks = chunk_document(text, "notes.md", chunk_size=30)

        assert [c.text for c in chunks] == ["First sentence here.", "Second sentence here.", "Third one."]
        assert [c.metadata.chunk_index for c in chunks] == [0, 1, 2]
        assert all(c.metadata.total_chunks == 3 for c in chunks)

    def test_chunks_share_document_metadata(self):
        chunks = chunk_document(SAMPLE_MD, "daext-blogging.md", chunk_size=60)

        assert len(chunks) > 1
        assert {c.metadata.author for c in chunks} == {"Jane Doe"}
        assert {c.metadata.source for c in chunks} == {"daext-blogging.md"}

    def test_unique_ids(self):
        chunks = chunk_document(SAMPLE_MD, "daext-blogging.md", chunk_size=40)
        ids = [c.id for c in chunks]
        assert len(ids) == len(set(ids))

    def test_empty_content(self):
        assert chunk_document("", "empty.md") == []


class TestLoadDirectory:
    def test_loads_markdown_files(self, tmp_path):
        (tmp_path / "b-guide.md").write_text(SAMPLE_MD, encoding="utf-8")
        (tmp_path / "a-notes.md").write_text("# Notes\n\nShort note.", encoding="utf-8")
        (tmp_path / "ignored.txt").write_text("not markdown", encoding="utf-8")

        docs = load_directory(tmp_path)

        assert [d.metadata.source for d in docs] == ["a-notes.md", "b-guide.md"]

    def test_skips_undecodable_file(self, tmp_path):
        (tmp_path / "bad.md").write_bytes(b"\xff\xfe\x00broken")
        (tmp_path / "good.md").write_text("# Good\n\nFine content.", encoding="utf-8")

        docs = load_directory(tmp_path)

        assert [d.metadata.source for d in docs] == ["good.md"]

    def test_missing_directory(self, tmp_path):
        assert load_directory(tmp_path / "nope") == []


class TestLoadDocuments:
    def test_uses_directory(self, tmp_path):
        (tmp_path / "guide.md").write_text(SAMPLE_MD, encoding="utf-8")
        docs = load_documents(tmp_path)

        assert docs[0].metadata.source == "guide.md"

    def test_falls_back_when_empty(self, tmp_path):
        docs = load_documents(tmp_path)

        assert [d.id for d in docs] == [f"markdown-basics-{i}" for i in range(1, 6)]

    @pytest.mark.parametrize("doc", fallback_documents(), ids=lambda d: d.id)
    def test_fallback_documents_metadata(self, doc):
        assert doc.metadata.category == "markdown-basics"
        assert doc.metadata.difficulty == "beginner"
        assert "markdown" in doc.text.lower()
