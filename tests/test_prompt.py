"""프롬프트 조립 테스트 - 메모리 + 검색 문서 + 플러그인 결과가 올바르게 조합되는지 검증."""

from rag_agent.documents import DocumentMetadata
from rag_agent.plugins import PluginResult
from rag_agent.prompt import (
    NO_DOCUMENTS,
    NO_PLUGINS,
    PLUGINS_FAILED,
    build_system_prompt,
    format_documents,
    format_plugin_outputs,
)
from rag_agent.ranking import ScoredCandidate


def _doc(doc_id: str = "daext.md-chunk-0", relevance: float = 0.92, **meta) -> ScoredCandidate:
    return ScoredCandidate(
        id=doc_id,
        text="Markdown keeps blog posts portable.",
        metadata=DocumentMetadata(**meta),
        embedding=[1.0, 0.0],
        relevance_score=relevance,
        diversity_score=1.0,
        freshness_score=0.5,
        context_score=0.0,
        context_type="exact-match",
        final_score=0.71,
    )


class TestFormatDocuments:
    def test_empty(self):
        assert format_documents([]) == NO_DOCUMENTS

    def test_includes_source_category_and_relevance(self):
        text = format_documents([_doc(source="daext.md", category="markdown-guide")])

        assert text.startswith("[Document 1 - daext.md (markdown-guide)]")
        assert "Markdown keeps blog posts portable." in text
        assert "(Relevance: 92.0%)" in text

    def test_missing_metadata_uses_id_and_general(self):
        text = format_documents([_doc(doc_id="doc-7")])
        assert text.startswith("[Document 1 - doc-7 (general)]")

    def test_numbers_documents(self):
        text = format_documents([_doc("a"), _doc("b")])
        assert "[Document 1 - a" in text
        assert "[Document 2 - b" in text


class TestFormatPluginOutputs:
    def test_no_plugins(self):
        assert format_plugin_outputs([]) == NO_PLUGINS

    def test_all_failed(self):
        failed = PluginResult(name="weather", result="error", success=False)
        assert format_plugin_outputs([failed]) == PLUGINS_FAILED

    def test_successful_only(self):
        ok = PluginResult(name="math", result="The result of 2 + 2 is 4", success=True, confidence=0.9)
        failed = PluginResult(name="weather", result="error", success=False)

        text = format_plugin_outputs([ok, failed])

        assert text == "[math (confidence: 90%)] The result of 2 + 2 is 4"


class TestBuildSystemPrompt:
    def test_combines_sections(self):
        prompt = build_system_prompt(
            "Recent conversation history:\nuser: hi",
            [_doc(source="daext.md", category="markdown-guide")],
            [PluginResult(name="math", result="The result of 1 + 1 is 2", success=True)],
        )

        assert "user: hi" in prompt
        assert "[Document 1 - daext.md (markdown-guide)]" in prompt
        assert "[math] The result of 1 + 1 is 2" in prompt

    def test_empty_sections(self):
        prompt = build_system_prompt("No previous conversation history.", [], [])

        assert NO_DOCUMENTS in prompt
        assert NO_PLUGINS in prompt
