"""프롬프트 템플릿 관리 - 메모리, 검색 문서, 플러그인 결과를 시스템 프롬프트로 조립."""

from rag_agent.plugins import PluginResult
from rag_agent.ranking import ScoredCandidate

NO_DOCUMENTS = "No relevant documents found."
NO_PLUGINS = "No plugins were triggered."
PLUGINS_FAILED = "Plugins were triggered but encountered errors."

SYSTEM_PROMPT_TEMPLATE = """\
You are an intelligent AI assistant with access to conversation memory, \
a knowledge base of documents, and specialized plugins (weather, math).

## Current Context

### Conversation Memory
{memory_summary}

### Knowledge Base Documents
{documents}

### Plugin Execution Results
{plugin_outputs}

## Response Guidelines
- Use the conversation memory to keep the dialogue coherent.
- When knowledge base documents are provided, treat them as your primary source \
and cite them by name (e.g. "According to the Daext guide...").
- Combine complementary information from multiple documents.
- Reference plugin results explicitly when they answer the user's request.
- If no relevant documents are found, say so and answer from general knowledge.
- Be accurate and concise.
"""


def format_documents(docs: list[ScoredCandidate]) -> str:
    """검색된 문서를 프롬프트용 텍스트로 포맷팅한다."""
    if not docs:
        return NO_DOCUMENTS

    parts = []
    for i, doc in enumerate(docs, 1):
        source = doc.metadata.source or doc.metadata.title or doc.id
        category = doc.metadata.category or "general"
        parts.append(
            f"[Document {i} - {source} ({category})] {doc.text} "
            f"(Relevance: {doc.relevance_score * 100:.1f}%)"
        )
    return "\n\n".join(parts)


def format_plugin_outputs(results: list[PluginResult]) -> str:
    if not results:
        return NO_PLUGINS

    successful = [r for r in results if r.success]
    if not successful:
        return PLUGINS_FAILED

    lines = []
    for r in successful:
        confidence = f" (confidence: {r.confidence * 100:.0f}%)" if r.confidence else ""
        lines.append(f"[{r.name}{confidence}] {r.result}")
    return "\n".join(lines)


def build_system_prompt(
    memory_summary: str,
    docs: list[ScoredCandidate],
    plugin_results: list[PluginResult],
) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(
        memory_summary=memory_summary,
        documents=format_documents(docs),
        plugin_outputs=format_plugin_outputs(plugin_results),
    )
