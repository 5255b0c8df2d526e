"""에이전트 테스트 - 검색 → 플러그인 → LLM → 메모리 파이프라인 검증."""

import json
import logging
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from rag_agent.agent import FALLBACK_REPLY, Agent
from rag_agent.cache import EmbeddingCache
from rag_agent.config import settings
from rag_agent.documents import Document, DocumentMetadata
from rag_agent.errors import LLMError, RetrieverNotReadyError
from rag_agent.logging_config import SessionContextFilter
from rag_agent.math_plugin import MathPlugin
from rag_agent.metrics import PerformanceMonitor
from rag_agent.plugins import PluginManager
from rag_agent.retriever import HybridRetriever

DOCS = [
    Document(
        id="guide.md-chunk-0",
        text="Markdown headers organize long documents into sections.",
        metadata=DocumentMetadata(category="markdown-guide", source="guide.md"),
    ),
]


class FakeEmbedder:
    async def embed(self, text):
        return [1.0, 0.0, 0.0]


class FakeOllama:
    """/api/chat, /api/tags 를 흉내내는 MockTransport 핸들러."""

    def __init__(self, reply: str = "Hello!", status: int = 200):
        self.reply = reply
        self.status = status
        self.chat_requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(self.status, json={"models": []})

        self.chat_requests.append(json.loads(request.content))
        if self.status != 200:
            return httpx.Response(self.status, json={"error": "model unavailable"})
        return httpx.Response(200, json={"message": {"role": "assistant", "content": self.reply}})


async def _agent(ollama: FakeOllama, ready: bool = True) -> Agent:
    retriever = HybridRetriever(FakeEmbedder(), EmbeddingCache(default_ttl=300), embed_dim=3)
    if ready:
        await retriever.initialize(DOCS)
    monitor = PerformanceMonitor()
    return Agent(
        retriever=retriever,
        plugins=PluginManager([MathPlugin()], monitor=monitor),
        monitor=monitor,
        client=httpx.AsyncClient(transport=httpx.MockTransport(ollama)),
    )


class TestHandleMessage:
    @pytest.mark.asyncio
    async def test_returns_reply_and_stores_memory(self):
        agent = await _agent(FakeOllama(reply="Headers use #."))

        result = await agent.handle_message("How do headers work?", "s1")

        assert result.reply == "Headers use #."
        assert result.session_id == "s1"
        assert agent.memory.get_messages("s1") == [
            {"role": "user", "content": "How do headers work?"},
            {"role": "assistant", "content": "Headers use #."},
        ]

    @pytest.mark.asyncio
    async def test_logs_carry_session_id(self, caplog):
        caplog.set_level(logging.INFO, logger="rag_agent")
        caplog.handler.addFilter(SessionContextFilter())
        agent = await _agent(FakeOllama())

        await agent.handle_message("hi", "s-42")

        done = [r for r in caplog.records if r.getMessage().startswith("메시지 처리 완료")]
        assert done
        assert done[0].session_id == "s-42"

    @pytest.mark.asyncio
    async def test_system_prompt_includes_documents(self):
        ollama = FakeOllama()
        agent = await _agent(ollama)

        await agent.handle_message("How do headers work?", "s1")

        messages = ollama.chat_requests[0]["messages"]
        assert messages[0]["role"] == "system"
        assert "[Document 1 - guide.md (markdown-guide)]" in messages[0]["content"]
        assert messages[-1] == {"role": "user", "content": "How do headers work?"}

    @pytest.mark.asyncio
    async def test_system_prompt_includes_plugin_result(self):
        ollama = FakeOllama()
        agent = await _agent(ollama)

        await agent.handle_message("What is 2 + 2?", "s1")

        assert "The result of 2 + 2 is 4" in ollama.chat_requests[0]["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_history_sent_to_llm(self):
        ollama = FakeOllama(reply="ok")
        agent = await _agent(ollama)

        await agent.handle_message("first question", "s1")
        await agent.handle_message("second question", "s1")

        roles = [m["role"] for m in ollama.chat_requests[1]["messages"]]
        assert roles == ["system", "user", "assistant", "user"]

    @pytest.mark.asyncio
    async def test_llm_options(self):
        ollama = FakeOllama()
        agent = await _agent(ollama)

        await agent.handle_message("hi", "s1")

        body = ollama.chat_requests[0]
        assert body["stream"] is False
        assert set(body["options"]) == {"temperature", "num_predict"}

    @pytest.mark.asyncio
    async def test_empty_reply_uses_fallback(self):
        agent = await _agent(FakeOllama(reply="   "))

        result = await agent.handle_message("hi", "s1")

        assert result.reply == FALLBACK_REPLY

    @pytest.mark.asyncio
    async def test_llm_failure(self):
        agent = await _agent(FakeOllama(status=500))

        with pytest.raises(LLMError):
            await agent.handle_message("hi", "s1")

        assert agent.memory.get_messages("s1") == []
        assert agent.monitor.report()["error_count"] == 1

    @pytest.mark.asyncio
    async def test_retriever_not_ready(self):
        agent = await _agent(FakeOllama(), ready=False)

        with pytest.raises(RetrieverNotReadyError):
            await agent.handle_message("hi", "s1")

    @pytest.mark.asyncio
    async def test_records_metrics(self):
        agent = await _agent(FakeOllama())

        await agent.handle_message("hi", "s1")

        report = agent.monitor.report()
        assert report["request_count"] == 1
        assert report["error_count"] == 0
        assert "math" in report["plugin_average_times"]

    @pytest.mark.asyncio
    async def test_uses_configured_result_count(self):
        agent = await _agent(FakeOllama())

        with patch.object(agent.retriever, "query", AsyncMock(return_value=[])) as mock_query, \
             patch.object(settings, "rag_max_results", 7):
            await agent.handle_message("hi", "s1")

        request = mock_query.call_args.args[0]
        assert request.query == "hi"
        assert request.max_results == 7


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_healthy(self):
        agent = await _agent(FakeOllama())

        result = await agent.health_check()

        assert result["status"] == "healthy"
        assert result["services"] == {"llm": True, "memory": True, "rag": True, "plugins": True}

    @pytest.mark.asyncio
    async def test_llm_down(self):
        agent = await _agent(FakeOllama(status=503))

        result = await agent.health_check()

        assert result["status"] == "unhealthy"
        assert result["services"]["llm"] is False

    @pytest.mark.asyncio
    async def test_rag_not_ready(self):
        agent = await _agent(FakeOllama(), ready=False)

        result = await agent.health_check()

        assert result["services"]["rag"] is False
