"""대화 에이전트 - 메모리 조회 → 문서 검색 → 플러그인 실행 → LLM 호출 → 메모리 저장."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx

from rag_agent.config import settings
from rag_agent.errors import LLMError
from rag_agent.logging_config import bind_session
from rag_agent.memory import MemoryStore
from rag_agent.metrics import PerformanceMonitor
from rag_agent.plugins import PluginContext, PluginManager
from rag_agent.prompt import build_system_prompt
from rag_agent.retriever import HybridRetriever, RetrievalQuery

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "I apologize, but I was unable to generate a response."


@dataclass
class AgentReply:
    reply: str
    session_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Agent:
    def __init__(
        self,
        retriever: HybridRetriever,
        memory: MemoryStore | None = None,
        plugins: PluginManager | None = None,
        monitor: PerformanceMonitor | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.retriever = retriever
        self.memory = memory or MemoryStore()
        self.monitor = monitor or PerformanceMonitor()
        self.plugins = plugins or PluginManager(monitor=self.monitor)
        self._client = client or httpx.AsyncClient(timeout=300.0)

    async def handle_message(self, message: str, session_id: str) -> AgentReply:
        """사용자 메시지에 대한 응답을 생성하고 대화 메모리에 저장한다."""
        with bind_session(session_id):
            started = time.perf_counter()
            try:
                reply = await self._respond(message, session_id)
            except Exception:
                elapsed = (time.perf_counter() - started) * 1000
                self.monitor.record_request(elapsed, error=True)
                logger.exception("메시지 처리 실패 (%.0fms)", elapsed)
                raise

            elapsed = (time.perf_counter() - started) * 1000
            self.monitor.record_request(elapsed)
            logger.info("메시지 처리 완료 (%.0fms)", elapsed)
            return reply

    async def _respond(self, message: str, session_id: str) -> AgentReply:
        history = self.memory.get_messages(session_id)
        memory_summary = self.memory.get_memory_summary(session_id)

        # 1. 관련 문서 검색
        rag_started = time.perf_counter()
        docs = await self.retriever.query(
            RetrievalQuery(query=message, max_results=settings.rag_max_results)
        )
        rag_elapsed = (time.perf_counter() - rag_started) * 1000
        self.monitor.record_rag_query(rag_elapsed, len(docs))
        logger.info(
            "문서 검색 완료: results=%d, ids=%s (%.0fms)",
            len(docs), [d.id for d in docs], rag_elapsed,
        )

        # 2. 플러그인 실행
        plugin_results = await self.plugins.run(
            message,
            PluginContext(session_id=session_id, user_input=message, conversation_history=history),
        )

        # 3. 프롬프트 조립 및 LLM 호출
        system_prompt = build_system_prompt(memory_summary, docs, plugin_results)
        messages = [
            {"role": "system", "content": system_prompt},
            *history,
            {"role": "user", "content": message},
        ]
        reply = await self._call_llm(messages) or FALLBACK_REPLY

        # 4. 메모리 저장
        self.memory.add_message(session_id, "user", message)
        self.memory.add_message(session_id, "assistant", reply)

        return AgentReply(reply=reply, session_id=session_id)

    async def _call_llm(self, messages: list[dict]) -> str:
        """Ollama /api/chat 을 호출하여 응답 텍스트를 반환한다."""
        try:
            resp = await self._client.post(
                f"{settings.ollama_base_url}/api/chat",
                json={
                    "model": settings.llm_model,
                    "messages": messages,
                    "stream": False,
                    "options": {
                        "temperature": settings.llm_temperature,
                        "num_predict": settings.llm_max_tokens,
                    },
                },
            )
            resp.raise_for_status()
            return resp.json().get("message", {}).get("content", "").strip()
        except (httpx.HTTPError, ValueError) as e:
            raise LLMError(f"LLM request failed: {e}") from e

    async def health_check(self) -> dict:
        services = {
            "llm": await self._check_llm(),
            "memory": "session_count" in self.memory.get_stats(),
            "rag": self.retriever.is_ready,
            "plugins": len(self.plugins) > 0,
        }
        status = "healthy" if all(services.values()) else "unhealthy"
        return {"status": status, "services": services}

    async def _check_llm(self) -> bool:
        try:
            resp = await self._client.get(f"{settings.ollama_base_url}/api/tags", timeout=5.0)
            resp.raise_for_status()
        except httpx.HTTPError:
            logger.warning("LLM 헬스체크 실패", exc_info=True)
            return False
        return True

    async def aclose(self):
        await self._client.aclose()
