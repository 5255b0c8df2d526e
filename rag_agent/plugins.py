"""플러그인 인터페이스와 실행 관리자."""

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from rag_agent.config import settings
from rag_agent.metrics import PerformanceMonitor

logger = logging.getLogger(__name__)


@dataclass
class PluginResult:
    name: str
    result: str
    success: bool
    metadata: dict = field(default_factory=dict)
    execution_time: float = 0.0  # ms
    confidence: float | None = None


@dataclass
class PluginContext:
    session_id: str
    user_input: str
    conversation_history: list[dict] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Plugin(Protocol):
    name: str
    description: str

    async def run(self, text: str) -> PluginResult | None:
        """입력이 이 플러그인 대상이 아니면 None 을 반환한다."""
        ...


# 플러그인별 의도 판별 키워드/패턴 (confidence 계산용)
INTENT_PATTERNS: dict[str, dict] = {
    "weather": {
        "keywords": ["weather", "temperature", "forecast", "climate", "hot", "cold", "sunny", "rainy"],
        "patterns": [
            re.compile(r"weather\s+(?:in|for|at)\s+([a-zA-Z\s,]+)", re.IGNORECASE),
            re.compile(r"(?:what's|what is|how's|how is)\s+(?:the\s+)?weather", re.IGNORECASE),
            re.compile(r"temperature\s+(?:in|for|at)\s+([a-zA-Z\s,]+)", re.IGNORECASE),
        ],
    },
    "math": {
        "keywords": ["calculate", "compute", "solve", "evaluate", "math", "equation"],
        "patterns": [
            re.compile(r"[\d+\-*/()=]"),
            re.compile(r"calculate\s+(.+)", re.IGNORECASE),
            re.compile(r"what\s+(?:is|equals)\s+(.+)", re.IGNORECASE),
            re.compile(r"solve\s+(.+)", re.IGNORECASE),
        ],
    },
}

# 최근 대화에 이 단어들이 나오면 관련성 가산점
RELEVANCE_KEYWORDS: dict[str, list[str]] = {
    "weather": ["weather", "temperature", "forecast", "climate"],
    "math": ["calculate", "compute", "solve", "equation", "number"],
}


def intent_match_score(plugin_name: str, text: str) -> float:
    """키워드 일치 비율 * 0.2 + 패턴 일치 비율 * 0.2. 모르는 플러그인은 0.1."""
    spec = INTENT_PATTERNS.get(plugin_name)
    if spec is None:
        return 0.1

    lowered = text.lower()
    keyword_hits = sum(1 for kw in spec["keywords"] if kw in lowered)
    pattern_hits = sum(1 for p in spec["patterns"] if p.search(lowered))
    return (
        keyword_hits / len(spec["keywords"]) * 0.2
        + pattern_hits / len(spec["patterns"]) * 0.2
    )


def context_relevance_score(plugin_name: str, history: list[dict]) -> float:
    if not history:
        return 0.05  # 첫 대화

    keywords = RELEVANCE_KEYWORDS.get(plugin_name)
    if not keywords:
        return 0.0

    recent = " ".join((m.get("content") or "").lower() for m in history[-3:])
    hits = sum(1 for kw in keywords if kw in recent)
    return hits / len(keywords) * 0.1


def calculate_confidence(result: PluginResult, context: PluginContext) -> float:
    confidence = 0.4
    if result.success:
        confidence += 0.3
    if result.metadata:
        confidence += 0.1
    confidence += intent_match_score(result.name, context.user_input)
    confidence += context_relevance_score(result.name, context.conversation_history)
    return min(1.0, max(0.0, confidence))


def error_message(plugin_name: str, error: BaseException) -> str:
    """사용자에게 보여줄 플러그인 오류 메시지."""
    text = str(error).lower()
    if isinstance(error, asyncio.TimeoutError) or "timeout" in text:
        return f"Plugin {plugin_name} is temporarily unavailable (timeout). Please try again later."
    if "network" in text or "connect" in text or "fetch" in text:
        return f"Plugin {plugin_name} is experiencing connectivity issues. Please try again later."
    return f"Plugin {plugin_name} encountered an error. Please try rephrasing your request."


class PluginManager:
    def __init__(
        self,
        plugins: list[Plugin] | None = None,
        timeout: float | None = None,
        monitor: PerformanceMonitor | None = None,
    ):
        self._plugins: dict[str, Plugin] = {}
        self._timeout = timeout or settings.plugin_timeout
        self._monitor = monitor
        for plugin in plugins or []:
            self.register(plugin)

    def register(self, plugin: Plugin):
        if plugin.name in self._plugins:
            logger.warning("이미 등록된 플러그인 덮어씀: %s", plugin.name)
        self._plugins[plugin.name] = plugin
        logger.info("플러그인 등록: %s", plugin.name)

    def unregister(self, name: str) -> bool:
        removed = self._plugins.pop(name, None) is not None
        if removed:
            logger.info("플러그인 해제: %s", name)
        return removed

    def get(self, name: str) -> Plugin | None:
        return self._plugins.get(name)

    def names(self) -> list[str]:
        return list(self._plugins)

    def describe(self) -> list[dict]:
        return [{"name": p.name, "description": p.description} for p in self._plugins.values()]

    def __len__(self) -> int:
        return len(self._plugins)

    async def run(self, text: str, context: PluginContext | None = None) -> list[PluginResult]:
        """모든 플러그인을 동시에 실행한다.

        대상이 아닌 플러그인(None 반환)은 결과에서 빠지고, 실패/타임아웃은
        success=False 결과로 바뀐다. 성공 → confidence 높은 순으로 정렬한다.
        """
        context = context or PluginContext(session_id="unknown", user_input=text)
        outcomes = await asyncio.gather(
            *(self._execute(plugin, text, context) for plugin in self._plugins.values())
        )
        results = [r for r in outcomes if r is not None]

        results.sort(key=lambda r: (not r.success, -(r.confidence or 0.0)))
        logger.debug(
            "플러그인 실행 완료: results=%d, success=%d",
            len(results), sum(1 for r in results if r.success),
        )
        return results

    async def _execute(self, plugin: Plugin, text: str, context: PluginContext) -> PluginResult | None:
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(plugin.run(text), timeout=self._timeout)
        except Exception as e:
            elapsed = (time.perf_counter() - started) * 1000
            logger.exception("플러그인 실행 실패: %s", plugin.name)
            self._record(plugin.name, elapsed)
            return PluginResult(
                name=plugin.name,
                result=error_message(plugin.name, e),
                success=False,
                metadata={"error": str(e), "timeout": isinstance(e, asyncio.TimeoutError)},
                execution_time=elapsed,
            )

        elapsed = (time.perf_counter() - started) * 1000
        self._record(plugin.name, elapsed)
        if result is None:
            return None

        result.execution_time = elapsed
        result.confidence = calculate_confidence(result, context)
        return result

    def _record(self, name: str, elapsed_ms: float):
        if self._monitor is not None:
            self._monitor.record_plugin_execution(name, elapsed_ms)
