"""FastAPI 서버 - 대화 에이전트와 검색 API 를 노출한다."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from rag_agent.agent import Agent
from rag_agent.cache import EmbeddingCache
from rag_agent.config import settings
from rag_agent.document_loader import load_documents
from rag_agent.embedding import OllamaEmbedder
from rag_agent.errors import AgentError, LLMError, RetrieverNotReadyError, SessionNotFoundError
from rag_agent.logging_config import setup_logging
from rag_agent.math_plugin import MathPlugin
from rag_agent.memory import MemoryStore
from rag_agent.metrics import PerformanceMonitor
from rag_agent.plugins import PluginManager
from rag_agent.retriever import HybridRetriever, RetrievalQuery
from rag_agent.schemas import MessageRequest, MessageResponse, SearchRequest, SessionInfo
from rag_agent.weather_plugin import WeatherPlugin

logger = logging.getLogger(__name__)

VERSION = "0.1.0"
SESSION_CLEANUP_INTERVAL = 60 * 60
_started_at = time.monotonic()


def build_agent() -> Agent:
    """설정값으로 에이전트 구성 요소를 조립한다."""
    monitor = PerformanceMonitor()
    retriever = HybridRetriever(embedder=OllamaEmbedder(), cache=EmbeddingCache())
    plugins = PluginManager([WeatherPlugin(), MathPlugin()], monitor=monitor)
    return Agent(retriever=retriever, memory=MemoryStore(), plugins=plugins, monitor=monitor)


async def _cleanup_sessions(memory: MemoryStore):
    while True:
        await asyncio.sleep(SESSION_CLEANUP_INTERVAL)
        memory.cleanup_old_sessions()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """로깅 설정, 구성 요소 조립, 코퍼스 초기화 태스크 시작."""
    setup_logging(level=settings.log_level, json_format=settings.log_format == "json")

    agent = build_agent()
    app.state.agent = agent
    agent.retriever.start(lambda: asyncio.to_thread(load_documents))
    cleanup_task = asyncio.create_task(_cleanup_sessions(agent.memory))
    logger.info("RAG Agent 시작 (model=%s, plugins=%s)", settings.llm_model, agent.plugins.names())

    yield

    cleanup_task.cancel()
    await agent.aclose()
    logger.info("RAG Agent 종료")


app = FastAPI(
    title="RAG Agent",
    description="문서 검색 + 플러그인 + 대화 메모리 기반 AI 에이전트",
    version=VERSION,
    lifespan=lifespan,
)


def get_agent(request: Request) -> Agent:
    return request.app.state.agent


def _error_response(status_code: int, message: str, code: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": message,
            "code": code,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **extra,
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in err["loc"][1:]), "message": err["msg"]}
        for err in exc.errors()
    ]
    logger.warning("요청 검증 실패: %s %s", request.url.path, details)
    return _error_response(400, "Validation failed", "VALIDATION_ERROR", details=details)


@app.exception_handler(AgentError)
async def agent_error_handler(request: Request, exc: AgentError):
    if isinstance(exc, SessionNotFoundError):
        status_code = 404
    elif isinstance(exc, RetrieverNotReadyError):
        status_code = 503
    elif isinstance(exc, LLMError):
        status_code = 502
    else:
        status_code = 500
    logger.error("요청 처리 실패: %s %s (%s)", request.method, request.url.path, exc)
    return _error_response(status_code, str(exc), exc.code)


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
    return _error_response(exc.status_code, str(exc.detail), code)


# ── 상태 ───────────────────────────────────────────────────────


@app.get("/health")
async def health(agent: Agent = Depends(get_agent)):
    """헬스체크 엔드포인트. 하나라도 비정상이면 503."""
    result = await agent.health_check()
    report = agent.monitor.report()
    body = {
        "status": result["status"],
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": time.monotonic() - _started_at,
        "version": VERSION,
        "services": result["services"],
        "metrics": {
            "total_requests": report["request_count"],
            "average_response_time": report["average_response_time"],
            "error_rate": report["error_rate"],
        },
    }
    return JSONResponse(status_code=200 if result["status"] == "healthy" else 503, content=body)


@app.get("/metrics")
async def metrics(agent: Agent = Depends(get_agent)):
    return {
        **agent.monitor.report(),
        "alerts": agent.monitor.alerts(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ── 에이전트 ───────────────────────────────────────────────────


@app.post("/agent/message", response_model=MessageResponse)
async def agent_message(body: MessageRequest, agent: Agent = Depends(get_agent)):
    """사용자 메시지를 처리하고 응답을 반환한다."""
    logger.info("메시지 수신: session=%s, length=%d", body.session_id, len(body.message))
    result = await agent.handle_message(body.message, body.session_id)
    return MessageResponse(reply=result.reply, session_id=result.session_id, timestamp=result.timestamp)


@app.get("/agent/sessions/{session_id}", response_model=SessionInfo)
async def get_session(session_id: str, agent: Agent = Depends(get_agent)):
    session = agent.memory.get_session(session_id)
    if session is None:
        raise SessionNotFoundError("Session not found")
    return SessionInfo(
        session_id=session_id,
        message_count=len(session.messages),
        last_accessed=session.last_accessed,
    )


@app.delete("/agent/sessions/{session_id}")
async def delete_session(session_id: str, agent: Agent = Depends(get_agent)):
    if not agent.memory.delete_session(session_id):
        raise SessionNotFoundError("Session not found")
    return {
        "message": "Session deleted successfully",
        "session_id": session_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/agent/plugins")
async def list_plugins(agent: Agent = Depends(get_agent)):
    plugins = agent.plugins.describe()
    return {
        "plugins": plugins,
        "count": len(plugins),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ── 검색 ───────────────────────────────────────────────────────


@app.get("/agent/rag")
async def rag_info(agent: Agent = Depends(get_agent)):
    """색인 통계와 "markdown" 샘플 질의 결과."""
    stats = agent.retriever.get_stats()
    sample = await agent.retriever.query(RetrievalQuery(query="markdown", max_results=3))
    return {
        "document_count": stats.document_count,
        "keyword_count": stats.keyword_count,
        "category_count": stats.category_count,
        "categories": stats.categories,
        "sample_query": {
            "query": "markdown",
            "results_count": len(sample),
            "top_score": sample[0].final_score if sample else None,
            "sample_documents": [
                {
                    "id": doc.id,
                    "text_preview": doc.text[:200],
                    "score": doc.final_score,
                    "metadata": doc.metadata.to_dict(),
                }
                for doc in sample
            ],
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/agent/search")
async def search(body: SearchRequest, agent: Agent = Depends(get_agent)):
    """검색 엔진 질의 API. 필터와 검색 방식을 직접 지정한다."""
    results = await agent.retriever.query(RetrievalQuery(
        query=body.query,
        context=body.context,
        filters=body.filters.to_filter_spec() if body.filters else None,
        search_type=body.search_type,
        max_results=body.max_results,
    ))
    return {
        "results": [r.to_dict() for r in results],
        "count": len(results),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
