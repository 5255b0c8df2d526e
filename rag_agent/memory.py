"""세션별 대화 메모리."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Literal

from rag_agent.config import settings

logger = logging.getLogger(__name__)

Role = Literal["system", "user", "assistant"]

SUMMARY_MESSAGE_COUNT = 5
EMPTY_SUMMARY = "No previous conversation history."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChatMessage:
    role: Role
    content: str
    timestamp: datetime = field(default_factory=_utcnow)

    def to_llm(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class MemorySession:
    messages: list[ChatMessage] = field(default_factory=list)
    last_accessed: datetime = field(default_factory=_utcnow)


class MemoryStore:
    def __init__(
        self,
        max_size: int | None = None,
        idle_timeout: timedelta | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.max_size = max_size or settings.max_memory_size
        self.idle_timeout = idle_timeout or timedelta(seconds=settings.session_idle_seconds)
        self._clock = clock
        self._sessions: dict[str, MemorySession] = {}

    def add_message(self, session_id: str, role: Role, content: str):
        """메시지를 추가하고 세션당 최대 개수를 넘으면 오래된 것부터 버린다."""
        session = self._sessions.setdefault(session_id, MemorySession(last_accessed=self._clock()))
        session.messages.append(ChatMessage(role=role, content=content, timestamp=self._clock()))
        session.last_accessed = self._clock()

        if len(session.messages) > self.max_size:
            session.messages = session.messages[-self.max_size:]
            logger.debug("세션 메모리 한도 도달, 오래된 메시지 정리: %s", session_id)

    def get_messages(self, session_id: str) -> list[dict]:
        """LLM chat API 형식({role, content})의 메시지 목록."""
        session = self.get_session(session_id)
        if session is None:
            return []
        return [m.to_llm() for m in session.messages]

    def get_session(self, session_id: str) -> MemorySession | None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.last_accessed = self._clock()
        return session

    def delete_session(self, session_id: str) -> bool:
        deleted = self._sessions.pop(session_id, None) is not None
        if deleted:
            logger.info("세션 삭제: %s", session_id)
        return deleted

    def get_memory_summary(self, session_id: str) -> str:
        session = self._sessions.get(session_id)
        if session is None or not session.messages:
            return EMPTY_SUMMARY

        recent = session.messages[-SUMMARY_MESSAGE_COUNT:]
        lines = "\n".join(f"{m.role}: {m.content}" for m in recent)
        return f"Recent conversation history:\n{lines}"

    def cleanup_old_sessions(self) -> int:
        """idle_timeout 이상 접근이 없던 세션을 제거한다."""
        cutoff = self._clock() - self.idle_timeout
        stale = [sid for sid, s in self._sessions.items() if s.last_accessed < cutoff]
        for sid in stale:
            del self._sessions[sid]

        if stale:
            logger.info("오래된 세션 %d개 정리", len(stale))
        return len(stale)

    def get_stats(self) -> dict:
        return {
            "session_count": len(self._sessions),
            "total_messages": sum(len(s.messages) for s in self._sessions.values()),
        }
