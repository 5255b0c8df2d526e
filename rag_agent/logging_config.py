"""구조화된 JSON 로그 설정."""

import contextlib
import contextvars
import json
import logging
import sys
from datetime import datetime, timezone

# LogRecord 기본 속성. 이 외의 속성은 extra= 로 넘어온 필드로 간주한다.
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_current_session: contextvars.ContextVar[str | None] = contextvars.ContextVar("session_id", default=None)

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(session_id)s]: %(message)s"


@contextlib.contextmanager
def bind_session(session_id: str):
    """블록 안에서 남기는 모든 로그에 session_id 를 붙인다.

    contextvars 기반이라 같은 이벤트 루프의 다른 요청과 섞이지 않는다.
    """
    token = _current_session.set(session_id)
    try:
        yield
    finally:
        _current_session.reset(token)


class SessionContextFilter(logging.Filter):
    """현재 바인딩된 session_id 를 레코드에 추가한다. extra= 로 넘긴 값이 우선한다."""

    def filter(self, record: logging.LogRecord) -> bool:
        session_id = _current_session.get()
        if session_id is not None and not hasattr(record, "session_id"):
            record.session_id = session_id
        return True


class JsonFormatter(logging.Formatter):
    """로그를 JSON 형식으로 출력하는 포매터.

    `logger.info("...", extra={"session_id": ...})` 로 전달한 필드와
    bind_session 으로 묶인 session_id 는 최상위 키로 함께 기록된다.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in vars(record).items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", json_format: bool = False):
    """로깅을 설정한다.

    Args:
        level: 로그 레벨 (DEBUG, INFO, WARNING, ERROR).
        json_format: True이면 JSON 포매터, False이면 세션 ID 를 포함한 텍스트 포매터.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    # 하위 로거에서 전파된 레코드에도 적용되도록 핸들러에 건다
    handler.addFilter(SessionContextFilter())

    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            TEXT_FORMAT,
            datefmt="%Y-%m-%d %H:%M:%S",
            defaults={"session_id": "-"},
        ))

    root.addHandler(handler)

    # 임베딩/LLM 호출마다 찍히는 httpx 로그는 너무 verbose
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
