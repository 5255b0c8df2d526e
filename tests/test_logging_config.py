"""로깅 설정 테스트."""

import json
import logging
import sys

from rag_agent.logging_config import JsonFormatter, SessionContextFilter, bind_session, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("rag_agent.retriever", logging.INFO, __file__, 1, "검색 완료: %d건", (3,), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def test_basic_fields(self):
        entry = json.loads(JsonFormatter().format(_record()))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "rag_agent.retriever"
        assert entry["message"] == "검색 완료: 3건"
        assert "timestamp" in entry

    def test_extra_fields(self):
        entry = json.loads(JsonFormatter().format(_record(session_id="s1", duration_ms=12.5)))

        assert entry["session_id"] == "s1"
        assert entry["duration_ms"] == 12.5
        assert "args" not in entry

    def test_exception(self):
        try:
            raise ValueError("bad input")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        entry = json.loads(JsonFormatter().format(record))
        assert "ValueError: bad input" in entry["exception"]


class TestSetupLogging:
    def test_json_handler(self):
        setup_logging(level="DEBUG", json_format=True)
        root = logging.getLogger()

        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_text_handler(self):
        setup_logging(level="warning")
        root = logging.getLogger()

        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, JsonFormatter)


class TestSessionContext:
    def test_bound_session_added(self):
        record = _record()
        with bind_session("s1"):
            SessionContextFilter().filter(record)

        assert record.session_id == "s1"

    def test_unbound_leaves_record(self):
        record = _record()
        SessionContextFilter().filter(record)

        assert not hasattr(record, "session_id")

    def test_extra_wins(self):
        record = _record(session_id="explicit")
        with bind_session("bound"):
            SessionContextFilter().filter(record)

        assert record.session_id == "explicit"

    def test_binding_resets(self):
        with bind_session("outer"):
            with bind_session("inner"):
                pass
            record = _record()
            SessionContextFilter().filter(record)

        assert record.session_id == "outer"

    def test_json_output(self):
        record = _record()
        with bind_session("s1"):
            SessionContextFilter().filter(record)

        assert json.loads(JsonFormatter().format(record))["session_id"] == "s1"

    def test_text_output_without_session(self):
        setup_logging(level="INFO")
        formatter = logging.getLogger().handlers[0].formatter

        assert "[-]: 검색 완료: 3건" in formatter.format(_record())
