"""요청/검색/플러그인 처리 시간 집계."""

import logging
from collections import deque

logger = logging.getLogger(__name__)

MAX_SAMPLES = 1000
SLOW_REQUEST_MS = 5000
SLOW_RAG_QUERY_MS = 3000
SLOW_PLUGIN_MS = 2000


class PerformanceMonitor:
    """최근 MAX_SAMPLES 개 요청 기준의 간단한 성능 지표."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.request_count = 0
        self.error_count = 0
        self._request_times: deque[float] = deque(maxlen=MAX_SAMPLES)
        self._rag_times: deque[float] = deque(maxlen=MAX_SAMPLES)
        self._plugin_times: dict[str, deque[float]] = {}

    def record_request(self, duration_ms: float, error: bool = False):
        self.request_count += 1
        if error:
            self.error_count += 1
        self._request_times.append(duration_ms)

        if duration_ms > SLOW_REQUEST_MS:
            logger.warning("느린 요청 감지: %.0fms (평균 %.0fms)", duration_ms, self.average_response_time)

    def record_rag_query(self, duration_ms: float, result_count: int):
        self._rag_times.append(duration_ms)
        if duration_ms > SLOW_RAG_QUERY_MS:
            logger.warning("느린 검색 감지: %.0fms (results=%d)", duration_ms, result_count)

    def record_plugin_execution(self, name: str, duration_ms: float):
        self._plugin_times.setdefault(name, deque(maxlen=MAX_SAMPLES)).append(duration_ms)
        if duration_ms > SLOW_PLUGIN_MS:
            logger.warning("느린 플러그인 실행 감지: %s %.0fms", name, duration_ms)

    @property
    def average_response_time(self) -> float:
        return _mean(self._request_times)

    @property
    def error_rate(self) -> float:
        return self.error_count / self.request_count if self.request_count else 0.0

    def health_score(self) -> float:
        """0~100. 에러율과 평균 응답 시간으로 감점한다."""
        score = 100.0 - self.error_rate * 50
        avg = self.average_response_time
        if avg > 1000:
            score -= min(30.0, (avg - 1000) / 100)
        return max(0.0, min(100.0, score))

    def alerts(self) -> list[dict]:
        alerts = []
        if self.error_rate > 0.1:
            alerts.append({
                "level": "critical" if self.error_rate > 0.2 else "warning",
                "message": "High error rate detected",
                "metric": "error_rate",
                "value": self.error_rate,
                "threshold": 0.1,
            })
        avg = self.average_response_time
        if avg > 2000:
            alerts.append({
                "level": "critical" if avg > 5000 else "warning",
                "message": "High average response time",
                "metric": "average_response_time",
                "value": avg,
                "threshold": 2000,
            })
        return alerts

    def report(self) -> dict:
        return {
            "request_count": self.request_count,
            "error_count": self.error_count,
            "error_rate": self.error_rate,
            "average_response_time": self.average_response_time,
            "average_rag_query_time": _mean(self._rag_times),
            "plugin_average_times": {name: _mean(times) for name, times in self._plugin_times.items()},
            "health_score": self.health_score(),
        }


def _mean(values) -> float:
    return sum(values) / len(values) if values else 0.0
