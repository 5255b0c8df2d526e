"""성능 지표 집계 테스트."""

import pytest

from rag_agent.metrics import PerformanceMonitor


@pytest.fixture()
def monitor():
    return PerformanceMonitor()


class TestPerformanceMonitor:
    def test_initial_report(self, monitor):
        report = monitor.report()

        assert report["request_count"] == 0
        assert report["error_rate"] == 0.0
        assert report["average_response_time"] == 0.0
        assert report["health_score"] == 100.0

    def test_request_averages(self, monitor):
        monitor.record_request(100)
        monitor.record_request(300)

        assert monitor.average_response_time == pytest.approx(200)
        assert monitor.report()["request_count"] == 2

    def test_error_rate(self, monitor):
        monitor.record_request(100)
        monitor.record_request(100, error=True)

        assert monitor.error_rate == pytest.approx(0.5)
        assert monitor.report()["error_count"] == 1

    def test_rag_and_plugin_times(self, monitor):
        monitor.record_rag_query(40, result_count=3)
        monitor.record_rag_query(60, result_count=1)
        monitor.record_plugin_execution("math", 5)
        monitor.record_plugin_execution("math", 15)

        report = monitor.report()
        assert report["average_rag_query_time"] == pytest.approx(50)
        assert report["plugin_average_times"] == {"math": pytest.approx(10)}

    def test_health_score_penalizes_errors(self, monitor):
        monitor.record_request(100, error=True)
        assert monitor.health_score() == pytest.approx(50.0)

    def test_health_score_penalizes_slow_responses(self, monitor):
        monitor.record_request(2000)
        assert monitor.health_score() == pytest.approx(90.0)

    def test_alerts(self, monitor):
        assert monitor.alerts() == []

        monitor.record_request(6000, error=True)
        alerts = {a["metric"]: a for a in monitor.alerts()}

        assert alerts["error_rate"]["level"] == "critical"
        assert alerts["average_response_time"]["level"] == "critical"

    def test_reset(self, monitor):
        monitor.record_request(100, error=True)
        monitor.reset()

        assert monitor.report()["request_count"] == 0
