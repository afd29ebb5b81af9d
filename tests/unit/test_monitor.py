"""
Tests for the API call monitor.
"""

from pantry_pal.monitor import ApiCallEvent, ApiCallMonitor


def _event(kind="random", cached=False, timestamp=1000.0):
    return ApiCallEvent(kind=kind, params={}, cached=cached, timestamp=timestamp)


class TestApiCallMonitor:

    def test_newest_first(self):
        monitor = ApiCallMonitor()
        monitor.on_api_call(_event("first"))
        monitor.on_api_call(_event("second"))
        assert [c.kind for c in monitor.calls] == ["second", "first"]

    def test_ring_buffer_is_bounded(self):
        monitor = ApiCallMonitor(max_entries=50)
        for i in range(60):
            monitor.on_api_call(_event(f"call-{i}"))
        assert len(monitor.calls) == 50
        assert monitor.calls[0].kind == "call-59"
        assert monitor.calls[-1].kind == "call-10"

    def test_stats(self):
        monitor = ApiCallMonitor(clock=lambda: 4000.0)
        monitor.on_api_call(_event(cached=True, timestamp=3990.0))
        monitor.on_api_call(_event(cached=False, timestamp=3500.0))
        monitor.on_api_call(_event(cached=True, timestamp=100.0))

        stats = monitor.stats()
        assert stats["total"] == 3
        assert stats["cached"] == 2
        assert stats["api"] == 1
        assert stats["last_minute"] == 1
        assert stats["last_hour"] == 2
        assert stats["hit_rate"] == 67

    def test_empty_stats(self):
        assert ApiCallMonitor().stats()["hit_rate"] == 0

    def test_subscribe_and_unsubscribe(self):
        monitor = ApiCallMonitor()
        seen = []
        unsubscribe = monitor.subscribe(lambda calls: seen.append(len(calls)))

        monitor.on_api_call(_event())
        monitor.clear()
        unsubscribe()
        monitor.on_api_call(_event())

        assert seen == [1, 0]

    def test_failing_subscriber_does_not_break_recording(self):
        monitor = ApiCallMonitor()

        def broken(calls):
            raise RuntimeError("boom")

        monitor.subscribe(broken)
        monitor.on_api_call(_event())
        assert len(monitor.calls) == 1

    def test_event_to_dict(self):
        data = ApiCallEvent(kind="information", params={"id": 1}, cached=True, timestamp=5.0).to_dict()
        assert data == {"kind": "information", "params": {"id": 1}, "cached": True, "timestamp": 5.0}
