import json

import structlog

from shopfloor.core import observability
from shopfloor.core.observability import (
    CorrelationIdProcessor,
    get_correlation_id,
    set_correlation_id,
    setup_metrics,
)


class TestCorrelationId:
    def test_generated_when_missing(self):
        correlation_id = set_correlation_id()

        assert correlation_id
        assert get_correlation_id() == correlation_id

    def test_processor_adds_current_id(self):
        set_correlation_id("launch-42")

        event = CorrelationIdProcessor()(None, "info", {"event": "Plan launched"})

        assert event["correlation_id"] == "launch-42"


class TestSetup:
    def test_json_rendering_is_configured(self):
        observability.setup_structured_logging()
        try:
            processors = structlog.get_config()["processors"]
            renderer = processors[-1]
            assert isinstance(renderer, structlog.processors.JSONRenderer)
            assert any(isinstance(p, CorrelationIdProcessor) for p in processors)

            rendered = renderer(None, "info", {"event": "Plan launched", "assigned": 2})
            assert json.loads(rendered) == {"event": "Plan launched", "assigned": 2}
        finally:
            structlog.reset_defaults()

    def test_metrics_exporter_disabled_by_default(self, monkeypatch):
        started = []
        monkeypatch.setattr(observability, "start_http_server", started.append)

        setup_metrics()

        assert started == []
