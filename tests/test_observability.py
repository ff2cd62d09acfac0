import json
import logging
import math

import pytest

from app.core.logging import JsonFormatter, correlation_context, get_correlation_id, get_logger, mask_email
from app.core.metrics import get_counters, get_metrics, inc_counter, metrics_registry, timer


def test_timer_records_duration():
    metrics_registry.reset()
    with timer("metrics.test.timer"):
        pass
    entry = get_metrics()["metrics.test.timer"]
    assert entry["count"] == 1.0
    assert entry["total_ms"] >= 0.0


def test_metrics_registry_tracks_mean_and_stddev():
    metrics_registry.reset()
    metrics_registry.record("metrics.var", 10.0)
    metrics_registry.record("metrics.var", 30.0)

    entry = get_metrics()["metrics.var"]
    assert entry["count"] == 2.0
    assert entry["avg_ms"] == pytest.approx(20.0)
    assert entry["max_ms"] == 30.0
    assert entry["stddev_ms"] == pytest.approx(math.sqrt(200.0), rel=1e-3)


def test_counters_reset_on_request():
    metrics_registry.reset()
    inc_counter("delivery.completed")
    inc_counter("delivery.completed", 2)

    assert get_counters(reset=True) == {"delivery.completed": 3.0}
    assert get_counters() == {}


def _format(logger_name, message, **fields):
    record = logging.LogRecord(logger_name, logging.INFO, __file__, 1, message, None, None)
    record.structured_data = fields
    return json.loads(JsonFormatter().format(record))


def test_formatter_redacts_secrets_and_masks_email():
    payload = _format("maturity.test", "assessment_created", user_email="ada@example.com", token="abc", assessment_id="x")

    assert payload["event"] == "assessment_created"
    assert payload["user_email"] == "a***@example.com"
    assert payload["token"] == "***"
    assert payload["assessment_id"] == "x"


def test_mask_email_without_domain():
    assert mask_email("nobody") == "***"


def test_adapter_merges_component_default(caplog):
    logger = get_logger("maturity.test.adapter", component="service")
    with caplog.at_level(logging.INFO, logger="maturity.test.adapter"):
        logger.event("version_published", version_id=3)

    record = caplog.records[-1]
    assert record.getMessage() == "version_published"
    assert record.structured_data == {"component": "service", "version_id": 3}


def test_correlation_context_rejects_malformed_ids():
    with correlation_context("req-42") as cid:
        assert cid == "req-42"
        assert get_correlation_id() == "req-42"
    assert get_correlation_id() is None

    with correlation_context("bad id\nwith newline") as cid:
        assert cid != "bad id\nwith newline"
        assert len(cid) == 36
