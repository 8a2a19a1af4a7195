"""
Tests for structured logging helpers.
"""
import json
import logging

from yume.infra.logging_cfg import JsonFormatter, ThrottledFilter, build_logger, log_event


def _record(msg):
    return logging.LogRecord("yume", logging.WARNING, __file__, 1, msg, None, None)


class TestThrottledFilter:
    def test_repeats_suppressed_per_key(self):
        f = ThrottledFilter(cooldown_sec=60)
        first = json.dumps({"event": "reader_poll_failed", "market": "m1", "reader": "pool"})
        other = json.dumps({"event": "reader_poll_failed", "market": "m2", "reader": "pool"})
        assert f.filter(_record(first))
        assert not f.filter(_record(first))
        assert f.filter(_record(other))

    def test_unthrottled_and_plain_messages_pass(self):
        f = ThrottledFilter(cooldown_sec=60)
        event = json.dumps({"event": "tx_succeeded"})
        assert f.filter(_record(event))
        assert f.filter(_record(event))
        assert f.filter(_record("Shutting down..."))


def test_json_formatter():
    out = json.loads(JsonFormatter().format(_record("hello")))
    assert out["msg"] == "hello"
    assert out["level"] == "WARNING"


def test_build_logger_idempotent(tmp_path):
    logger = build_logger("yume-test", file_path=str(tmp_path / "log.jsonl"), async_file=False)
    n = len(logger.handlers)
    assert build_logger("yume-test", level=logging.DEBUG) is logger
    assert len(logger.handlers) == n
    assert logger.level == logging.DEBUG


def test_log_event(caplog):
    logger = logging.getLogger("yume-events")
    with caplog.at_level(logging.INFO, logger="yume-events"):
        log_event(logger, "tx_submitted", action="repay")
    payload = json.loads(caplog.records[0].getMessage())
    assert payload == {"event": "tx_submitted", "action": "repay"}
