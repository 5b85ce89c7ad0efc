"""
Observability tests: structured logging, correlation IDs, audit chain.

Run with: pytest tests/test_observability.py -v

Copyright (c) 2026 Momentum. All rights reserved.
"""

import io
import json
import logging
from datetime import datetime, timedelta, timezone

import pytest

from stablecoin.observability import (
    AuditEventType,
    AuditLogger,
    Layer,
    StablecoinLogger,
    StructuredHandler,
    canonical_json,
    correlation_id_var,
    get_correlation_id,
    timed_operation,
    with_correlation_id,
)


@pytest.fixture
def json_logger():
    stream = io.StringIO()
    log = StablecoinLogger("under_test", Layer.AUTHORIZATION)
    inner = logging.getLogger("stablecoin.authorization.under_test")
    inner.handlers = [StructuredHandler(stream)]
    inner.propagate = False
    yield log, stream
    inner.handlers = []


def lines(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


class TestStructuredLogging:
    """Tests for JSON log output."""

    def test_json_fields(self, json_logger):
        log, stream = json_logger
        log.warning("Denied", operation="mint", registry="abc")

        [event] = lines(stream)
        assert event["level"] == "warning"
        assert event["logger"] == "stablecoin.authorization.under_test"
        assert event["layer"] == "authorization"
        assert event["operation"] == "mint"
        assert event["context"] == {"registry": "abc"}
        assert "duration_ms" not in event

    def test_error_code_and_exception(self, json_logger):
        log, stream = json_logger
        try:
            raise ValueError("bad")
        except ValueError:
            log.error("Failed", error_code="E1", exc_info=True)

        [event] = lines(stream)
        assert event["error_code"] == "E1"
        assert "ValueError: bad" in event["exception"]

    def test_timed_operation(self, json_logger):
        log, stream = json_logger

        @timed_operation(log, "work")
        def work(x):
            return x * 2

        @timed_operation(log, "broken")
        def broken():
            raise RuntimeError("nope")

        assert work(4) == 8
        with pytest.raises(RuntimeError):
            broken()

        ok, failed = lines(stream)
        assert ok["message"] == "Operation work completed"
        assert ok["duration_ms"] >= 0
        assert failed["level"] == "warning"
        assert failed["message"] == "Operation broken failed"


class TestCorrelation:
    """Tests for correlation ID scoping."""

    def test_fresh_id_per_call(self):
        seen = []

        @with_correlation_id
        def capture():
            seen.append(correlation_id_var.get())

        capture()
        capture()
        assert len(set(seen)) == 2
        assert all(cid.startswith("corr-") for cid in seen)

    def test_restored_after_call(self):
        token = correlation_id_var.set("outer")
        try:
            with_correlation_id(lambda: None)()
            assert correlation_id_var.get() == "outer"
        finally:
            correlation_id_var.reset(token)

    def test_restored_after_error(self):
        token = correlation_id_var.set("outer")
        try:
            @with_correlation_id
            def fail():
                raise KeyError("x")

            with pytest.raises(KeyError):
                fail()
            assert correlation_id_var.get() == "outer"
        finally:
            correlation_id_var.reset(token)

    def test_get_creates_when_unset(self):
        token = correlation_id_var.set("")
        try:
            cid = get_correlation_id()
            assert cid.startswith("corr-")
            assert get_correlation_id() == cid
        finally:
            correlation_id_var.reset(token)


class TestAuditTrail:
    """Tests for the hash-chained audit log."""

    def test_chain_links(self):
        audit = AuditLogger()
        first = audit.log(AuditEventType.PAUSED, actor="a", registry="r")
        second = audit.log(AuditEventType.UNPAUSED, actor="a", registry="r")

        assert first.previous_event_digest is None
        assert second.previous_event_digest == first.event_digest
        assert audit.verify_chain() == (True, None)
        assert len(audit) == 2

    def test_tampered_details_detected(self):
        audit = AuditLogger()
        audit.log(AuditEventType.MINTED, actor="a", registry="r", details={"amount": 10})
        audit.log(AuditEventType.MINTED, actor="a", registry="r", details={"amount": 20})

        audit._events[0].details["amount"] = 1_000_000
        assert audit.verify_chain() == (False, 0)

    def test_broken_link_detected(self):
        audit = AuditLogger()
        for _ in range(3):
            audit.log(AuditEventType.FROZEN, actor="a", registry="r")

        del audit._events[1]
        assert audit.verify_chain() == (False, 1)

    def test_details_copied(self):
        audit = AuditLogger()
        details = {"amount": 5}
        event = audit.log(AuditEventType.BURNED, actor="a", registry="r", details=details)
        details["amount"] = 6
        assert event.details == {"amount": 5}

    def test_filters(self):
        audit = AuditLogger()
        audit.log(AuditEventType.MINTED, actor="a", registry="r1")
        audit.log(AuditEventType.MINTED, actor="b", registry="r2")
        audit.log(AuditEventType.DENIED, actor="b", registry="r1", outcome="denied")

        assert len(audit.get_events(event_type=AuditEventType.MINTED)) == 2
        assert len(audit.get_events(registry="r1")) == 2
        assert [e.event_type for e in audit.get_events(actor="b")] == [
            AuditEventType.MINTED, AuditEventType.DENIED,
        ]
        assert len(audit.get_events(limit=1)) == 1
        future = datetime.now(timezone.utc) + timedelta(hours=1)
        assert audit.get_events(since=future) == []

    def test_export(self):
        audit = AuditLogger()
        audit.log(AuditEventType.SEIZED, actor="a", registry="r", details={"amount": 3})
        [exported] = audit.export()
        assert exported["event_type"] == "seized"
        assert exported["details"] == {"amount": 3}
        assert exported["event_digest"] == audit.get_events()[0].event_digest

    def test_canonical_json(self):
        assert canonical_json({"b": 1, "a": "é"}) == '{"a":"é","b":1}'.encode("utf-8")
