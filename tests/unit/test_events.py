from __future__ import annotations

import logging

from crm_bulk.services.events import EventBus, ImportCompleted


def _event() -> ImportCompleted:
    return ImportCompleted(entity="accounts", success_count=2, update_count=1, source="csv-import")


def test_publish_calls_listeners_in_order():
    bus = EventBus()
    seen = []
    bus.subscribe(lambda e: seen.append(("a", e.entity)))
    bus.subscribe(lambda e: seen.append(("b", e.success_count)))
    bus.publish(_event())
    assert seen == [("a", "accounts"), ("b", 2)]


def test_unsubscribe():
    bus = EventBus()
    seen = []
    unsubscribe = bus.subscribe(seen.append)
    assert len(bus) == 1
    unsubscribe()
    unsubscribe()  # idempotent
    bus.publish(_event())
    assert seen == []
    assert len(bus) == 0


def test_listener_failure_is_logged_and_isolated(caplog):
    bus = EventBus()
    seen = []

    def _bad(event):
        raise RuntimeError("refresh failed")

    bus.subscribe(_bad)
    bus.subscribe(seen.append)
    with caplog.at_level(logging.ERROR, logger="crm_bulk"):
        bus.publish(_event())
    assert seen == [_event()]
    assert "refresh failed" in caplog.text
