from __future__ import annotations

import pytest

from mailtrack.errors import PersistenceError, TransportError
from mailtrack.messaging import AccountRef, DeliveryResult, MessageBuilder
from mailtrack.messaging.dispatcher import Dispatcher
from mailtrack.tracking import (
    SqlTrackingStore,
    StaticIdentity,
    TrackingKind,
    TrackingPolicySelector,
    build_strategies,
)
from mailtrack.data import crud
from mailtrack.tracking.models import utc_now


IDENTITY = StaticIdentity(display_name="Support Desk", email="support@example.com")


def _external_message():
    return (
        MessageBuilder()
        .set_primary_recipients(["ext@x.com"])
        .set_subject("Hi")
        .set_body("Body")
        .build()
    )


def _internal_message():
    ref = AccountRef("internalUserRef123")
    return (
        MessageBuilder()
        .set_target_account(ref)
        .set_primary_recipients([ref])
        .set_subject("Hi")
        .set_body("Body")
        .build()
    )


def _dispatcher(transport, store=None, clock=None):
    store = store or StubStore()
    strategies = build_strategies(store, IDENTITY, clock=clock or utc_now)
    return Dispatcher(transport, TrackingPolicySelector(), strategies), store


def test_external_message_relies_on_native_tracking():
    transport = StubTransport([DeliveryResult(success=True, message_id="m-1")])
    dispatcher, store = _dispatcher(transport)

    result = dispatcher.send(_external_message())

    assert result.success is True
    assert result.message_id == "m-1"
    assert len(transport.delivered) == 1
    assert store.records == []


def test_internal_message_produces_one_tracking_record():
    transport = StubTransport([DeliveryResult(success=True)])
    dispatcher, store = _dispatcher(transport)
    message = _internal_message()

    result = dispatcher.send(message)

    assert message.suppress_activity_link is True
    assert result.success is True
    assert len(store.records) == 1
    record = store.records[0]
    assert record.to_ids == ["internalUserRef123"]
    assert record.status == "3"


def test_failed_delivery_never_tracks():
    transport = StubTransport([DeliveryResult(success=False, detail="mailbox unavailable")])
    strategy = SpyStrategy()
    dispatcher = Dispatcher(
        transport,
        TrackingPolicySelector(),
        {kind: strategy for kind in TrackingKind},
    )

    result = dispatcher.send(_internal_message())

    assert result.success is False
    assert result.detail == "mailbox unavailable"
    assert strategy.calls == 0


def test_transport_errors_become_failed_results():
    dispatcher, store = _dispatcher(RaisingTransport())

    result = dispatcher.send(_internal_message())

    assert result.success is False
    assert "connection refused" in result.detail
    assert store.records == []


def test_empty_result_list_is_a_failure():
    dispatcher, store = _dispatcher(StubTransport([]))

    result = dispatcher.send(_internal_message())

    assert result.success is False
    assert store.records == []


def test_only_first_result_is_inspected():
    transport = StubTransport(
        [DeliveryResult(success=True), DeliveryResult(success=False, detail="ignored")]
    )
    dispatcher, store = _dispatcher(transport)

    result = dispatcher.send(_internal_message())

    assert result.success is True
    assert len(store.records) == 1


def test_tracking_failure_propagates_after_delivery():
    transport = StubTransport([DeliveryResult(success=True)])
    dispatcher, _ = _dispatcher(transport, store=FailingStore())

    with pytest.raises(PersistenceError):
        dispatcher.send(_internal_message())

    assert len(transport.delivered) == 1


def test_internal_send_persists_through_sql_store(session_factory, fixed_clock):
    transport = StubTransport([DeliveryResult(success=True)])
    dispatcher, _ = _dispatcher(transport, store=SqlTrackingStore(session_factory), clock=fixed_clock)

    dispatcher.send(_internal_message())
    dispatcher.send(_external_message())

    session = session_factory()
    try:
        rows = crud.list_tracked_messages(session)
    finally:
        session.close()
    assert len(rows) == 1
    assert rows[0]["to_ids"] == ["internalUserRef123"]


class StubTransport:
    name = "stub"

    def __init__(self, results) -> None:
        self._results = list(results)
        self.delivered = []

    def deliver(self, message):
        self.delivered.append(message)
        return list(self._results)

    def close(self) -> None:
        return


class RaisingTransport:
    name = "raising"

    def deliver(self, message):
        raise TransportError("connection refused", transport=self.name)

    def close(self) -> None:
        return


class StubStore:
    def __init__(self) -> None:
        self.records = []

    def insert(self, record) -> int:
        self.records.append(record)
        return len(self.records)


class FailingStore:
    def insert(self, record) -> int:
        raise PersistenceError("disk full")


class SpyStrategy:
    kind = TrackingKind.LOG_RECORD

    def __init__(self) -> None:
        self.calls = 0

    def track(self, message):
        self.calls += 1
        return None
