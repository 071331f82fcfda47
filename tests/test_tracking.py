from __future__ import annotations

import logging

import pytest
from sqlalchemy.exc import OperationalError

from conftest import FIXED_NOW
from mailtrack.data import crud
from mailtrack.errors import PersistenceError
from mailtrack.messaging import AccountRef, MessageBuilder, TemplateRef
from mailtrack.tracking import (
    STATUS_SENT,
    SqlTrackingStore,
    StaticIdentity,
    TrackingKind,
    TrackingPolicySelector,
    build_strategies,
)
from mailtrack.tracking.strategies.debug_log import DebugLogTracking
from mailtrack.tracking.strategies.log_record import LogRecordTracking, build_tracking_record
from mailtrack.messaging.classifier import RecipientClassifier


IDENTITY = StaticIdentity(display_name="Support Desk", email="support@example.com")
INTERNAL_ID = "005000000000001AAA"


def _message(to, target=None):
    return (
        MessageBuilder()
        .set_target_account(target)
        .set_primary_recipients(to)
        .set_subject("Hi")
        .set_body("Body")
        .build()
    )


def test_selector_uses_native_for_external_recipients():
    assert TrackingPolicySelector().select(_message(["ext@x.com"])) is TrackingKind.NATIVE


def test_selector_uses_log_record_for_internal_target():
    message = _message(["ext@x.com"], target=AccountRef("internalUserRef123"))

    assert TrackingPolicySelector().select(message) is TrackingKind.LOG_RECORD


def test_selector_uses_log_record_for_internal_first_recipient():
    assert TrackingPolicySelector().select(_message([INTERNAL_ID, "ext@x.com"])) is TrackingKind.LOG_RECORD


def test_selector_ignores_internal_recipients_after_the_first():
    assert TrackingPolicySelector().select(_message(["ext@x.com", INTERNAL_ID])) is TrackingKind.NATIVE


def test_registry_builds_every_kind():
    strategies = build_strategies(StubStore(), IDENTITY)

    assert set(strategies) == set(TrackingKind)
    for kind, strategy in strategies.items():
        assert strategy.kind is kind


def test_native_and_none_strategies_do_nothing():
    store = StubStore()
    strategies = build_strategies(store, IDENTITY)
    message = _message(["ext@x.com"])

    assert strategies[TrackingKind.NATIVE].track(message) is None
    assert strategies[TrackingKind.NONE].track(message) is None
    assert store.records == []


def test_log_record_copies_message_fields(fixed_clock):
    store = StubStore()
    strategy = LogRecordTracking(store, IDENTITY, clock=fixed_clock)
    message = (
        MessageBuilder()
        .set_target_account(AccountRef("internalUserRef123"))
        .set_primary_recipients([AccountRef("internalUserRef123"), "ext@x.com"])
        .set_copy_recipients(["cc1@x.com", "cc2@x.com"])
        .set_subject("Hi")
        .set_body("Body")
        .set_rich_body("<p>Body</p>")
        .relate_to("a01000000000001")
        .build()
    )

    record = strategy.track(message)

    assert store.records == [record]
    assert record.id == 1
    assert record.status == STATUS_SENT == "3"
    assert record.direction == "outbound"
    assert record.message_date == FIXED_NOW
    assert record.from_name == "Support Desk"
    assert record.from_address == "support@example.com"
    assert record.to_address == "internalUserRef123; ext@x.com"
    assert record.cc_address == "cc1@x.com; cc2@x.com"
    assert record.bcc_address is None
    assert record.to_ids == ["internalUserRef123"]
    assert record.subject == "Hi"
    assert record.text_body == "Body"
    assert record.html_body == "<p>Body</p>"
    assert record.related_to_id == "a01000000000001"


def test_record_falls_back_to_template_content():
    template = TemplateRef(id="00X000000000001AAA", name="welcome", subject="Welcome", body="Hello")
    message = (
        MessageBuilder()
        .set_target_account(AccountRef(INTERNAL_ID))
        .use_template(template)
        .set_sender_display_name("Team Lead")
        .build()
    )

    record = build_tracking_record(message, IDENTITY, FIXED_NOW, RecipientClassifier())

    assert record.subject == "Welcome"
    assert record.text_body == "Hello"
    assert record.template_id == "00X000000000001AAA"
    assert record.from_name == "Team Lead"
    assert record.to_address == INTERNAL_ID
    assert record.to_ids == [INTERNAL_ID]


def test_record_names_target_account_without_primary_recipients():
    message = (
        MessageBuilder()
        .set_target_account(AccountRef("005000000000001"))
        .set_subject("Hi")
        .set_body("Body")
        .build()
    )

    record = build_tracking_record(message, IDENTITY, FIXED_NOW, RecipientClassifier())

    assert record.to_address == "005000000000001"
    assert record.to_ids == ["005000000000001"]


def test_record_treats_recipient_matching_target_as_that_account():
    message = _message(["internalUserRef123", "ext@x.com"], target=AccountRef("internalUserRef123"))

    record = build_tracking_record(message, IDENTITY, FIXED_NOW, RecipientClassifier())

    assert record.to_address == "internalUserRef123; ext@x.com"
    assert record.to_ids == ["internalUserRef123"]


def test_record_lists_target_before_other_internal_recipients():
    message = _message(["ext@x.com", INTERNAL_ID], target=AccountRef("internalUserRef123"))

    record = build_tracking_record(message, IDENTITY, FIXED_NOW, RecipientClassifier())

    assert record.to_address == "internalUserRef123; ext@x.com; " + INTERNAL_ID
    assert record.to_ids == ["internalUserRef123", INTERNAL_ID]


def test_log_record_surfaces_store_failures():
    strategy = LogRecordTracking(FailingStore(), IDENTITY)

    with pytest.raises(PersistenceError):
        strategy.track(_message([INTERNAL_ID]))


def test_debug_log_strategy_writes_to_debug_logger(caplog, fixed_clock):
    strategy = DebugLogTracking(IDENTITY, clock=fixed_clock)
    debug_logger = logging.getLogger("mailtrack.debug.tracking")
    debug_logger.addHandler(caplog.handler)
    try:
        with caplog.at_level(logging.INFO, logger="mailtrack.debug.tracking"):
            record = strategy.track(_message([INTERNAL_ID]))
    finally:
        debug_logger.removeHandler(caplog.handler)

    assert record is not None and record.id is None
    assert any(entry.getMessage() == "tracking.debug_record" for entry in caplog.records)


def test_sql_store_inserts_and_lists(session_factory, fixed_clock):
    strategy = LogRecordTracking(SqlTrackingStore(session_factory), IDENTITY, clock=fixed_clock)

    record = strategy.track(_message([AccountRef("internalUserRef123")], target=AccountRef("internalUserRef123")))

    session = session_factory()
    try:
        rows = crud.list_tracked_messages(session)
        row = crud.get_tracked_message(session, record.id)
    finally:
        session.close()

    assert len(rows) == 1
    assert row is not None
    assert row["to_ids"] == ["internalUserRef123"]
    assert row["status"] == "3"
    assert row["incoming"] is False
    assert row["from_address"] == "support@example.com"


def test_sql_store_wraps_database_errors():
    store = SqlTrackingStore(lambda: BrokenSession())
    strategy = LogRecordTracking(store, IDENTITY)

    with pytest.raises(PersistenceError):
        strategy.track(_message([INTERNAL_ID]))


def test_sql_store_reports_missing_primary_key_as_persistence_error():
    session = KeylessSession()
    store = SqlTrackingStore(lambda: session)

    with pytest.raises(PersistenceError):
        LogRecordTracking(store, IDENTITY).track(_message([INTERNAL_ID]))
    assert session.rolled_back is True


class StubStore:
    def __init__(self) -> None:
        self.records = []

    def insert(self, record) -> int:
        self.records.append(record)
        return len(self.records)


class FailingStore:
    def insert(self, record) -> int:
        raise PersistenceError("disk full")


class BrokenSession:
    def __init__(self) -> None:
        self.rolled_back = False

    def execute(self, *args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    def commit(self) -> None:
        raise AssertionError("commit should not be reached")

    def rollback(self) -> None:
        self.rolled_back = True

    def close(self) -> None:
        return


class KeylessResult:
    inserted_primary_key = None


class KeylessSession(BrokenSession):
    def execute(self, *args, **kwargs):
        return KeylessResult()
