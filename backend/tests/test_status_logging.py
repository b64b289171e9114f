import logging

from weddingbazaar.core.observability import setup_logging
from weddingbazaar.database import atomic
from weddingbazaar.models.booking_status import ActorRole, BookingStatus
from weddingbazaar.services.booking_lifecycle import BookingLifecycleManager
from weddingbazaar.utils.status_logger import register_status_listeners


def test_status_changes_are_logged(db, booking, caplog):
    register_status_listeners()
    caplog.set_level(logging.INFO, logger="weddingbazaar.utils.status_logger")
    with atomic(db):
        BookingLifecycleManager(db).transition(booking, BookingStatus.VENDOR_REVIEWED, ActorRole.VENDOR)
    assert any(
        "Booking" in r.getMessage() and "from inquiry to vendor_reviewed" in r.getMessage()
        for r in caplog.records
    )


def test_setup_logging_uses_json_formatter(monkeypatch):
    from pythonjsonlogger import jsonlogger

    monkeypatch.setenv("LOG_LEVEL", "debug")
    root = logging.getLogger()
    saved = (root.handlers[:], root.level)
    try:
        setup_logging()
        assert isinstance(root.handlers[0].formatter, jsonlogger.JsonFormatter)
        assert root.level == logging.DEBUG
    finally:
        root.handlers = saved[0]
        root.setLevel(saved[1])


def test_status_log_carries_structured_fields(db, booking, caplog):
    register_status_listeners()
    caplog.set_level(logging.INFO, logger="weddingbazaar.utils.status_logger")
    with atomic(db):
        BookingLifecycleManager(db).transition(booking, BookingStatus.CANCELLED, ActorRole.CLIENT)
    record = next(r for r in caplog.records if getattr(r, "entity", None) == "Booking")
    assert record.entity_id == booking.id
    assert record.reference == booking.reference
    assert (record.status_from, record.status_to) == ("inquiry", "cancelled")
