import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import OutboxEvent

logger = logging.getLogger(__name__)


def _json_default(o: Any):
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    if isinstance(o, Decimal):
        return str(o)
    if hasattr(o, "value"):
        return o.value
    return str(o)


def enqueue_outbox(db: Session, topic: str, payload: dict[str, Any]) -> int:
    """Insert an outbox event row for downstream notification fan-out.

    Called after the ledger transaction has committed. Failures are logged
    and swallowed: the financial record is already durable and must not be
    affected by a notification problem. Returns the new id, or 0.
    """
    payload_str = json.dumps(payload, default=_json_default, separators=(",", ":"))
    event = OutboxEvent(topic=topic, payload_json=payload_str)
    try:
        db.add(event)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("outbox_enqueue_failed topic=%s error=%s", topic, exc)
        return 0
    logger.info("outbox_enqueue topic=%s id=%s bytes=%s", topic, event.id, len(payload_str))
    return int(event.id or 0)
