import logging
from sqlalchemy import event
from sqlalchemy.orm.attributes import NO_VALUE

from .. import models

logger = logging.getLogger(__name__)

_registered = False


def _plain(value: object) -> object:
    return getattr(value, "value", value)


def _listener_factory(model_name: str):
    """Return an attribute listener that logs a model's status changes.

    The first assignment on a fresh row is not a change and is skipped.
    """

    def _status_change(target, value, oldvalue, initiator):  # noqa: ANN001
        before, after = _plain(oldvalue), _plain(value)
        if oldvalue is NO_VALUE or before is None or before == after:
            return value
        entity_id = getattr(target, "id", None)
        logger.info(
            "%s id=%s status changed from %s to %s",
            model_name,
            entity_id,
            before,
            after,
            extra={
                "entity": model_name,
                "entity_id": entity_id,
                "reference": getattr(target, "reference", None),
                "status_from": before,
                "status_to": after,
            },
        )
        return value

    return _status_change


def register_status_listeners() -> None:
    """Attach listeners for every model with a ``status`` column. Idempotent."""
    global _registered
    if _registered:
        return
    for model in (models.Booking, models.Quote, models.Subscription):
        event.listen(model.status, "set", _listener_factory(model.__name__), propagate=True)
    _registered = True
