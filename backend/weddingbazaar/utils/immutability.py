"""ORM guards for rows that must never change once written.

Status history entries, payments, receipts and wallet transactions are
append-only. A quote is mutable while it is active (it can still be
superseded or rejected) and frozen from the moment it is accepted.
"""

from sqlalchemy import event, inspect

from .. import models
from ..models.quote import QuoteStatus
from .errors import ImmutableRecordError

_registered = False


def _has_column_changes(target: object) -> bool:
    # before_update also fires for rows whose only change is a relationship
    # backref (e.g. Payment.receipt), which never reaches the table.
    state = inspect(target)
    return any(
        state.attrs[attr.key].history.has_changes()
        for attr in state.mapper.column_attrs
    )


def _reject_update(record: str):
    def _guard(mapper, connection, target):
        if _has_column_changes(target):
            raise ImmutableRecordError(record, getattr(target, "id", None))

    return _guard


def _reject_delete(record: str):
    def _guard(mapper, connection, target):
        raise ImmutableRecordError(record, getattr(target, "id", None))

    return _guard


def _guard_accepted_quote(mapper, connection, target):
    if not _has_column_changes(target):
        return
    history = inspect(target).attrs.status.history
    previous = history.deleted[0] if history.deleted else target.status
    if previous == QuoteStatus.ACCEPTED:
        raise ImmutableRecordError("Quote", target.id)


def register_immutability_guards() -> None:
    global _registered
    if _registered:
        return
    for model in (
        models.BookingStatusHistory,
        models.Payment,
        models.Receipt,
        models.WalletTransaction,
    ):
        event.listen(model, "before_update", _reject_update(model.__name__))
        event.listen(model, "before_delete", _reject_delete(model.__name__))
    event.listen(models.Quote, "before_update", _guard_accepted_quote)
    event.listen(models.Quote, "before_delete", _reject_delete("Quote"))
    _registered = True
