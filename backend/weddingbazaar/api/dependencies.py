from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, status
from sqlalchemy.orm import Session

from .. import models
from ..crud import crud_booking
from ..database import get_db
from ..models.booking_status import ActorRole
from ..services.booking_lifecycle import BookingLifecycleManager
from ..utils.errors import UnauthorizedActor, error_response


@dataclass
class Actor:
    role: ActorRole
    id: Optional[str] = None


def get_current_actor(
    x_actor_role: Optional[str] = Header(default=None),
    x_actor_id: Optional[str] = Header(default=None),
) -> Actor:
    """Identify the acting party from request headers.

    Authentication lives upstream; deployments override this dependency
    with one backed by their session layer.
    """
    if not x_actor_role:
        raise error_response(
            "Missing actor",
            {"X-Actor-Role": "required"},
            status.HTTP_401_UNAUTHORIZED,
        )
    try:
        role = ActorRole(x_actor_role.strip().lower())
    except ValueError:
        raise error_response(
            "Unknown actor role",
            {"X-Actor-Role": "invalid"},
            status.HTTP_401_UNAUTHORIZED,
        )
    if role in (ActorRole.CLIENT, ActorRole.VENDOR) and not x_actor_id:
        raise error_response(
            "Missing actor id",
            {"X-Actor-Id": "required"},
            status.HTTP_401_UNAUTHORIZED,
        )
    return Actor(role=role, id=x_actor_id.strip() if x_actor_id else None)


def get_participant_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> models.Booking:
    """Load a booking the acting party is allowed to see."""
    booking = crud_booking.get_booking_or_404(db, booking_id)
    BookingLifecycleManager(db).ensure_participant(booking, actor.role, actor.id)
    return booking


def require_role(actor: Actor, *roles: ActorRole, action: str) -> None:
    if actor.role not in roles:
        raise UnauthorizedActor(actor.role, action)


__all__ = ["Actor", "get_db", "get_current_actor", "get_participant_booking", "require_role"]
