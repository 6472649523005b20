"""
Meeting-room reservations with conflict detection.

Reservations occupy the half-open interval ``[start_time, end_time)``, so a
booking that ends at 10:00 and one that starts at 10:00 do not conflict.
Only Confirmed reservations block a slot; Cancelled ones are kept for the
audit trail and never participate in conflict checks.

Check-then-insert runs inside one transaction that first locks the room
row (``SELECT ... FOR UPDATE``). On databases with row locks this
serialises concurrent bookings of the same room, closing the window where
two requests could both pass the conflict check.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from pybreaker import CircuitBreakerError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from .. import models, policies, schemas
from ..circuit_breaker import reservation_circuit_breaker
from ..exceptions import (
    ConflictError,
    InvalidStateTransitionError,
    NotFoundError,
    ReservationConflictError,
    ServiceUnavailableError,
    ValidationError,
)
from ..pagination import Pagination, paginate

logger = structlog.get_logger(__name__)


def overlaps(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    """
    Check if two time intervals overlap.

    Returns True if the interval [start1, end1) overlaps with [start2, end2).
    Touching endpoints do not overlap.
    """
    return start1 < end2 and start2 < end1


def find_conflicts(
    db: Session,
    room_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_id: Optional[int] = None,
) -> List[models.Reservation]:
    query = (
        db.query(models.Reservation)
        .options(joinedload(models.Reservation.room), joinedload(models.Reservation.user))
        .filter(
            models.Reservation.meeting_room_id == room_id,
            models.Reservation.status == models.ReservationStatus.CONFIRMED,
            models.Reservation.start_time < end_time,
            models.Reservation.end_time > start_time,
        )
    )
    if exclude_id is not None:
        query = query.filter(models.Reservation.id != exclude_id)
    return query.order_by(models.Reservation.start_time).all()


def _serialize(reservation: models.Reservation) -> Dict[str, Any]:
    return schemas.ReservationOut.model_validate(reservation).model_dump(by_alias=True, mode="json")


def _lock_room(db: Session, room_id: int) -> models.MeetingRoom:
    room = (
        db.query(models.MeetingRoom)
        .filter(models.MeetingRoom.id == room_id)
        .with_for_update()
        .first()
    )
    if room is None:
        raise NotFoundError("Meeting room")
    return room


def _ensure_bookable(room: models.MeetingRoom, attendee_count: Optional[int]) -> None:
    if not room.is_active:
        raise ConflictError("Meeting room is not available for booking", code="ROOM_UNAVAILABLE")
    if attendee_count is not None and attendee_count > room.capacity:
        raise ValidationError(
            f"Attendee count exceeds room capacity ({room.capacity})",
            field="attendeeCount",
            details={"capacity": room.capacity, "attendeeCount": attendee_count},
        )


def _commit(db: Session) -> None:
    try:
        reservation_circuit_breaker.call(db.commit)
    except CircuitBreakerError:
        db.rollback()
        logger.error("reservation_circuit_open", breaker=reservation_circuit_breaker.name)
        raise ServiceUnavailableError(
            "Reservation service temporarily unavailable. Please try again later."
        )
    except SQLAlchemyError:
        db.rollback()
        raise


def get_reservation(db: Session, reservation_id: int) -> models.Reservation:
    reservation = (
        db.query(models.Reservation)
        .options(joinedload(models.Reservation.room), joinedload(models.Reservation.user))
        .filter(models.Reservation.id == reservation_id)
        .first()
    )
    if reservation is None:
        raise NotFoundError("Reservation")
    return reservation


def list_reservations(
    db: Session,
    pagination: Pagination,
    room_id: Optional[int] = None,
    user_id: Optional[int] = None,
    status: Optional[models.ReservationStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
):
    query = db.query(models.Reservation).options(
        joinedload(models.Reservation.room), joinedload(models.Reservation.user)
    )
    if room_id is not None:
        query = query.filter(models.Reservation.meeting_room_id == room_id)
    if user_id is not None:
        query = query.filter(models.Reservation.user_id == user_id)
    if status is not None:
        query = query.filter(models.Reservation.status == status)
    if start_date is not None:
        query = query.filter(models.Reservation.end_time > start_date)
    if end_date is not None:
        query = query.filter(models.Reservation.start_time < end_date)
    return paginate(query.order_by(models.Reservation.start_time.desc()), pagination)


def create_reservation(
    db: Session, reservation_in: schemas.ReservationCreate, actor: models.User
) -> models.Reservation:
    room = _lock_room(db, reservation_in.meeting_room_id)
    _ensure_bookable(room, reservation_in.attendee_count)

    conflicts = find_conflicts(db, room.id, reservation_in.start_time, reservation_in.end_time)
    if conflicts:
        payload = [_serialize(c) for c in conflicts]
        logger.info(
            "reservation_conflict",
            room_id=room.id,
            conflicting_ids=[c["id"] for c in payload],
        )
        db.rollback()
        raise ReservationConflictError(reservation_in.meeting_room_id, payload)

    reservation = models.Reservation(
        meeting_room_id=room.id,
        user_id=actor.id,
        start_time=reservation_in.start_time,
        end_time=reservation_in.end_time,
        purpose=reservation_in.purpose,
        attendee_count=reservation_in.attendee_count,
        status=models.ReservationStatus.CONFIRMED,
        created_by=actor.id,
    )
    db.add(reservation)
    _commit(db)

    logger.info(
        "reservation_created",
        reservation_id=reservation.id,
        room_id=room.id,
        user_id=actor.id,
    )
    return get_reservation(db, reservation.id)


def update_reservation(
    db: Session,
    reservation_id: int,
    changes: schemas.ReservationUpdate,
    actor: models.User,
) -> models.Reservation:
    """Apply a partial update, re-checking conflicts against every other
    Confirmed booking when the room or the time range moves."""
    reservation = get_reservation(db, reservation_id)
    policies.ensure(
        policies.can_modify_reservation(actor, reservation),
        "Not allowed to update this reservation",
    )
    if reservation.status == models.ReservationStatus.CANCELLED:
        raise InvalidStateTransitionError(
            "Cancelled reservations cannot be changed", reservation.status.value
        )

    data = changes.model_dump(exclude_unset=True)
    room_id = data.get("meeting_room_id") or reservation.meeting_room_id
    start_time = data.get("start_time") or reservation.start_time
    end_time = data.get("end_time") or reservation.end_time
    attendee_count = data["attendee_count"] if "attendee_count" in data else reservation.attendee_count

    if end_time <= start_time:
        raise ValidationError("endTime must be after startTime", field="endTime")

    room_changed = room_id != reservation.meeting_room_id
    slot_changed = (
        room_changed
        or start_time != reservation.start_time
        or end_time != reservation.end_time
    )

    room = _lock_room(db, room_id)
    if room_changed:
        _ensure_bookable(room, attendee_count)
    elif attendee_count is not None and attendee_count > room.capacity:
        _ensure_bookable(room, attendee_count)

    if slot_changed:
        conflicts = find_conflicts(db, room.id, start_time, end_time, exclude_id=reservation.id)
        if conflicts:
            payload = [_serialize(c) for c in conflicts]
            db.rollback()
            raise ReservationConflictError(room_id, payload)

    reservation.meeting_room_id = room.id
    reservation.start_time = start_time
    reservation.end_time = end_time
    reservation.attendee_count = attendee_count
    if "purpose" in data:
        reservation.purpose = data["purpose"]
    reservation.modified_by = actor.id
    _commit(db)

    logger.info("reservation_updated", reservation_id=reservation.id, actor_id=actor.id)
    db.expire(reservation)
    return get_reservation(db, reservation.id)


def cancel_reservation(db: Session, reservation_id: int, actor: models.User) -> models.Reservation:
    """Move to Cancelled. Rows are never deleted; repeat calls are no-ops."""
    reservation = get_reservation(db, reservation_id)
    policies.ensure(
        policies.can_modify_reservation(actor, reservation),
        "Not allowed to cancel this reservation",
    )
    if reservation.status == models.ReservationStatus.CANCELLED:
        return reservation

    reservation.status = models.ReservationStatus.CANCELLED
    reservation.modified_by = actor.id
    _commit(db)
    logger.info("reservation_cancelled", reservation_id=reservation.id, actor_id=actor.id)
    return reservation


def check_availability(
    db: Session,
    room_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_id: Optional[int] = None,
) -> Dict[str, Any]:
    """Read-only probe used by clients before submitting a booking."""
    if db.get(models.MeetingRoom, room_id) is None:
        raise NotFoundError("Meeting room")
    conflicts = find_conflicts(db, room_id, start_time, end_time, exclude_id=exclude_id)
    return {"available": not conflicts, "conflicts": conflicts}
