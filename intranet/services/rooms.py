"""Meeting-room resources."""

from datetime import datetime

import structlog
from sqlalchemy.orm import Session, joinedload

from .. import models, schemas
from ..exceptions import ConflictError, NotFoundError
from ..pagination import Pagination, paginate

logger = structlog.get_logger(__name__)


def get_room(db: Session, room_id: int) -> models.MeetingRoom:
    room = db.get(models.MeetingRoom, room_id)
    if room is None:
        raise NotFoundError("Meeting room")
    return room


def list_rooms(db: Session, pagination: Pagination, include_inactive: bool = False):
    query = db.query(models.MeetingRoom)
    if not include_inactive:
        query = query.filter(models.MeetingRoom.is_active.is_(True))
    return paginate(query.order_by(models.MeetingRoom.name), pagination)


def _ensure_unique_name(db: Session, name: str, exclude_id: int | None = None) -> None:
    query = db.query(models.MeetingRoom).filter(models.MeetingRoom.name == name)
    if exclude_id is not None:
        query = query.filter(models.MeetingRoom.id != exclude_id)
    if query.first():
        raise ConflictError("Room name already exists", code="DUPLICATE_ROOM")


def create_room(db: Session, room_in: schemas.RoomCreate) -> models.MeetingRoom:
    _ensure_unique_name(db, room_in.name)
    room = models.MeetingRoom(**room_in.model_dump())
    db.add(room)
    db.commit()
    db.refresh(room)
    logger.info("room_created", room_id=room.id, capacity=room.capacity)
    return room


def update_room(db: Session, room_id: int, room_update: schemas.RoomUpdate) -> models.MeetingRoom:
    room = get_room(db, room_id)
    data = room_update.model_dump(exclude_unset=True)

    if data.get("name") and data["name"] != room.name:
        _ensure_unique_name(db, data["name"], exclude_id=room.id)

    for field, value in data.items():
        if value is None and field != "location":
            continue
        setattr(room, field, value)

    db.commit()
    db.refresh(room)
    return room


def deactivate_room(db: Session, room_id: int) -> models.MeetingRoom:
    """Soft deactivate; existing reservations keep pointing at the room."""
    room = get_room(db, room_id)
    room.is_active = False
    db.commit()
    logger.info("room_deactivated", room_id=room.id)
    return room


def room_schedule(
    db: Session, room_id: int, start: datetime, end: datetime
) -> tuple[models.MeetingRoom, list[models.Reservation]]:
    """Confirmed reservations of the room that overlap ``[start, end)``."""
    room = get_room(db, room_id)
    reservations = (
        db.query(models.Reservation)
        .options(joinedload(models.Reservation.user))
        .filter(
            models.Reservation.meeting_room_id == room_id,
            models.Reservation.status == models.ReservationStatus.CONFIRMED,
            models.Reservation.start_time < end,
            models.Reservation.end_time > start,
        )
        .order_by(models.Reservation.start_time)
        .all()
    )
    return room, reservations
