from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, policies, schemas
from ..deps import get_current_user, get_db, get_pagination, require_admin
from ..exceptions import ValidationError
from ..pagination import Pagination, page_payload
from ..services import rooms as room_service
from ..timeutils import to_naive_utc, utcnow

router = APIRouter(prefix="/rooms", tags=["rooms"])

DEFAULT_SCHEDULE_DAYS = 7


@router.post("", response_model=schemas.RoomOut, status_code=status.HTTP_201_CREATED)
def create_room(
    room_in: schemas.RoomCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Create a new meeting room.

    Only admins can create rooms. The room name must be unique.

    Raises
    ------
    ConflictError
        - 409 ``DUPLICATE_ROOM`` if a room with the same name already exists.
    """
    return room_service.create_room(db, room_in)


@router.get("", response_model=schemas.Page[schemas.RoomOut])
def list_rooms(
    include_inactive: bool = Query(False, alias="includeInactive"),
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    List meeting rooms ordered by name.

    Parameters
    ----------
    include_inactive : bool, optional
        Also return deactivated rooms. Honoured for admins only.
    """
    include_inactive = include_inactive and policies.is_admin(current_user)
    items, total = room_service.list_rooms(db, pagination, include_inactive)
    return page_payload(items, total, pagination)


@router.get("/{room_id}", response_model=schemas.RoomOut)
def get_room(
    room_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """
    Retrieve a single meeting room by its ID.

    Raises a 404 error if the room does not exist.
    """
    return room_service.get_room(db, room_id)


@router.get("/{room_id}/schedule", response_model=schemas.RoomSchedule)
def get_room_schedule(
    room_id: int,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """
    Confirmed reservations of a room within a time window.

    The window defaults to the next seven days starting today (UTC).
    """
    start = to_naive_utc(start_date) if start_date else utcnow().replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    end = to_naive_utc(end_date) if end_date else start + timedelta(days=DEFAULT_SCHEDULE_DAYS)
    if end <= start:
        raise ValidationError("endDate must be after startDate", field="endDate")

    room, reservations = room_service.room_schedule(db, room_id, start, end)
    return {"room_id": room.id, "room_name": room.name, "reservations": reservations}


@router.put("/{room_id}", response_model=schemas.RoomOut)
def update_room(
    room_id: int,
    room_update: schemas.RoomUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Update details of an existing room. *(Admin)*

    Allows modifying name, capacity, location, amenities and active flag.
    Raises a 404 error if the room is not found.
    """
    return room_service.update_room(db, room_id, room_update)


@router.delete("/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_room(
    room_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Deactivate a room. *(Admin)*

    The room disappears from listings and can no longer be booked; past
    reservations keep their reference.
    """
    room_service.deactivate_room(db, room_id)
