from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..deps import get_current_user, get_db, get_pagination
from ..pagination import Pagination, page_payload
from ..services import reservations as reservation_service
from ..timeutils import to_naive_utc

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post("/check-availability", response_model=schemas.AvailabilityResponse)
def check_availability(
    body: schemas.AvailabilityRequest,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """
    Check if a room is free in a given time range.

    This does not create a reservation. It reports whether any Confirmed
    reservation overlaps the window and lists those that do.

    Parameters
    ----------
    body : AvailabilityRequest
        Room, start/end time and optionally a reservation to ignore (the
        one being edited).

    Raises
    ------
    NotFoundError
        - 404 if the room does not exist.
    """
    return reservation_service.check_availability(
        db, body.room_id, body.start_time, body.end_time, exclude_id=body.exclude_reservation_id
    )


@router.get("", response_model=schemas.Page[schemas.ReservationOut])
def list_reservations(
    room_id: Optional[int] = Query(None, alias="roomId"),
    user_id: Optional[int] = Query(None, alias="userId"),
    reservation_status: Optional[models.ReservationStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    pagination: Pagination = Depends(get_pagination),
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """
    List reservations, newest start time first.

    All filters are optional; ``startDate``/``endDate`` keep reservations
    that overlap the given window.
    """
    items, total = reservation_service.list_reservations(
        db,
        pagination,
        room_id=room_id,
        user_id=user_id,
        status=reservation_status,
        start_date=to_naive_utc(start_date),
        end_date=to_naive_utc(end_date),
    )
    return page_payload(items, total, pagination)


@router.post("", response_model=schemas.ReservationOut, status_code=status.HTTP_201_CREATED)
def create_reservation(
    reservation_in: schemas.ReservationCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Book a meeting room for the current user.

    Raises
    ------
    NotFoundError
        - 404 if the room does not exist.
    ConflictError
        - 409 ``ROOM_UNAVAILABLE`` if the room is deactivated.
        - 409 ``RESERVATION_CONFLICT`` if a Confirmed reservation overlaps;
          the conflicting reservations are listed in ``details``.
    ValidationError
        - 422 if the attendee count exceeds the room capacity.
    ServiceUnavailableError
        - 503 while the reservation circuit breaker is open.
    """
    return reservation_service.create_reservation(db, reservation_in, current_user)


@router.get("/{reservation_id}", response_model=schemas.ReservationOut)
def get_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """
    Retrieve a single reservation by its ID.
    """
    return reservation_service.get_reservation(db, reservation_id)


@router.put("/{reservation_id}", response_model=schemas.ReservationOut)
def update_reservation(
    reservation_id: int,
    changes: schemas.ReservationUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Update an existing reservation.

    Only the owner or an admin may update. Moving the reservation to
    another room or time re-runs the conflict check, ignoring the
    reservation itself.

    Raises
    ------
    PermissionDeniedError
        - 403 if the caller is neither the owner nor an admin.
    InvalidStateTransitionError
        - 400 if the reservation was cancelled.
    ConflictError
        - 409 ``RESERVATION_CONFLICT`` on overlap.
    """
    return reservation_service.update_reservation(db, reservation_id, changes, current_user)


@router.delete("/{reservation_id}", response_model=schemas.ReservationOut)
def cancel_reservation(
    reservation_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Cancel a reservation (soft delete).

    The row stays with status Cancelled and no longer blocks the slot.
    """
    return reservation_service.cancel_reservation(db, reservation_id, current_user)
