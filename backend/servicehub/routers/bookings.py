from fastapi import APIRouter, Depends, status

from servicehub.auth import require_admin_user, require_authenticated_user
from servicehub.dependencies import get_booking_store, raise_http_error
from servicehub.models import (
    Booking,
    BookingCreateRequest,
    BookingCreateResponse,
    BookingStats,
    BookingStatusUpdateRequest,
    BookingStatusUpdateResponse,
    MessageResponse,
    SessionUser,
)
from servicehub.services.booking_store import BookingStore
from servicehub.services.errors import ServiceHubError

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("", response_model=list[Booking])
def list_all_bookings(
    _admin: SessionUser = Depends(require_admin_user),
    store: BookingStore = Depends(get_booking_store),
):
    return store.list_all_bookings()


@router.get("/stats", response_model=BookingStats)
def booking_stats(store: BookingStore = Depends(get_booking_store)):
    return store.booking_stats()


@router.get("/user/{email}", response_model=list[Booking])
def list_customer_bookings(
    email: str,
    user: SessionUser = Depends(require_authenticated_user),
    store: BookingStore = Depends(get_booking_store),
):
    try:
        return store.list_customer_bookings(email=email, actor=user)
    except ServiceHubError as exc:
        raise_http_error(exc)


@router.get("/provider/{email}", response_model=list[Booking])
def list_provider_bookings(
    email: str,
    user: SessionUser = Depends(require_authenticated_user),
    store: BookingStore = Depends(get_booking_store),
):
    try:
        return store.list_provider_bookings(email=email, actor=user)
    except ServiceHubError as exc:
        raise_http_error(exc)


@router.post("", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    request: BookingCreateRequest,
    user: SessionUser = Depends(require_authenticated_user),
    store: BookingStore = Depends(get_booking_store),
):
    try:
        booking = store.create_booking(actor=user, request=request)
    except ServiceHubError as exc:
        raise_http_error(exc)
    return BookingCreateResponse(booking_id=booking.id, booking=booking)


@router.put("/{booking_id}/status", response_model=BookingStatusUpdateResponse)
def update_booking_status(
    booking_id: str,
    request: BookingStatusUpdateRequest,
    user: SessionUser = Depends(require_authenticated_user),
    store: BookingStore = Depends(get_booking_store),
):
    try:
        booking = store.update_booking_status(
            booking_id=booking_id,
            actor=user,
            new_status=request.requested_status,
        )
    except ServiceHubError as exc:
        raise_http_error(exc)
    return BookingStatusUpdateResponse(status=booking.status, service_status=booking.status)


@router.delete("/{booking_id}", response_model=MessageResponse)
def cancel_booking(
    booking_id: str,
    user: SessionUser = Depends(require_authenticated_user),
    store: BookingStore = Depends(get_booking_store),
):
    try:
        store.cancel_booking(booking_id=booking_id, actor=user)
    except ServiceHubError as exc:
        raise_http_error(exc)
    return MessageResponse(message="Booking cancelled successfully")
