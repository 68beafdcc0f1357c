from typing import NoReturn

from fastapi import Depends, HTTPException, Request

from servicehub.services.booking_store import BookingStore
from servicehub.services.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ServiceHubError,
)
from servicehub.services.identity import IdentityRelay, IdentityVerifier
from servicehub.services.review_store import ReviewStore
from servicehub.services.service_store import ServiceStore
from servicehub.services.storage import StorageGateway


def raise_http_error(exc: ServiceHubError) -> NoReturn:
    if isinstance(exc, AuthenticationError):
        raise HTTPException(status_code=401, detail=str(exc), headers={"WWW-Authenticate": "Bearer"})
    if isinstance(exc, PermissionDeniedError):
        raise HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=409, detail=str(exc))
    raise HTTPException(status_code=400, detail=str(exc))


def get_gateway(request: Request) -> StorageGateway:
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(status_code=503, detail="Storage backend is not initialised")
    return gateway


def get_verifier(request: Request) -> IdentityVerifier:
    return request.app.state.verifier


def get_identity_relay(
    gateway: StorageGateway = Depends(get_gateway),
    verifier: IdentityVerifier = Depends(get_verifier),
) -> IdentityRelay:
    return IdentityRelay(gateway, verifier)


def get_service_store(gateway: StorageGateway = Depends(get_gateway)) -> ServiceStore:
    return ServiceStore(gateway)


def get_booking_store(gateway: StorageGateway = Depends(get_gateway)) -> BookingStore:
    return BookingStore(gateway)


def get_review_store(gateway: StorageGateway = Depends(get_gateway)) -> ReviewStore:
    return ReviewStore(gateway)
