import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from servicehub.models import Booking, BookingCreateRequest, BookingStats, SessionUser
from servicehub.services.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from servicehub.services.service_store import ServiceStore
from servicehub.services.storage import BOOKINGS, StorageGateway

logger = logging.getLogger(__name__)

BOOKING_STATUSES = ("pending", "working", "completed")
BOOKING_INITIAL_STATUS = "pending"


class BookingStore:
    def __init__(self, gateway: StorageGateway) -> None:
        self._gateway = gateway
        self._services = ServiceStore(gateway)

    def _load(self, booking_id: str) -> Dict[str, Any]:
        if not self._gateway.is_valid_id(booking_id):
            raise ValidationError("Invalid booking ID format")
        document = self._gateway.find_by_id(BOOKINGS, booking_id)
        if document is None:
            raise NotFoundError("Booking not found")
        return document

    def create_booking(self, *, actor: SessionUser, request: BookingCreateRequest) -> Booking:
        service = self._services.get_service_document(request.service_id)
        now = datetime.now(timezone.utc)
        # Snapshot of the service at booking time; later service edits do not touch it.
        document = {
            "serviceId": service["_id"],
            "serviceName": service.get("serviceName", ""),
            "serviceImage": service.get("serviceImage", ""),
            "price": float(service.get("servicePrice") or 0),
            "providerEmail": service.get("providerEmail", ""),
            "providerName": service.get("providerName", ""),
            "userEmail": actor.email,
            "userName": actor.display_name or actor.email,
            "serviceTakingDate": request.service_taking_date.strip(),
            "specialInstruction": request.special_instruction.strip(),
            "status": BOOKING_INITIAL_STATUS,
            "createdAt": now,
            "createdBy": actor.uid,
        }
        booking_id = self._gateway.insert_one(BOOKINGS, document)
        logger.info("Booking %s created by %s for service %s", booking_id, actor.email, service["_id"])
        return Booking.model_validate(self._load(booking_id))

    def list_all_bookings(self) -> List[Booking]:
        return [Booking.model_validate(doc) for doc in self._gateway.find_all(BOOKINGS)]

    def list_customer_bookings(self, *, email: str, actor: SessionUser) -> List[Booking]:
        if actor.email != email:
            logger.warning("%s denied listing bookings of customer %s", actor.email, email)
            raise PermissionDeniedError("Access denied - can only view your own bookings")
        return [Booking.model_validate(doc) for doc in self._gateway.find(BOOKINGS, {"userEmail": email})]

    def list_provider_bookings(self, *, email: str, actor: SessionUser) -> List[Booking]:
        if actor.email != email:
            logger.warning("%s denied listing bookings of provider %s", actor.email, email)
            raise PermissionDeniedError("Access denied - can only view your own provider bookings")
        return [Booking.model_validate(doc) for doc in self._gateway.find(BOOKINGS, {"providerEmail": email})]

    def update_booking_status(self, *, booking_id: str, actor: SessionUser, new_status: Optional[str]) -> Booking:
        if new_status not in BOOKING_STATUSES:
            raise ValidationError("Invalid status value. Must be: pending, working, or completed")

        existing = self._load(booking_id)
        if existing.get("providerEmail") != actor.email:
            logger.warning("%s denied status change on booking %s", actor.email, booking_id)
            raise PermissionDeniedError("Access denied - only service provider can update booking status")

        current_status = str(existing.get("status", BOOKING_INITIAL_STATUS))
        updated = self._gateway.update_by_id(
            BOOKINGS,
            booking_id,
            {"status": new_status, "updatedAt": datetime.now(timezone.utc), "updatedBy": actor.uid},
            expected_version=existing.get("version"),
        )
        if updated is None:
            raise ConflictError("Booking was modified concurrently; reload and retry")
        logger.info("Booking %s status %s -> %s by %s", booking_id, current_status, new_status, actor.email)
        return Booking.model_validate(updated)

    def cancel_booking(self, *, booking_id: str, actor: SessionUser) -> None:
        existing = self._load(booking_id)
        if actor.email not in {existing.get("userEmail"), existing.get("providerEmail")}:
            logger.warning("%s denied cancelling booking %s", actor.email, booking_id)
            raise PermissionDeniedError("Access denied - only booking owner or service provider can cancel booking")
        if existing.get("status") != BOOKING_INITIAL_STATUS:
            raise ValidationError("Only pending bookings can be cancelled")
        if not self._gateway.delete_by_id(BOOKINGS, booking_id, expected_version=existing.get("version")):
            raise ConflictError("Booking was modified concurrently; reload and retry")
        logger.info("Booking %s cancelled by %s", booking_id, actor.email)

    def booking_stats(self) -> BookingStats:
        stats = BookingStats()
        for doc in self._gateway.find_all(BOOKINGS, newest_first=False):
            stats.total_bookings += 1
            current = doc.get("status")
            if current == "pending":
                stats.pending_bookings += 1
            elif current == "working":
                stats.working_bookings += 1
            elif current == "completed":
                stats.completed_bookings += 1
            stats.total_revenue += float(doc.get("price") or 0)
        return stats
