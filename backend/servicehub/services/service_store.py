import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from servicehub.models import SessionUser, Service, ServiceCreateRequest, ServiceUpdateRequest
from servicehub.services.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from servicehub.services.storage import SERVICES, StorageGateway

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("serviceName", "serviceDescription", "providerName", "serviceArea")


class ServiceStore:
    """Service listings, scoped by the owning provider's email."""

    def __init__(self, gateway: StorageGateway) -> None:
        self._gateway = gateway

    def _load(self, service_id: str) -> Dict[str, Any]:
        if not self._gateway.is_valid_id(service_id):
            raise ValidationError("Invalid service ID format")
        document = self._gateway.find_by_id(SERVICES, service_id)
        if document is None:
            raise NotFoundError("Service not found")
        return document

    def _required_text(self, value: str, label: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValidationError(f"{label} is required")
        return cleaned

    def list_services(self) -> List[Service]:
        return [Service.model_validate(doc) for doc in self._gateway.find_all(SERVICES)]

    def get_service(self, service_id: str) -> Service:
        return Service.model_validate(self._load(service_id))

    def get_service_document(self, service_id: str) -> Dict[str, Any]:
        return self._load(service_id)

    def list_provider_services(self, *, provider_email: str, actor: SessionUser) -> List[Service]:
        if actor.email != provider_email:
            logger.warning("%s denied listing services of %s", actor.email, provider_email)
            raise PermissionDeniedError("Access denied - can only view your own services")
        rows = self._gateway.find(SERVICES, {"providerEmail": provider_email})
        return [Service.model_validate(doc) for doc in rows]

    def search_services(self, query: str) -> List[Service]:
        text = query.strip()
        if not text:
            raise ValidationError("Search query is required")
        return [Service.model_validate(doc) for doc in self._gateway.search(SERVICES, SEARCH_FIELDS, text)]

    def add_service(self, *, actor: SessionUser, request: ServiceCreateRequest) -> Service:
        now = datetime.now(timezone.utc)
        document = {
            "serviceName": self._required_text(request.service_name, "Service name"),
            "serviceDescription": request.service_description.strip(),
            "servicePrice": float(request.service_price),
            "serviceArea": self._required_text(request.service_area, "Service area"),
            "serviceImage": request.service_image.strip(),
            "providerEmail": actor.email,
            "providerName": (request.provider_name or actor.display_name or actor.email).strip(),
            "providerImage": request.provider_image or actor.photo_url,
            "createdAt": now,
            "createdBy": actor.uid,
        }
        service_id = self._gateway.insert_one(SERVICES, document)
        logger.info("Service %s created by %s", service_id, actor.email)
        return self.get_service(service_id)

    def update_service(self, *, service_id: str, actor: SessionUser, request: ServiceUpdateRequest) -> Service:
        existing = self._load(service_id)
        if existing.get("providerEmail") != actor.email:
            logger.warning("%s denied editing service %s", actor.email, service_id)
            raise PermissionDeniedError("Access denied - can only edit your own services")

        changes: Dict[str, Any] = request.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)
        for key, label in (("serviceName", "Service name"), ("serviceArea", "Service area")):
            if key in changes:
                changes[key] = self._required_text(changes[key], label)
        if "servicePrice" in changes:
            changes["servicePrice"] = float(changes["servicePrice"])
        changes.update(
            {
                "providerEmail": actor.email,
                "updatedAt": datetime.now(timezone.utc),
                "updatedBy": actor.uid,
            }
        )

        updated = self._gateway.update_by_id(SERVICES, service_id, changes, expected_version=existing.get("version"))
        if updated is None:
            raise ConflictError("Service was modified concurrently; reload and retry")
        logger.info("Service %s updated by %s", service_id, actor.email)
        return Service.model_validate(updated)

    def delete_service(self, *, service_id: str, actor: SessionUser) -> None:
        existing = self._load(service_id)
        if existing.get("providerEmail") != actor.email:
            logger.warning("%s denied deleting service %s", actor.email, service_id)
            raise PermissionDeniedError("Access denied - can only delete your own services")
        if not self._gateway.delete_by_id(SERVICES, service_id, expected_version=existing.get("version")):
            raise ConflictError("Service was modified concurrently; reload and retry")
        logger.info("Service %s deleted by %s", service_id, actor.email)
