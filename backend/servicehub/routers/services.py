import logging

from fastapi import APIRouter, Depends, status

from servicehub.auth import require_authenticated_user
from servicehub.dependencies import get_service_store, raise_http_error
from servicehub.models import (
    MessageResponse,
    Service,
    ServiceCreateRequest,
    ServiceCreateResponse,
    ServiceUpdateRequest,
    SessionUser,
)
from servicehub.services.errors import ServiceHubError
from servicehub.services.service_store import ServiceStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["services"])


@router.get("/services", response_model=list[Service])
def list_services(store: ServiceStore = Depends(get_service_store)):
    return store.list_services()


@router.get("/services/provider/{email}", response_model=list[Service])
def list_provider_services(
    email: str,
    user: SessionUser = Depends(require_authenticated_user),
    store: ServiceStore = Depends(get_service_store),
):
    try:
        return store.list_provider_services(provider_email=email, actor=user)
    except ServiceHubError as exc:
        raise_http_error(exc)


@router.get("/services/{service_id}", response_model=Service)
def get_service(service_id: str, store: ServiceStore = Depends(get_service_store)):
    try:
        return store.get_service(service_id)
    except ServiceHubError as exc:
        raise_http_error(exc)


@router.post("/services", response_model=ServiceCreateResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    request: ServiceCreateRequest,
    user: SessionUser = Depends(require_authenticated_user),
    store: ServiceStore = Depends(get_service_store),
):
    try:
        service = store.add_service(actor=user, request=request)
    except ServiceHubError as exc:
        raise_http_error(exc)
    return ServiceCreateResponse(service_id=service.id, service=service)


@router.put("/services/{service_id}", response_model=MessageResponse)
def update_service(
    service_id: str,
    request: ServiceUpdateRequest,
    user: SessionUser = Depends(require_authenticated_user),
    store: ServiceStore = Depends(get_service_store),
):
    try:
        store.update_service(service_id=service_id, actor=user, request=request)
    except ServiceHubError as exc:
        raise_http_error(exc)
    return MessageResponse(message="Service updated successfully")


@router.delete("/services/{service_id}", response_model=MessageResponse)
def delete_service(
    service_id: str,
    user: SessionUser = Depends(require_authenticated_user),
    store: ServiceStore = Depends(get_service_store),
):
    try:
        store.delete_service(service_id=service_id, actor=user)
    except ServiceHubError as exc:
        raise_http_error(exc)
    return MessageResponse(message="Service deleted successfully")


@router.get("/search/{query}", response_model=list[Service])
def search_services(query: str, store: ServiceStore = Depends(get_service_store)):
    try:
        results = store.search_services(query)
    except ServiceHubError as exc:
        raise_http_error(exc)
    logger.info("Search %r matched %d services", query, len(results))
    return results
