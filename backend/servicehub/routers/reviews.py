from fastapi import APIRouter, Depends, Query, status

from servicehub.auth import require_authenticated_user
from servicehub.dependencies import get_review_store, raise_http_error
from servicehub.models import Review, ReviewCreateRequest, ReviewCreateResponse, ReviewStats, SessionUser
from servicehub.services.errors import ServiceHubError
from servicehub.services.review_store import DEFAULT_RECENT_LIMIT, ReviewStore

router = APIRouter(prefix="/reviews", tags=["reviews"])


def _parse_limit(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        return DEFAULT_RECENT_LIMIT


@router.get("/recent", response_model=list[Review])
def recent_reviews(
    limit: str = Query(default=str(DEFAULT_RECENT_LIMIT)),
    store: ReviewStore = Depends(get_review_store),
):
    return store.recent_reviews(_parse_limit(limit))


@router.get("/stats", response_model=ReviewStats)
def review_stats(store: ReviewStore = Depends(get_review_store)):
    return store.review_stats()


@router.post("", response_model=ReviewCreateResponse, status_code=status.HTTP_201_CREATED)
def create_review(
    request: ReviewCreateRequest,
    user: SessionUser = Depends(require_authenticated_user),
    store: ReviewStore = Depends(get_review_store),
):
    review = store.add_review(actor=user, request=request)
    return ReviewCreateResponse(review_id=review.id, review=review)


@router.get("/service/{service_id}", response_model=list[Review])
def service_reviews(service_id: str, store: ReviewStore = Depends(get_review_store)):
    return store.list_service_reviews(service_id)


@router.get("/user/{email}", response_model=list[Review])
def customer_reviews(
    email: str,
    user: SessionUser = Depends(require_authenticated_user),
    store: ReviewStore = Depends(get_review_store),
):
    try:
        return store.list_customer_reviews(email=email, actor=user)
    except ServiceHubError as exc:
        raise_http_error(exc)
