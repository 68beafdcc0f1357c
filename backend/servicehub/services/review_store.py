import logging
import math
from datetime import datetime, timezone
from typing import List

from servicehub.models import Review, ReviewCreateRequest, ReviewStats, SessionUser
from servicehub.services.errors import PermissionDeniedError
from servicehub.services.storage import REVIEWS, StorageGateway

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5
DEFAULT_RECENT_LIMIT = 4
MAX_RECENT_LIMIT = 50


def _clamp_rating(value: float) -> int:
    # Half-up rounding; the stored rating is always a whole star count.
    return max(MIN_RATING, min(MAX_RATING, math.floor(value + 0.5)))


class ReviewStore:
    """Append-only customer feedback.

    ``serviceId``/``bookingId`` are soft references: nothing checks that the
    booking exists, belongs to the reviewer or is completed.
    """

    def __init__(self, gateway: StorageGateway) -> None:
        self._gateway = gateway

    def add_review(self, *, actor: SessionUser, request: ReviewCreateRequest) -> Review:
        document = {
            "serviceId": request.service_id,
            "serviceName": request.service_name,
            "bookingId": request.booking_id,
            "providerEmail": request.provider_email,
            "providerName": request.provider_name,
            "customerEmail": actor.email,
            "customerName": actor.display_name or actor.email,
            "customerImage": actor.photo_url,
            "rating": _clamp_rating(request.rating),
            "title": request.title.strip(),
            "comment": request.comment.strip(),
            "createdAt": datetime.now(timezone.utc),
            "createdBy": actor.uid,
        }
        review_id = self._gateway.insert_one(REVIEWS, document)
        logger.info("Review %s added by %s", review_id, actor.email)
        return Review.model_validate(self._gateway.find_by_id(REVIEWS, review_id))

    def list_service_reviews(self, service_id: str) -> List[Review]:
        return [Review.model_validate(doc) for doc in self._gateway.find(REVIEWS, {"serviceId": service_id})]

    def list_customer_reviews(self, *, email: str, actor: SessionUser) -> List[Review]:
        if actor.email != email:
            logger.warning("%s denied listing reviews of %s", actor.email, email)
            raise PermissionDeniedError("Access denied - can only view your own reviews")
        return [Review.model_validate(doc) for doc in self._gateway.find(REVIEWS, {"customerEmail": email})]

    def recent_reviews(self, limit: int = DEFAULT_RECENT_LIMIT) -> List[Review]:
        limit = max(1, min(MAX_RECENT_LIMIT, limit))
        return [Review.model_validate(doc) for doc in self._gateway.find_all(REVIEWS, limit=limit)]

    def review_stats(self) -> ReviewStats:
        # Full scan on every call; there is no maintained aggregate.
        stats = ReviewStats()
        customers = set()
        total = 0
        for doc in self._gateway.find_all(REVIEWS, newest_first=False):
            rating = int(doc.get("rating") or 0)
            if not MIN_RATING <= rating <= MAX_RATING:
                continue
            stats.total_reviews += 1
            total += rating
            stats.rating_distribution[str(rating)] += 1
            customers.add(doc.get("customerEmail"))
        if stats.total_reviews:
            stats.average_rating = round(total / stats.total_reviews, 2)
        stats.total_customers = len(customers)
        return stats
