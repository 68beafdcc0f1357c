from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

BookingStatus = Literal["pending", "working", "completed"]


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False)


class MessageResponse(WireModel):
    message: str


# ---------------------------------------------------------------- identity


class SessionUser(WireModel):
    uid: str
    email: str
    display_name: str = ""
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    email_verified: bool = False
    login_time: Optional[str] = None


class FirebaseLoginRequest(WireModel):
    id_token: Optional[str] = None
    uid: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoURL")


class AuthLoginResponse(WireModel):
    message: str = "Authentication successful"
    token: str
    expires_at: str
    user: SessionUser


class AuthVerifyResponse(WireModel):
    message: str = "Token is valid"
    user: SessionUser


# ---------------------------------------------------------------- services


class ServiceCreateRequest(WireModel):
    service_name: str = Field(min_length=1)
    service_description: str = ""
    service_price: float = Field(gt=0)
    service_area: str = Field(min_length=1)
    service_image: str = ""
    provider_name: Optional[str] = None
    provider_image: Optional[str] = None


class ServiceUpdateRequest(WireModel):
    service_name: Optional[str] = Field(default=None, min_length=1)
    service_description: Optional[str] = None
    service_price: Optional[float] = Field(default=None, gt=0)
    service_area: Optional[str] = Field(default=None, min_length=1)
    service_image: Optional[str] = None
    provider_name: Optional[str] = None
    provider_image: Optional[str] = None


class Service(WireModel):
    id: str = Field(alias="_id")
    service_name: str
    service_description: str = ""
    service_price: float
    service_area: str
    service_image: str = ""
    provider_email: str
    provider_name: str = ""
    provider_image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1


class ServiceCreateResponse(WireModel):
    message: str = "Service added successfully"
    service_id: str
    service: Service


# ---------------------------------------------------------------- bookings


class BookingCreateRequest(WireModel):
    service_id: str = Field(min_length=1)
    service_taking_date: str = Field(min_length=1)
    special_instruction: str = ""


class BookingStatusUpdateRequest(WireModel):
    status: Optional[str] = None
    service_status: Optional[str] = None

    @property
    def requested_status(self) -> Optional[str]:
        return self.status or self.service_status


class Booking(WireModel):
    id: str = Field(alias="_id")
    service_id: str
    service_name: str
    service_image: str = ""
    price: float
    provider_email: str
    provider_name: str = ""
    user_email: str
    user_name: str = ""
    service_taking_date: str
    special_instruction: str = ""
    status: BookingStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1

    # Older clients read the status under this name; storage keeps only ``status``.
    @computed_field(alias="serviceStatus")
    @property
    def service_status(self) -> str:
        return self.status


class BookingCreateResponse(WireModel):
    message: str = "Service booked successfully"
    booking_id: str
    booking: Booking


class BookingStatusUpdateResponse(WireModel):
    message: str = "Booking status updated successfully"
    status: BookingStatus
    service_status: BookingStatus


class BookingStats(WireModel):
    total_bookings: int = 0
    pending_bookings: int = 0
    working_bookings: int = 0
    completed_bookings: int = 0
    total_revenue: float = 0.0


# ---------------------------------------------------------------- reviews


class ReviewCreateRequest(WireModel):
    service_id: str = ""
    service_name: str = ""
    booking_id: str = ""
    provider_email: str = ""
    provider_name: str = ""
    rating: float
    title: str = ""
    comment: str = ""


class Review(WireModel):
    id: str = Field(alias="_id")
    service_id: str = ""
    service_name: str = ""
    booking_id: str = ""
    provider_email: str = ""
    provider_name: str = ""
    customer_email: str
    customer_name: str = ""
    customer_image: Optional[str] = None
    rating: int = Field(ge=1, le=5)
    title: str = ""
    comment: str = ""
    created_at: Optional[datetime] = None


class ReviewCreateResponse(WireModel):
    message: str = "Review added successfully"
    review_id: str
    review: Review


class ReviewStats(WireModel):
    total_reviews: int = 0
    average_rating: float = 0.0
    rating_distribution: Dict[str, int] = Field(default_factory=lambda: {str(n): 0 for n in range(5, 0, -1)})
    total_customers: int = 0


# ---------------------------------------------------------------- health


class ReadyResponse(WireModel):
    status: str = "ready"
    database: str
    stats: Dict[str, int]
    endpoints: List[str] = Field(default_factory=list)
