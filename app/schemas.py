from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models import BookingStatus, PaymentStatus

T = TypeVar("T")

# Matches the bookings.total_price column
Price = Annotated[Decimal, Field(max_digits=10, decimal_places=2)]


class CamelModel(BaseModel):
    """Serialises as camelCase for the web front end, accepts either case on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class BookingCreate(CamelModel):
    """
    Every field is optional at the parsing layer so that the lifecycle manager
    can report all missing fields at once instead of failing on the first.
    """

    property_id: UUID | None = None
    guest_id: UUID | None = None
    host_id: UUID | None = None
    check_in: date | None = None
    check_out: date | None = None
    total_price: Price | None = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_is_missing(cls, v):
        return None if v == "" else v


class BookingUpdate(CamelModel):
    status: BookingStatus | None = None
    total_price: Price | None = None


class NewBooking(CamelModel):
    """Validated booking data handed to the store for the atomic insert."""

    property_id: UUID
    guest_id: UUID
    host_id: UUID
    check_in: date
    check_out: date
    total_price: Price


class BookingFilters(CamelModel):
    guest_id: UUID | None = None
    host_id: UUID | None = None
    status: BookingStatus | None = None

    # Pagination, range-checked by the lifecycle manager
    page: int = 1
    limit: int = 10


# ---------------------------------------------------------------------------
# External summaries
# ---------------------------------------------------------------------------


class UserSummary(CamelModel):
    id: UUID
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    avatar: str | None = None


class PropertySummary(CamelModel):
    id: UUID
    title: str | None = None
    status: str = "DRAFT"
    is_deleted: bool = False
    price_per_night: Decimal | None = None
    host_id: UUID | None = None
    city: str | None = None
    country: str | None = None

    @property
    def is_bookable(self) -> bool:
        return self.status.upper() == "ACTIVE" and not self.is_deleted


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ReviewResponse(CamelModel):
    id: UUID
    booking_id: UUID
    property_id: UUID
    guest_id: UUID
    rating_cleanliness: int
    rating_comfort: int
    rating_location: int
    rating_value: int
    comment: str | None = None
    created_at: datetime


class BookingResponse(CamelModel):
    id: UUID
    property_id: UUID
    guest_id: UUID
    host_id: UUID
    check_in: date
    check_out: date
    total_price: Decimal
    status: BookingStatus
    payment_status: PaymentStatus
    created_at: datetime
    updated_at: datetime
    review: ReviewResponse | None = None


class BookingEnriched(BookingResponse):
    guest: UserSummary | None = None
    host: UserSummary | None = None
    property: PropertySummary | None = None


class OccupiedRange(CamelModel):
    """Dates held by an active booking; reveals no guest identity."""

    check_in: date
    check_out: date


class Pagination(CamelModel):
    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next: bool
    has_prev: bool
    next_page: int | None
    prev_page: int | None

    @classmethod
    def build(cls, page: int, limit: int, total_count: int) -> Pagination:
        total_pages = -(-total_count // limit)
        has_next = page < total_pages
        has_prev = page > 1
        return cls(
            page=page,
            limit=limit,
            total_count=total_count,
            total_pages=total_pages,
            has_next=has_next,
            has_prev=has_prev,
            next_page=page + 1 if has_next else None,
            prev_page=page - 1 if has_prev else None,
        )


class BookingPage(CamelModel):
    pagination: Pagination
    bookings: list[BookingEnriched]


class ApiResponse(CamelModel, Generic[T]):
    success: bool = True
    data: T
    message: str | None = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str
