"""
Booking lifecycle manager.

Owns the rules for creating bookings against a property calendar, moving them
through the status state machine, and deleting them. It holds no state of its
own: the booking store and the property/user directories are injected, so the
same manager runs against Tortoise in production and an in-memory store in
tests.
"""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from loguru import logger
from pydantic.alias_generators import to_camel

from app.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ReviewExistsError,
    ValidationError,
)
from app.models import BookingStatus, PaymentStatus
from app.rules import allowed_transitions, can_transition
from app.schemas import (
    BookingEnriched,
    BookingFilters,
    BookingPage,
    BookingResponse,
    BookingUpdate,
    NewBooking,
    OccupiedRange,
    Pagination,
    PropertySummary,
    UserSummary,
)

MAX_PAGE_SIZE = 100

_REQUIRED_FIELDS = (
    "property_id",
    "guest_id",
    "host_id",
    "check_in",
    "check_out",
    "total_price",
)


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class BookingStore(Protocol):
    async def create_booking(self, data: NewBooking) -> BookingResponse | None:
        """Atomic conflict check + insert. None means the dates are taken."""
        ...

    async def get_booking(self, booking_id: UUID) -> BookingResponse | None: ...

    async def list_bookings(
        self, filters: BookingFilters
    ) -> tuple[list[BookingResponse], int]: ...

    async def update_status(
        self,
        booking_id: UUID,
        expected: BookingStatus,
        new: BookingStatus,
        payment_status: PaymentStatus | None = None,
        total_price: Decimal | None = None,
    ) -> BookingResponse | None:
        """Compare-and-set; a price change also requires the booking to be unpaid."""
        ...

    async def update_total_price(
        self, booking_id: UUID, total_price: Decimal
    ) -> BookingResponse | None: ...

    async def delete_booking(self, booking_id: UUID) -> bool: ...

    async def list_occupied(self, property_id: UUID) -> list[OccupiedRange]: ...


class PropertyDirectory(Protocol):
    async def get_property(self, property_id: UUID) -> PropertySummary | None: ...

    async def get_by_ids(self, property_ids: set[UUID]) -> list[PropertySummary]: ...


class UserDirectory(Protocol):
    async def get_user(self, user_id: UUID) -> UserSummary | None: ...

    async def get_by_ids(self, user_ids: set[UUID]) -> list[UserSummary]: ...


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class BookingManager:
    def __init__(
        self,
        store: BookingStore,
        properties: PropertyDirectory,
        users: UserDirectory,
    ) -> None:
        self._store = store
        self._properties = properties
        self._users = users

    # -- create -------------------------------------------------------------

    async def create_booking(
        self,
        property_id: UUID | None = None,
        guest_id: UUID | None = None,
        host_id: UUID | None = None,
        check_in: date | None = None,
        check_out: date | None = None,
        total_price: Decimal | None = None,
    ) -> BookingEnriched:
        """
        Validate and persist a new PENDING/UNPAID booking.

        Checks run in a fixed order: required fields, date order, price,
        property availability, guest, host, and finally the calendar conflict,
        which the store performs atomically with the insert.
        """
        values = {
            "property_id": property_id,
            "guest_id": guest_id,
            "host_id": host_id,
            "check_in": check_in,
            "check_out": check_out,
            "total_price": total_price,
        }
        missing = [
            to_camel(name) for name in _REQUIRED_FIELDS if values[name] in (None, "")
        ]
        if missing:
            raise ValidationError(
                "Missing required fields", extra={"missingFields": missing}
            )

        if check_out <= check_in:
            raise ValidationError("checkOut must be later than checkIn")
        if total_price <= 0:
            raise ValidationError("totalPrice must be positive")

        prop = await self._properties.get_property(property_id)
        if prop is None or not prop.is_bookable:
            raise NotFoundError("Property not found or not available")

        guest, host = await asyncio.gather(
            self._users.get_user(guest_id),
            self._users.get_user(host_id),
        )
        if guest is None:
            raise NotFoundError("Guest not found")
        if host is None:
            raise NotFoundError("Host not found")

        created = await self._store.create_booking(NewBooking(**values))
        if created is None:
            logger.warning(
                "Booking rejected, dates taken: property_id={} {}..{}",
                property_id,
                check_in,
                check_out,
            )
            raise ConflictError("Property not available for the selected dates")

        logger.info(
            "Booking created: id={} property_id={} guest_id={} {}..{}",
            created.id,
            property_id,
            guest_id,
            check_in,
            check_out,
        )
        return BookingEnriched(
            **created.model_dump(), guest=guest, host=host, property=prop
        )

    # -- read ---------------------------------------------------------------

    async def get_booking(self, booking_id: UUID) -> BookingEnriched:
        booking = await self._require(booking_id)
        return (await self._enrich([booking]))[0]

    async def list_bookings(self, filters: BookingFilters) -> BookingPage:
        if filters.page < 1 or not 1 <= filters.limit <= MAX_PAGE_SIZE:
            raise ValidationError(
                "Invalid pagination parameters. Page must be >= 1, "
                f"limit between 1-{MAX_PAGE_SIZE}"
            )

        bookings, total = await self._store.list_bookings(filters)
        return BookingPage(
            pagination=Pagination.build(filters.page, filters.limit, total),
            bookings=await self._enrich(bookings),
        )

    async def list_occupied(self, property_id: UUID) -> list[OccupiedRange]:
        return await self._store.list_occupied(property_id)

    # -- update -------------------------------------------------------------

    async def transition_status(
        self, booking_id: UUID, new_status: BookingStatus
    ) -> BookingEnriched:
        updated = await self._transition(booking_id, new_status)
        return (await self._enrich([updated]))[0]

    async def update_total_price(
        self, booking_id: UUID, total_price: Decimal
    ) -> BookingEnriched:
        updated = await self._set_total_price(booking_id, total_price)
        return (await self._enrich([updated]))[0]

    async def update_booking(
        self, booking_id: UUID, payload: BookingUpdate
    ) -> BookingEnriched:
        """
        Apply a partial update. Every check runs before anything is written,
        and a price change paired with a status change is stored in the same
        write, so a rejected update leaves the booking untouched.
        """
        if payload.status is None and payload.total_price is None:
            raise ValidationError("No updatable fields provided")

        if payload.status is None:
            updated = await self._set_total_price(booking_id, payload.total_price)
        else:
            updated = await self._transition(
                booking_id, payload.status, total_price=payload.total_price
            )

        return (await self._enrich([updated]))[0]

    # -- delete -------------------------------------------------------------

    async def delete_booking(self, booking_id: UUID) -> BookingResponse:
        booking = await self._require(booking_id)
        if booking.review is not None:
            raise ReviewExistsError()

        if not await self._store.delete_booking(booking_id):
            raise NotFoundError("Booking not found")

        logger.info(
            "Booking deleted: id={} property_id={}", booking_id, booking.property_id
        )
        return booking

    # -- internals ----------------------------------------------------------

    async def _require(self, booking_id: UUID) -> BookingResponse:
        booking = await self._store.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    @staticmethod
    def _assert_transition(current: BookingStatus, new: BookingStatus) -> None:
        if not can_transition(current, new):
            raise InvalidTransitionError(
                current=current.value,
                attempted=new.value,
                allowed=[s.value for s in allowed_transitions(current)],
            )

    @staticmethod
    def _assert_price_change(booking: BookingResponse, total_price: Decimal) -> None:
        if total_price <= 0:
            raise ValidationError("totalPrice must be positive")
        if booking.payment_status == PaymentStatus.PAID:
            raise ValidationError("Total price cannot change once the booking is paid")

    async def _transition(
        self,
        booking_id: UUID,
        new_status: BookingStatus,
        total_price: Decimal | None = None,
    ) -> BookingResponse:
        booking = await self._require(booking_id)
        self._assert_transition(booking.status, new_status)
        if total_price is not None:
            self._assert_price_change(booking, total_price)

        # Confirmation implies payment was captured upstream
        payment_status = (
            PaymentStatus.PAID if new_status == BookingStatus.CONFIRMED else None
        )
        updated = await self._store.update_status(
            booking_id,
            booking.status,
            new_status,
            payment_status,
            total_price=total_price,
        )
        if updated is None:
            current = await self._require(booking_id)
            self._assert_transition(current.status, new_status)
            if total_price is not None:
                self._assert_price_change(current, total_price)
            raise ConflictError("Booking status changed concurrently, retry the request")

        logger.info(
            "Booking {} status {} -> {}", booking_id, booking.status, new_status
        )
        return updated

    async def _set_total_price(
        self, booking_id: UUID, total_price: Decimal
    ) -> BookingResponse:
        booking = await self._require(booking_id)
        self._assert_price_change(booking, total_price)

        updated = await self._store.update_total_price(booking_id, total_price)
        if updated is None:
            self._assert_price_change(await self._require(booking_id), total_price)
            raise ConflictError("Booking changed concurrently, retry the request")
        return updated

    async def _enrich(self, bookings: list[BookingResponse]) -> list[BookingEnriched]:
        """
        Attach guest, host and property summaries fetched in bulk from the
        directories. Directory failures leave the summaries as None.
        """
        if not bookings:
            return []

        property_ids = {b.property_id for b in bookings}
        user_ids = {b.guest_id for b in bookings} | {b.host_id for b in bookings}

        properties, users = await asyncio.gather(
            self._properties.get_by_ids(property_ids),
            self._users.get_by_ids(user_ids),
        )
        property_map = {p.id: p for p in properties}
        user_map = {u.id: u for u in users}

        return [
            BookingEnriched(
                **b.model_dump(),
                guest=user_map.get(b.guest_id),
                host=user_map.get(b.host_id),
                property=property_map.get(b.property_id),
            )
            for b in bookings
        ]
