from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal
from uuid import UUID

from loguru import logger
from tortoise import timezone
from tortoise.exceptions import BaseORMException, IntegrityError
from tortoise.transactions import in_transaction

from app.errors import InternalError, ReviewExistsError
from app.models import Booking, BookingStatus, PaymentStatus, Review
from app.rules import ACTIVE_STATUSES
from app.schemas import (
    BookingFilters,
    BookingResponse,
    NewBooking,
    OccupiedRange,
    ReviewResponse,
)

_BOOKING_FIELDS = tuple(name for name in BookingResponse.model_fields if name != "review")


@asynccontextmanager
async def _store_errors(operation: str) -> AsyncIterator[None]:
    """Surface any ORM/driver failure as InternalError, without retrying."""
    try:
        yield
    except BaseORMException as exc:
        logger.exception("Booking store failure in {}", operation)
        raise InternalError(detail=f"{operation}: {exc}") from exc


def _to_response(inst: Booking, review: Review | None = None) -> BookingResponse:
    data = {name: getattr(inst, name) for name in _BOOKING_FIELDS}
    data["review"] = (
        ReviewResponse.model_validate(review, from_attributes=True) if review else None
    )
    return BookingResponse.model_validate(data)


class BookingCRUD:
    """Tortoise-backed booking store."""

    async def create_booking(self, data: NewBooking) -> BookingResponse | None:
        """
        Insert a PENDING/UNPAID booking unless an active booking on the same
        property conflicts with [check_in, check_out]. Returns None on conflict.

        The conflict check and the insert run in one transaction. On PostgreSQL
        a transaction-scoped advisory lock on the property id serializes
        concurrent creates, including when there is no existing row to lock.
        """
        async with _store_errors("create_booking"):
            async with in_transaction() as conn:
                if conn.capabilities.dialect == "postgres":
                    await conn.execute_query(
                        "SELECT pg_advisory_xact_lock(hashtext($1))",
                        [str(data.property_id)],
                    )

                # Same inclusive test as app.rules.ranges_conflict
                conflict = (
                    await Booking.filter(
                        property_id=data.property_id,
                        status__in=list(ACTIVE_STATUSES),
                        check_in__lte=data.check_out,
                        check_out__gte=data.check_in,
                    )
                    .select_for_update()
                    .using_db(conn)
                    .first()
                )
                if conflict is not None:
                    return None

                inst = await Booking.create(
                    using_db=conn,
                    **data.model_dump(),
                    status=BookingStatus.PENDING,
                    payment_status=PaymentStatus.UNPAID,
                )

        return _to_response(inst)

    async def get_booking(self, booking_id: UUID) -> BookingResponse | None:
        async with _store_errors("get_booking"):
            inst = await Booking.get_or_none(id=booking_id)
            if not inst:
                return None
            review = await Review.get_or_none(booking_id=booking_id)
        return _to_response(inst, review)

    async def list_bookings(
        self, filters: BookingFilters
    ) -> tuple[list[BookingResponse], int]:
        qs = Booking.all()

        if filters.guest_id is not None:
            qs = qs.filter(guest_id=filters.guest_id)
        if filters.host_id is not None:
            qs = qs.filter(host_id=filters.host_id)
        if filters.status is not None:
            qs = qs.filter(status=filters.status)

        offset = (filters.page - 1) * filters.limit

        async with _store_errors("list_bookings"):
            total = await qs.count()
            bookings = (
                await qs.order_by("-created_at").offset(offset).limit(filters.limit)
            )
            reviews = {}
            if bookings:
                reviews = {
                    r.booking_id: r
                    for r in await Review.filter(
                        booking_id__in=[b.id for b in bookings]
                    )
                }

        return [_to_response(b, reviews.get(b.id)) for b in bookings], total

    async def update_status(
        self,
        booking_id: UUID,
        expected: BookingStatus,
        new: BookingStatus,
        payment_status: PaymentStatus | None = None,
        total_price: Decimal | None = None,
    ) -> BookingResponse | None:
        """
        Compare-and-set the status. Payment status and total price, when given,
        change in the same UPDATE; a price change also requires the booking to
        still be unpaid. Returns None if the booking is gone or no longer
        matches.
        """
        qs = Booking.filter(id=booking_id, status=expected)
        values: dict = {"status": new, "updated_at": timezone.now()}
        if payment_status is not None:
            values["payment_status"] = payment_status
        if total_price is not None:
            qs = qs.filter(payment_status__not=PaymentStatus.PAID)
            values["total_price"] = total_price

        async with _store_errors("update_status"):
            updated = await qs.update(**values)
        if not updated:
            return None
        return await self.get_booking(booking_id)

    async def update_total_price(
        self, booking_id: UUID, total_price: Decimal
    ) -> BookingResponse | None:
        """Returns None if the booking is gone or already paid."""
        async with _store_errors("update_total_price"):
            updated = await Booking.filter(
                id=booking_id, payment_status__not=PaymentStatus.PAID
            ).update(total_price=total_price, updated_at=timezone.now())
        if not updated:
            return None
        return await self.get_booking(booking_id)

    async def delete_booking(self, booking_id: UUID) -> bool:
        async with _store_errors("delete_booking"):
            try:
                async with in_transaction():
                    if await Review.exists(booking_id=booking_id):
                        raise ReviewExistsError()
                    deleted = await Booking.filter(id=booking_id).delete()
            except IntegrityError as exc:
                # A review was attached between the check and the delete
                raise ReviewExistsError() from exc
        return deleted > 0

    async def list_occupied(self, property_id: UUID) -> list[OccupiedRange]:
        """Return held date ranges for a property, no guest info exposed."""
        async with _store_errors("list_occupied"):
            bookings = (
                await Booking.filter(
                    property_id=property_id,
                    status__in=list(ACTIVE_STATUSES),
                )
                .order_by("check_in")
                .only("check_in", "check_out")
            )
        return [OccupiedRange.model_validate(b, from_attributes=True) for b in bookings]


booking_crud = BookingCRUD()
