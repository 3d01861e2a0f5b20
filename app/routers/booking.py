from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from loguru import logger

from app.cache import get_occupied_cache, invalidate_occupied_cache, set_occupied_cache
from app.deps import get_booking_manager
from app.manager import BookingManager
from app.models import BookingStatus
from app.schemas import (
    ApiResponse,
    BookingCreate,
    BookingEnriched,
    BookingFilters,
    BookingPage,
    BookingUpdate,
    MessageResponse,
    OccupiedRange,
)

router = APIRouter(prefix="/bookings", tags=["bookings"])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/occupied", response_model=ApiResponse[list[OccupiedRange]])
async def get_occupied_dates(
    property_id: UUID = Query(alias="propertyId"),
    manager: BookingManager = Depends(get_booking_manager),
) -> ApiResponse[list[OccupiedRange]]:
    """
    Date ranges held by pending or confirmed bookings on a property.
    Response contains NO guest identity, so the calendar can be public.
    """
    cached = await get_occupied_cache(property_id)
    if cached is not None:
        logger.debug("Cache hit for occupied dates: property_id={}", property_id)
        return ApiResponse(data=[OccupiedRange.model_validate(r) for r in cached])

    logger.debug("Cache miss for occupied dates: property_id={}", property_id)
    ranges = await manager.list_occupied(property_id)
    await set_occupied_cache(property_id, [r.model_dump(mode="json") for r in ranges])
    return ApiResponse(data=ranges)


@router.get("", response_model=ApiResponse[BookingPage])
async def list_bookings(
    guest_id: UUID | None = Query(default=None, alias="guestId"),
    host_id: UUID | None = Query(default=None, alias="hostId"),
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1),
    limit: int = Query(default=10),
    manager: BookingManager = Depends(get_booking_manager),
) -> ApiResponse[BookingPage]:
    filters = BookingFilters(
        guest_id=guest_id,
        host_id=host_id,
        status=status_filter,
        page=page,
        limit=limit,
    )
    return ApiResponse(data=await manager.list_bookings(filters))


@router.post(
    "",
    response_model=ApiResponse[BookingEnriched],
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    payload: BookingCreate,
    manager: BookingManager = Depends(get_booking_manager),
) -> ApiResponse[BookingEnriched]:
    booking = await manager.create_booking(**payload.model_dump())
    await invalidate_occupied_cache(booking.property_id)
    return ApiResponse(data=booking, message="Booking created successfully")


@router.get("/{booking_id}", response_model=ApiResponse[BookingEnriched])
async def get_booking(
    booking_id: UUID,
    manager: BookingManager = Depends(get_booking_manager),
) -> ApiResponse[BookingEnriched]:
    return ApiResponse(data=await manager.get_booking(booking_id))


@router.patch("/{booking_id}", response_model=ApiResponse[BookingEnriched])
async def update_booking(
    booking_id: UUID,
    payload: BookingUpdate,
    manager: BookingManager = Depends(get_booking_manager),
) -> ApiResponse[BookingEnriched]:
    booking = await manager.update_booking(booking_id, payload)
    if payload.status is not None:
        await invalidate_occupied_cache(booking.property_id)
    return ApiResponse(data=booking, message="Booking updated successfully")


@router.delete("/{booking_id}", response_model=MessageResponse)
async def delete_booking(
    booking_id: UUID,
    manager: BookingManager = Depends(get_booking_manager),
) -> MessageResponse:
    booking = await manager.delete_booking(booking_id)
    await invalidate_occupied_cache(booking.property_id)
    return MessageResponse(message="Booking deleted successfully")
