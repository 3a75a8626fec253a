"""Public API: health check plus every resource router."""

from fastapi import APIRouter

from innkeeper.api.routes import (
    amenities,
    availability,
    bookings,
    guests,
    hotels,
    room_types,
    rooms,
)

router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


# availability before rooms: both live under /rooms
router.include_router(availability.router)
router.include_router(rooms.router)
router.include_router(room_types.router)
router.include_router(hotels.router)
router.include_router(guests.router)
router.include_router(bookings.router)
router.include_router(amenities.router)
