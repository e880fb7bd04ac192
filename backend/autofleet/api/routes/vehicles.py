"""
Vehicle endpoints with Redis caching on list operations.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from autofleet.core.logging import get_logger
from autofleet.core.security import Actor, get_current_actor
from autofleet.db.session import get_db
from autofleet.models.enums import ListingType, VehicleStatus
from autofleet.schemas.vehicle import (
    AvailabilityResponse,
    VehicleCreate,
    VehicleListResponse,
    VehicleResponse,
)
from autofleet.services.cache_service import (
    get_cached_vehicles,
    invalidate_vehicle_cache,
    set_cached_vehicles,
)
from autofleet.services.vehicle_service import (
    create_vehicle,
    get_availability,
    get_vehicle,
    list_vehicles,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/vehicles", tags=["Vehicles"])


@router.post("/", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle_endpoint(
    vehicle_data: VehicleCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """List a vehicle for rent or sale. Owners and admins only."""
    vehicle = await create_vehicle(db, actor, vehicle_data)
    await invalidate_vehicle_cache()
    return vehicle


@router.get("/", response_model=VehicleListResponse)
async def list_vehicles_endpoint(
    listing_type: Optional[ListingType] = Query(None),
    status_filter: Optional[VehicleStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """
    List vehicles with pagination.
    Results are cached in Redis for 5 minutes and invalidated whenever a
    booking changes a vehicle's status.
    """
    type_key = listing_type.value if listing_type else None
    status_key = status_filter.value if status_filter else None

    cached = await get_cached_vehicles(type_key, status_key, page, page_size)
    if cached:
        logger.info("vehicles_list_cache_hit", page=page)
        cached["cached"] = True
        return VehicleListResponse(**cached)

    vehicles, total = await list_vehicles(db, listing_type, status_filter, page, page_size)

    response_data = {
        "vehicles": [VehicleResponse.model_validate(v).model_dump(mode="json") for v in vehicles],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_vehicles(type_key, status_key, page, page_size, response_data)

    return VehicleListResponse(**response_data)


@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle_endpoint(
    vehicle_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a single vehicle. Not cached (needs the live status)."""
    return await get_vehicle(db, vehicle_id)


@router.get("/{vehicle_id}/availability", response_model=AvailabilityResponse)
async def vehicle_availability_endpoint(
    vehicle_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await get_availability(db, vehicle_id, start_date, end_date)
