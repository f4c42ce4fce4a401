from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional
from app.dependencies.cache import get_property_cache
from app.errors import GeocodingError, UpstreamFetchError
from app.schemas.property import (
    ErrorResponse,
    FilterOptions,
    GeocodeResult,
    PropertiesResponse,
    PropertyFilter,
)
from app.services.filters import apply_filters, available_options, has_active_filters
from app.services.geocoding import geocode_location
from app.services.property_cache import PropertyCache
from structlog import get_logger

logger = get_logger()
router = APIRouter(prefix="/api", tags=["properties"])

async def _load_properties(cache: PropertyCache, force_refresh: bool = False) -> PropertiesResponse:
    try:
        return await cache.fetch_properties(force_refresh=force_refresh)
    except UpstreamFetchError:
        raise
    except Exception as e:
        # Rendered as the same 500 error body as an upstream failure
        logger.error("Unexpected error loading properties", error=str(e))
        raise UpstreamFetchError(f"{type(e).__name__}: {e}") from e

def property_filter(
    bedrooms_min: float = Query(0, ge=0, alias="bedroomsMin"),
    bedrooms_max: float = Query(10, ge=0, alias="bedroomsMax"),
    bathrooms_min: float = Query(0, ge=0, alias="bathroomsMin"),
    bathrooms_max: float = Query(10, ge=0, alias="bathroomsMax"),
    reception_rooms_min: float = Query(0, ge=0, alias="receptionRoomsMin"),
    reception_rooms_max: float = Query(10, ge=0, alias="receptionRoomsMax"),
    parking_types: Optional[List[str]] = Query(None, alias="parkingTypes"),
    property_types: Optional[List[str]] = Query(None, alias="propertyTypes"),
) -> PropertyFilter:
    return PropertyFilter(
        bedrooms_min=bedrooms_min,
        bedrooms_max=bedrooms_max,
        bathrooms_min=bathrooms_min,
        bathrooms_max=bathrooms_max,
        reception_rooms_min=reception_rooms_min,
        reception_rooms_max=reception_rooms_max,
        parking_types=parking_types or [],
        property_types=property_types or [],
    )

@router.get(
    "/properties",
    response_model=PropertiesResponse,
    responses={500: {"model": ErrorResponse}},
)
async def list_properties(
    refresh: Optional[str] = None,
    filters: PropertyFilter = Depends(property_filter),
    cache: PropertyCache = Depends(get_property_cache),
):
    """
    All cached properties; ``refresh=true`` forces a full reload from the CRM.
    Optional filter parameters narrow the list the same way the map does.
    """
    force_refresh = refresh == "true"
    data = await _load_properties(cache, force_refresh=force_refresh)
    if has_active_filters(filters):
        matched = apply_filters(data.properties, filters)
        logger.info("Filtered properties", matched=len(matched), total=data.total)
        data = PropertiesResponse(properties=matched, total=len(matched), last_fetched=data.last_fetched)
    return data

@router.get(
    "/properties/options",
    response_model=FilterOptions,
    responses={500: {"model": ErrorResponse}},
)
async def list_filter_options(cache: PropertyCache = Depends(get_property_cache)):
    data = await _load_properties(cache)
    return available_options(data.properties)

@router.get("/geocode", response_model=GeocodeResult)
async def geocode(q: str = Query(..., min_length=1, max_length=200)):
    """
    Resolve a place name to coordinates so the map can fly to it.
    """
    if not q.strip():
        raise HTTPException(status_code=422, detail="Query must not be blank")
    try:
        result = await geocode_location(q)
    except GeocodingError as e:
        raise HTTPException(status_code=502, detail=str(e))
    if result is None:
        raise HTTPException(status_code=404, detail="Location not found")
    logger.info("Geocoded location", query=q, latitude=result.latitude, longitude=result.longitude)
    return result
