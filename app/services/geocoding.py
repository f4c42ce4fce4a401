from httpx import AsyncClient, HTTPError
from structlog import get_logger

from app.config import settings
from app.errors import GeocodingError
from app.schemas.property import GeocodeResult

logger = get_logger()

async def geocode_location(query: str, client: AsyncClient | None = None) -> GeocodeResult | None:
    """Look up a free-text place name with Nominatim.

    Returns the best match, or None when Nominatim knows no such place.
    """
    search = query.strip()
    if settings.GEOCODE_SUFFIX:
        search = f"{search}, {settings.GEOCODE_SUFFIX}"
    params = {
        "q": search,
        "format": "json",
        "limit": 1,
        "countrycodes": settings.GEOCODE_COUNTRY_CODES,
    }
    headers = {"User-Agent": settings.GEOCODE_USER_AGENT}

    owns_client = client is None
    if owns_client:
        client = AsyncClient(timeout=settings.GEOCODE_TIMEOUT)
    try:
        resp = await client.get(settings.NOMINATIM_URL, params=params, headers=headers)
        resp.raise_for_status()
        results = resp.json()
    except (HTTPError, ValueError) as e:
        logger.error("Geocoding request failed", query=query, error=str(e))
        raise GeocodingError(f"Location search failed: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if not isinstance(results, list) or not results:
        logger.info("Geocoding returned no results", query=query)
        return None

    first = results[0]
    try:
        lat = float(first["lat"])
        lon = float(first["lon"])
    except (KeyError, TypeError, ValueError) as e:
        raise GeocodingError("Location search returned an unreadable result") from e
    return GeocodeResult(latitude=lat, longitude=lon, display_name=first.get("display_name"))
