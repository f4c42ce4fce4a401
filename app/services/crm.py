import math
from dataclasses import dataclass, field
from typing import Any, Mapping

from httpx import AsyncBaseTransport, AsyncClient, HTTPError
from structlog import get_logger

from app.config import settings
from app.errors import UpstreamFetchError
from app.schemas.property import Property

logger = get_logger()

_STRING_FIELDS = {
    "name": "name",
    "parking": "parking",
    "address_street": "addressStreet",
    "address_city": "addressCity",
    "address_state": "addressState",
    "address_country": "addressCountry",
    "address_postal_code": "addressPostalCode",
    "status": "status",
}
_COUNT_FIELDS = {
    "bedrooms": "bedrooms",
    "bathrooms": "bathrooms",
    "reception_rooms": "receptionRooms",
}

def _string(value: Any) -> str | None:
    # Empty string means "no value" upstream
    if isinstance(value, str) and value:
        return value
    return None

def _first_string(*values: Any) -> str | None:
    for value in values:
        s = _string(value)
        if s is not None:
            return s
    return None

def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large for a float
        return False

def _count(value: Any) -> int | float | None:
    if _is_number(value) and value >= 0:
        return value
    return None

def _coordinate(value: Any) -> float | None:
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        # float() reads "1_000" as 1000; the CRM never writes digit separators
        if "_" in text:
            return None
        try:
            parsed = float(text)
        except ValueError:
            return None
        # A zero parsed from text is how the CRM exports an unset coordinate
        if not math.isfinite(parsed) or parsed == 0:
            return None
        return parsed
    return None

def normalize_record(raw: Mapping[str, Any]) -> Property:
    """Decode one loosely-typed CRM record into a Property.

    Anything absent or of an unexpected shape becomes None; the record itself
    is only rejected when it has no id. Records already in Property shape
    (camelCase keys, ``type`` instead of ``propertyType``) decode to themselves.
    """
    record_id = raw.get("id")
    if record_id is None or record_id == "":
        raise ValueError("CRM record has no id")

    values: dict[str, Any] = {"id": str(record_id)}
    for attr, key in _STRING_FIELDS.items():
        values[attr] = _string(raw.get(key))
    for attr, key in _COUNT_FIELDS.items():
        values[attr] = _count(raw.get(key))
    values["type"] = _first_string(raw.get("propertyType"), raw.get("type"))
    values["listing_url"] = _first_string(raw.get("listingURL"), raw.get("listingUrl"))
    values["latitude"] = _coordinate(raw.get("latitude"))
    values["longitude"] = _coordinate(raw.get("longitude"))
    return Property(**values)

@dataclass
class CrmPage:
    records: list = field(default_factory=list)
    total: int = 0

class CrmClient:
    """Paginated reader for the CRM listing endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.ESPOCRM_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.ESPOCRM_API_KEY
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        self._client = AsyncClient(
            timeout=timeout if timeout is not None else settings.ESPOCRM_TIMEOUT,
            headers=headers,
            transport=transport,
        )

    async def fetch_page(self, offset: int, page_size: int) -> CrmPage:
        params = {"maxSize": page_size, "offset": offset, "orderBy": "name", "order": "asc"}
        try:
            response = await self._client.get(self.base_url, params=params)
        except HTTPError as e:
            raise UpstreamFetchError(
                f"CRM request failed: {type(e).__name__}: {e}", offset=offset, url=self.base_url
            ) from e
        if response.status_code >= 400:
            raise UpstreamFetchError(
                f"CRM API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                offset=offset,
                url=self.base_url,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamFetchError(
                "CRM API returned a non-JSON body", status_code=response.status_code, offset=offset, url=self.base_url
            ) from e
        if not isinstance(data, dict):
            raise UpstreamFetchError(
                "CRM API returned an unexpected payload", status_code=response.status_code, offset=offset, url=self.base_url
            )
        records = data.get("list") or []
        total = data.get("total") or 0
        if not isinstance(records, list):
            logger.warning("CRM page has no record list", offset=offset, list_type=type(records).__name__)
            records = []
        if not _is_number(total):
            total = 0
        return CrmPage(records=records, total=int(total))

    async def aclose(self):
        await self._client.aclose()
