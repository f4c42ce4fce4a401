"""In-memory property cache with single-flight refresh.

One ``PropertyCache`` is built per process by the application lifespan and
kept on ``app.state``. Requests read the cached snapshot; a refresh replaces
the snapshot wholesale and concurrent refresh requests share one upstream
fetch sequence.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone

from structlog import get_logger

from app.config import settings
from app.errors import UpstreamFetchError
from app.schemas.property import PropertiesResponse, Property
from app.services.crm import CrmClient, normalize_record

logger = get_logger()


@dataclass(frozen=True)
class CacheSnapshot:
    properties: tuple[Property, ...]
    last_fetched: str

    def to_response(self) -> PropertiesResponse:
        return PropertiesResponse(
            properties=list(self.properties),
            total=len(self.properties),
            last_fetched=self.last_fetched,
        )


class PropertyCache:
    def __init__(self, client: CrmClient, page_size: int | None = None):
        self.client = client
        self.page_size = page_size or settings.ESPOCRM_PAGE_SIZE
        self._snapshot: CacheSnapshot | None = None
        self._refresh_task: asyncio.Task | None = None

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None

    def snapshot(self) -> PropertiesResponse | None:
        if self._snapshot is None:
            return None
        return self._snapshot.to_response()

    async def fetch_properties(self, force_refresh: bool = False) -> PropertiesResponse:
        """Return the cached snapshot, refreshing it from the CRM when needed.

        Raises UpstreamFetchError when a refresh is required and the CRM
        yields no records at all.
        """
        snapshot = self._snapshot
        if not force_refresh and snapshot is not None and snapshot.properties and snapshot.last_fetched:
            return snapshot.to_response()

        # No await between the check and the assignment, so the event loop
        # cannot interleave a second caller here
        task = self._refresh_task
        if task is None:
            task = asyncio.create_task(self._refresh())
            task.add_done_callback(self._refresh_done)
            self._refresh_task = task
        else:
            logger.info("Joining in-flight property refresh")
        # A cancelled caller must not cancel the refresh other callers wait on
        return await asyncio.shield(task)

    def _refresh_done(self, task: asyncio.Task):
        if self._refresh_task is task:
            self._refresh_task = None
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Property refresh failed", error=str(task.exception()))

    def _normalize_page(self, records: list, offset: int) -> list[Property]:
        properties = []
        for raw in records:
            if not isinstance(raw, dict):
                logger.warning("Skipping non-object CRM record", offset=offset)
                continue
            try:
                properties.append(normalize_record(raw))
            except ValueError as e:
                logger.warning("Skipping CRM record", offset=offset, error=str(e))
        return properties

    async def _refresh(self) -> PropertiesResponse:
        accumulated: list[Property] = []
        offset = 0
        logger.info("Starting property refresh", upstream=self.client.base_url, page_size=self.page_size)

        while True:
            logger.info("Fetching property page", offset=offset)
            try:
                page = await self.client.fetch_page(offset, self.page_size)
                properties = self._normalize_page(page.records, offset)
            except Exception as e:
                status_code = e.status_code if isinstance(e, UpstreamFetchError) else None
                logger.error("Error fetching property page", offset=offset, status_code=status_code, error=str(e))
                if accumulated:
                    logger.warning("Keeping partial property list", fetched=len(accumulated))
                    break
                if isinstance(e, UpstreamFetchError):
                    raise
                raise UpstreamFetchError(
                    f"CRM page could not be read: {type(e).__name__}: {e}", offset=offset, url=self.client.base_url
                ) from e

            accumulated.extend(properties)
            logger.info("Fetched property page", received=len(page.records), fetched=len(accumulated), total=page.total)
            if len(page.records) < self.page_size or len(accumulated) >= page.total:
                break
            offset += self.page_size

        snapshot = CacheSnapshot(
            properties=tuple(accumulated),
            last_fetched=datetime.now(timezone.utc).isoformat(),
        )
        self._snapshot = snapshot
        logger.info("Property refresh complete", total=len(accumulated))
        return snapshot.to_response()
