from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from structlog import get_logger
from app.config import settings
from app.dependencies.cache import get_property_cache
from app.errors import UpstreamFetchError
from app.logging_config import configure_logging
from app.routers import properties
from app.schemas.property import HealthResponse
from app.services.crm import CrmClient
from app.services.property_cache import PropertyCache

logger = get_logger()

async def warm_property_cache(cache: PropertyCache):
    try:
        data = await cache.fetch_properties(force_refresh=True)
        logger.info("Scheduled property refresh finished", total=data.total)
    except UpstreamFetchError as e:
        # Keep serving the previous snapshot; the next run tries again
        logger.error("Scheduled property refresh failed", error=e.message, status_code=e.status_code)

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.is_production)
    client = CrmClient()
    cache = PropertyCache(client)
    app.state.property_cache = cache

    scheduler = None
    if settings.REFRESH_INTERVAL_MINUTES > 0:
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            warm_property_cache,
            "interval",
            minutes=settings.REFRESH_INTERVAL_MINUTES,
            args=[cache],
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        logger.info("Property refresh scheduled", interval_minutes=settings.REFRESH_INTERVAL_MINUTES)
    try:
        yield
    finally:
        if scheduler:
            scheduler.shutdown(wait=False)
        await client.aclose()

app = FastAPI(title="Property Map API", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=settings.cors_origins, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])

@app.exception_handler(UpstreamFetchError)
async def upstream_fetch_error_handler(request: Request, exc: UpstreamFetchError):
    logger.error("Error fetching properties", path=request.url.path, error=exc.message, status_code=exc.status_code)
    return JSONResponse(
        status_code=500,
        content={"error": "Failed to fetch properties from PropertyPipeline", "message": exc.message},
    )

@app.get("/health", response_model=HealthResponse)
async def health(cache: PropertyCache = Depends(get_property_cache)):
    snapshot = cache.snapshot()
    return {
        "status": "ok",
        "cached_properties": snapshot.total if snapshot else 0,
        "last_fetched": snapshot.last_fetched if snapshot else None,
        "refreshing": cache.is_refreshing,
    }

app.include_router(properties.router)
