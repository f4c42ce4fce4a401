from fastapi import Request

from app.services.property_cache import PropertyCache

def get_property_cache(request: Request) -> PropertyCache:
    """The process-wide cache built during application startup."""
    return request.app.state.property_cache
