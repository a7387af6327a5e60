from fastapi import APIRouter, Depends

from depinsight.api import deps
from depinsight.core.cache import BaseCache

router = APIRouter()


@router.get("/live", summary="Liveness Probe")
async def liveness():
    """
    Liveness probe to check if the application process is running.
    """
    return {"status": "alive"}


@router.get("/ready", summary="Readiness Probe")
async def readiness(cache: BaseCache = Depends(deps.get_cache)):
    """
    Readiness probe.

    The cache is optional: without Redis every request goes to the upstream
    registries, so an unavailable cache is reported but never fails readiness.
    """
    components = {"cache": "unknown"}

    try:
        cache_health = await cache.health_check()
        if cache_health.get("status") == "healthy":
            components["cache"] = "connected"
        else:
            components["cache"] = "unavailable (degraded mode)"
    except Exception as e:
        components["cache"] = f"unavailable: {str(e)}"

    return {"status": "ready", "components": components}


@router.get("/cache", summary="Cache Health & Statistics")
async def cache_health(cache: BaseCache = Depends(deps.get_cache)):
    """
    Get detailed cache health status and statistics.

    Returns:
        Cache backend, connection status and hit rate.
    """
    try:
        return await cache.health_check()
    except Exception as e:
        return {
            "status": "error",
            "error": str(e),
            "available": False,
        }
