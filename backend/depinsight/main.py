import logging

from fastapi import FastAPI

from depinsight.api import health
from depinsight.api.v1.endpoints import registry
from depinsight.core.cache import create_cache
from depinsight.core.config import settings
from depinsight.core.metrics import APP_VERSION, PrometheusMiddleware, metrics_response
from depinsight.services.osv import OsvClient
from depinsight.services.registry import NpmRegistryClient

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    Dependency analysis for npm packages.

    ## Features
    * **Install size**: Unpacked size of a package and every dependency it pulls in.
    * **Vulnerabilities**: Known vulnerabilities (OSV) across the whole dependency tree.
    * **Deprecations**: Deprecated packages anywhere in the tree.

    """,
    version=APP_VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
)

app.add_middleware(PrometheusMiddleware)


@app.on_event("startup")
async def startup_event():
    app.state.cache = create_cache()
    app.state.registry_client = NpmRegistryClient(cache=app.state.cache)
    app.state.osv_client = OsvClient()
    logger.info(f"{settings.PROJECT_NAME} started with {type(app.state.cache).__name__}")


@app.on_event("shutdown")
async def shutdown_event():
    await app.state.osv_client.close()
    await app.state.registry_client.close()
    await app.state.cache.close()


app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(registry.router, prefix=f"{settings.API_V1_STR}/registry", tags=["registry"])


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()


@app.get("/")
async def root():
    return {"message": "Welcome to the depinsight API"}
