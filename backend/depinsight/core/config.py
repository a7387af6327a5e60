from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "depinsight"
    API_V1_STR: str = "/api/v1"

    LOG_LEVEL: str = "INFO"

    # Redis Cache Settings
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_PREFIX: str = "di:"
    CACHE_ENABLED: bool = True
    CACHE_DEFAULT_TTL_HOURS: int = 1
    MEMORY_CACHE_MAX_ENTRIES: int = 5000

    # External APIs
    NPM_REGISTRY_URL: str = "https://registry.npmjs.org"
    OSV_API_URL: str = "https://api.osv.dev/v1"

    # Timeouts (seconds). Registry documents are the primary data source,
    # OSV lookups are auxiliary.
    REGISTRY_TIMEOUT_SECONDS: float = 30.0
    OSV_BATCH_TIMEOUT_SECONDS: float = 30.0
    OSV_DETAIL_TIMEOUT_SECONDS: float = 5.0

    # Resolution
    GRAPH_BATCH_SIZE: int = 20
    OSV_DETAIL_CONCURRENCY: int = 25

    # Representative install platform
    TARGET_OS: str = "linux"
    TARGET_CPU: str = "x64"
    TARGET_LIBC: str = "glibc"

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
