"""
npm registry client.

Fetches packuments (full registry documents) and validates them into
Packument models. Documents are cached per package name; packages the
registry does not know are cached as negative results.
"""

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from depinsight.core.cache import (
    NEGATIVE_CACHE_MARKER,
    BaseCache,
    CacheKeys,
    CacheTTL,
)
from depinsight.core.config import settings
from depinsight.core.http_utils import HTTPRequestError, InstrumentedAsyncClient
from depinsight.models.registry import Packument

logger = logging.getLogger(__name__)


class RegistryRequestError(HTTPRequestError):
    """The registry could not be reached or returned an unusable document."""


def encode_package_name(name: str) -> str:
    """
    URL-encode a package name for the registry.

    Scoped names keep their leading '@' and encode the separator:
    '@scope/pkg' -> '@scope%2Fpkg'.
    """
    if name.startswith("@"):
        return "@" + quote(name[1:], safe="")
    return quote(name, safe="")


class NpmRegistryClient:
    """Package metadata provider backed by the public npm registry."""

    service_name = "npm registry"

    def __init__(
        self,
        cache: Optional[BaseCache] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cache = cache
        self.base_url = (base_url or settings.NPM_REGISTRY_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.REGISTRY_TIMEOUT_SECONDS
        self._client = InstrumentedAsyncClient(
            self.service_name,
            timeout=self.timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def start(self) -> None:
        await self._client.start()

    async def close(self) -> None:
        await self._client.close()

    async def __aenter__(self) -> "NpmRegistryClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def fetch_packument(self, name: str) -> Optional[Packument]:
        """
        Fetch and validate the registry document for a package.

        Returns None when the package does not exist, the request fails or
        times out, or the document cannot be validated.
        """
        try:
            return await self.load_packument(name)
        except RegistryRequestError as e:
            logger.warning(str(e))
            return None

    async def load_packument(self, name: str) -> Optional[Packument]:
        """
        Like fetch_packument, but only a missing package gives None.

        Raises RegistryRequestError when the registry cannot be reached or
        returns a document that cannot be used.
        """
        cache_key = CacheKeys.packument(name)

        if self.cache is not None:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                if cached == NEGATIVE_CACHE_MARKER:
                    return None
                try:
                    return Packument.model_validate(cached)
                except ValidationError:
                    logger.debug(f"Discarding unreadable cached packument for {name}")
                    await self.cache.delete(cache_key)

        data = await self._request_packument(name)

        if data == NEGATIVE_CACHE_MARKER:
            if self.cache is not None:
                await self.cache.set(cache_key, NEGATIVE_CACHE_MARKER, CacheTTL.NEGATIVE_RESULT)
            return None

        try:
            packument = Packument.model_validate(data)
        except ValidationError as e:
            raise RegistryRequestError(
                f"Invalid registry document for {name}: {e.error_count()} errors"
            )

        if self.cache is not None:
            await self.cache.set(cache_key, packument.to_cache(), CacheTTL.PACKUMENT)
        return packument

    async def get_latest_version(self, name: str) -> Optional[str]:
        """
        Version the 'latest' dist-tag points to.

        None if the package or the tag does not exist. Registry failures
        raise RegistryRequestError.
        """
        packument = await self.load_packument(name)
        if packument is None:
            return None
        return packument.latest_version

    async def _request_packument(self, name: str) -> Any:
        """Raw GET; NEGATIVE_CACHE_MARKER for 404, the decoded document otherwise."""
        url = f"{self.base_url}/{encode_package_name(name)}"
        # Long-lived client, closed by the owner via close()
        await self._client.start()

        try:
            response = await self._client.get(url)
            if response.status_code == 404:
                logger.debug(f"Package not found in registry: {name}")
                return NEGATIVE_CACHE_MARKER
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException:
            raise RegistryRequestError(f"Registry timeout fetching {name}")
        except httpx.HTTPStatusError as e:
            raise RegistryRequestError(
                f"Registry HTTP {e.response.status_code} fetching {name}",
                status_code=e.response.status_code,
            )
        except httpx.HTTPError as e:
            raise RegistryRequestError(
                f"Registry request failed for {name}: {type(e).__name__}: {e}"
            )
        except ValueError as e:
            raise RegistryRequestError(f"Registry returned invalid JSON for {name}: {e}")

        if not isinstance(data, dict):
            raise RegistryRequestError(f"Unexpected registry response type for {name}")
        return data
