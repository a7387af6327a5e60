import logging
from typing import List, Optional, Sequence, Tuple

import httpx
from pydantic import ValidationError

from depinsight.core.config import settings
from depinsight.core.constants import OSV_ECOSYSTEM
from depinsight.core.http_utils import HTTPRequestError, InstrumentedAsyncClient
from depinsight.models.osv import OsvBatchResponse, OsvQueryResponse

logger = logging.getLogger(__name__)


class OsvQueryError(HTTPRequestError):
    """An OSV query failed or returned an unusable response."""


class OsvClient:
    """
    Client for the OSV vulnerability database.

    query_batch answers "which of these packages have vulnerabilities" in a
    single request; query_detail fetches full records for one package.
    Both raise OsvQueryError on any failure so callers can count it.
    """

    service_name = "OSV API"

    def __init__(
        self,
        base_url: Optional[str] = None,
        batch_timeout: Optional[float] = None,
        detail_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.OSV_API_URL).rstrip("/")
        self.batch_timeout = (
            batch_timeout if batch_timeout is not None else settings.OSV_BATCH_TIMEOUT_SECONDS
        )
        self.detail_timeout = (
            detail_timeout if detail_timeout is not None else settings.OSV_DETAIL_TIMEOUT_SECONDS
        )
        self._client = InstrumentedAsyncClient(
            self.service_name, timeout=self.batch_timeout, transport=transport
        )

    async def close(self) -> None:
        await self._client.close()

    @staticmethod
    def _query(name: str, version: str) -> dict:
        return {"package": {"name": name, "ecosystem": OSV_ECOSYSTEM}, "version": version}

    async def query_batch(self, packages: Sequence[Tuple[str, str]]) -> List[OsvQueryResponse]:
        """
        POST /v1/querybatch for (name, version) pairs.

        Returns one result per input package, in input order.
        """
        if not packages:
            return []

        payload = {"queries": [self._query(name, version) for name, version in packages]}
        data = await self._post("querybatch", payload, self.batch_timeout)
        try:
            response = OsvBatchResponse.model_validate(data)
        except ValidationError as e:
            raise OsvQueryError(f"Malformed OSV batch response: {e.error_count()} errors")

        if len(response.results) != len(packages):
            raise OsvQueryError(
                f"OSV batch returned {len(response.results)} results for {len(packages)} queries"
            )
        return response.results

    async def query_detail(self, name: str, version: str) -> OsvQueryResponse:
        """POST /v1/query for full vulnerability records of one package."""
        data = await self._post("query", self._query(name, version), self.detail_timeout)
        try:
            return OsvQueryResponse.model_validate(data)
        except ValidationError as e:
            raise OsvQueryError(
                f"Malformed OSV response for {name}@{version}: {e.error_count()} errors"
            )

    async def _post(self, endpoint: str, payload: dict, timeout: float) -> dict:
        await self._client.start()
        url = f"{self.base_url}/{endpoint}"
        try:
            response = await self._client.post(url, json=payload, timeout=timeout)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException:
            raise OsvQueryError(f"Timeout calling {url}")
        except httpx.HTTPStatusError as e:
            raise OsvQueryError(
                f"HTTP {e.response.status_code} from {url}", status_code=e.response.status_code
            )
        except httpx.HTTPError as e:
            raise OsvQueryError(f"Request to {url} failed: {type(e).__name__}: {e}")
        except ValueError as e:
            raise OsvQueryError(f"Invalid JSON from {url}: {e}")

        if not isinstance(data, dict):
            raise OsvQueryError(f"Unexpected response type from {url}")
        return data
