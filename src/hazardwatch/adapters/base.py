"""Base protocol, shared plumbing and error hierarchy for source adapters.

Every provider gets one adapter. An adapter fetches and parses one
provider's data into canonical records and never raises past its own
boundary: failures come back as a ``SourceResult`` with an error status
and no records, which is a valid "no data" outcome for the run.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

import httpx

from hazardwatch.models import (
    FetchWindow,
    ParseOutcome,
    ResultStatus,
    SourceCategory,
    SourceResult,
)

logger = logging.getLogger(__name__)

USER_AGENT = "hazardwatch/0.1"


@runtime_checkable
class SourceAdapter(Protocol):
    """Protocol for all provider adapters.

    The @runtime_checkable decorator enables isinstance() checks without
    explicit inheritance.

    Error Handling Contract:
    - fetch() and fetch_result() never raise.
    - SourceUnavailable, MalformedResponse, MissingConfiguration are
      raised internally and mapped to a SourceResult status.
    """

    @property
    def source_name(self) -> str:
        """Unique identifier for this provider (e.g., 'ioda', 'views')."""
        ...

    @property
    def category(self) -> SourceCategory:
        """Which canonical record family this adapter produces."""
        ...

    async def fetch(self, window: FetchWindow | None = None) -> list[Any]:
        """Fetch canonical records, or an empty list on any failure."""
        ...

    async def fetch_result(self, window: FetchWindow | None = None) -> SourceResult:
        """Fetch canonical records along with the outcome classification."""
        ...

    async def close(self) -> None:
        """Release the HTTP client."""
        ...


class SourceError(Exception):
    """Base exception for all adapter-internal errors.

    Attributes:
        source_name: The adapter that raised this error.
        message: Human-readable error description.
    """

    status = ResultStatus.UNAVAILABLE

    def __init__(self, source_name: str, message: str) -> None:
        self.source_name = source_name
        self.message = message
        super().__init__(f"[{source_name}] {message}")


class SourceUnavailable(SourceError):
    """Network failure, timeout, or non-2xx response.

    Contributes zero records to the run. Not retried within a run.
    """

    def __init__(
        self,
        source_name: str,
        details: str | None = None,
        status_code: int | None = None,
    ) -> None:
        msg = "Source unavailable"
        if status_code is not None:
            msg = f"Source returned HTTP {status_code}"
        if details:
            msg = f"{msg}: {details}"
        super().__init__(source_name, msg)
        self.status_code = status_code


class SourceTimeout(SourceUnavailable):
    """Request timed out."""

    status = ResultStatus.TIMED_OUT

    def __init__(self, source_name: str, timeout_seconds: float | None = None) -> None:
        details = "request timed out"
        if timeout_seconds is not None:
            details = f"request timed out after {timeout_seconds}s"
        super().__init__(source_name, details)
        self.timeout_seconds = timeout_seconds


class MalformedResponse(SourceError):
    """Response body did not have the expected top-level shape.

    Individual bad records are skipped without raising this.
    """

    status = ResultStatus.MALFORMED

    def __init__(self, source_name: str, details: str | None = None) -> None:
        msg = "Malformed response"
        if details:
            msg = f"Malformed response: {details}"
        super().__init__(source_name, msg)
        self.details = details


class MissingConfiguration(SourceError):
    """A required credential or setting is absent; skip the source."""

    status = ResultStatus.UNCONFIGURED

    def __init__(self, source_name: str, details: str | None = None) -> None:
        msg = "Missing configuration"
        if details:
            msg = f"Missing configuration: {details}"
        super().__init__(source_name, msg)
        self.details = details


def handle_http_status(source_name: str, response: httpx.Response) -> None:
    """Raise SourceUnavailable for any non-2xx response."""
    if not response.is_success:
        raise SourceUnavailable(source_name, status_code=response.status_code)


def decode_json(source_name: str, response: httpx.Response) -> Any:
    """Decode a JSON body, raising MalformedResponse on failure."""
    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponse(source_name, f"invalid JSON: {e}") from e


class HTTPSourceAdapter(ABC):
    """Shared plumbing for httpx-backed adapters.

    Subclasses set SOURCE_NAME, CATEGORY and DEFAULT_TIMEOUT and implement
    ``_collect``, which may raise SourceError (or httpx errors) freely.
    ``fetch_result`` turns every failure into a SourceResult.
    """

    SOURCE_NAME = ""
    CATEGORY = SourceCategory.OUTAGE
    DEFAULT_TIMEOUT = 15.0  # seconds

    def __init__(self, timeout: float | None = None) -> None:
        self._client: httpx.AsyncClient | None = None
        self._timeout = timeout or self.DEFAULT_TIMEOUT

    @property
    def source_name(self) -> str:
        """Unique identifier for this data source."""
        return self.SOURCE_NAME

    @property
    def category(self) -> SourceCategory:
        return self.CATEGORY

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            )
        return self._client

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        """GET a URL and decode JSON, mapping transport errors to SourceError."""
        client = await self._get_client()
        try:
            response = await client.get(url, **kwargs)
        except httpx.TimeoutException as e:
            raise SourceTimeout(self.source_name, self._timeout) from e
        except httpx.HTTPError as e:
            raise SourceUnavailable(self.source_name, str(e) or type(e).__name__) from e
        handle_http_status(self.source_name, response)
        return decode_json(self.source_name, response)

    @abstractmethod
    async def _collect(self, window: FetchWindow | None) -> ParseOutcome:
        """Fetch and parse one provider response into canonical records."""

    async def fetch_result(self, window: FetchWindow | None = None) -> SourceResult:
        """Fetch and normalize records, classifying any failure.

        Returns:
            SourceResult. Never raises (except on task cancellation).
        """
        try:
            outcome = await self._collect(window)
        except MissingConfiguration as e:
            logger.info(f"Skipping {self.source_name}: {e.message}")
            return SourceResult(source_name=self.source_name, status=e.status, error=e.message)
        except SourceError as e:
            logger.warning(f"Source {self.source_name} failed: {e.message}")
            return SourceResult(source_name=self.source_name, status=e.status, error=e.message)
        except httpx.HTTPError as e:
            logger.warning(f"Source {self.source_name} failed: {e}")
            return SourceResult(
                source_name=self.source_name,
                status=ResultStatus.UNAVAILABLE,
                error=str(e) or type(e).__name__,
            )
        except Exception as e:
            logger.error(f"Unexpected error from {self.source_name}: {e}")
            return SourceResult(
                source_name=self.source_name,
                status=ResultStatus.MALFORMED,
                error=str(e) or type(e).__name__,
            )

        records = outcome.records
        if window is not None:
            records = [r for r in records if window.contains(r.lat, r.lon)]

        if outcome.skipped:
            logger.debug(f"Source {self.source_name} skipped {outcome.skipped} malformed records")
        logger.debug(f"Source {self.source_name} returned {len(records)} records")
        return SourceResult(
            source_name=self.source_name,
            status=ResultStatus.SUCCESS if records else ResultStatus.NO_DATA,
            records=records,
            skipped=outcome.skipped,
        )

    async def fetch(self, window: FetchWindow | None = None) -> list[Any]:
        """Fetch canonical records, or an empty list on any failure."""
        result = await self.fetch_result(window)
        return result.records

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug(f"{self.source_name} adapter client closed")


__all__ = [
    "HTTPSourceAdapter",
    "MalformedResponse",
    "MissingConfiguration",
    "SourceAdapter",
    "SourceError",
    "SourceTimeout",
    "SourceUnavailable",
    "USER_AGENT",
    "decode_json",
    "handle_http_status",
]
