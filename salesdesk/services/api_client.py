"""
Async HTTP client for the sales management REST API.

Covers the feedback endpoints (CRUD, signed upload / playback URLs, stats)
and the read-only client and product directories. Every failure is
translated by ``_request`` and ``_decode`` into ``NetworkOrExpiredError``
(transport problems) or ``ServerError`` (non-2xx answers, malformed bodies).
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from salesdesk.core.config import get_settings
from salesdesk.core.exceptions import NetworkOrExpiredError, ServerError
from salesdesk.core.models import (
    ClientSummary,
    FeedbackPage,
    FeedbackPayload,
    FeedbackRecord,
    FeedbackStats,
    PlaybackUrl,
    ProductSummary,
    SignedUpload,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _error_detail(response: httpx.Response) -> str:
    """Extract the human-readable reason from an API error body.

    The API answers either ``{"message": ...}`` or, for rejected request
    bodies, ``{"errors": [{"msg": ...}, ...]}``.
    """
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        if body.get("message"):
            return str(body["message"])
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            return "; ".join(str(e.get("msg", e)) if isinstance(e, dict) else str(e) for e in errors)
    return response.text or f"HTTP {response.status_code}"


def _decode(response: httpx.Response, parse: Callable[[Any], T]) -> T:
    """Parse a 2xx body, translating malformed payloads into ``ServerError``."""
    try:
        return parse(response.json())
    except (ValueError, TypeError, AttributeError) as exc:
        # ValueError covers both invalid JSON and pydantic ValidationError
        logger.warning("Malformed response from %s: %s", response.request.url.path, exc)
        raise ServerError("Unexpected response from the server", status_code=502) from None


class APIClient:
    """Thin async wrapper around ``httpx.AsyncClient`` for the REST API.

    All methods return parsed models or raise ``SalesDeskError`` subclasses.
    Idempotent reads are retried on transport failures; writes never are.

    Use as an async context manager, or call ``aclose()`` when done.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        read_attempts: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            base_url: API root, e.g. ``http://localhost:5000/api/v1``.
            token: Bearer token; falls back to settings.
            timeout: Per-request timeout in seconds.
            read_attempts: Total attempts for idempotent GET requests.
            transport: Optional httpx transport (used by tests).
        """
        settings = get_settings()
        self._base_url = (base_url or settings.api_base_url).rstrip("/")
        self._read_attempts = max(1, read_attempts)
        token = settings.api_token if token is None else token
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout or settings.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "APIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with error translation.

        Args:
            method: HTTP method name ("get", "post", "put", "delete").
            path: Endpoint path relative to the API root (e.g. "/feedback").
            **kwargs: Passed through to httpx (json, params, timeout, etc.).

        Returns:
            The httpx Response object with a successful status code.

        Raises:
            NetworkOrExpiredError: On connection, timeout or other transport errors.
            ServerError: On any non-2xx response.
        """
        try:
            resp = await self._client.request(method.upper(), path, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.TimeoutException:
            raise NetworkOrExpiredError("Request timed out. The server may be overloaded.") from None
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 401:
                detail = "Session expired. Please login again."
            else:
                detail = _error_detail(exc.response)
            logger.warning("%s %s failed with %d: %s", method.upper(), path, status, detail)
            raise ServerError(detail, status_code=status) from None
        except httpx.HTTPError as exc:
            raise NetworkOrExpiredError(f"Network error: {exc}") from None

    async def _get(self, path: str, **kwargs) -> httpx.Response:
        """GET with bounded retry on transport failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._read_attempts),
            wait=wait_exponential(multiplier=0.1, max=2),
            retry=retry_if_exception_type(NetworkOrExpiredError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info("Retrying GET %s (attempt %d)", path, attempt.retry_state.attempt_number)
                return await self._request("get", path, **kwargs)
        raise AssertionError("unreachable")  # pragma: no cover

    # -- feedback --

    async def list_feedback(
        self,
        page: int = 1,
        search: str = "",
        limit: int = 10,
        lead: str | None = None,
    ) -> FeedbackPage:
        params: dict = {"page": page, "limit": limit, "search": search}
        if lead:
            params["lead"] = lead
        resp = await self._get("/feedback", params=params)
        return _decode(resp, FeedbackPage.model_validate)

    async def get_feedback(self, feedback_id: str) -> FeedbackRecord:
        resp = await self._get(f"/feedback/{feedback_id}")
        return _decode(resp, FeedbackRecord.model_validate)

    async def create_feedback(self, payload: FeedbackPayload) -> FeedbackRecord:
        resp = await self._request("post", "/feedback", json=payload.to_request())
        record = _decode(resp, FeedbackRecord.model_validate)
        logger.info("Created feedback %s for client %s", record.id, payload.client)
        return record

    async def update_feedback(self, feedback_id: str, payload: FeedbackPayload) -> FeedbackRecord:
        resp = await self._request("put", f"/feedback/{feedback_id}", json=payload.to_request())
        logger.info("Updated feedback %s", feedback_id)
        return _decode(resp, FeedbackRecord.model_validate)

    async def delete_feedback(self, feedback_id: str) -> str:
        """Soft-delete a feedback record. Returns the server's confirmation."""
        resp = await self._request("delete", f"/feedback/{feedback_id}")
        logger.info("Deleted feedback %s", feedback_id)
        return _decode(resp, lambda body: str(body.get("message", "")))

    async def feedback_stats(
        self,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> FeedbackStats:
        """Per-lead counts and total quantities, optionally within a date range."""
        params: dict = {}
        if date_from is not None:
            params["dateFrom"] = date_from
        if date_to is not None:
            params["dateTo"] = date_to
        resp = await self._get("/feedback/stats", params=params)
        return _decode(resp, FeedbackStats.model_validate)

    # -- signed URLs --

    async def request_signed_upload_url(self, file_name: str, mime_type: str) -> SignedUpload:
        """Ask for a presigned PUT target for one audio object."""
        resp = await self._request(
            "post",
            "/feedback/signed-url",
            json={"fileName": file_name, "fileType": mime_type},
        )
        return _decode(resp, SignedUpload.model_validate)

    async def get_playback_url(self, feedback_id: str) -> PlaybackUrl:
        """Ask for a time-limited read URL for a record's voice note."""
        resp = await self._get(f"/feedback/{feedback_id}/audio-url")
        return _decode(resp, PlaybackUrl.model_validate)

    # -- directories --

    async def list_clients(self, search: str | None = None, limit: int = 100) -> list[ClientSummary]:
        params: dict = {"page": 1, "limit": limit}
        if search:
            params["search"] = search
        resp = await self._get("/clients", params=params)
        return _decode(
            resp, lambda body: [ClientSummary.model_validate(c) for c in body.get("clients", [])]
        )

    async def list_products(self, active_only: bool = True, limit: int = 100) -> list[ProductSummary]:
        params: dict = {"page": 1, "limit": limit}
        if active_only:
            params["isActive"] = "true"
        resp = await self._get("/products", params=params)
        return _decode(
            resp,
            lambda body: [
                ProductSummary.model_validate(p) for p in (body.get("data") or {}).get("products", [])
            ],
        )
