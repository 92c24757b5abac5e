"""Direct uploads to object storage through presigned PUT URLs."""

import logging

import httpx

from salesdesk.core.config import get_settings
from salesdesk.core.exceptions import NetworkOrExpiredError, ServerError

logger = logging.getLogger(__name__)


class ObjectStorage:
    """Uploads raw bytes to a presigned URL.

    Uses its own ``httpx.AsyncClient`` without the API's bearer header: the
    credential is embedded in the URL and storage providers reject extra
    ``Authorization`` headers on presigned requests.
    """

    def __init__(
        self,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            timeout=timeout or get_settings().upload_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def put(self, upload_url: str, data: bytes, content_type: str) -> None:
        """PUT ``data`` to ``upload_url``. Any 2xx is success.

        Raises:
            NetworkOrExpiredError: The request never completed.
            ServerError: Storage answered with a non-2xx status.
        """
        try:
            resp = await self._client.put(
                upload_url,
                content=data,
                headers={"Content-Type": content_type},
            )
        except httpx.HTTPError as exc:
            raise NetworkOrExpiredError(f"Upload failed: {exc}") from None

        if not resp.is_success:
            # S3 answers 403 once the presigned credential has expired
            logger.warning("Storage rejected upload with %d", resp.status_code)
            raise ServerError(
                f"Storage rejected the upload (HTTP {resp.status_code})",
                status_code=resp.status_code,
            )
        logger.debug("Uploaded %d bytes (%s)", len(data), content_type)
