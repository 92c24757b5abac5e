"""
Expiry checks for signed (time-limited) storage URLs.

The playback controller only depends on ``SignedUrlExpiry.is_expired``;
how a provider encodes the expiry into its URLs stays in here.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from urllib.parse import parse_qs, urlsplit

logger = logging.getLogger(__name__)

_AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SignedUrlExpiry(ABC):
    """Interface for deciding whether a signed URL can still be used."""

    @abstractmethod
    def is_expired(self, url: str) -> bool:
        """Return True if ``url`` is past its embedded expiry."""


class NeverExpires(SignedUrlExpiry):
    """Policy for plain (unsigned) URLs and local previews."""

    def is_expired(self, url: str) -> bool:
        return False


class AmzSignedUrlExpiry(SignedUrlExpiry):
    """Expiry policy for AWS Signature V4 query-string URLs.

    The URL carries the signing instant in ``X-Amz-Date``
    (``YYYYMMDDTHHMMSSZ``) and the lifetime in seconds in ``X-Amz-Expires``.
    URLs without both parameters, or with malformed values, are treated as
    not expired and left for the media backend to judge.

    Args:
        clock: Returns the current aware UTC datetime.
        skew: Safety margin subtracted from the remaining lifetime.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = _utcnow,
        skew: timedelta = timedelta(seconds=5),
    ) -> None:
        self._clock = clock
        self._skew = skew

    def expires_at(self, url: str) -> datetime | None:
        """Return the absolute expiry instant, or None if not a SigV4 URL."""
        query = parse_qs(urlsplit(url).query)
        # Parameter names are case-sensitive in SigV4 but some proxies lowercase them
        params = {k.lower(): v[0] for k, v in query.items() if v}
        signed_at = params.get("x-amz-date")
        lifetime = params.get("x-amz-expires")
        if not signed_at or not lifetime:
            return None
        try:
            start = datetime.strptime(signed_at, _AMZ_DATE_FORMAT).replace(tzinfo=UTC)
            return start + timedelta(seconds=int(lifetime))
        except (ValueError, OverflowError):
            logger.debug("Unparseable signature parameters in %s", url)
            return None

    def is_expired(self, url: str) -> bool:
        deadline = self.expires_at(url)
        if deadline is None:
            return False
        return self._clock() >= deadline - self._skew
