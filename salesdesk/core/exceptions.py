"""
SalesDesk exception hierarchy.

All application-specific exceptions inherit from SalesDeskError so the
playback controller, upload pipeline and feedback form can convert them
into per-row / per-draft error states in one place.
"""

from datetime import UTC, datetime


class SalesDeskError(Exception):
    """Base exception for all SalesDesk errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "SALESDESK_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


class PermissionDeniedError(SalesDeskError):
    """Raised when microphone access is refused or no input device exists."""

    def __init__(self, detail: str = "Microphone access was denied") -> None:
        super().__init__(
            detail=f"{detail}. Grant microphone permission and try again.",
            code="PERMISSION_DENIED",
            status_code=403,
        )


class UnsupportedFormatError(SalesDeskError):
    """Raised when a media source cannot be played in this environment."""

    def __init__(self, detail: str = "Audio format is not supported") -> None:
        super().__init__(detail=detail, code="UNSUPPORTED_FORMAT", status_code=415)


class MediaDecodeError(SalesDeskError):
    """Raised when audio bytes were fetched but could not be decoded."""

    def __init__(self, detail: str = "Audio could not be decoded") -> None:
        super().__init__(detail=detail, code="DECODE_ERROR", status_code=422)


class NetworkOrExpiredError(SalesDeskError):
    """Raised on transient network failures and on expired signed URLs.

    Both are recoverable by requesting a fresh URL.
    """

    def __init__(self, detail: str = "Network error", expired: bool = False) -> None:
        self.expired = expired
        super().__init__(detail=detail, code="NETWORK_OR_EXPIRED", status_code=503)


class ServerError(SalesDeskError):
    """Raised when the API or object storage answers with a non-2xx status."""

    def __init__(self, detail: str = "Server error", status_code: int = 500) -> None:
        super().__init__(detail=detail, code="SERVER_ERROR", status_code=status_code)


class FeedbackValidationError(SalesDeskError):
    """Raised when a feedback draft is not submittable.

    Never sent to the server; ``problems`` lists every failed rule.
    """

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__(
            detail="; ".join(self.problems) or "Invalid feedback",
            code="VALIDATION_ERROR",
            status_code=400,
        )


class InvalidAudioFileError(FeedbackValidationError):
    """Raised when a non-audio file is selected as a voice note."""

    def __init__(self, content_type: str) -> None:
        super().__init__([f"Please select an audio file (got {content_type or 'unknown type'})"])
        self.code = "INVALID_AUDIO_FILE"


class UploadBlockedError(SalesDeskError):
    """Raised when audio is attached while the owning feedback is being saved."""

    def __init__(self, detail: str = "Feedback is being saved; add audio after it completes") -> None:
        super().__init__(detail=detail, code="UPLOAD_BLOCKED", status_code=409)
