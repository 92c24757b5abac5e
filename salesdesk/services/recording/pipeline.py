"""
Recording / upload pipeline for feedback voice notes.

Captured or selected audio becomes a ``PendingUpload`` that is promoted to
object storage in two phases:

1. ask the API for a write credential (presigned URL + object key),
2. PUT the raw bytes to that URL with the same content type.

Only the resulting ``StorageReference`` is ever attached to a feedback
draft. Upload failures are recorded on the pending upload and never raised;
the caller re-invokes ``upload`` to try again.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from salesdesk.core.config import get_settings
from salesdesk.core.exceptions import (
    InvalidAudioFileError,
    PermissionDeniedError,
    SalesDeskError,
    UploadBlockedError,
)
from salesdesk.core.models import StorageReference
from salesdesk.services.playback.media import MediaError, MediaHandle
from salesdesk.services.playback.registry import AudioRegistry
from salesdesk.services.recording.capture import MicrophoneCapture
from salesdesk.services.storage.object_store import ObjectStorage

logger = logging.getLogger(__name__)

PREVIEW_OWNER_ID = "preview"


class UploadStatus(StrEnum):
    not_started = "not_started"
    requesting_credential = "requesting_credential"
    uploading = "uploading"
    succeeded = "succeeded"
    failed = "failed"


@dataclass(frozen=True)
class AudioFile:
    """A named blob of audio bytes (a recording or a selected file)."""

    name: str
    content_type: str
    data: bytes

    @property
    def is_audio(self) -> bool:
        return self.content_type.lower().startswith("audio/")


@dataclass
class PendingUpload:
    """An audio file on its way to object storage."""

    file: AudioFile
    status: UploadStatus = UploadStatus.not_started
    error: SalesDeskError | None = None
    reference: StorageReference | None = None

    @property
    def in_flight(self) -> bool:
        return self.status in (UploadStatus.requesting_credential, UploadStatus.uploading)


PreviewFactory = Callable[[AudioFile], MediaHandle]


class RecordingUploadPipeline:
    """Owns the audio attachment of one feedback form.

    Args:
        api: Anything with ``async request_signed_upload_url(name, mime)``.
        storage: Object storage used for the raw PUT.
        capture: Microphone recorder; recording is unavailable without one.
        registry: Shared playback registry, so previews stop row playback.
        preview_factory: Builds a media handle for local preview.
    """

    def __init__(
        self,
        api,
        storage: ObjectStorage,
        capture: MicrophoneCapture | None = None,
        registry: AudioRegistry | None = None,
        preview_factory: PreviewFactory | None = None,
    ) -> None:
        self._api = api
        self._storage = storage
        self._capture = capture
        self._registry = registry
        self._preview_factory = preview_factory
        self._settings = get_settings()

        self._pending: PendingUpload | None = None
        self._reference: StorageReference | None = None
        self._is_existing = False
        self._is_recording = False
        self._preview: MediaHandle | None = None
        self._generation = 0
        self._locked = False
        self.error: SalesDeskError | None = None

    # -- state --

    @property
    def capture(self) -> MicrophoneCapture | None:
        return self._capture

    @property
    def locked(self) -> bool:
        """True while the owning feedback is being saved."""
        return self._locked

    @property
    def pending(self) -> PendingUpload | None:
        return self._pending

    @property
    def reference(self) -> StorageReference | None:
        return self._reference

    @property
    def audio(self) -> StorageReference | None:
        """The value to embed into a feedback payload (existing or uploaded)."""
        return self._reference

    @property
    def is_existing(self) -> bool:
        """True while the attachment is the edited record's original audio."""
        return self._is_existing

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    @property
    def upload_status(self) -> UploadStatus:
        if self._pending is None:
            return UploadStatus.succeeded if self._reference else UploadStatus.not_started
        return self._pending.status

    @property
    def is_uploading(self) -> bool:
        return self._pending is not None and self._pending.in_flight

    @property
    def has_audio(self) -> bool:
        return self._pending is not None or self._reference is not None

    @property
    def can_preview(self) -> bool:
        # Existing attachments live only in storage; there are no local bytes
        return self._pending is not None and self._preview_factory is not None

    @property
    def preview(self) -> MediaHandle | None:
        return self._preview

    @property
    def is_previewing(self) -> bool:
        return self._preview is not None and self._preview.is_playing

    # -- operations --

    def lock(self) -> None:
        """Refuse new recordings and uploads until ``unlock``."""
        self._locked = True

    def unlock(self) -> None:
        self._locked = False

    def load_existing(self, reference: StorageReference | None) -> None:
        """Carry an edited record's audio through unchanged."""
        self.remove_audio()
        if reference is not None:
            self._reference = reference
            self._is_existing = True

    def start_recording(self) -> bool:
        """Open the microphone. Returns False (and sets ``error``) on refusal."""
        if self._is_recording:
            return True
        self.error = None
        if self._locked:
            self.error = UploadBlockedError()
            return False
        if self._capture is None:
            self.error = PermissionDeniedError("No microphone is available")
            return False
        self._stop_preview()
        try:
            self._capture.start()
        except PermissionDeniedError as exc:
            self.error = exc
            return False
        self._is_recording = True
        return True

    async def stop_recording(self) -> StorageReference | None:
        """Stop capturing and upload what was recorded so far."""
        if not self._is_recording or self._capture is None:
            return None
        self._is_recording = False
        try:
            data = self._capture.stop()
        except SalesDeskError as exc:
            self.error = exc
            logger.warning("Recording could not be finalised: %s", exc.detail)
            return None
        recording = AudioFile(
            name=self._settings.recording_file_name,
            content_type=self._settings.recording_content_type,
            data=data,
        )
        return await self.upload(recording)

    async def select_file(self, file: AudioFile) -> StorageReference | None:
        """Accept a user-selected audio file and upload it.

        Raises:
            InvalidAudioFileError: ``file`` is not audio; nothing changes.
        """
        if not file.is_audio:
            raise InvalidAudioFileError(file.content_type)
        return await self.upload(file)

    async def upload(self, file: AudioFile) -> StorageReference | None:
        """Run the two-phase upload for ``file``.

        Returns the new reference, or None if the upload failed or was
        superseded by a later upload / removal. Nothing changes while the
        pipeline is locked; ``error`` reports the refusal.
        """
        if self._locked:
            self.error = UploadBlockedError()
            logger.info("Refusing upload of %s while feedback is saving", file.name)
            return None
        self._generation += 1
        generation = self._generation
        self._stop_preview()
        pending = PendingUpload(file=file)
        self._pending = pending
        self._reference = None
        self._is_existing = False
        self.error = None

        try:
            pending.status = UploadStatus.requesting_credential
            signed = await self._api.request_signed_upload_url(file.name, file.content_type)
            if generation != self._generation:
                return None
            pending.status = UploadStatus.uploading
            await self._storage.put(signed.upload_url, file.data, file.content_type)
        except SalesDeskError as exc:
            pending.status = UploadStatus.failed
            pending.error = exc
            if generation == self._generation:
                self.error = exc
            logger.warning("Upload of %s failed: %s", file.name, exc.detail)
            return None

        if generation != self._generation:
            logger.debug("Discarding superseded upload of %s", file.name)
            return None

        reference = StorageReference(key=signed.key, original_name=file.name)
        pending.status = UploadStatus.succeeded
        pending.reference = reference
        self._reference = reference
        logger.info("Uploaded %s as %s", file.name, signed.key)
        return reference

    async def retry_upload(self) -> StorageReference | None:
        """Upload the failed pending file again (credential included)."""
        if self._pending is None or self._pending.status is not UploadStatus.failed:
            return None
        return await self.upload(self._pending.file)

    def remove_audio(self) -> None:
        """Drop the attachment and stop any preview. In-flight uploads are ignored."""
        self._generation += 1
        self._stop_preview()
        self._pending = None
        self._reference = None
        self._is_existing = False
        self.error = None

    def toggle_preview(self) -> bool:
        """Play or stop the local pending audio. Returns True if now playing."""
        if self.is_previewing:
            self._stop_preview()
            return False
        if not self.can_preview:
            return False
        self._stop_preview()
        handle = self._preview_factory(self._pending.file)
        self._preview = handle
        if self._registry is not None:
            self._registry.set_current(handle, PREVIEW_OWNER_ID)
        try:
            handle.play()
        except MediaError as exc:
            logger.warning("Preview failed: %s", exc.detail)
            self._stop_preview()
            return False
        return True

    def _stop_preview(self) -> None:
        preview = self._preview
        self._preview = None
        if preview is None:
            return
        if self._registry is not None:
            self._registry.release(PREVIEW_OWNER_ID)
        preview.stop()
        preview.close()
