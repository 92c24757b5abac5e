"""
Recording module - Microphone capture and two-phase audio upload.
"""

from salesdesk.services.recording.capture import ClipCapture, MicrophoneCapture, encode_wav
from salesdesk.services.recording.pipeline import (
    AudioFile,
    PendingUpload,
    RecordingUploadPipeline,
    UploadStatus,
)

__all__ = [
    "AudioFile",
    "ClipCapture",
    "MicrophoneCapture",
    "PendingUpload",
    "RecordingUploadPipeline",
    "UploadStatus",
    "encode_wav",
]
