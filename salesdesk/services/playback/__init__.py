"""
Playback module - Single-flight audio playback for feedback rows.
"""

from salesdesk.services.playback.controller import AudioPlaybackController
from salesdesk.services.playback.media import (
    MediaError,
    MediaErrorCode,
    MediaEvent,
    MediaEventType,
    MediaFactory,
    MediaHandle,
)
from salesdesk.services.playback.registry import AudioRegistry, AudioSessionRegistry
from salesdesk.services.playback.state_machine import (
    Effect,
    ErrorKind,
    Guards,
    PlaybackState,
    Transition,
    classify_media_error,
    transition,
)

__all__ = [
    "AudioPlaybackController",
    "AudioRegistry",
    "AudioSessionRegistry",
    "Effect",
    "ErrorKind",
    "Guards",
    "MediaError",
    "MediaErrorCode",
    "MediaEvent",
    "MediaEventType",
    "MediaFactory",
    "MediaHandle",
    "PlaybackState",
    "Transition",
    "classify_media_error",
    "transition",
]
