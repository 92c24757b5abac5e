"""
Media handle abstraction and the tagged events it emits.

A ``MediaHandle`` wraps one playable source (a browser audio element, a
local preview, a test double). It never changes controller state itself:
it only reports lifecycle events to its subscribers, which feed them into
the playback state machine.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum, StrEnum

logger = logging.getLogger(__name__)


class MediaEventType(StrEnum):
    """Lifecycle events a media handle can report."""

    load_start = "loadstart"
    loaded_metadata = "loadedmetadata"
    can_play = "canplay"
    playing = "playing"
    pause = "pause"
    time_update = "timeupdate"
    ended = "ended"
    error = "error"
    stalled = "stalled"
    # Synthesized by the controller from the registry, not by a handle
    registry_poll = "registry_poll"


class MediaErrorCode(IntEnum):
    """Numeric media error codes, as reported by HTML media elements."""

    aborted = 1
    network = 2
    decode = 3
    src_not_supported = 4


@dataclass(frozen=True)
class MediaEvent:
    """A tagged media event.

    Only the payload field matching ``type`` is meaningful.
    """

    type: MediaEventType
    error_code: MediaErrorCode | None = None
    position: float | None = None
    duration: float | None = None
    playing: bool = False

    @classmethod
    def error(cls, code: MediaErrorCode) -> "MediaEvent":
        return cls(MediaEventType.error, error_code=code)

    @classmethod
    def poll(cls, playing: bool) -> "MediaEvent":
        return cls(MediaEventType.registry_poll, playing=playing)


class MediaError(Exception):
    """Raised by ``MediaHandle.play()`` when playback is refused outright."""

    def __init__(self, code: MediaErrorCode, detail: str = "Failed to play audio") -> None:
        self.code = code
        self.detail = detail
        super().__init__(detail)


MediaListener = Callable[[MediaEvent], None]


class MediaHandle(ABC):
    """Interface every playable audio source implements.

    Subclasses call ``_emit`` whenever the underlying player changes state.
    """

    def __init__(self, source: str) -> None:
        self.source = source
        self._listeners: list[MediaListener] = []

    def subscribe(self, listener: MediaListener) -> None:
        self._listeners.append(listener)

    def close(self) -> None:
        """Drop all listeners. Late events after close are discarded."""
        self._listeners.clear()

    def _emit(self, event: MediaEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    @abstractmethod
    def load(self) -> None:
        """Start fetching the source. Emits load_start and, later, can_play."""

    @abstractmethod
    def play(self) -> None:
        """Start or resume playback.

        Raises:
            MediaError: If the player refuses to start.
        """

    @abstractmethod
    def pause(self) -> None:
        """Pause playback, keeping the position."""

    @abstractmethod
    def seek(self, position: float) -> None:
        """Move the playback position (seconds)."""

    @property
    @abstractmethod
    def paused(self) -> bool: ...

    @property
    @abstractmethod
    def ended(self) -> bool: ...

    @property
    def is_playing(self) -> bool:
        """Playing and not ended."""
        return not self.paused and not self.ended

    def stop(self) -> None:
        """Pause and rewind to the start."""
        self.pause()
        self.seek(0.0)


MediaFactory = Callable[[str], MediaHandle]
