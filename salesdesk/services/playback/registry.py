"""
Audio session registry: at most one playing audio at a time.

Controllers register their handle before starting playback; registering a
new handle stops the previous one. The registry only keeps a weak
reference to the handle, so it never extends a handle's lifetime.
"""

import logging
import weakref
from abc import ABC, abstractmethod

from salesdesk.services.playback.media import MediaHandle

logger = logging.getLogger(__name__)


class AudioRegistry(ABC):
    """Interface injected into playback controllers."""

    @abstractmethod
    def set_current(self, handle: MediaHandle, owner_id: str) -> None:
        """Make ``handle`` the current audio, stopping any other handle."""

    @abstractmethod
    def stop_current(self) -> None:
        """Stop the current handle (pause + rewind) and clear the slot."""

    @abstractmethod
    def is_playing(self, owner_id: str) -> bool:
        """True if ``owner_id`` owns the current handle and it is playing."""

    @property
    @abstractmethod
    def current_owner_id(self) -> str | None: ...

    def release(self, owner_id: str) -> None:
        """Stop and clear the slot only if ``owner_id`` holds it."""
        if self.current_owner_id == owner_id:
            self.stop_current()


class AudioSessionRegistry(AudioRegistry):
    """In-memory registry holding a single ``(handle, owner_id)`` slot.

    One instance is shared by every controller of a UI session. All calls
    happen on the event loop thread, so no locking is needed.
    """

    def __init__(self) -> None:
        self._handle_ref: weakref.ref[MediaHandle] | None = None
        self._owner_id: str | None = None

    def _current_handle(self) -> MediaHandle | None:
        if self._handle_ref is None:
            return None
        return self._handle_ref()

    @property
    def current_owner_id(self) -> str | None:
        if self._current_handle() is None:
            return None
        return self._owner_id

    def set_current(self, handle: MediaHandle, owner_id: str) -> None:
        previous = self._current_handle()
        if previous is not None and previous is not handle:
            logger.debug("Stopping previous audio for %s", self._owner_id)
            previous.stop()
        self._handle_ref = weakref.ref(handle)
        self._owner_id = owner_id

    def stop_current(self) -> None:
        current = self._current_handle()
        if current is not None:
            logger.debug("Stopping current audio for %s", self._owner_id)
            current.stop()
        self._handle_ref = None
        self._owner_id = None

    def is_playing(self, owner_id: str) -> bool:
        current = self._current_handle()
        return current is not None and self._owner_id == owner_id and current.is_playing
