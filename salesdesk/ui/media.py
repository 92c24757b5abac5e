"""
Media handle rendered with ``st.audio``.

The browser player cannot report back to the server, so this handle
reports lifecycle events itself as soon as the corresponding command is
issued. The page renders ``st.audio`` only for the handle that is
currently playing, which keeps a single audible player per session.
"""

import streamlit as st

from salesdesk.services.playback.media import MediaEvent, MediaEventType, MediaHandle
from salesdesk.services.recording.pipeline import AudioFile


class StreamlitMediaHandle(MediaHandle):
    """A remote (signed URL) or in-memory audio source."""

    def __init__(self, source: str, data: bytes | None = None, content_type: str = "audio/wav") -> None:
        super().__init__(source)
        self.data = data
        self.content_type = content_type
        self.position = 0.0
        self._paused = True
        self._ended = False

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def ended(self) -> bool:
        return self._ended

    def load(self) -> None:
        self._emit(MediaEvent(MediaEventType.load_start))
        self._emit(MediaEvent(MediaEventType.can_play))

    def play(self) -> None:
        self._paused = False
        self._ended = False
        self._emit(MediaEvent(MediaEventType.playing))

    def pause(self) -> None:
        if self._paused:
            return
        self._paused = True
        self._emit(MediaEvent(MediaEventType.pause))

    def seek(self, position: float) -> None:
        self.position = position

    def render(self) -> None:
        """Draw the player; autoplays while the handle is playing."""
        st.audio(
            self.data if self.data is not None else self.source,
            format=self.content_type,
            start_time=int(self.position),
            autoplay=not self._paused,
        )


def preview_handle(file: AudioFile) -> StreamlitMediaHandle:
    return StreamlitMediaHandle(file.name, data=file.data, content_type=file.content_type)
