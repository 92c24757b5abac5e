"""
Per-row voice note player.

A single play/pause button driven by the row's ``AudioPlaybackController``.
The ``st.audio`` element is only rendered for the row that is playing.
"""

import streamlit as st

from salesdesk.services.playback import AudioPlaybackController, ErrorKind, PlaybackState
from salesdesk.ui.runtime import run

_ERROR_TEXT = {
    ErrorKind.unsupported: "Audio format not supported",
    ErrorKind.decode_error: "Audio file is corrupted",
    ErrorKind.network_or_expired: "Audio could not be loaded",
    ErrorKind.unknown: "Audio unavailable",
}


def _button_label(controller: AudioPlaybackController) -> tuple[str, bool]:
    """Return ``(label, disabled)`` for the play/pause button."""
    state = controller.state
    if controller.is_stalled:
        return "⏸️ Pause", False
    if state is PlaybackState.loading:
        return "⏳ Loading", True
    if state is PlaybackState.playing:
        return "⏸️ Pause", False
    if state is PlaybackState.errored:
        if controller.can_retry:
            return "\U0001f504 Retry", False
        return "⚠️ Unavailable", True
    return "▶️ Play", False


def render_audio_player(controller: AudioPlaybackController) -> None:
    label, disabled = _button_label(controller)
    if st.button(label, key=f"audio_{controller.feedback_id}", disabled=disabled):
        run(controller.toggle_play_pause())
        st.rerun()

    if controller.state is PlaybackState.errored:
        if controller.expired:
            st.caption("Playback link expired, press Retry for a new one")
        else:
            error = controller.error
            summary = _ERROR_TEXT.get(controller.error_kind, "Audio unavailable")
            st.caption(f"{summary}: {error.detail}" if error and error.detail else summary)
    elif (controller.is_playing or controller.is_stalled) and controller.handle is not None:
        controller.handle.render()
