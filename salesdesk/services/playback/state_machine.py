"""
Playback finite-state machine.

``transition()`` is the single place where media events change a row's
playback state. It is pure: given the current state, one tagged event and
the controller's guard flags it returns the next state plus the side effect
the controller must perform.

States::

    idle -> loading -> ready -> playing <-> paused -> ended
                 \\         \\        \\
                  +---------+--------+--> errored

Guards:
    manual_pause: the user explicitly paused this row. Suppresses autoplay,
        lets a pause leave ``loading``, forces a stray ``playing`` event
        back to stopped and keeps registry polls from moving the row to
        playing.
    autoplay_armed: one-shot permission to start playback once the source
        reports ``can_play``.
"""

from dataclasses import dataclass
from enum import StrEnum

from salesdesk.services.playback.media import MediaErrorCode, MediaEvent, MediaEventType


class PlaybackState(StrEnum):
    idle = "idle"
    loading = "loading"
    ready = "ready"
    playing = "playing"
    paused = "paused"
    ended = "ended"
    errored = "errored"


class ErrorKind(StrEnum):
    """Playback failure classes surfaced to the UI."""

    unsupported = "unsupported"
    decode_error = "decode_error"
    network_or_expired = "network_or_expired"
    unknown = "unknown"

    @property
    def recoverable(self) -> bool:
        """Only network / expired-URL failures are fixed by re-resolving."""
        return self is ErrorKind.network_or_expired


class Effect(StrEnum):
    none = "none"
    autoplay = "autoplay"
    stop = "stop"


@dataclass(frozen=True)
class Guards:
    manual_pause: bool = False
    autoplay_armed: bool = False


@dataclass(frozen=True)
class Transition:
    state: PlaybackState
    effect: Effect = Effect.none
    error: ErrorKind | None = None


_ERROR_KINDS = {
    MediaErrorCode.aborted: ErrorKind.unknown,
    MediaErrorCode.network: ErrorKind.network_or_expired,
    MediaErrorCode.decode: ErrorKind.decode_error,
    MediaErrorCode.src_not_supported: ErrorKind.unsupported,
}

_CAN_FAIL = (PlaybackState.loading, PlaybackState.ready, PlaybackState.playing)


def classify_media_error(code: MediaErrorCode | int | None) -> ErrorKind:
    """Map a media error code onto the UI error taxonomy."""
    try:
        return _ERROR_KINDS[MediaErrorCode(code)]
    except (ValueError, KeyError, TypeError):
        return ErrorKind.unknown


def transition(state: PlaybackState, event: MediaEvent, guards: Guards = Guards()) -> Transition:
    """Compute the next playback state for ``event``.

    Unknown or irrelevant events leave the state unchanged with no effect.
    """
    kind = event.type
    stay = Transition(state)

    # Errors are terminal for the current handle; recovery needs a new one
    if state is PlaybackState.errored:
        return stay

    if kind is MediaEventType.error:
        if state in _CAN_FAIL:
            return Transition(PlaybackState.errored, error=classify_media_error(event.error_code))
        return stay

    if kind is MediaEventType.load_start:
        if state in (PlaybackState.idle, PlaybackState.loading):
            return Transition(PlaybackState.loading)
        return stay

    if kind is MediaEventType.can_play:
        if state is PlaybackState.loading:
            if guards.autoplay_armed and not guards.manual_pause:
                return Transition(PlaybackState.ready, Effect.autoplay)
            return Transition(PlaybackState.ready)
        return stay

    if kind is MediaEventType.playing:
        if guards.manual_pause:
            # A late resume after the user paused: undo it
            return Transition(PlaybackState.paused, Effect.stop)
        return Transition(PlaybackState.playing)

    if kind is MediaEventType.pause:
        if state is PlaybackState.playing:
            return Transition(PlaybackState.paused)
        if state is PlaybackState.loading and guards.manual_pause:
            # Explicit pause while buffering or before the source is ready
            return Transition(PlaybackState.paused)
        return stay

    if kind is MediaEventType.ended:
        if state in (PlaybackState.playing, PlaybackState.paused, PlaybackState.ready):
            return Transition(PlaybackState.ended)
        return stay

    if kind is MediaEventType.stalled:
        # Buffering; a following playing/can_play event resumes the row
        if state is PlaybackState.playing:
            return Transition(PlaybackState.loading)
        return stay

    if kind is MediaEventType.registry_poll:
        if event.playing:
            if guards.manual_pause:
                return stay
            if state in (PlaybackState.ready, PlaybackState.paused):
                return Transition(PlaybackState.playing)
            return stay
        if state is PlaybackState.playing:
            return Transition(PlaybackState.paused)
        return stay

    # loaded_metadata, time_update: payload only
    return stay
