"""Per-row playback controller for feedback voice notes.

Resolves a time-limited playback URL on demand, owns the resulting media
handle and feeds every media event through ``transition()``. Failures are
converted into the ``errored`` state with an ``ErrorKind``; nothing raised
by the API or the media backend escapes to the UI.
"""

import functools
import logging

from salesdesk.core.exceptions import (
    MediaDecodeError,
    NetworkOrExpiredError,
    SalesDeskError,
    ServerError,
    UnsupportedFormatError,
)
from salesdesk.services.playback.media import (
    MediaError,
    MediaEvent,
    MediaEventType,
    MediaFactory,
    MediaHandle,
)
from salesdesk.services.playback.registry import AudioRegistry
from salesdesk.services.playback.state_machine import (
    Effect,
    ErrorKind,
    Guards,
    PlaybackState,
    classify_media_error,
    transition,
)
from salesdesk.services.storage.expiry import AmzSignedUrlExpiry, SignedUrlExpiry

logger = logging.getLogger(__name__)


class AudioPlaybackController:
    """Drives playback of one feedback record's voice note.

    Args:
        feedback_id: Owner id used in the registry.
        api: Anything with ``async get_playback_url(feedback_id)``.
        registry: Shared registry enforcing a single playing audio.
        media_factory: Builds a ``MediaHandle`` for a resolved URL.
        expiry: Decides whether a resolved URL is already unusable.
    """

    def __init__(
        self,
        feedback_id: str,
        api,
        registry: AudioRegistry,
        media_factory: MediaFactory,
        expiry: SignedUrlExpiry | None = None,
    ) -> None:
        self.feedback_id = feedback_id
        self._api = api
        self._registry = registry
        self._media_factory = media_factory
        self._expiry = expiry or AmzSignedUrlExpiry()

        self._state = PlaybackState.idle
        self._error_kind: ErrorKind | None = None
        self._error_detail = ""
        self._expired = False
        self._manual_pause = False
        self._autoplay_armed = False
        self._started = False  # the current handle has reached playing
        self._handle: MediaHandle | None = None
        self._url: str | None = None
        self._generation = 0
        self._disposed = False

        self.position = 0.0
        self.duration = 0.0

    # -- read-only state --

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def error_kind(self) -> ErrorKind | None:
        return self._error_kind

    @property
    def error_detail(self) -> str:
        return self._error_detail

    @property
    def error(self) -> SalesDeskError | None:
        """The last failure as an exception, for display."""
        kind = self._error_kind
        if kind is None:
            return None
        if kind is ErrorKind.unsupported:
            return UnsupportedFormatError(self._error_detail)
        if kind is ErrorKind.decode_error:
            return MediaDecodeError(self._error_detail)
        if kind is ErrorKind.network_or_expired:
            return NetworkOrExpiredError(self._error_detail, expired=self._expired)
        return SalesDeskError(self._error_detail)

    @property
    def expired(self) -> bool:
        """True when the last failure was an expired playback URL."""
        return self._expired

    @property
    def manual_pause(self) -> bool:
        return self._manual_pause

    @property
    def handle(self) -> MediaHandle | None:
        return self._handle

    @property
    def is_playing(self) -> bool:
        return self._state is PlaybackState.playing

    @property
    def is_busy(self) -> bool:
        return self._state is PlaybackState.loading

    @property
    def is_stalled(self) -> bool:
        """Buffering after playback started; the row can still be paused."""
        return self._state is PlaybackState.loading and self._started and self._handle is not None

    @property
    def can_retry(self) -> bool:
        return self._state is PlaybackState.errored and bool(
            self._error_kind and self._error_kind.recoverable
        )

    # -- user actions --

    async def toggle_play_pause(self) -> None:
        """Single play/pause button behaviour."""
        if self._disposed:
            return
        state = self._state
        if state is PlaybackState.idle or self.can_retry:
            await self.resolve()
        elif state is PlaybackState.playing or self.is_stalled:
            self.pause()
        elif state in (PlaybackState.paused, PlaybackState.ended, PlaybackState.ready):
            self.play()
        # loading before first play: a resolution is in flight; errored (terminal): disabled

    async def resolve(self, autoplay: bool = True) -> None:
        """Fetch a fresh playback URL and attach a new media handle.

        Playback starts once the handle reports ``can_play``, unless the user
        paused in the meantime. A result arriving after the controller was
        disposed or re-resolved is discarded.
        """
        if self._disposed:
            return
        self._generation += 1
        generation = self._generation
        self._detach_handle()
        self._error_kind = None
        self._error_detail = ""
        self._expired = False
        # Asking to resolve is an explicit play request
        self._manual_pause = False
        self._set_state(PlaybackState.loading)

        try:
            playback = await self._api.get_playback_url(self.feedback_id)
        except SalesDeskError as exc:
            if generation == self._generation and not self._disposed:
                self._fail(self._resolution_error_kind(exc), exc.detail)
            return

        if generation != self._generation or self._disposed:
            logger.debug("Discarding superseded playback URL for %s", self.feedback_id)
            return

        url = playback.signed_url
        if self._expiry.is_expired(url):
            self._fail(ErrorKind.network_or_expired, "Playback link expired", expired=True)
            return

        handle = self._media_factory(url)
        self._handle = handle
        self._url = url
        self._autoplay_armed = autoplay
        handle.subscribe(functools.partial(self._on_handle_event, handle))
        handle.load()

    def play(self) -> None:
        """Explicit play: become the current audio and start the handle."""
        if self._disposed or self._handle is None:
            return
        if self._state not in (PlaybackState.ready, PlaybackState.paused, PlaybackState.ended):
            return
        self._manual_pause = False
        if self._state is PlaybackState.ended:
            self._handle.seek(0.0)
            self.position = 0.0
        self._start_playback()

    def pause(self) -> None:
        """Explicit pause: stop, rewind and leave the registry.

        Sets the manual-pause flag so that no pending autoplay or registry
        poll can resume this row until the next explicit play.
        """
        if self._disposed:
            return
        self._manual_pause = True
        self._autoplay_armed = False
        if self._handle is not None:
            self._handle.stop()
            self.position = 0.0
        self._registry.release(self.feedback_id)
        self.handle_event(MediaEvent(MediaEventType.pause))

    def poll(self) -> None:
        """Reconcile with the registry (called on a bounded UI interval)."""
        if self._disposed or self._handle is None:
            return
        self.handle_event(MediaEvent.poll(self._registry.is_playing(self.feedback_id)))

    def dispose(self) -> None:
        """Release everything; late events and results are ignored."""
        if self._disposed:
            return
        self._disposed = True
        self._generation += 1
        self._registry.release(self.feedback_id)
        self._detach_handle()
        self._state = PlaybackState.idle

    # -- event handling --

    def handle_event(self, event: MediaEvent) -> None:
        """Feed one event through the state machine and apply its effect."""
        if self._disposed:
            return
        if event.type is MediaEventType.loaded_metadata and event.duration is not None:
            self.duration = event.duration
        elif event.type is MediaEventType.time_update and event.position is not None:
            self.position = event.position

        result = transition(
            self._state,
            event,
            Guards(manual_pause=self._manual_pause, autoplay_armed=self._autoplay_armed),
        )
        self._set_state(result.state)
        if result.state is PlaybackState.playing:
            self._started = True

        if result.error is not None:
            code = event.error_code.name if event.error_code is not None else "unknown"
            self._fail(result.error, f"Audio unavailable ({code})")
        elif result.effect is Effect.autoplay:
            self._autoplay_armed = False
            self._start_playback()
        elif result.effect is Effect.stop and self._handle is not None:
            self._handle.stop()
            self._registry.release(self.feedback_id)

    def _on_handle_event(self, handle: MediaHandle, event: MediaEvent) -> None:
        if handle is not self._handle:
            return
        self.handle_event(event)

    # -- internals --

    def _set_state(self, state: PlaybackState) -> None:
        if state is not self._state:
            logger.debug("Audio %s: %s -> %s", self.feedback_id, self._state, state)
            self._state = state

    def _start_playback(self) -> None:
        handle = self._handle
        if handle is None:
            return
        self._registry.set_current(handle, self.feedback_id)
        try:
            handle.play()
        except MediaError as exc:
            logger.warning("Audio %s refused to play: %s", self.feedback_id, exc.detail)
            self._fail(classify_media_error(exc.code), exc.detail)

    def _fail(self, kind: ErrorKind, detail: str, expired: bool = False) -> None:
        self._error_kind = kind
        self._error_detail = detail
        self._expired = expired
        self._autoplay_armed = False
        self._registry.release(self.feedback_id)
        self._detach_handle()
        self._set_state(PlaybackState.errored)
        logger.warning("Audio %s errored (%s): %s", self.feedback_id, kind, detail)

    def _detach_handle(self) -> None:
        handle = self._handle
        self._handle = None
        self._url = None
        self._started = False
        if handle is not None:
            handle.close()
            if not handle.paused:
                handle.stop()

    @staticmethod
    def _resolution_error_kind(exc: SalesDeskError) -> ErrorKind:
        if isinstance(exc, NetworkOrExpiredError):
            return ErrorKind.network_or_expired
        if isinstance(exc, ServerError) and exc.status_code >= 500:
            return ErrorKind.network_or_expired
        return ErrorKind.unknown
