"""Unit tests for the per-row audio playback controller.

Covers URL resolution, autoplay, the single-playing-audio guarantee,
manual-pause stickiness, expiry pre-checks and error classification.
"""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from salesdesk.core.exceptions import MediaDecodeError, NetworkOrExpiredError, ServerError
from salesdesk.core.models import PlaybackUrl
from salesdesk.services.api_client import APIClient
from salesdesk.services.playback.controller import AudioPlaybackController
from salesdesk.services.playback.media import MediaErrorCode, MediaEventType
from salesdesk.services.playback.registry import AudioRegistry, AudioSessionRegistry
from salesdesk.services.playback.state_machine import ErrorKind, PlaybackState
from salesdesk.services.storage.expiry import AmzSignedUrlExpiry

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def registry():
    return AudioSessionRegistry()


@pytest.fixture
def make_controller(mock_api, registry, media_factory, never_expires):
    def _make(feedback_id="f1", **kwargs):
        kwargs.setdefault("expiry", never_expires)
        return AudioPlaybackController(
            feedback_id,
            kwargs.pop("api", mock_api),
            kwargs.pop("registry", registry),
            kwargs.pop("media_factory", media_factory),
            **kwargs,
        )

    return _make


def _signed(url_time: datetime, lifetime: int = 3600) -> PlaybackUrl:
    stamp = url_time.strftime("%Y%m%dT%H%M%SZ")
    return PlaybackUrl(
        signedUrl=f"https://bucket.example.com/a.wav?X-Amz-Date={stamp}&X-Amz-Expires={lifetime}",
        key="a.wav",
    )


# ---------------------------------------------------------------------------
# Resolution and autoplay
# ---------------------------------------------------------------------------


class TestResolve:
    async def test_first_toggle_resolves_and_plays(self, make_controller, mock_api, media_factory, registry):
        controller = make_controller()

        await controller.toggle_play_pause()

        mock_api.get_playback_url.assert_awaited_once_with("f1")
        assert media_factory.last.source == "https://cdn.example.com/f1.wav"
        assert controller.state is PlaybackState.playing
        assert registry.is_playing("f1")

    async def test_waits_for_can_play(self, make_controller, media_factory):
        media_factory.auto_ready = False
        controller = make_controller()

        await controller.toggle_play_pause()
        assert controller.state is PlaybackState.loading
        assert controller.is_busy
        assert media_factory.last.play_calls == 0

        media_factory.last.emit(MediaEventType.can_play)
        assert controller.state is PlaybackState.playing

    async def test_toggle_while_loading_is_ignored(self, make_controller, mock_api, media_factory):
        media_factory.auto_ready = False
        controller = make_controller()

        await controller.toggle_play_pause()
        await controller.toggle_play_pause()

        assert mock_api.get_playback_url.await_count == 1

    async def test_resolve_without_autoplay(self, make_controller, media_factory):
        controller = make_controller()

        await controller.resolve(autoplay=False)

        assert controller.state is PlaybackState.ready
        assert media_factory.last.play_calls == 0

    async def test_tracks_duration_and_position(self, make_controller, media_factory):
        controller = make_controller()
        await controller.toggle_play_pause()

        media_factory.last.emit(MediaEventType.loaded_metadata, duration=12.5)
        media_factory.last.emit(MediaEventType.time_update, position=3.0)

        assert controller.duration == 12.5
        assert controller.position == 3.0

    async def test_superseded_resolution_is_discarded(self, make_controller, mock_api, media_factory):
        """A slow first answer arriving after a newer one creates no handle."""
        gate = asyncio.Event()
        calls = 0

        async def _playback_url(feedback_id):
            nonlocal calls
            calls += 1
            if calls == 1:
                await gate.wait()
            return PlaybackUrl(signedUrl=f"https://cdn.example.com/{calls}.wav", key="k")

        mock_api.get_playback_url = AsyncMock(side_effect=_playback_url)
        controller = make_controller()

        slow = asyncio.create_task(controller.resolve())
        await asyncio.sleep(0)
        await controller.resolve()
        gate.set()
        await slow

        assert len(media_factory.handles) == 1
        assert media_factory.last.source == "https://cdn.example.com/2.wav"
        assert controller.state is PlaybackState.playing

    async def test_dispose_during_resolution(self, make_controller, mock_api, media_factory):
        gate = asyncio.Event()

        async def _playback_url(feedback_id):
            await gate.wait()
            return PlaybackUrl(signedUrl="https://cdn.example.com/x.wav", key="k")

        mock_api.get_playback_url = AsyncMock(side_effect=_playback_url)
        controller = make_controller()

        pending = asyncio.create_task(controller.resolve())
        await asyncio.sleep(0)
        controller.dispose()
        gate.set()
        await pending

        assert media_factory.handles == []
        assert controller.state is PlaybackState.idle


# ---------------------------------------------------------------------------
# Single playing audio
# ---------------------------------------------------------------------------


class TestMutualExclusion:
    async def test_second_row_stops_first(self, make_controller, media_factory, registry):
        first = make_controller("f1")
        second = make_controller("f2")

        await first.toggle_play_pause()
        first_handle = media_factory.last
        await second.toggle_play_pause()

        assert first_handle.paused
        assert first_handle.position == 0.0
        assert first.state is PlaybackState.paused
        assert second.state is PlaybackState.playing
        assert registry.current_owner_id == "f2"

    async def test_switching_back_and_forth(self, make_controller, media_factory, registry):
        first = make_controller("f1")
        second = make_controller("f2")
        await first.toggle_play_pause()
        await second.toggle_play_pause()

        await first.toggle_play_pause()

        assert first.state is PlaybackState.playing
        assert second.state is PlaybackState.paused
        assert registry.current_owner_id == "f1"
        # No new URL was needed to resume
        assert len(media_factory.handles) == 2

    async def test_poll_keeps_rows_in_sync(self, make_controller, registry):
        first = make_controller("f1")
        second = make_controller("f2")
        await first.toggle_play_pause()
        await second.toggle_play_pause()

        first.poll()
        second.poll()

        assert first.state is PlaybackState.paused
        assert second.state is PlaybackState.playing


# ---------------------------------------------------------------------------
# Manual pause
# ---------------------------------------------------------------------------


class TestManualPause:
    async def test_pause_stops_and_releases(self, make_controller, media_factory, registry):
        controller = make_controller()
        await controller.toggle_play_pause()

        await controller.toggle_play_pause()

        assert controller.state is PlaybackState.paused
        assert controller.manual_pause
        assert media_factory.last.paused
        assert registry.current_owner_id is None

    async def test_late_playing_event_is_undone(self, make_controller, media_factory):
        controller = make_controller()
        await controller.toggle_play_pause()
        controller.pause()

        media_factory.last.resume_externally()

        assert controller.state is PlaybackState.paused
        assert media_factory.last.paused

    async def test_pause_before_ready_blocks_autoplay(self, make_controller, media_factory):
        media_factory.auto_ready = False
        controller = make_controller()
        await controller.toggle_play_pause()

        controller.pause()
        media_factory.last.emit(MediaEventType.can_play)

        assert controller.state is PlaybackState.paused
        assert media_factory.last.play_calls == 0

    async def test_stalled_row_can_be_paused(self, make_controller, media_factory, registry):
        controller = make_controller()
        await controller.toggle_play_pause()
        media_factory.last.emit(MediaEventType.stalled)
        assert controller.state is PlaybackState.loading
        assert controller.is_stalled

        await controller.toggle_play_pause()

        assert controller.state is PlaybackState.paused
        assert controller.manual_pause
        assert media_factory.last.paused
        assert registry.current_owner_id is None

        media_factory.last.resume_externally()
        assert controller.state is PlaybackState.paused

    async def test_initial_loading_is_not_stalled(self, make_controller, media_factory):
        media_factory.auto_ready = False
        controller = make_controller()
        await controller.toggle_play_pause()

        assert controller.state is PlaybackState.loading
        assert not controller.is_stalled

    async def test_poll_never_overrides_manual_pause(self, make_controller):
        registry = MagicMock(spec=AudioRegistry)
        registry.is_playing.return_value = True
        registry.current_owner_id = None
        controller = make_controller(registry=registry)
        await controller.toggle_play_pause()
        controller.pause()

        controller.poll()

        assert controller.state is PlaybackState.paused

    async def test_explicit_play_clears_manual_pause(self, make_controller, registry):
        controller = make_controller()
        await controller.toggle_play_pause()
        controller.pause()

        await controller.toggle_play_pause()

        assert not controller.manual_pause
        assert controller.state is PlaybackState.playing
        assert registry.is_playing("f1")


class TestEnded:
    async def test_play_after_end_restarts(self, make_controller, media_factory):
        controller = make_controller()
        await controller.toggle_play_pause()
        media_factory.last.seek(8.0)
        media_factory.last.finish()
        assert controller.state is PlaybackState.ended

        await controller.toggle_play_pause()

        assert controller.state is PlaybackState.playing
        assert media_factory.last.position == 0.0


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    async def test_malformed_playback_url_body_is_retryable(self, make_controller, media_factory):
        api = APIClient(
            base_url="http://test/api/v1",
            token="tok",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"message": "ok"})),
        )
        controller = make_controller(api=api)

        await controller.toggle_play_pause()
        await api.aclose()

        assert media_factory.handles == []
        assert controller.state is PlaybackState.errored
        assert controller.error_kind is ErrorKind.network_or_expired
        assert controller.can_retry
        assert not controller.is_busy

    async def test_expired_url_is_not_loaded(self, make_controller, mock_api, media_factory):
        now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        mock_api.get_playback_url = AsyncMock(return_value=_signed(now - timedelta(hours=2)))
        controller = make_controller(expiry=AmzSignedUrlExpiry(clock=lambda: now))

        await controller.toggle_play_pause()

        assert media_factory.handles == []
        assert controller.state is PlaybackState.errored
        assert controller.error_kind is ErrorKind.network_or_expired
        assert controller.expired
        assert controller.can_retry
        assert controller.error.expired

    async def test_retry_fetches_fresh_url(self, make_controller, mock_api, media_factory):
        now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        mock_api.get_playback_url = AsyncMock(
            side_effect=[_signed(now - timedelta(hours=2)), _signed(now)]
        )
        controller = make_controller(expiry=AmzSignedUrlExpiry(clock=lambda: now))

        await controller.toggle_play_pause()
        await controller.toggle_play_pause()

        assert mock_api.get_playback_url.await_count == 2
        assert controller.state is PlaybackState.playing
        assert not controller.expired

    async def test_network_failure_is_recoverable(self, make_controller, mock_api):
        mock_api.get_playback_url = AsyncMock(side_effect=NetworkOrExpiredError("offline"))
        controller = make_controller()

        await controller.toggle_play_pause()

        assert controller.error_kind is ErrorKind.network_or_expired
        assert controller.error_detail == "offline"
        assert controller.can_retry

    async def test_not_found_is_terminal(self, make_controller, mock_api):
        mock_api.get_playback_url = AsyncMock(side_effect=ServerError("Audio file not found", 404))
        controller = make_controller()

        await controller.toggle_play_pause()
        await controller.toggle_play_pause()

        assert controller.error_kind is ErrorKind.unknown
        assert not controller.can_retry
        assert mock_api.get_playback_url.await_count == 1

    async def test_server_error_is_recoverable(self, make_controller, mock_api):
        mock_api.get_playback_url = AsyncMock(side_effect=ServerError("boom", 502))
        controller = make_controller()

        await controller.toggle_play_pause()

        assert controller.can_retry

    async def test_decode_error_while_playing(self, make_controller, media_factory, registry):
        controller = make_controller()
        await controller.toggle_play_pause()
        handle = media_factory.last

        handle.fail(MediaErrorCode.decode)

        assert controller.state is PlaybackState.errored
        assert controller.error_kind is ErrorKind.decode_error
        assert controller.handle is None
        assert isinstance(controller.error, MediaDecodeError)
        assert handle.paused
        assert registry.current_owner_id is None

    async def test_play_refused(self, make_controller, make_handle):
        handle = make_handle("https://cdn.example.com/f1.wav")
        handle.refuse_with = MediaErrorCode.src_not_supported
        controller = make_controller(media_factory=lambda url: handle)

        await controller.toggle_play_pause()

        assert controller.state is PlaybackState.errored
        assert controller.error_kind is ErrorKind.unsupported

    async def test_events_from_detached_handle_are_ignored(self, make_controller, media_factory):
        controller = make_controller()
        await controller.toggle_play_pause()
        old = media_factory.last
        await controller.resolve()

        old.emit(MediaEventType.ended)

        assert controller.state is PlaybackState.playing


class TestDispose:
    async def test_dispose_stops_playback(self, make_controller, media_factory, registry):
        controller = make_controller()
        await controller.toggle_play_pause()
        handle = media_factory.last

        controller.dispose()

        assert handle.paused
        assert registry.current_owner_id is None
        assert controller.state is PlaybackState.idle

    async def test_disposed_controller_ignores_toggle(self, make_controller, mock_api):
        controller = make_controller()
        controller.dispose()

        await controller.toggle_play_pause()

        mock_api.get_playback_url.assert_not_awaited()
