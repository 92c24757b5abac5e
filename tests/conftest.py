"""Shared pytest fixtures for the SalesDesk test suite.

Provides a scriptable media handle, a mocked REST API and a clean settings
cache for every test.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from salesdesk.core.config import get_settings
from salesdesk.core.models import (
    FeedbackPage,
    FeedbackRecord,
    PlaybackUrl,
    SignedUpload,
)
from salesdesk.services.playback.media import (
    MediaError,
    MediaErrorCode,
    MediaEvent,
    MediaEventType,
    MediaHandle,
)
from salesdesk.services.storage.expiry import NeverExpires
from salesdesk.services.storage.object_store import ObjectStorage

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch):
    """Isolate tests from the developer's environment and .env file."""
    monkeypatch.delenv("SALESDESK_API_TOKEN", raising=False)
    monkeypatch.delenv("SALESDESK_API_BASE_URL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------


class FakeMediaHandle(MediaHandle):
    """In-memory media handle that emits events synchronously.

    ``load()`` emits load_start then can_play unless ``auto_ready`` is False,
    ``play()`` emits playing (or raises ``refuse_with``), ``pause()`` emits
    pause. Tests drive anything else through ``emit``.
    """

    def __init__(self, source: str, auto_ready: bool = True) -> None:
        super().__init__(source)
        self.auto_ready = auto_ready
        self.refuse_with: MediaErrorCode | None = None
        self.position = 0.0
        self.play_calls = 0
        self.load_calls = 0
        self._paused = True
        self._ended = False

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def ended(self) -> bool:
        return self._ended

    def load(self) -> None:
        self.load_calls += 1
        self._emit(MediaEvent(MediaEventType.load_start))
        if self.auto_ready:
            self._emit(MediaEvent(MediaEventType.can_play))

    def play(self) -> None:
        self.play_calls += 1
        if self.refuse_with is not None:
            raise MediaError(self.refuse_with)
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

    # -- test helpers --

    def emit(self, event_type: MediaEventType, **payload) -> None:
        self._emit(MediaEvent(event_type, **payload))

    def finish(self) -> None:
        self._paused = True
        self._ended = True
        self._emit(MediaEvent(MediaEventType.ended))

    def fail(self, code: MediaErrorCode) -> None:
        self._emit(MediaEvent.error(code))

    def resume_externally(self) -> None:
        """Simulate the player resuming without a controller request."""
        self._paused = False
        self._emit(MediaEvent(MediaEventType.playing))


class MediaFactorySpy:
    """Media factory recording every handle it creates."""

    def __init__(self, auto_ready: bool = True) -> None:
        self.auto_ready = auto_ready
        self.handles: list[FakeMediaHandle] = []

    def __call__(self, source: str) -> FakeMediaHandle:
        handle = FakeMediaHandle(source, auto_ready=self.auto_ready)
        self.handles.append(handle)
        return handle

    @property
    def last(self) -> FakeMediaHandle:
        return self.handles[-1]


@pytest.fixture
def media_factory():
    return MediaFactorySpy()


@pytest.fixture
def make_handle():
    return FakeMediaHandle


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


def make_record(feedback_id: str = "f1", **overrides) -> FeedbackRecord:
    data = {
        "_id": feedback_id,
        "client": {"_id": "c1", "name": "Acme Buyer", "company": "Acme"},
        "lead": "Green",
        "products": [{"product": {"_id": "p1", "productName": "Widget"}, "quantity": 2}],
        "audio": {"key": f"audio/{feedback_id}.wav", "originalName": "recording.wav"},
        "notes": "Interested",
    }
    data.update(overrides)
    return FeedbackRecord.model_validate(data)


@pytest.fixture
def record_factory():
    """Build ``FeedbackRecord`` objects: ``record_factory("f9", lead="Red")``."""
    return make_record


@pytest.fixture
def mock_api():
    """AsyncMock standing in for ``APIClient`` with happy-path defaults."""
    api = MagicMock()
    api.get_playback_url = AsyncMock(
        side_effect=lambda feedback_id: PlaybackUrl(
            signedUrl=f"https://cdn.example.com/{feedback_id}.wav", key=f"audio/{feedback_id}.wav"
        )
    )
    api.request_signed_upload_url = AsyncMock(
        return_value=SignedUpload(signedUrl="https://bucket.example.com/put?sig=1", key="k123")
    )
    api.create_feedback = AsyncMock(side_effect=lambda payload: make_record("new1"))
    api.update_feedback = AsyncMock(side_effect=lambda feedback_id, payload: make_record(feedback_id))
    api.delete_feedback = AsyncMock(return_value="Feedback deleted successfully")
    api.list_feedback = AsyncMock(
        return_value=FeedbackPage(feedback=[make_record("f1"), make_record("f2")], totalPages=1, currentPage=1, total=2)
    )
    return api


@pytest.fixture
def mock_storage():
    storage = AsyncMock(spec=ObjectStorage)
    storage.put.return_value = None
    return storage


@pytest.fixture
def never_expires():
    return NeverExpires()
