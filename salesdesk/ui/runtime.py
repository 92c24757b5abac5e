"""
Bridge between Streamlit's synchronous script reruns and the async core.

Streamlit reruns the page script on every interaction, so the services live
on one background event loop (cached for the server process) while the
per-browser objects (registry, board, form) live in ``st.session_state``.
"""

import asyncio
import logging
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

import streamlit as st

from salesdesk.core.config import get_settings
from salesdesk.services.api_client import APIClient
from salesdesk.services.feedback import FeedbackBoard, FeedbackForm
from salesdesk.services.playback import AudioSessionRegistry
from salesdesk.services.recording import ClipCapture, RecordingUploadPipeline
from salesdesk.services.storage import ObjectStorage
from salesdesk.ui.media import StreamlitMediaHandle, preview_handle

logger = logging.getLogger(__name__)

T = TypeVar("T")


@st.cache_resource
def _event_loop() -> asyncio.AbstractEventLoop:
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, name="salesdesk-loop", daemon=True)
    thread.start()
    logger.debug("Background event loop started")
    return loop


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro`` on the background loop and wait for its result."""
    future = asyncio.run_coroutine_threadsafe(coro, _event_loop())
    return future.result()


def _on_loop(factory):
    """Construct an object on the loop thread so its httpx client binds there."""

    async def _build():
        return factory()

    return run(_build())


@st.cache_resource
def get_api_client() -> APIClient:
    return _on_loop(APIClient)


@st.cache_resource
def get_storage() -> ObjectStorage:
    settings = get_settings()
    return _on_loop(lambda: ObjectStorage(timeout=settings.upload_timeout))


def get_registry() -> AudioSessionRegistry:
    """One registry per browser session: the single-playing-audio scope."""
    if "_audio_registry" not in st.session_state:
        st.session_state._audio_registry = AudioSessionRegistry()
    return st.session_state._audio_registry


def get_board() -> FeedbackBoard:
    if "_feedback_board" not in st.session_state:
        st.session_state._feedback_board = FeedbackBoard(
            get_api_client(), get_registry(), StreamlitMediaHandle
        )
    return st.session_state._feedback_board


def new_pipeline() -> RecordingUploadPipeline:
    # The microphone is owned by the browser; st.audio_input clips are fed in
    return RecordingUploadPipeline(
        get_api_client(),
        get_storage(),
        capture=ClipCapture(),
        registry=get_registry(),
        preview_factory=preview_handle,
    )


def get_form() -> FeedbackForm:
    if "_feedback_form" not in st.session_state:
        st.session_state._feedback_form = FeedbackForm(get_api_client(), new_pipeline())
    return st.session_state._feedback_form


def set_form(form: FeedbackForm) -> None:
    st.session_state._feedback_form = form
