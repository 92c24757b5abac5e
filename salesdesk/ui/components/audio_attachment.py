"""
Voice note attachment widget for the feedback form.

Recording uses ``st.audio_input`` (captured in the browser) and is
handed to the pipeline through its ``ClipCapture``; selecting a
file uses ``st.file_uploader``. Either way the bytes go through the form's
``RecordingUploadPipeline`` and only the resulting storage reference is
attached to the draft.
"""

import hashlib

import streamlit as st

from salesdesk.core.exceptions import InvalidAudioFileError
from salesdesk.services.recording import AudioFile, RecordingUploadPipeline, UploadStatus
from salesdesk.ui.runtime import run

_UPLOAD_TYPES = ["wav", "mp3", "m4a", "ogg", "mpeg"]


def _is_new(slot: str, data: bytes) -> bool:
    """True the first time these exact bytes show up in ``slot``."""
    digest = hashlib.sha1(data).hexdigest()
    if st.session_state.get(slot) == digest:
        return False
    st.session_state[slot] = digest
    return True


def render_audio_attachment(pipeline: RecordingUploadPipeline, key: str) -> None:
    """Render record / upload / preview / remove controls for ``pipeline``.

    Args:
        pipeline: The form's recording pipeline.
        key: Prefix for widget keys; change it to reset the widgets.
    """
    st.subheader("Voice note")

    if pipeline.is_existing and pipeline.reference is not None:
        st.caption(f"Current: {pipeline.reference.original_name}")

    record_col, upload_col = st.columns(2)
    with record_col:
        recorded = st.audio_input("Record", key=f"{key}_record")
        if recorded is not None:
            data = recorded.getvalue()
            if _is_new(f"{key}_record_digest", data) and pipeline.start_recording():
                pipeline.capture.feed(data)
                with st.spinner("Uploading recording..."):
                    run(pipeline.stop_recording())
    with upload_col:
        selected = st.file_uploader("Or upload a file", type=_UPLOAD_TYPES, key=f"{key}_file")
        if selected is not None:
            data = selected.getvalue()
            if _is_new(f"{key}_file_digest", data):
                try:
                    with st.spinner(f"Uploading {selected.name}..."):
                        run(
                            pipeline.select_file(
                                AudioFile(selected.name, selected.type or "", data)
                            )
                        )
                except InvalidAudioFileError as exc:
                    st.error(exc.detail)

    status = pipeline.upload_status
    if status is UploadStatus.failed:
        st.error(f"Upload failed: {pipeline.error.detail if pipeline.error else 'unknown error'}")
        if st.button("Retry upload", key=f"{key}_retry"):
            with st.spinner("Uploading..."):
                run(pipeline.retry_upload())
            st.rerun()
    elif pipeline.error is not None:
        st.error(pipeline.error.detail)
    elif pipeline.is_uploading:
        st.info("Uploading...")
    elif status is UploadStatus.succeeded and pipeline.reference is not None and not pipeline.is_existing:
        st.success(f"Attached {pipeline.reference.original_name}")

    if not pipeline.has_audio:
        return

    preview_col, remove_col, _ = st.columns([1, 1, 3])
    with preview_col:
        label = "Stop preview" if pipeline.is_previewing else "Preview"
        if st.button(label, key=f"{key}_preview", disabled=not pipeline.can_preview):
            pipeline.toggle_preview()
            st.rerun()
    with remove_col:
        if st.button("Remove", key=f"{key}_remove"):
            pipeline.remove_audio()
            st.session_state.pop(f"{key}_record_digest", None)
            st.session_state.pop(f"{key}_file_digest", None)
            st.rerun()

    if pipeline.is_previewing and pipeline.preview is not None:
        pipeline.preview.render()
