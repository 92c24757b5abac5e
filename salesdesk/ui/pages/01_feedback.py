"""
Feedback list page - search, paginate, play voice notes, edit and delete.
"""

import streamlit as st

from salesdesk.core.config import get_settings
from salesdesk.ui.components.feedback_card import render_feedback_card
from salesdesk.ui.runtime import get_board, run

board = get_board()

col_title, col_refresh = st.columns([6, 1])
with col_title:
    st.header("Feedback")
with col_refresh:
    st.markdown("")  # vertical spacer
    if st.button("Refresh", key="feedback_refresh"):
        run(board.refresh())
        st.rerun()

if st.session_state.flash:
    st.success(st.session_state.flash)
    st.session_state.flash = None

search = st.text_input(
    "Search",
    value=st.session_state.feedback_search,
    placeholder="Client, company or notes",
)
if search != st.session_state.feedback_search or not st.session_state.get("_feedback_loaded"):
    st.session_state.feedback_search = search
    st.session_state._feedback_loaded = True
    with st.spinner("Loading feedback..."):
        run(board.refresh(search=search))

if board.error is not None:
    st.error(f"Could not load feedback: {board.error.detail}")


@st.fragment(run_every=get_settings().playback_poll_interval)
def _poll_playback() -> None:
    board.poll()


_poll_playback()

if not board.records:
    st.info("No feedback yet.")

for record in board.records:
    edit_key = f"edit_{record.id}"
    delete_key = f"delete_{record.id}"
    render_feedback_card(record, board, on_edit_key=edit_key, on_delete_key=delete_key)

    if st.session_state.get(edit_key):
        st.session_state.editing_feedback_id = record.id
        st.switch_page("pages/02_new_feedback.py")

    if st.session_state.get(delete_key):
        if run(board.delete(record.id)):
            st.session_state.flash = "Feedback deleted"
        st.rerun()

# -- Pagination --
if board.total_pages > 1:
    col_prev, col_info, col_next = st.columns([1, 2, 1])
    with col_prev:
        if st.button("Previous", disabled=board.page <= 1):
            run(board.previous_page())
            st.rerun()
    with col_info:
        st.caption(f"Page {board.page} of {board.total_pages} ({board.total} total)")
    with col_next:
        if st.button("Next", disabled=board.page >= board.total_pages):
            run(board.next_page())
            st.rerun()
