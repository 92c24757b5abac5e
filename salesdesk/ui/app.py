"""
SalesDesk Streamlit UI - main entry point.

Run with: ``streamlit run salesdesk/ui/app.py``
"""

import logging

import streamlit as st

from salesdesk.core.config import get_settings

# ---------------------------------------------------------------------------
# Page config (must be first Streamlit call)
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="SalesDesk",
    page_icon="\U0001f4de",
    layout="wide",
)

_settings = get_settings()
logging.basicConfig(
    level=_settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# ---------------------------------------------------------------------------
# Session state defaults
# ---------------------------------------------------------------------------
_DEFAULTS = {
    "feedback_search": "",
    "editing_feedback_id": None,
    "flash": None,
}

for key, value in _DEFAULTS.items():
    if key not in st.session_state:
        st.session_state[key] = value

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
with st.sidebar:
    st.title("\U0001f4de SalesDesk")
    st.caption("Client feedback with voice notes")
    st.divider()
    st.caption(f"API: {_settings.api_base_url}")
    if not _settings.api_token:
        st.warning("No API token configured (SALESDESK_API_TOKEN)")

# ---------------------------------------------------------------------------
# Navigation (multipage)
# ---------------------------------------------------------------------------
feedback_page = st.Page(
    "pages/01_feedback.py",
    title="Feedback",
    icon="\U0001f4cb",
    default=True,
)
new_feedback_page = st.Page(
    "pages/02_new_feedback.py",
    title="Add Feedback",
    icon="\U0001f3a4",
)

nav = st.navigation([feedback_page, new_feedback_page])
nav.run()
