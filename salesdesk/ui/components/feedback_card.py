"""
Feedback card display component.
"""

import streamlit as st

from salesdesk.core.models import FeedbackRecord, Lead
from salesdesk.services.feedback import FeedbackBoard
from salesdesk.ui.components.audio_player import render_audio_player

_LEAD_BADGES = {
    Lead.red: ":red[Red]",
    Lead.green: ":green[Green]",
    Lead.orange: ":orange[Orange]",
}


def render_feedback_card(
    record: FeedbackRecord,
    board: FeedbackBoard,
    on_edit_key: str,
    on_delete_key: str,
) -> None:
    """Render one feedback record with its voice note and actions.

    Args:
        record: The record to show.
        board: Provides the row's playback controller.
        on_edit_key: Streamlit widget key for the Edit button.
        on_delete_key: Streamlit widget key for the Delete button.
    """
    with st.container(border=True):
        header_col, lead_col = st.columns([4, 1])
        with header_col:
            client = record.client
            st.markdown(f"**{client.label if client else 'Unknown client'}**")
            when = record.date or record.created_at
            if when is not None:
                st.caption(when.strftime("%Y-%m-%d %H:%M"))
        with lead_col:
            st.markdown(_LEAD_BADGES.get(record.lead, str(record.lead)))

        if record.products:
            st.markdown(
                " ".join(
                    f"`{line.product.product_name or line.product.id} x{line.quantity}`"
                    for line in record.products
                )
            )
        if record.notes:
            st.write(record.notes)

        if record.has_audio:
            render_audio_player(board.controller_for(record.id))
        else:
            st.caption("No voice note")

        btn_col1, btn_col2, _ = st.columns([1, 1, 3])
        with btn_col1:
            st.button("Edit", key=on_edit_key)
        with btn_col2:
            st.button("Delete", key=on_delete_key)
