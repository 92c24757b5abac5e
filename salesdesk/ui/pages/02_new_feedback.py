"""
Add / edit feedback page.

UX flow: fill client, lead, products and notes -> attach a voice note
(record or upload) -> submit. Submit stays disabled while the draft is
incomplete or the voice note is still uploading.
"""

import streamlit as st

from salesdesk.core.config import get_settings
from salesdesk.core.exceptions import FeedbackValidationError, SalesDeskError
from salesdesk.core.models import Lead
from salesdesk.services.feedback import FeedbackForm, FormState
from salesdesk.ui.components.audio_attachment import render_audio_attachment
from salesdesk.ui.runtime import get_api_client, get_board, get_form, new_pipeline, run, set_form

api = get_api_client()
board = get_board()
settings = get_settings()

# -- Edit mode: open the selected record once --
editing_id = st.session_state.editing_feedback_id
form = get_form()
if editing_id and form.draft.feedback_id != editing_id:
    record = board.get(editing_id)
    try:
        if record is None:
            record = run(api.get_feedback(editing_id))
    except SalesDeskError as exc:
        st.error(f"Could not open feedback: {exc.detail}")
        st.session_state.editing_feedback_id = None
        st.stop()
    form.reset()
    form = FeedbackForm.for_record(record, api, new_pipeline())
    set_form(form)

st.header("Edit Feedback" if form.draft.is_edit else "Add Feedback")

# -- Directories --
if "_directory" not in st.session_state:
    try:
        with st.spinner("Loading clients and products..."):
            st.session_state._directory = (run(api.list_clients()), run(api.list_products()))
    except SalesDeskError as exc:
        st.error(f"Could not load clients or products: {exc.detail}")
        st.stop()
clients, products = st.session_state._directory
client_ids = [""] + [c.id for c in clients]
client_labels = {c.id: c.label for c in clients}
product_ids = [""] + [p.id for p in products]
product_labels = {p.id: p.product_name for p in products}

# Widget keys change with the form instance so a new form starts blank
key = f"form_{id(form)}"
draft = form.draft

client_id = st.selectbox(
    "Client",
    client_ids,
    index=client_ids.index(draft.client_id) if draft.client_id in client_ids else 0,
    format_func=lambda cid: client_labels.get(cid, "Select a client"),
    key=f"{key}_client",
)
form.select_client(client_id)

leads = list(Lead)
lead = st.radio(
    "Lead",
    leads,
    index=leads.index(draft.lead),
    format_func=lambda value: value.value,
    horizontal=True,
    key=f"{key}_lead",
)
form.set_lead(lead)

# -- Products --
st.subheader("Products")
for index, line in enumerate(list(draft.lines)):
    product_col, qty_col, remove_col = st.columns([4, 1, 1])
    with product_col:
        product_id = st.selectbox(
            f"Product {index + 1}",
            product_ids,
            index=product_ids.index(line.product_id) if line.product_id in product_ids else 0,
            format_func=lambda pid: product_labels.get(pid, "Select a product"),
            key=f"{key}_product_{line.key}",
        )
    with qty_col:
        quantity = st.number_input(
            "Qty", min_value=1, value=max(line.quantity, 1), step=1, key=f"{key}_qty_{line.key}"
        )
    form.update_product(index, product_id=product_id, quantity=int(quantity))
    with remove_col:
        st.markdown("")  # vertical spacer
        if st.button("Remove", key=f"{key}_remove_{line.key}"):
            form.remove_product(index)
            st.rerun()

if st.button("Add product", key=f"{key}_add"):
    form.add_product()
    st.rerun()

notes = st.text_area(
    "Notes",
    value=draft.notes,
    max_chars=settings.notes_max_length,
    key=f"{key}_notes",
)
form.set_notes(notes)

render_audio_attachment(form.pipeline, key=f"{key}_audio")

# -- Submit --
st.divider()
problems = form.validate()
if problems:
    for problem in problems:
        st.caption(f"- {problem}")

if form.state is FormState.failed and form.error is not None:
    st.error(f"Saving failed: {form.error.detail}")

submit_col, cancel_col, _ = st.columns([1, 1, 3])
with submit_col:
    submitted = st.button(
        "Save" if draft.is_edit else "Submit",
        type="primary",
        disabled=bool(problems) or form.state is FormState.submitting,
        key=f"{key}_submit",
    )
with cancel_col:
    if st.button("Cancel", key=f"{key}_cancel"):
        form.reset()
        set_form(FeedbackForm(api, new_pipeline()))
        st.session_state.editing_feedback_id = None
        st.switch_page("pages/01_feedback.py")

if submitted:
    try:
        with st.spinner("Saving feedback..."):
            saved = run(form.submit())
    except FeedbackValidationError as exc:
        st.error(exc.detail)
    else:
        if saved is not None:
            board.merge(saved)
            st.session_state.flash = "Feedback saved"
            st.session_state.editing_feedback_id = None
            set_form(FeedbackForm(api, new_pipeline()))
            st.switch_page("pages/01_feedback.py")
        else:
            st.rerun()
