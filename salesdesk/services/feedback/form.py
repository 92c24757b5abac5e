"""
Feedback submission flow.

``FeedbackForm`` combines a ``FeedbackDraft`` with the recording pipeline
that owns its audio. It refuses to submit while the draft is incomplete or
an upload is still running, creates or updates the record, and keeps the
draft intact when the server rejects it.
"""

import logging

from salesdesk.core.config import get_settings
from salesdesk.core.exceptions import FeedbackValidationError, SalesDeskError
from salesdesk.core.models import FeedbackRecord, Lead
from salesdesk.services.feedback.draft import DraftLine, FeedbackDraft, FormState
from salesdesk.services.recording.pipeline import RecordingUploadPipeline, UploadStatus

logger = logging.getLogger(__name__)


class FeedbackForm:
    """Create / edit form for one feedback record.

    Args:
        api: Anything with ``create_feedback`` / ``update_feedback`` coroutines.
        pipeline: The form's audio attachment.
        draft: Initial draft (a blank one by default).
    """

    def __init__(
        self,
        api,
        pipeline: RecordingUploadPipeline,
        draft: FeedbackDraft | None = None,
    ) -> None:
        self._api = api
        self.pipeline = pipeline
        self.draft = draft or FeedbackDraft()
        self._phase: FormState | None = None  # submitting / submitted / failed
        self.error: SalesDeskError | None = None
        self.record: FeedbackRecord | None = None

    @classmethod
    def for_record(
        cls,
        record: FeedbackRecord,
        api,
        pipeline: RecordingUploadPipeline,
    ) -> "FeedbackForm":
        """Open the form in edit mode, carrying the record's audio through."""
        pipeline.load_existing(record.audio)
        return cls(api, pipeline, FeedbackDraft.from_record(record))

    # -- editing --

    def select_client(self, client_id: str) -> None:
        if client_id != self.draft.client_id:
            self.draft.client_id = client_id
            self._touch()

    def set_lead(self, lead: Lead | str) -> None:
        lead = Lead(lead)
        if lead is not self.draft.lead:
            self.draft.lead = lead
            self._touch()

    def set_notes(self, notes: str) -> None:
        if notes != self.draft.notes:
            self.draft.notes = notes
            self._touch()

    def add_product(self, product_id: str = "", quantity: int = 1) -> DraftLine:
        line = DraftLine(product_id, quantity)
        self.draft.lines.append(line)
        self._touch()
        return line

    def update_product(
        self,
        index: int,
        product_id: str | None = None,
        quantity: int | None = None,
    ) -> None:
        line = self.draft.lines[index]
        changed = False
        if product_id is not None and product_id != line.product_id:
            line.product_id = product_id
            changed = True
        if quantity is not None and quantity != line.quantity:
            line.quantity = quantity
            changed = True
        if changed:
            self._touch()

    def remove_product(self, index: int) -> None:
        del self.draft.lines[index]
        self._touch()

    def _touch(self) -> None:
        # A real edit after a failure returns the form to the draft states
        if self._phase is FormState.failed:
            self._phase = None

    # -- validation --

    def validate(self) -> list[str]:
        problems = self.draft.problems(get_settings().notes_max_length)
        pipeline = self.pipeline
        if pipeline.is_recording:
            problems.append("Stop the recording before submitting")
        if pipeline.is_uploading:
            problems.append("Audio upload is still in progress")
        elif pipeline.upload_status is UploadStatus.failed:
            problems.append("Audio upload failed; upload it again or remove it")
        return problems

    @property
    def state(self) -> FormState:
        if self._phase is not None:
            return self._phase
        return FormState.valid if not self.validate() else FormState.empty

    def can_submit(self) -> bool:
        return self.state is FormState.valid

    # -- submission --

    async def submit(self) -> FeedbackRecord | None:
        """Send the draft. Returns the saved record, or None on server failure.

        Raises:
            FeedbackValidationError: The draft is not submittable; nothing is sent.
        """
        if self._phase is FormState.submitting:
            raise FeedbackValidationError(["Submission already in progress"])
        problems = self.validate()
        if problems:
            raise FeedbackValidationError(problems)

        payload = self.draft.to_payload(self.pipeline.audio)
        self._phase = FormState.submitting
        self.error = None
        # The payload already names the attachment; it must not change underneath
        self.pipeline.lock()
        try:
            if self.draft.is_edit:
                record = await self._api.update_feedback(self.draft.feedback_id, payload)
            else:
                record = await self._api.create_feedback(payload)
        except SalesDeskError as exc:
            self._phase = FormState.failed
            self.error = exc
            logger.warning("Saving feedback failed: %s", exc.detail)
            return None
        finally:
            self.pipeline.unlock()

        self._phase = FormState.submitted
        self.record = record
        self.draft = FeedbackDraft()
        self.pipeline.remove_audio()
        return record

    def reset(self) -> None:
        """Discard the draft (form closed)."""
        self.draft = FeedbackDraft()
        self.pipeline.remove_audio()
        self._phase = None
        self.error = None
        self.record = None
