"""In-progress feedback form state."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from uuid import uuid4

from salesdesk.core.models import FeedbackPayload, FeedbackRecord, Lead, ProductLine, StorageReference


class FormState(StrEnum):
    empty = "empty"  # not (yet) submittable
    valid = "valid"
    submitting = "submitting"
    submitted = "submitted"
    failed = "failed"


@dataclass
class DraftLine:
    """Editable product line; may hold invalid values until submit."""

    product_id: str = ""
    quantity: int = 1
    # Stable identity for widget keys; survives removal of earlier lines
    key: str = field(default_factory=lambda: uuid4().hex, compare=False)


@dataclass
class FeedbackDraft:
    """Everything the user has entered so far, audio excluded.

    The audio attachment lives in the recording pipeline until submit, so
    an upload in flight can never leak into a payload.
    """

    client_id: str = ""
    lead: Lead = Lead.green
    lines: list[DraftLine] = field(default_factory=list)
    notes: str = ""
    date: datetime | None = None
    feedback_id: str | None = None  # set when editing an existing record

    @property
    def is_edit(self) -> bool:
        return self.feedback_id is not None

    @classmethod
    def from_record(cls, record: FeedbackRecord) -> "FeedbackDraft":
        return cls(
            client_id=record.client.id if record.client else "",
            lead=record.lead,
            lines=[DraftLine(line.product.id, line.quantity) for line in record.products],
            notes=record.notes,
            date=record.date,
            feedback_id=record.id,
        )

    def problems(self, notes_max_length: int = 1000) -> list[str]:
        """Return every rule the draft currently breaks (empty = valid)."""
        found: list[str] = []
        if not self.client_id:
            found.append("Client is required")
        if not self.lines:
            found.append("At least one product is required")
        for index, line in enumerate(self.lines, start=1):
            if not line.product_id:
                found.append(f"Product {index}: select a product")
            if line.quantity < 1:
                found.append(f"Product {index}: quantity must be at least 1")
        if len(self.notes) > notes_max_length:
            found.append(f"Notes must not exceed {notes_max_length} characters")
        return found

    def to_payload(self, audio: StorageReference | None) -> FeedbackPayload:
        return FeedbackPayload(
            client=self.client_id,
            lead=self.lead,
            products=[
                ProductLine(product=line.product_id, quantity=line.quantity) for line in self.lines
            ],
            notes=self.notes.strip(),
            audio=audio,
            date=self.date,
        )
