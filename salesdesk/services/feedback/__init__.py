"""Feedback module - draft, submission form and list board."""

from salesdesk.services.feedback.board import FeedbackBoard
from salesdesk.services.feedback.draft import DraftLine, FeedbackDraft, FormState
from salesdesk.services.feedback.form import FeedbackForm

__all__ = [
    "DraftLine",
    "FeedbackBoard",
    "FeedbackDraft",
    "FeedbackForm",
    "FormState",
]
