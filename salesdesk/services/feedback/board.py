"""
Paginated feedback list with one playback controller per visible row.

Controllers are created lazily the first time a row's audio is used and
disposed when the row leaves the page (refresh, delete, close).
"""

import logging

from salesdesk.core.config import get_settings
from salesdesk.core.exceptions import SalesDeskError
from salesdesk.core.models import FeedbackRecord
from salesdesk.services.playback.controller import AudioPlaybackController
from salesdesk.services.playback.media import MediaFactory
from salesdesk.services.playback.registry import AudioRegistry
from salesdesk.services.storage.expiry import SignedUrlExpiry

logger = logging.getLogger(__name__)


class FeedbackBoard:
    """State behind the feedback list page.

    Args:
        api: ``APIClient`` (or compatible) used for listing and deleting.
        registry: Shared audio registry handed to every row controller.
        media_factory: Builds media handles for row playback.
        expiry: Signed URL expiry check shared by the controllers.
        page_size: Rows per page (``Settings.feedback_page_size`` by default).
    """

    def __init__(
        self,
        api,
        registry: AudioRegistry,
        media_factory: MediaFactory,
        expiry: SignedUrlExpiry | None = None,
        page_size: int | None = None,
    ) -> None:
        self._api = api
        self._registry = registry
        self._media_factory = media_factory
        self._expiry = expiry
        self.page_size = page_size or get_settings().feedback_page_size

        self.records: list[FeedbackRecord] = []
        self.page = 1
        self.total_pages = 0
        self.total = 0
        self.search = ""
        self.error: SalesDeskError | None = None
        self._controllers: dict[str, AudioPlaybackController] = {}

    async def refresh(self, page: int | None = None, search: str | None = None) -> None:
        """Load ``page`` (default: current) filtered by ``search``.

        On failure the previous rows stay visible and ``error`` is set.
        """
        if search is not None and search != self.search:
            self.search = search
            page = 1
        target = page or self.page
        try:
            result = await self._api.list_feedback(
                page=target, search=self.search, limit=self.page_size
            )
        except SalesDeskError as exc:
            self.error = exc
            logger.warning("Loading feedback page %d failed: %s", target, exc.detail)
            return

        self.error = None
        self.records = list(result.feedback)
        self.page = result.current_page or target
        self.total_pages = result.total_pages
        self.total = result.total
        visible = {record.id for record in self.records}
        for feedback_id in list(self._controllers):
            if feedback_id not in visible:
                self._controllers.pop(feedback_id).dispose()

    async def next_page(self) -> None:
        if self.page < self.total_pages:
            await self.refresh(page=self.page + 1)

    async def previous_page(self) -> None:
        if self.page > 1:
            await self.refresh(page=self.page - 1)

    def merge(self, record: FeedbackRecord) -> None:
        """Show a freshly saved record without reloading the page."""
        for index, existing in enumerate(self.records):
            if existing.id == record.id:
                self.records[index] = record
                controller = self._controllers.pop(record.id, None)
                if controller is not None:
                    # The audio may have been replaced
                    controller.dispose()
                return
        self.records.insert(0, record)
        self.total += 1

    def get(self, feedback_id: str) -> FeedbackRecord | None:
        for record in self.records:
            if record.id == feedback_id:
                return record
        return None

    async def delete(self, feedback_id: str) -> bool:
        """Delete a record server-side and drop its row. Returns success."""
        try:
            await self._api.delete_feedback(feedback_id)
        except SalesDeskError as exc:
            self.error = exc
            logger.warning("Deleting feedback %s failed: %s", feedback_id, exc.detail)
            return False
        self.error = None
        controller = self._controllers.pop(feedback_id, None)
        if controller is not None:
            controller.dispose()
        before = len(self.records)
        self.records = [record for record in self.records if record.id != feedback_id]
        if len(self.records) < before:
            self.total = max(self.total - 1, 0)
        return True

    def controller_for(self, feedback_id: str) -> AudioPlaybackController:
        """Get or lazily create the playback controller for a row."""
        controller = self._controllers.get(feedback_id)
        if controller is None:
            controller = AudioPlaybackController(
                feedback_id,
                self._api,
                self._registry,
                self._media_factory,
                expiry=self._expiry,
            )
            self._controllers[feedback_id] = controller
        return controller

    def poll(self) -> None:
        """Reconcile every live row controller with the registry."""
        for controller in self._controllers.values():
            controller.poll()

    def close(self) -> None:
        for controller in self._controllers.values():
            controller.dispose()
        self._controllers.clear()
