"""Cover-letter session: AI generation correlated by task id, then live preview."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from api import JobPosting, ResumeApiClient
from channel import BasePushTransport
from core import TaskCompletion, TaskHandle
from sync import ArtifactFetcher, BaseResourceStore, TaskCorrelator
from utils.exceptions import ChannelConnectionError, ConsumerStateError, FetchError, TaskFailure
from utils.notify import Notifier

from .base import ArtifactConsumer
from .document import CompiledDocumentView, LatexSource, PdfPreview


logger = logging.getLogger(__name__)

COVER_LETTER_EVENT = "cover_letter_update"

TransportFactory = Callable[[], BasePushTransport]


class CoverLetterSession(ArtifactConsumer):
    """
    Starts generation for one job posting and, once generated, mounts a PDF
    preview and a LaTeX source view on the cover-letter endpoints. Each child
    view opens its own channel from ``transport_factory``.
    """

    name = "cover_letter"

    def __init__(
        self,
        transport_factory: TransportFactory,
        api: ResumeApiClient,
        fetcher: ArtifactFetcher,
        store: BaseResourceStore,
        job: JobPosting,
        *,
        notifier: Optional[Notifier] = None,
        task_timeout: Optional[float] = None,
        backlog_size: int = 8,
        auto_generate: bool = True,
        on_preview_update: Optional[Callable[[CompiledDocumentView], None]] = None,
        on_failure: Optional[Callable[[str], None]] = None,
    ) -> None:
        super().__init__(transport_factory(), notifier=notifier)
        self._transport_factory = transport_factory
        self.api = api
        self.job = job
        self._fetcher = fetcher
        self._store = store
        self._auto_generate = auto_generate
        self._on_preview_update = on_preview_update
        self._on_failure = on_failure
        self.correlator = TaskCorrelator(self.lifetime, timeout=task_timeout, backlog_size=backlog_size)
        self.correlator.register(COVER_LETTER_EVENT, self._on_generated, self._on_generation_failed)

        self.generating = False
        self.generated = False
        self.error: Optional[str] = None
        self.preview: Optional[PdfPreview] = None
        self.source_view: Optional[LatexSource] = None
        self._refresh = 0

    def _on_start(self) -> None:
        if self._auto_generate:
            self.lifetime.spawn(self.generate(), name=f"{self.name}-generate")

    def _on_stop(self) -> None:
        self.correlator.discard()
        for view in (self.preview, self.source_view):
            if view is not None:
                view.stop()

    def on_task_completion(self, completion: TaskCompletion) -> None:
        self.correlator.on_event(completion)

    async def generate(self) -> Optional[TaskHandle]:
        if not self.mounted:
            raise ConsumerStateError(f"{self.name} is not mounted")
        self.generating = True
        self.error = None
        try:
            task_id = await self.api.start_cover_letter(self.job)
        except FetchError as exc:
            if self.lifetime.alive:
                self.notifier.error("Failed to Start", exc.message)
                self._fail(exc.message)
            return None

        if not self.lifetime.alive:
            return None
        logger.info("cover letter task submitted: %s", task_id)
        return self.correlator.begin(COVER_LETTER_EVENT, task_id)

    async def apply_changes(self, tex_content: Optional[str] = None) -> bool:
        """Push edited source, then remount the preview so it shows the recompiled PDF."""
        if tex_content is None:
            tex_content = self.source_view.code if self.source_view is not None else None
        if tex_content is None:
            raise ConsumerStateError("no cover letter source to apply")

        try:
            await self.api.update_cover_letter(tex_content)
        except FetchError as exc:
            if self.lifetime.alive:
                self.notifier.error("Update Failed", exc.message)
            return False

        if not self.lifetime.alive:
            return False
        self._replace_preview()
        self.notifier.success("Updated", "Cover letter recompiled successfully!")
        return True

    def _on_generated(self, completion: TaskCompletion) -> None:
        self.generating = False
        first = not self.generated
        self.generated = True
        self.notifier.success("Success", "Cover letter generated successfully!")
        if first:
            self._mount_views()
        else:
            self._replace_preview()

    def _on_generation_failed(self, failure: TaskFailure) -> None:
        message = failure.message or "Could not generate cover letter"
        self.notifier.error("Generation Failed", message)
        self._fail(message)

    def _on_channel_error(self, exc: ChannelConnectionError) -> None:
        super()._on_channel_error(exc)
        if not self.generating:
            return
        # the completion event can no longer arrive on this channel
        self.correlator.discard(COVER_LETTER_EVENT)
        self._fail(exc.message)

    def _fail(self, message: str) -> None:
        self.generating = False
        self.error = message
        if self._on_failure is not None:
            self._on_failure(message)

    def _mount_views(self) -> None:
        self.source_view = LatexSource(
            self._transport_factory(),
            self._fetcher,
            self.api.document_source("tex", cover_letter=True),
            notifier=self.notifier,
            label="cover_letter_tex",
        )
        self.source_view.start()
        self.preview = self._new_preview()
        self.preview.start()

    def _new_preview(self) -> PdfPreview:
        return PdfPreview(
            self._transport_factory(),
            self._fetcher,
            self.api.document_source("pdf", cover_letter=True, refresh=self._refresh),
            self._store,
            notifier=self.notifier,
            label=f"cover_letter_pdf_{self._refresh}",
            on_update=self._on_preview_update,
        )

    def _replace_preview(self) -> None:
        self._refresh += 1
        previous = self.preview
        if previous is not None:
            previous.stop()
        self.preview = self._new_preview()
        self.preview.start()
