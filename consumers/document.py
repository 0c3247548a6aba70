"""Compiled document views: refetch on every readiness transition."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from channel import BasePushTransport
from core import Artifact, ArtifactSource, ConsumerState, ReadinessPing, ResourceHandle
from sync import ArtifactFetcher, BaseResourceStore, ReadinessStateMachine, ResourceLifecycleManager
from utils.exceptions import ChannelConnectionError, FetchError
from utils.notify import Notifier

from .base import ArtifactConsumer


logger = logging.getLogger(__name__)


class CompiledDocumentView(ArtifactConsumer):
    """Fetches ``source`` each time the backend reports a fresh compile."""

    name = "document"
    failure_title = "Failed to load document"

    def __init__(
        self,
        transport: BasePushTransport,
        fetcher: ArtifactFetcher,
        source: ArtifactSource,
        *,
        notifier: Optional[Notifier] = None,
        label: Optional[str] = None,
        on_update: Optional[Callable[["CompiledDocumentView"], None]] = None,
    ) -> None:
        super().__init__(transport, notifier=notifier, label=label)
        self.source = source
        self._fetcher = fetcher
        self._on_update = on_update
        self.updates = 0
        self.readiness: ReadinessStateMachine[Artifact] = ReadinessStateMachine(
            self._fetch,
            self._apply_artifact,
            self.lifetime,
            on_failure=self._on_fetch_failure,
            label=self.name,
        )

    @property
    def state(self) -> ConsumerState:
        return self.readiness.state

    @property
    def error(self) -> Optional[str]:
        return self.readiness.error

    def on_readiness(self, ping: ReadinessPing) -> None:
        self.readiness.handle(ping)

    def _on_start(self) -> None:
        self.readiness.start()

    def _on_channel_error(self, exc: ChannelConnectionError) -> None:
        super()._on_channel_error(exc)
        self.readiness.fail(exc)

    async def _fetch(self) -> Artifact:
        return await self._fetcher.fetch(self.source)

    def _apply_artifact(self, artifact: Artifact) -> None:
        self.apply(artifact)
        self.updates += 1
        if self._on_update is not None:
            self._on_update(self)

    def apply(self, artifact: Artifact) -> None:
        raise NotImplementedError

    def _on_fetch_failure(self, exc: Exception) -> None:
        self.notifier.error(self.failure_title, str(exc))


class PdfPreview(CompiledDocumentView):
    """Binary rendering materialized as a local handle."""

    name = "pdf_preview"
    failure_title = "Failed to load PDF"

    def __init__(
        self,
        transport: BasePushTransport,
        fetcher: ArtifactFetcher,
        source: ArtifactSource,
        store: BaseResourceStore,
        **kwargs,
    ) -> None:
        super().__init__(transport, fetcher, source, **kwargs)
        self.resources = ResourceLifecycleManager(store, "pdf")

    @property
    def handle(self) -> Optional[ResourceHandle]:
        return self.resources.current

    def apply(self, artifact: Artifact) -> None:
        if not artifact.content:
            raise FetchError("Failed to load PDF: empty response", url=artifact.source.url)
        self.resources.adopt(artifact.content)

    def _on_stop(self) -> None:
        self.resources.close()


class LatexSource(CompiledDocumentView):
    """Document source text, served as ``{"code": ...}``."""

    name = "latex_source"
    failure_title = "Failed to load LaTeX code"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.code: Optional[str] = None

    def apply(self, artifact: Artifact) -> None:
        data = artifact.json()
        code = data.get("code") if isinstance(data, dict) else None
        if not isinstance(code, str):
            raise FetchError("Failed to load LaTeX code: response has no 'code'", url=artifact.source.url)
        self.code = code
