"""Artifact Fetcher: retrieves finished artifacts, one request per source at a time."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional, Tuple

import httpx

from core import Artifact, ArtifactKind, ArtifactSource
from utils.exceptions import FetchError, NetworkFetchError, StatusFetchError


logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


class ArtifactFetcher:
    """GET-based retrieval with in-flight dedup.

    Failures raise ``NetworkFetchError`` or ``StatusFetchError``; nothing is
    retried here.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        timeout: float = 30.0,
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True)
        self._owns_client = client is None
        self._inflight: Dict[Tuple, asyncio.Future] = {}
        self.request_count = 0

    async def __aenter__(self) -> "ArtifactFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self, source: ArtifactSource) -> Artifact:
        key = source.identity()
        shared = self._inflight.get(key)
        if shared is None:
            shared = asyncio.ensure_future(self._request(source))
            self._inflight[key] = shared
            shared.add_done_callback(lambda _: self._inflight.pop(key, None))
        else:
            logger.debug("joining in-flight request for %s", source.url)
        return await asyncio.shield(shared)

    async def _request(self, source: ArtifactSource) -> Artifact:
        self.request_count += 1
        try:
            response = await self._client.get(
                source.url,
                params=source.params or None,
                headers=NO_STORE_HEADERS,
            )
        except httpx.TimeoutException as exc:
            raise NetworkFetchError(f"timed out loading {source.url}", url=source.url) from exc
        except httpx.HTTPError as exc:
            raise NetworkFetchError(f"could not reach {source.url}: {exc}", url=source.url) from exc

        if not response.is_success:
            raise StatusFetchError(
                f"Failed to load artifact (http {response.status_code})",
                status_code=response.status_code,
                url=source.url,
                body=response.text[:200],
            )

        artifact = Artifact(
            source=source,
            content=response.content,
            media_type=response.headers.get("content-type", ""),
        )
        if source.kind == ArtifactKind.JSON:
            try:
                artifact.json()
            except ValueError as exc:
                raise FetchError(f"malformed JSON artifact from {source.url}", url=source.url) from exc

        logger.info("fetched %s (%d bytes)", source.url, len(artifact.content))
        return artifact
