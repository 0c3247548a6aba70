"""HTTP client for the resume backend's task-start and query endpoints."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from config import get_backend_settings
from config.settings import BackendSettings
from core import ArtifactKind, ArtifactSource
from utils.exceptions import FetchError, NetworkFetchError, StatusFetchError

from .models import JobPosting, JobSearchQuery


logger = logging.getLogger(__name__)

SERVE_DOCUMENT_PATH = "/api/serve_pdf"
COVER_LETTER_GENERATE_PATH = "/api/cover-letter/generate"
COVER_LETTER_UPDATE_PATH = "/api/cover-letter/update"
JOB_SKILLS_PATH = "/api/jobs/skills"
JOB_SEARCH_PATH = "/api/jobs/search"


class ResumeApiClient:
    """Thin async wrapper; the same ``httpx.AsyncClient`` also feeds fetchers."""

    def __init__(
        self,
        settings: Optional[BackendSettings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings or get_backend_settings()
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.request_timeout, connect=self.settings.connect_timeout),
            follow_redirects=True,
        )
        self._owns_client = client is None

    async def __aenter__(self) -> "ResumeApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def http(self) -> httpx.AsyncClient:
        return self._client

    @property
    def events_url(self) -> str:
        return self.settings.events_url

    def url(self, path: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/{path.lstrip('/')}"

    def document_source(self, file_type: str = "pdf", *, cover_letter: bool = False, refresh: int = 0) -> ArtifactSource:
        """Compiled document endpoint. Never cacheable."""
        params: Dict[str, str] = {"file_type": file_type}
        if cover_letter:
            params["cover_letter"] = "true"
        if refresh:
            params["t"] = str(refresh)
        kind = ArtifactKind.BINARY if file_type == "pdf" else ArtifactKind.JSON
        return ArtifactSource(url=self.url(SERVE_DOCUMENT_PATH), params=params, kind=kind)

    async def start_cover_letter(self, job: JobPosting) -> str:
        data = await self._post_json(COVER_LETTER_GENERATE_PATH, job.cover_letter_request())
        return self._task_id(data, COVER_LETTER_GENERATE_PATH)

    async def update_cover_letter(self, tex_content: str) -> Dict[str, Any]:
        return await self._post_json(COVER_LETTER_UPDATE_PATH, {"tex_content": tex_content})

    async def start_job_search(self, query: Optional[JobSearchQuery] = None) -> str:
        body = (query or JobSearchQuery()).model_dump(exclude_none=True)
        data = await self._post_json(JOB_SEARCH_PATH, body)
        return self._task_id(data, JOB_SEARCH_PATH)

    async def get_skills(self) -> List[str]:
        data = await self._request_json("GET", JOB_SKILLS_PATH)
        if not data.get("success"):
            raise FetchError("Could not load resume skills. Please build your resume first.", url=self.url(JOB_SKILLS_PATH))
        return [str(item) for item in data.get("skills") or []]

    async def _post_json(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request_json("POST", path, json=body)

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = self.url(path)
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise NetworkFetchError(f"timed out calling {path}", url=url) from exc
        except httpx.HTTPError as exc:
            raise NetworkFetchError(f"could not reach {path}: {exc}", url=url) from exc

        if not response.is_success:
            raise StatusFetchError(
                f"{method} {path} failed (http {response.status_code})",
                status_code=response.status_code,
                url=url,
                body=response.text[:200],
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise FetchError(f"{path} returned malformed JSON", url=url) from exc
        if not isinstance(data, dict):
            raise FetchError(f"{path} returned {type(data).__name__}, expected an object", url=url)
        logger.debug("%s %s -> %s", method, path, response.status_code)
        return data

    def _task_id(self, data: Dict[str, Any], path: str) -> str:
        task_id = str(data.get("task_id") or "").strip()
        if not task_id:
            raise FetchError(f"{path} acknowledgment carried no task_id", url=self.url(path))
        return task_id
