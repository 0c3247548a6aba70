"""Job search session: skills -> background search -> cached results."""

from __future__ import annotations

import hashlib
import logging
from typing import Any, Dict, List, Optional

from api import JobPosting, JobSearchQuery, ResumeApiClient
from channel import BasePushTransport
from core import TaskCompletion, TaskHandle
from storage import BaseResultCache
from sync import TaskCorrelator
from utils.exceptions import ChannelConnectionError, FetchError, TaskFailure
from utils.notify import Notifier

from .base import ArtifactConsumer


logger = logging.getLogger(__name__)

JOB_UPDATE_EVENT = "job_update"
CACHE_KEY = "job_search_cache"
SKILLS_CACHE_KEY = "job_skills"


def results_cache_key(query: JobSearchQuery) -> str:
    """Cache key of one search; different queries never share an entry."""
    digest = hashlib.sha1(query.model_dump_json().encode("utf-8")).hexdigest()[:16]
    return f"{CACHE_KEY}:{digest}"


class JobSearchSession(ArtifactConsumer):
    """Serves fresh cached results on re-entry; otherwise runs the search."""

    name = "job_search"

    def __init__(
        self,
        transport: BasePushTransport,
        api: ResumeApiClient,
        cache: BaseResultCache,
        *,
        query: Optional[JobSearchQuery] = None,
        notifier: Optional[Notifier] = None,
        task_timeout: Optional[float] = None,
        backlog_size: int = 8,
    ) -> None:
        super().__init__(transport, notifier=notifier)
        self.api = api
        self.cache = cache
        self.query = query or JobSearchQuery()
        self.cache_key = results_cache_key(self.query)
        self.correlator = TaskCorrelator(self.lifetime, timeout=task_timeout, backlog_size=backlog_size)
        self.correlator.register(JOB_UPDATE_EVENT, self._on_results, self._on_search_failed)

        self.skills: List[str] = []
        self.jobs: List[JobPosting] = []
        self.loading_skills = True
        self.searching = False
        self.from_cache = False
        self.error: Optional[str] = None

    def _on_start(self) -> None:
        if self._restore_from_cache():
            return
        self.lifetime.spawn(self.load(), name=f"{self.name}-load")

    def _on_stop(self) -> None:
        self.correlator.discard()

    def on_task_completion(self, completion: TaskCompletion) -> None:
        self.correlator.on_event(completion)

    def _on_channel_error(self, exc: ChannelConnectionError) -> None:
        super()._on_channel_error(exc)
        if not self.searching:
            return
        # results are pushed once; a dropped channel loses them
        self.correlator.discard(JOB_UPDATE_EVENT)
        self.searching = False
        self.error = exc.message

    def _restore_from_cache(self) -> bool:
        cached = self.cache.get(self.cache_key)
        if not isinstance(cached, dict):
            return False
        self.jobs = [JobPosting.model_validate(item) for item in cached.get("jobs") or [] if isinstance(item, dict)]
        self.skills = [str(item) for item in cached.get("skills") or []]
        self.loading_skills = False
        self.from_cache = True
        logger.info("job search served from cache (%d jobs)", len(self.jobs))
        return True

    async def load(self) -> None:
        try:
            skills = await self.cache.get_or_load(SKILLS_CACHE_KEY, self.api.get_skills)
        except FetchError as exc:
            if self.lifetime.alive:
                self.loading_skills = False
                self.error = exc.message
                self.notifier.error("Error", "Could not load resume skills. Please build your resume first.")
            return

        if not self.lifetime.alive:
            return
        self.skills = list(skills)
        self.loading_skills = False
        if skills:
            await self.search()

    async def search(self) -> Optional[TaskHandle]:
        self.searching = True
        self.error = None
        try:
            task_id = await self.api.start_job_search(self.query)
        except FetchError as exc:
            if self.lifetime.alive:
                self.searching = False
                self.error = exc.message
                self.notifier.error("Search Failed", exc.message or "Could not search for jobs. Please try again.")
            return None

        if not self.lifetime.alive:
            return None
        return self.correlator.begin(JOB_UPDATE_EVENT, task_id)

    async def refresh(self) -> Optional[TaskHandle]:
        """Drop cached results and search again."""
        self.cache.invalidate(self.cache_key)
        self.from_cache = False
        return await self.search()

    def _on_results(self, completion: TaskCompletion) -> None:
        self.searching = False
        self.from_cache = False
        raw_jobs = completion.payload.get("jobs") or []
        self.jobs = [JobPosting.model_validate(item) for item in raw_jobs if isinstance(item, dict)]
        snapshot: Dict[str, Any] = {
            "jobs": [job.model_dump() for job in self.jobs],
            "skills": list(self.skills),
        }
        self.cache.put(self.cache_key, snapshot)
        total = completion.payload.get("total_jobs", len(self.jobs))
        self.notifier.success("Success", f"Found {total} jobs matching your skills!")

    def _on_search_failed(self, failure: TaskFailure) -> None:
        self.searching = False
        self.error = failure.message
        self.notifier.error("Search Failed", failure.message or "Job search failed.")
