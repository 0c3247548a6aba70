"""CLI entrypoint: mount artifact surfaces headlessly against a running backend."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
import shutil
import sys
from typing import Any, Callable, Optional

from api import JobPosting, JobSearchQuery, ResumeApiClient
from channel import SseTransport
from config import Settings, get_settings
from consumers import ArtifactConsumer, CompiledDocumentView, CoverLetterSession, JobSearchSession, LatexSource, PdfPreview, keep_subscribed
from storage import get_result_cache
from sync import ArtifactFetcher, TempFileResourceStore
from utils import setup_package_logging
from utils.exceptions import ChannelConnectionError, ConfigurationError
from utils.notify import ConsoleNotifier


logger = logging.getLogger("artifact_sync.cli")


def _emit(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, default=str), flush=True)


def _transport_factory(api: ResumeApiClient, settings: Settings) -> Callable[[], SseTransport]:
    def _factory() -> SseTransport:
        return SseTransport(api.events_url, client=api.http, connect_timeout=settings.backend.connect_timeout)

    return _factory


async def _watch(consumer: ArtifactConsumer, settings: Settings, timeout: Optional[float], done: asyncio.Event) -> int:
    """Run until ``done`` is set, the timeout passes or the channel gives up."""
    subscription = asyncio.ensure_future(
        keep_subscribed(
            consumer,
            attempts=settings.resubscribe.attempts,
            max_wait=settings.resubscribe.max_wait,
        )
    )
    finished = asyncio.ensure_future(done.wait())
    try:
        completed, _ = await asyncio.wait({subscription, finished}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (subscription, finished):
            task.cancel()

    if not completed:
        logger.warning("timed out after %ss", timeout)
        return 2
    if subscription in completed and not subscription.cancelled():
        exc = subscription.exception()
        if isinstance(exc, ChannelConnectionError):
            logger.error("push channel unavailable: %s", exc)
            return 1
        if exc is not None:
            raise exc
    return 0


async def _unmount(consumer: ArtifactConsumer) -> None:
    consumer.stop()
    await consumer.lifetime.drain(timeout=1.0)


async def _run_preview(args: argparse.Namespace, settings: Settings) -> int:
    out = Path(args.out)
    done = asyncio.Event()

    def _copy(view: CompiledDocumentView) -> None:
        handle = view.handle if isinstance(view, PdfPreview) else None
        if handle is None:
            return
        out.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(handle.path, out)
        _emit({"event": "pdf_updated", "path": str(out), "bytes": handle.size})
        if args.once:
            done.set()

    async with ResumeApiClient(settings.backend) as api:
        fetcher = ArtifactFetcher(api.http)
        view = PdfPreview(
            _transport_factory(api, settings)(),
            fetcher,
            api.document_source("pdf", cover_letter=args.cover_letter),
            TempFileResourceStore(settings.resource.dir),
            notifier=ConsoleNotifier(),
            on_update=_copy,
        )
        view.start()
        try:
            return await _watch(view, settings, args.timeout, done)
        finally:
            await _unmount(view)


async def _run_source(args: argparse.Namespace, settings: Settings) -> int:
    done = asyncio.Event()

    def _print(view: CompiledDocumentView) -> None:
        code = view.code if isinstance(view, LatexSource) else None
        if code is None:
            return
        if args.out:
            Path(args.out).write_text(code, encoding="utf-8")
            _emit({"event": "tex_updated", "path": args.out, "chars": len(code)})
        else:
            sys.stdout.write(code)
            sys.stdout.flush()
        done.set()

    async with ResumeApiClient(settings.backend) as api:
        view = LatexSource(
            _transport_factory(api, settings)(),
            ArtifactFetcher(api.http),
            api.document_source("tex", cover_letter=args.cover_letter),
            notifier=ConsoleNotifier(),
            on_update=_print,
        )
        view.start()
        try:
            return await _watch(view, settings, args.timeout, done)
        finally:
            await _unmount(view)


def _load_job(args: argparse.Namespace) -> JobPosting:
    if args.job_json:
        data = json.loads(Path(args.job_json).read_text(encoding="utf-8"))
        return JobPosting.model_validate(data)
    return JobPosting(title=args.title, company=args.company, description=args.description)


async def _run_cover_letter(args: argparse.Namespace, settings: Settings) -> int:
    job = _load_job(args)
    out = Path(args.out or f"{job.file_stem()}.pdf")
    done = asyncio.Event()

    def _copy(view: CompiledDocumentView) -> None:
        handle = view.handle if isinstance(view, PdfPreview) else None
        if handle is None:
            return
        shutil.copyfile(handle.path, out)
        _emit({"event": "cover_letter_ready", "path": str(out), "bytes": handle.size})
        done.set()

    timeout = settings.task.completion_timeout or None
    async with ResumeApiClient(settings.backend) as api:
        session = CoverLetterSession(
            _transport_factory(api, settings),
            api,
            ArtifactFetcher(api.http),
            TempFileResourceStore(settings.resource.dir),
            job,
            notifier=ConsoleNotifier(),
            task_timeout=timeout,
            backlog_size=settings.task.backlog_size,
            on_preview_update=_copy,
            on_failure=lambda _message: done.set(),
        )
        session.start()
        try:
            code = await _watch(session, settings, args.timeout, done)
            if session.error:
                _emit({"event": "cover_letter_failed", "error": session.error})
                return 1
            return code
        finally:
            await _unmount(session)


async def _run_jobs(args: argparse.Namespace, settings: Settings) -> int:
    cache = get_result_cache(ttl=settings.cache.ttl_seconds, path=settings.cache.path)
    query = JobSearchQuery(location=args.location, job_title=args.job_title, max_results=args.max_results)
    timeout = settings.task.completion_timeout or None

    async with ResumeApiClient(settings.backend) as api:
        session = JobSearchSession(
            _transport_factory(api, settings)(),
            api,
            cache,
            query=query,
            notifier=ConsoleNotifier(),
            task_timeout=timeout,
            backlog_size=settings.task.backlog_size,
        )
        session.start()
        if args.refresh and session.from_cache:
            await session.refresh()

        done = asyncio.Event()

        async def _until_settled() -> None:
            while session.loading_skills or session.searching:
                await asyncio.sleep(0.1)
            done.set()

        settle = asyncio.ensure_future(_until_settled())
        try:
            code = await _watch(session, settings, args.timeout, done)
        finally:
            settle.cancel()
            await _unmount(session)

    _emit(
        {
            "from_cache": session.from_cache,
            "skills": session.skills,
            "total_jobs": len(session.jobs),
            "jobs": [job.model_dump() for job in session.jobs],
        }
    )
    return 1 if session.error else code


def main() -> None:
    parser = argparse.ArgumentParser(description="Live artifact sync CLI")
    parser.add_argument("--base-url", default="", help="Override BACKEND_BASE_URL")
    parser.add_argument("--timeout", type=float, default=None, help="Give up after N seconds")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    preview = sub.add_parser("preview", help="Keep a local copy of the compiled PDF in sync")
    preview.add_argument("--out", default="resume.pdf")
    preview.add_argument("--cover-letter", action="store_true")
    preview.add_argument("--once", action="store_true", help="Exit after the first update")

    source = sub.add_parser("source", help="Print the compiled LaTeX source once ready")
    source.add_argument("--out", default="")
    source.add_argument("--cover-letter", action="store_true")

    letter = sub.add_parser("cover-letter", help="Generate a cover letter for a job")
    letter.add_argument("--job-json", default="")
    letter.add_argument("--title", default="")
    letter.add_argument("--company", default="")
    letter.add_argument("--description", default="")
    letter.add_argument("--out", default="")

    jobs = sub.add_parser("jobs", help="Search jobs matching the resume skills")
    jobs.add_argument("--location", default="United States")
    jobs.add_argument("--job-title", default="software engineer")
    jobs.add_argument("--max-results", type=int, default=50)
    jobs.add_argument("--refresh", action="store_true", help="Ignore cached results")

    args = parser.parse_args()
    try:
        settings = get_settings()
    except ConfigurationError as exc:
        print(json.dumps({"error": exc.message, **exc.details}, ensure_ascii=False), file=sys.stderr)
        raise SystemExit(2)
    setup_package_logging(
        level=logging.DEBUG if args.verbose else settings.logging.level,
        log_file=settings.logging.file,
        use_rich=settings.logging.rich,
    )

    if args.base_url:
        settings = settings.model_copy(
            update={"backend": settings.backend.model_copy(update={"base_url": args.base_url})}
        )

    runners = {
        "preview": _run_preview,
        "source": _run_source,
        "cover-letter": _run_cover_letter,
        "jobs": _run_jobs,
    }
    code = asyncio.run(runners[args.command](args, settings))
    raise SystemExit(code)


if __name__ == "__main__":
    main()
