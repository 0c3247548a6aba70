"""UI surfaces composed from the synchronization subsystem."""

from .base import ArtifactConsumer, keep_subscribed
from .cover_letter import COVER_LETTER_EVENT, CoverLetterSession
from .document import CompiledDocumentView, LatexSource, PdfPreview
from .job_search import CACHE_KEY, JOB_UPDATE_EVENT, SKILLS_CACHE_KEY, JobSearchSession, results_cache_key

__all__ = [
    "ArtifactConsumer",
    "CACHE_KEY",
    "COVER_LETTER_EVENT",
    "CompiledDocumentView",
    "CoverLetterSession",
    "JOB_UPDATE_EVENT",
    "JobSearchSession",
    "LatexSource",
    "PdfPreview",
    "SKILLS_CACHE_KEY",
    "keep_subscribed",
    "results_cache_key",
]
