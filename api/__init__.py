"""Backend API client."""

from .client import ResumeApiClient
from .models import JobPosting, JobSearchQuery

__all__ = ["JobPosting", "JobSearchQuery", "ResumeApiClient"]
