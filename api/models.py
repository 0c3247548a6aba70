"""Request bodies for task-start endpoints."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


DEFAULT_SITES = ["indeed", "linkedin", "zip_recruiter", "google"]


class JobPosting(BaseModel):
    """Job listing as returned by the search backend (extra fields kept)."""

    model_config = {"extra": "allow"}

    title: str = ""
    company: str = ""
    location: str = ""
    description: str = ""
    description_full: str = ""
    job_url: str = ""
    job_url_direct: str = ""

    @field_validator(
        "title",
        "company",
        "location",
        "description",
        "description_full",
        "job_url",
        "job_url_direct",
        mode="before",
    )
    @classmethod
    def _text(cls, value: Any) -> str:
        return str(value or "").strip()

    def cover_letter_request(self) -> Dict[str, str]:
        return {
            "job_description": self.description or self.description_full,
            "company": self.company or "the company",
            "title": self.title or "this position",
            "job_url": self.job_url or self.job_url_direct,
        }

    def file_stem(self) -> str:
        return "cover_letter_" + ("_".join(self.company.split()) or "job")


class JobSearchQuery(BaseModel):
    location: str = "United States"
    job_title: str = "software engineer"
    max_results: int = Field(default=50, ge=1, le=500)
    sites: List[str] = Field(default_factory=lambda: list(DEFAULT_SITES))
    skills: Optional[List[str]] = None
