"""Data models for listings, analysis results and cache entries."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

PLACEHOLDER_TITLE = "Unknown Title"
PLACEHOLDER_COMPANY = "Unknown Company"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: str | None) -> datetime:
    """Parse an ISO timestamp; unparseable values sort before everything."""
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class Verdict(str, Enum):
    FIT = "Fit"
    NO_FIT = "NoFit"
    UNKNOWN = "Unknown"

    @property
    def definite(self) -> bool:
        return self is not Verdict.UNKNOWN

    @classmethod
    def coerce(cls, value: Any) -> "Verdict":
        """Map any stored representation onto one of the three states."""
        if isinstance(value, Verdict):
            return value
        if value is True:
            return cls.FIT
        if value is False:
            return cls.NO_FIT
        if isinstance(value, str):
            for member in cls:
                if value.strip().lower() == member.value.lower():
                    return member
        return cls.UNKNOWN


@dataclass
class Listing:
    id: str
    title: str
    company: str
    location: str
    description: str
    source_url: str
    salary: str | None = None
    rich_description: str | None = None

    def is_complete(self) -> bool:
        return bool(
            self.title
            and self.company
            and self.title != PLACEHOLDER_TITLE
            and self.company != PLACEHOLDER_COMPANY
        )

    def to_request(self) -> dict[str, Any]:
        return {
            "jobId": self.id,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "salary": self.salary or "",
            "description": self.description,
            "descriptionHtml": self.rich_description or "",
            "url": self.source_url,
        }


@dataclass
class AnalysisResult:
    listing_id: str
    verdict: Verdict
    rationale_markup: str
    completed_at: str = field(default_factory=utc_now)


@dataclass
class CacheEntry:
    id: str
    title: str
    company: str
    location: str = ""
    description: str = ""
    rich_description: str = ""
    salary: str = ""
    source_url: str = ""
    verdict: Verdict = Verdict.UNKNOWN
    rationale_markup: str = ""
    timestamp: str = field(default_factory=utc_now)

    @classmethod
    def merge(cls, listing: Listing, result: AnalysisResult) -> "CacheEntry":
        return cls(
            id=listing.id,
            title=listing.title or PLACEHOLDER_TITLE,
            company=listing.company or PLACEHOLDER_COMPANY,
            location=listing.location,
            description=listing.description,
            rich_description=listing.rich_description or "",
            salary=listing.salary or "",
            source_url=listing.source_url,
            verdict=result.verdict,
            rationale_markup=result.rationale_markup,
            timestamp=result.completed_at,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["verdict"] = self.verdict.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or PLACEHOLDER_TITLE,
            company=data.get("company") or PLACEHOLDER_COMPANY,
            location=data.get("location", ""),
            description=data.get("description", ""),
            rich_description=data.get("rich_description", ""),
            salary=data.get("salary", ""),
            source_url=data.get("source_url", ""),
            verdict=Verdict.coerce(data.get("verdict")),
            rationale_markup=data.get("rationale_markup", ""),
            timestamp=data.get("timestamp", ""),
        )
