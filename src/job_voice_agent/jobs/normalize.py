"""Normalize raw backend job records into `NormalizedJob`."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from job_voice_agent.schemas import JobLocation, NormalizedJob

logger = logging.getLogger(__name__)

EMPLOYMENT_TYPE_LABELS: dict[str, str] = {
    "full_time": "Full-time",
    "part_time": "Part-time",
    "contract": "Contract",
    "internship": "Internship",
    "freelance": "Freelance",
}

WORK_MODE_LABELS: dict[str, str] = {
    "remote": "Remote",
    "hybrid": "Hybrid",
    "onsite": "On-site",
}

TECH_KEYWORDS: list[str] = [
    "React", "React Native", "TypeScript", "JavaScript", "Node.js", "Python",
    "Java", "Go", "Rust", "AWS", "GCP", "Azure", "Docker", "Kubernetes",
    "GraphQL", "REST", "SQL", "NoSQL", "MongoDB", "PostgreSQL", "Redis",
    "Kafka", "Machine Learning", "AI", "Data Science", "Frontend", "Backend",
    "Full Stack", "Mobile", "iOS", "Android", "DevOps", "SRE", "Security",
    "Cloud", "Blockchain", "Web3",
]

ROLE_KEYWORDS: list[str] = [
    "Senior", "Junior", "Lead", "Principal", "Staff", "Manager", "Director",
    "VP", "Head", "Chief",
]

MAX_TAGS = 4


def extract_tags_from_title(title: str) -> list[str]:
    """Derive up to four skill/role tags from a job title."""
    title_lower = (title or "").lower()
    tags: list[str] = []

    for keyword in TECH_KEYWORDS + ROLE_KEYWORDS:
        if keyword.lower() in title_lower:
            tags.append(keyword)

    if "engineer" in title_lower or "developer" in title_lower:
        tags.append("Engineering")
    if "product" in title_lower:
        tags.append("Product")
    if "design" in title_lower:
        tags.append("Design")
    if "support" in title_lower:
        tags.append("Support")

    return list(dict.fromkeys(tags))[:MAX_TAGS]


def format_posted_at(date_posted: str | None, now: datetime | None = None) -> str:
    """Render an ISO date as "Today", "3 days ago", "2 weeks ago"..."""
    if not date_posted:
        return ""
    try:
        posted = datetime.fromisoformat(date_posted.replace("Z", "+00:00"))
    except ValueError:
        return ""
    if posted.tzinfo is None:
        posted = posted.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    days = max(0, (now - posted).days)
    if days == 0:
        return "Today"
    if days == 1:
        return "1 day ago"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    return f"{days // 30} months ago"


def _location_string(loc: dict[str, Any] | None) -> str:
    if not loc:
        return "Location not specified"
    if loc.get("location"):
        return str(loc["location"])
    parts = [loc.get("city"), loc.get("state"), loc.get("country")]
    return ", ".join(str(p) for p in parts if p) or "Location not specified"


def _salary_text(compensation: dict[str, Any] | None) -> str:
    if not compensation:
        return "Salary not disclosed"
    if compensation.get("raw_text"):
        return str(compensation["raw_text"])
    lo = _as_number(compensation.get("min"))
    hi = _as_number(compensation.get("max"))
    if lo is None and hi is None:
        return "Salary not disclosed"
    lo = lo if lo is not None else hi
    hi = hi if hi is not None else lo
    return f"${lo / 1000:.0f}k - ${hi / 1000:.0f}k"


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_api_job(raw: dict[str, Any], now: datetime | None = None) -> NormalizedJob:
    """
    Convert a backend job record into a `NormalizedJob`.

    Args:
        raw: Record as returned by ``POST /jobs/search``.
        now: Reference time for the relative posting date.

    Returns:
        The normalized job.
    """
    company = str(raw.get("company.name") or raw.get("company") or "")
    title = str(raw.get("title") or "")

    raw_locations = [loc for loc in (raw.get("locations") or []) if isinstance(loc, dict)]
    locations = [
        JobLocation(
            location=str(loc.get("location") or ""),
            city=loc.get("city"),
            state=loc.get("state"),
            country=loc.get("country"),
        )
        for loc in raw_locations
    ]
    location = _location_string(raw_locations[0] if raw_locations else None)

    compensation = raw.get("compensation") if isinstance(raw.get("compensation"), dict) else None
    salary = _salary_text(compensation)

    is_remote = bool(raw.get("is_remote"))
    workplace = raw.get("workplace_type")
    if is_remote:
        work_mode = "Remote"
    else:
        work_mode = WORK_MODE_LABELS.get(str(workplace), "On-site")

    employment = raw.get("employment_type")
    employment_type = EMPLOYMENT_TYPE_LABELS.get(str(employment), "Full-time")

    level = raw.get("experience_level")
    experience = f"{str(level).capitalize()} Level" if level else "Not specified"

    return NormalizedJob(
        id=str(raw.get("id")),
        title=title,
        company=company,
        location=location,
        locations=locations,
        salary=salary,
        salary_min=_as_number(compensation.get("min")) if compensation else None,
        salary_max=_as_number(compensation.get("max")) if compensation else None,
        employment_type=employment_type,
        work_mode=work_mode,
        is_remote=is_remote,
        experience=experience,
        tags=extract_tags_from_title(title),
        description=f"Apply for {title} at {company}. {location}. {salary}.",
        listing_url=str(raw.get("listing_url") or ""),
        apply_url=str(raw.get("apply_url") or ""),
        source=str(raw.get("source") or "other"),
        posted_at=format_posted_at(raw.get("date_posted"), now=now),
    )
