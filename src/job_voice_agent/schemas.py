"""
Pydantic schemas shared across the voice command pipeline.

Defines parsed voice commands, normalized job listings, user profiles,
match results and command results.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


def _now_utc() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


ExperienceLevel = Literal["entry", "mid", "senior", "lead", "executive"]
EmploymentType = Literal["full_time", "part_time", "contract", "internship", "freelance"]
WorkplaceType = Literal["remote", "hybrid", "onsite"]

EXPERIENCE_LEVELS: tuple[str, ...] = ("entry", "mid", "senior", "lead", "executive")


class CommandIntent(str, Enum):
    """Classified purpose of a voice utterance."""

    APPLY = "apply"
    SKIP = "skip"
    SEARCH = "search"
    FILTER = "filter"
    UNDO = "undo"
    NEXT = "next"
    DETAILS = "details"
    HELP = "help"
    UNKNOWN = "unknown"


# Intents that never need the language model when matched with high confidence.
SIMPLE_INTENTS: frozenset[CommandIntent] = frozenset(
    {
        CommandIntent.APPLY,
        CommandIntent.SKIP,
        CommandIntent.UNDO,
        CommandIntent.NEXT,
        CommandIntent.HELP,
    }
)


class CommandParams(BaseModel):
    """
    Typed parameter bag extracted from a voice command.

    Every field is optional. ``None`` means "unconstrained"; it never
    stands for ``False`` or zero.
    """

    model_config = ConfigDict(frozen=True)

    job_title: str | None = Field(default=None, description="Role or title mentioned")
    company: str | None = Field(default=None, description="Specific company mentioned")
    location: str | None = Field(default=None, description="Free-form location")
    country: str | None = Field(default=None, description="Country mentioned")
    state: str | None = Field(default=None, description="State or province mentioned")
    city: str | None = Field(default=None, description="City mentioned")
    remote: bool | None = Field(default=None, description="Remote work requested")
    experience_level: str | None = Field(default=None, description="entry|mid|senior|lead|executive")
    job_type: list[str] | None = Field(default=None, description="Employment types")
    skills: list[str] | None = Field(default=None, description="Skills or technologies")
    salary_min: float | None = Field(default=None, description="Minimum salary")
    salary_max: float | None = Field(default=None, description="Maximum salary")
    apply_to_all: bool | None = Field(default=None, description="Apply to every matching job")
    match_profile: bool | None = Field(default=None, description="Restrict to profile matches")

    def has_filter_criteria(self) -> bool:
        """True when any job-narrowing criterion is present."""
        return bool(
            self.job_title
            or self.country
            or self.state
            or self.city
            or self.location
            or self.remote
            or self.experience_level
            or self.company
            or self.skills
            or self.job_type
            or self.salary_min is not None
            or self.salary_max is not None
        )


class ParsedCommand(BaseModel):
    """Structured result of intent parsing."""

    model_config = ConfigDict(frozen=True)

    intent: CommandIntent = Field(..., description="Detected intent")
    params: CommandParams = Field(default_factory=CommandParams, description="Extracted parameters")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Parser confidence")
    raw_text: str = Field(default="", description="Transcript the command was parsed from")
    suggestion: str | None = Field(default=None, description="Short restatement for spoken feedback")

    @classmethod
    def empty(cls, raw_text: str = "") -> "ParsedCommand":
        return cls(intent=CommandIntent.UNKNOWN, raw_text=raw_text)


class JobLocation(BaseModel):
    """Structured location attached to a job listing."""

    model_config = ConfigDict(frozen=True)

    location: str = Field(default="", description="Display string from the source")
    city: str | None = None
    state: str | None = None
    country: str | None = None


class NormalizedJob(BaseModel):
    """
    Canonical job record used throughout the client.

    Instances are immutable; an updated listing replaces the old object.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique job identifier")
    title: str = Field(..., description="Job title")
    company: str = Field(default="", description="Company name")
    location: str = Field(default="Location not specified", description="Display location")
    locations: list[JobLocation] = Field(default_factory=list, description="Structured locations")
    salary: str = Field(default="Salary not disclosed", description="Display salary")
    salary_min: float | None = Field(default=None, description="Minimum annual salary")
    salary_max: float | None = Field(default=None, description="Maximum annual salary")
    employment_type: str = Field(default="Full-time", description="Employment type label")
    work_mode: str = Field(default="On-site", description="Remote, Hybrid or On-site")
    is_remote: bool = Field(default=False, description="Whether the job is remote")
    experience: str = Field(default="Not specified", description="Experience level label")
    tags: list[str] = Field(default_factory=list, description="Skill/role tags")
    description: str = Field(default="", description="Short description")
    listing_url: str = Field(default="", description="Source listing URL")
    apply_url: str = Field(default="", description="Application URL")
    source: str = Field(default="other", description="Source ATS")
    posted_at: str = Field(default="", description="Relative posting date")

    @property
    def remote_like(self) -> bool:
        return self.is_remote or self.work_mode.lower() == "remote"


class JobPreferences(BaseModel):
    """Job preferences stored on a profile."""

    job_type: list[str] = Field(default_factory=list, description="Preferred employment types")
    experience: list[str] = Field(default_factory=list, description="Preferred experience levels")
    salary: tuple[float, float] | None = Field(default=None, description="Desired salary range")
    desired_salary: float | None = Field(default=None, description="Annual salary target")
    positions: list[str] = Field(default_factory=list, description="Desired positions")
    remote_only: bool = Field(default=False, description="Only remote work")
    company_blacklist: list[str] = Field(default_factory=list, description="Companies to avoid")
    locations: list[str] = Field(default_factory=list, description="Preferred locations")


class JobProfile(BaseModel):
    """Read-only view of a user's job profile used for matching."""

    id: str = Field(default="", description="Profile identifier")
    name: str = Field(default="", description="Profile name")
    current_city: str | None = None
    state: str | None = None
    country: str | None = None
    years_of_experience: float | None = None
    skills: list[str] = Field(default_factory=list)
    preferences: JobPreferences | None = None


class JobMatchResult(BaseModel):
    """Compatibility score between one job and one profile."""

    job_id: str
    match_score: float = Field(..., ge=0.0, le=100.0)
    match_reasons: list[str] = Field(default_factory=list)
    should_apply: bool = False


class JobMatch(BaseModel):
    """A job paired with its match result."""

    job: NormalizedJob
    match: JobMatchResult


class SearchPreferences(BaseModel):
    """Preferences mapped to the backend search payload."""

    keywords: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    work_modes: list[WorkplaceType] = Field(default_factory=list)
    job_types: list[EmploymentType] = Field(default_factory=list)
    experience_levels: list[ExperienceLevel] = Field(default_factory=list)
    platforms: list[str] | None = None
    date_posted: str | None = None
    company_blacklist: list[str] = Field(default_factory=list)
    limit: int | None = None


class JobSearchFilters(BaseModel):
    """Local filters applied over the cached corpus."""

    query: str | None = None
    job_titles: list[str] = Field(default_factory=list)
    remote_only: bool = False
    job_types: list[str] = Field(default_factory=list)
    work_modes: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    companies: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    salary_min: float | None = None
    salary_max: float | None = None
    experience_levels: list[str] = Field(default_factory=list)


class JobSearchResponse(BaseModel):
    """Result of a local corpus search."""

    jobs: list[NormalizedJob] = Field(default_factory=list)
    total: int = 0


class VoiceCommandResult(BaseModel):
    """Outcome of executing one voice command."""

    success: bool
    command: ParsedCommand
    executed_action: str | None = None
    matched_jobs: int | None = None
    applied_jobs: int | None = None
    filtered_jobs: list[NormalizedJob] = Field(default_factory=list)
    error: str | None = None
    created_at: datetime = Field(default_factory=_now_utc)

    @classmethod
    def failure(cls, error: str, command: ParsedCommand | None = None, **kwargs) -> "VoiceCommandResult":
        return cls(success=False, command=command or ParsedCommand.empty(), error=error, **kwargs)


class RecordingStatus(BaseModel):
    """Recording view exposed to the UI."""

    is_recording: bool = False
    is_processing: bool = False
    error: str | None = None
    duration_ms: int = 0


class VoiceSessionState(BaseModel):
    """Snapshot of the orchestrator's session for the UI."""

    is_active: bool = False
    phase: str = "idle"
    recording: RecordingStatus = Field(default_factory=RecordingStatus)
    last_command: ParsedCommand | None = None
    last_result: VoiceCommandResult | None = None
    session_id: str
