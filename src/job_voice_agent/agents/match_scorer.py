"""
Match scorer.

Scores a job against a user profile as a weighted sum of six independent
sub-scores (salary, location, job type, experience, skills, remote), each
on a 0-100 scale. Sub-score helpers never fail; missing data maps to a
neutral value.
"""

from __future__ import annotations

import logging
import re

from pydantic import BaseModel, Field, model_validator

from job_voice_agent.config import get_settings
from job_voice_agent.jobs.filters import filter_jobs_by_params
from job_voice_agent.schemas import (
    EXPERIENCE_LEVELS,
    CommandParams,
    JobMatch,
    JobMatchResult,
    JobPreferences,
    JobProfile,
    NormalizedJob,
)

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 70.0

# Upper bounds (exclusive) on years of experience for each band; above the last is executive.
EXPERIENCE_YEAR_BANDS: list[tuple[float, str]] = [
    (2, "entry"),
    (5, "mid"),
    (8, "senior"),
    (12, "lead"),
]

JOB_LEVEL_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("entry", re.compile(r"\b(entry|junior|jr)\b")),
    ("mid", re.compile(r"\b(mid|intermediate)\b")),
    ("senior", re.compile(r"\b(senior|sr)\b")),
    ("lead", re.compile(r"\b(lead|principal|staff)\b")),
    ("executive", re.compile(r"\b(executive|director|vp|head|chief)\b")),
]


class MatchWeights(BaseModel):
    """Percentage weight of each criterion. Must sum to 100."""

    salary: float = Field(default=25, ge=0, le=100)
    location: float = Field(default=25, ge=0, le=100)
    job_type: float = Field(default=15, ge=0, le=100)
    experience: float = Field(default=15, ge=0, le=100)
    skills: float = Field(default=15, ge=0, le=100)
    remote: float = Field(default=5, ge=0, le=100)

    @model_validator(mode="after")
    def _check_total(self) -> "MatchWeights":
        total = self.salary + self.location + self.job_type + self.experience + self.skills + self.remote
        if abs(total - 100) > 1e-6:
            raise ValueError(f"Match weights must sum to 100, got {total:g}")
        return self


def _norm_type(value: str) -> str:
    return value.strip().lower().replace("-", "_").replace(" ", "_")


def years_to_level(years: float | None) -> str:
    years = years or 0
    for upper, level in EXPERIENCE_YEAR_BANDS:
        if years < upper:
            return level
    return "executive"


def detect_job_level(job: NormalizedJob) -> str | None:
    """Experience band from the job's level label only; None when unlabelled."""
    label = job.experience.lower()
    for level, pattern in JOB_LEVEL_PATTERNS:
        if pattern.search(label):
            return level
    return None


def salary_score(job: NormalizedJob, preferences: JobPreferences | None) -> float:
    desired = None
    if preferences is not None:
        desired = preferences.desired_salary or (preferences.salary[0] if preferences.salary else None)
    if not desired:
        return NEUTRAL_SCORE

    if job.salary_min is None and job.salary_max is None:
        return 50.0

    job_max = job.salary_max if job.salary_max is not None else job.salary_min
    job_min = job.salary_min if job.salary_min is not None else job.salary_max

    if job_min >= desired:
        return 100.0
    if job_max >= desired:
        return 85.0
    if job_max >= desired * 0.8:
        return 70.0
    if job_max >= desired * 0.6:
        return 40.0
    return 20.0


def location_score(job: NormalizedJob, profile: JobProfile, preferences: JobPreferences | None) -> float:
    remote_only = bool(preferences and preferences.remote_only)
    if remote_only and job.remote_like:
        return 100.0
    if job.remote_like:
        return 90.0

    job_location = job.location.lower()
    for place in (preferences.locations if preferences else []):
        if place and place.lower() in job_location:
            return 100.0

    user_location = profile.current_city or profile.state or profile.country
    if user_location and user_location.lower() in job_location:
        return 85.0

    def _same(a: str | None, b: str | None) -> bool:
        return bool(a and b and a.lower() == b.lower())

    for loc in job.locations:
        if _same(loc.city, profile.current_city):
            return 85.0
        if _same(loc.state, profile.state):
            return 70.0
        if _same(loc.country, profile.country):
            return 60.0

    if remote_only:
        return 10.0
    return 40.0


def job_type_score(job: NormalizedJob, preferences: JobPreferences | None) -> float:
    if preferences is None or not preferences.job_type:
        return NEUTRAL_SCORE

    job_type = _norm_type(job.employment_type)
    preferred = {_norm_type(t) for t in preferences.job_type if t}

    if job_type in preferred:
        return 100.0
    if "full_time" in preferred and job_type in ("contract", "freelance"):
        return 50.0
    return 30.0


def experience_score(job: NormalizedJob, profile: JobProfile) -> float:
    job_level = detect_job_level(job)
    if job_level is None:
        return NEUTRAL_SCORE

    distance = abs(
        EXPERIENCE_LEVELS.index(years_to_level(profile.years_of_experience))
        - EXPERIENCE_LEVELS.index(job_level)
    )
    if distance == 0:
        return 100.0
    if distance == 1:
        return 75.0
    if distance == 2:
        return 40.0
    return 20.0


def skills_score(job: NormalizedJob, profile: JobProfile) -> float:
    """Share of the user's skills found in the job's tags or title."""
    user_skills = [s.lower().strip() for s in profile.skills if s and s.strip()]
    if not user_skills:
        return 50.0
    if not job.tags:
        return 60.0

    tags = [t.lower() for t in job.tags]
    title = job.title.lower()
    matched = sum(
        1 for skill in user_skills if any(skill in tag for tag in tags) or skill in title
    )

    pct = matched / len(user_skills) * 100
    if pct >= 75:
        return 100.0
    if pct >= 50:
        return 80.0
    if pct >= 25:
        return 60.0
    if matched > 0:
        return 40.0
    return 20.0


def remote_score(job: NormalizedJob, preferences: JobPreferences | None) -> float:
    if preferences is None or not preferences.remote_only:
        return NEUTRAL_SCORE
    if job.remote_like:
        return 100.0
    if job.work_mode.lower() == "hybrid":
        return 60.0
    return 20.0


class MatchScorer:
    """
    Weighted job/profile compatibility scorer.

    Results are recomputed on every call; nothing is cached.
    """

    def __init__(
        self,
        weights: MatchWeights | None = None,
        minimum_match_score: float | None = None,
    ) -> None:
        settings = get_settings()
        self._weights = weights or MatchWeights()
        self._minimum_match_score = 0.0
        self.set_minimum_match_score(
            settings.minimum_match_score if minimum_match_score is None else minimum_match_score
        )

    @property
    def weights(self) -> MatchWeights:
        return self._weights

    @property
    def minimum_match_score(self) -> float:
        return self._minimum_match_score

    def set_weights(self, **weights: float) -> MatchWeights:
        """
        Override some weights.

        Raises:
            pydantic.ValidationError: If the merged weights do not sum to 100.
        """
        self._weights = MatchWeights(**{**self._weights.model_dump(), **weights})
        return self._weights

    def set_minimum_match_score(self, score: float) -> None:
        """Clamped to 0-100."""
        self._minimum_match_score = max(0.0, min(100.0, float(score)))

    def calculate_match_score(self, job: NormalizedJob, profile: JobProfile) -> JobMatchResult:
        """
        Score one job against one profile.

        Args:
            job: Job to score.
            profile: User profile.

        Returns:
            Match result with a 0-100 score, reasons and auto-apply flag.
        """
        prefs = profile.preferences
        w = self._weights
        reasons: list[str] = []
        total = 0.0

        salary = salary_score(job, prefs)
        total += salary * w.salary / 100
        if salary >= 70:
            reasons.append("Salary matches your expectations")

        location = location_score(job, profile, prefs)
        total += location * w.location / 100
        if location >= 70:
            reasons.append("Location matches your preferences")

        job_type = job_type_score(job, prefs)
        total += job_type * w.job_type / 100
        if job_type >= 80:
            reasons.append("Job type matches your preference")

        experience = experience_score(job, profile)
        total += experience * w.experience / 100
        if experience >= 70:
            reasons.append("Experience level is a good fit")

        skills = skills_score(job, profile)
        total += skills * w.skills / 100
        if skills >= 50:
            reasons.append("Your skills match the job requirements")

        remote = remote_score(job, prefs)
        total += remote * w.remote / 100
        if remote >= 100:
            reasons.append("Remote work option available")

        score = min(100.0, max(0.0, total))
        return JobMatchResult(
            job_id=job.id,
            match_score=score,
            match_reasons=reasons,
            should_apply=score >= self._minimum_match_score,
        )

    def filter_jobs_by_profile(self, jobs: list[NormalizedJob], profile: JobProfile) -> list[JobMatch]:
        """Score every job and sort by descending score (stable for ties)."""
        results = [JobMatch(job=job, match=self.calculate_match_score(job, profile)) for job in jobs]
        results.sort(key=lambda r: r.match.match_score, reverse=True)
        return results

    def get_auto_apply_jobs(self, jobs: list[NormalizedJob], profile: JobProfile) -> list[JobMatch]:
        """Jobs whose score meets the minimum, best first."""
        eligible = [r for r in self.filter_jobs_by_profile(jobs, profile) if r.match.should_apply]
        logger.debug(
            f"[MATCH] auto-apply eligible={len(eligible)}/{len(jobs)} minimum={self._minimum_match_score:g}"
        )
        return eligible

    def match_by_voice_params(
        self,
        jobs: list[NormalizedJob],
        params: CommandParams,
        profile: JobProfile | None = None,
    ) -> list[JobMatch]:
        """
        Narrow by voice parameters, then rank against the profile.

        Without a profile every remaining job gets a neutral score and is
        considered eligible.
        """
        filtered = filter_jobs_by_params(jobs, params)
        if profile is not None:
            return self.filter_jobs_by_profile(filtered, profile)

        return [
            JobMatch(
                job=job,
                match=JobMatchResult(
                    job_id=job.id,
                    match_score=NEUTRAL_SCORE,
                    match_reasons=["Matches your search criteria"],
                    should_apply=NEUTRAL_SCORE >= self._minimum_match_score,
                ),
            )
            for job in filtered
        ]
