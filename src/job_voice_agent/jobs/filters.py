"""
Local job filtering.

Filters are built as lists of independent predicates and combined with AND,
so adding a criterion can only ever shrink a result set. Both the corpus
search (`JobSearchFilters`) and voice command narrowing (`CommandParams`)
are expressed with the same primitives.
"""

from __future__ import annotations

from typing import Callable, Iterable

from job_voice_agent.schemas import CommandParams, JobSearchFilters, NormalizedJob

JobPredicate = Callable[[NormalizedJob], bool]

EXPERIENCE_TERMS: dict[str, list[str]] = {
    "entry": ["entry level", "junior", "entry"],
    "mid": ["mid level", "mid"],
    "senior": ["senior level", "senior"],
    "lead": ["lead"],
    "executive": ["executive", "director", "vp"],
}


def _lower_all(values: Iterable[str | None]) -> list[str]:
    return [v.strip().lower() for v in values if v and v.strip()]


def _normalize_type(value: str) -> str:
    return value.strip().lower().replace("-", "_").replace(" ", "_")


# --- predicate primitives -------------------------------------------------


def salary_at_least(minimum: float) -> JobPredicate:
    """Unknown maximum salary never excludes a job."""
    return lambda job: job.salary_max is None or job.salary_max >= minimum


def salary_at_most(maximum: float) -> JobPredicate:
    """Unknown minimum salary never excludes a job."""
    return lambda job: job.salary_min is None or job.salary_min <= maximum


def remote_only() -> JobPredicate:
    return lambda job: job.remote_like


def title_contains_any(titles: list[str], include_tags: bool = True) -> JobPredicate:
    def _pred(job: NormalizedJob) -> bool:
        title = job.title.lower()
        tags = [t.lower() for t in job.tags] if include_tags else []
        return any(q in title or any(q in tag for tag in tags) for q in titles)

    return _pred


def company_contains_any(companies: list[str]) -> JobPredicate:
    return lambda job: any(c in job.company.lower() for c in companies)


def location_contains_any(places: list[str]) -> JobPredicate:
    """Match the display location or any structured location field."""

    def _pred(job: NormalizedJob) -> bool:
        haystacks = [job.location.lower()]
        for loc in job.locations:
            haystacks.extend(_lower_all([loc.location, loc.city, loc.state, loc.country]))
        return any(p in h for p in places for h in haystacks)

    return _pred


def tags_contain_any(skills: list[str]) -> JobPredicate:
    return lambda job: any(skill in tag.lower() for tag in job.tags for skill in skills)


def mentions_any_skill(skills: list[str]) -> JobPredicate:
    """Skill appears in a tag, the title or the description."""

    def _pred(job: NormalizedJob) -> bool:
        tags = [t.lower() for t in job.tags]
        title = job.title.lower()
        description = job.description.lower()
        return any(
            any(skill in tag for tag in tags) or skill in title or skill in description
            for skill in skills
        )

    return _pred


def employment_type_in(types: list[str]) -> JobPredicate:
    wanted = {_normalize_type(t) for t in types}
    return lambda job: _normalize_type(job.employment_type) in wanted


def work_mode_in(modes: list[str]) -> JobPredicate:
    wanted = {m.lower().replace("-", "") for m in modes}
    return lambda job: job.work_mode.lower().replace("-", "") in wanted


def experience_matches_any(levels: list[str]) -> JobPredicate:
    terms: list[str] = []
    for level in levels:
        terms.extend(EXPERIENCE_TERMS.get(level, [level]))
    return lambda job: any(term in job.experience.lower() for term in terms)


# --- predicate builders ---------------------------------------------------


def build_search_predicates(filters: JobSearchFilters) -> list[JobPredicate]:
    """Predicates for a corpus search."""
    predicates: list[JobPredicate] = []

    if filters.query and filters.query.strip():
        query = filters.query.strip().lower()

        def _query(job: NormalizedJob) -> bool:
            return (
                query in job.title.lower()
                or query in job.company.lower()
                or query in job.location.lower()
                or any(query in tag.lower() for tag in job.tags)
            )

        predicates.append(_query)

    titles = _lower_all(filters.job_titles)
    if titles:
        predicates.append(title_contains_any(titles))
    if filters.remote_only:
        predicates.append(remote_only())
    types = _lower_all(filters.job_types)
    if types:
        predicates.append(employment_type_in(types))
    modes = _lower_all(filters.work_modes)
    if modes:
        predicates.append(work_mode_in(modes))
    places = _lower_all(filters.locations)
    if places:
        predicates.append(location_contains_any(places))
    companies = _lower_all(filters.companies)
    if companies:
        predicates.append(company_contains_any(companies))
    skills = _lower_all(filters.skills)
    if skills:
        predicates.append(tags_contain_any(skills))
    if filters.salary_min is not None:
        predicates.append(salary_at_least(filters.salary_min))
    if filters.salary_max is not None:
        predicates.append(salary_at_most(filters.salary_max))
    levels = _lower_all(filters.experience_levels)
    if levels:
        predicates.append(experience_matches_any(levels))

    return predicates


def build_param_predicates(params: CommandParams) -> list[JobPredicate]:
    """Predicates for narrowing a job list by voice command parameters."""
    predicates: list[JobPredicate] = []

    if params.job_title and params.job_title.strip():
        predicates.append(title_contains_any([params.job_title.strip().lower()]))
    if params.company and params.company.strip():
        predicates.append(company_contains_any([params.company.strip().lower()]))
    if params.remote:
        predicates.append(remote_only())
    for place in (params.location, params.country, params.state, params.city):
        if place and place.strip():
            predicates.append(location_contains_any([place.strip().lower()]))
    if params.experience_level and params.experience_level.strip():
        predicates.append(experience_matches_any([params.experience_level.strip().lower()]))
    types = _lower_all(params.job_type or [])
    if types:
        predicates.append(employment_type_in(types))
    skills = _lower_all(params.skills or [])
    if skills:
        predicates.append(mentions_any_skill(skills))
    if params.salary_min is not None:
        predicates.append(salary_at_least(params.salary_min))
    if params.salary_max is not None:
        predicates.append(salary_at_most(params.salary_max))

    return predicates


def apply_predicates(jobs: Iterable[NormalizedJob], predicates: list[JobPredicate]) -> list[NormalizedJob]:
    """Keep jobs that satisfy every predicate, preserving order."""
    return [job for job in jobs if all(pred(job) for pred in predicates)]


def filter_jobs(jobs: Iterable[NormalizedJob], filters: JobSearchFilters) -> list[NormalizedJob]:
    return apply_predicates(jobs, build_search_predicates(filters))


def filter_jobs_by_params(jobs: Iterable[NormalizedJob], params: CommandParams) -> list[NormalizedJob]:
    return apply_predicates(jobs, build_param_predicates(params))
