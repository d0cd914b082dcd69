from job_voice_agent.jobs.filters import filter_jobs, filter_jobs_by_params
from job_voice_agent.schemas import CommandParams, JobLocation, JobSearchFilters, NormalizedJob


def _jobs() -> list[NormalizedJob]:
    return [
        NormalizedJob(
            id="1",
            title="Frontend Developer",
            company="Globex",
            location="San Francisco, California",
            locations=[JobLocation(location="San Francisco, California", city="San Francisco", state="California")],
            salary_min=110000,
            salary_max=140000,
            work_mode="Remote",
            is_remote=True,
            experience="Mid Level",
            tags=["React", "Frontend"],
        ),
        NormalizedJob(
            id="2",
            title="Backend Engineer",
            company="Initech",
            location="Austin, Texas",
            salary_min=90000,
            salary_max=100000,
            employment_type="Contract",
            experience="Senior Level",
            tags=["Python", "Backend"],
        ),
        NormalizedJob(
            id="3",
            title="Data Analyst",
            company="Globex",
            location="Remote",
            work_mode="Remote",
            tags=["SQL"],
        ),
    ]


def test_empty_filters_keep_everything_in_order() -> None:
    jobs = _jobs()
    assert filter_jobs(jobs, JobSearchFilters()) == jobs
    assert filter_jobs_by_params(jobs, CommandParams()) == jobs


def test_adding_a_criterion_only_shrinks_the_result() -> None:
    jobs = _jobs()
    remote = filter_jobs_by_params(jobs, CommandParams(remote=True))
    remote_globex = filter_jobs_by_params(jobs, CommandParams(remote=True, company="globex"))
    remote_globex_react = filter_jobs_by_params(
        jobs, CommandParams(remote=True, company="globex", skills=["react"])
    )

    assert [j.id for j in remote] == ["1", "3"]
    assert set(j.id for j in remote_globex) <= set(j.id for j in remote)
    assert [j.id for j in remote_globex_react] == ["1"]


def test_unknown_salary_never_excluded() -> None:
    jobs = _jobs()
    assert [j.id for j in filter_jobs_by_params(jobs, CommandParams(salary_min=120000))] == ["1", "3"]
    assert [j.id for j in filter_jobs_by_params(jobs, CommandParams(salary_max=95000))] == ["2", "3"]


def test_structured_location_fields_are_searched() -> None:
    jobs = _jobs()
    assert [j.id for j in filter_jobs_by_params(jobs, CommandParams(state="California"))] == ["1"]
    assert [j.id for j in filter_jobs(jobs, JobSearchFilters(locations=["texas"]))] == ["2"]


def test_experience_and_job_type_terms() -> None:
    jobs = _jobs()
    assert [j.id for j in filter_jobs_by_params(jobs, CommandParams(experience_level="senior"))] == ["2"]
    assert [j.id for j in filter_jobs_by_params(jobs, CommandParams(job_type=["contract"]))] == ["2"]
    assert [j.id for j in filter_jobs(jobs, JobSearchFilters(job_types=["full-time"]))] == ["1", "3"]


def test_search_query_matches_title_company_location_or_tag() -> None:
    jobs = _jobs()
    assert [j.id for j in filter_jobs(jobs, JobSearchFilters(query="globex"))] == ["1", "3"]
    assert [j.id for j in filter_jobs(jobs, JobSearchFilters(query="sql"))] == ["3"]
