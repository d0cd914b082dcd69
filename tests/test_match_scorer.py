import random

import pytest
from pydantic import ValidationError

from job_voice_agent.agents.match_scorer import (
    MatchScorer,
    MatchWeights,
    experience_score,
    job_type_score,
    location_score,
    salary_score,
    skills_score,
    years_to_level,
)
from job_voice_agent.schemas import CommandParams, JobLocation, JobPreferences, JobProfile, NormalizedJob


def _profile(**overrides) -> JobProfile:
    data = dict(
        id="u1",
        name="Sam",
        years_of_experience=6,
        skills=["python", "react"],
        preferences=JobPreferences(desired_salary=120000, remote_only=True, job_type=["full_time"]),
    )
    data.update(overrides)
    return JobProfile(**data)


def _strong(job_id: str) -> NormalizedJob:
    return NormalizedJob(
        id=job_id,
        title="Senior Python Engineer",
        company="Acme",
        location="Remote",
        salary_min=130000,
        salary_max=160000,
        employment_type="Full-time",
        work_mode="Remote",
        is_remote=True,
        experience="Senior Level",
        tags=["Python", "Senior", "Engineering"],
    )


def _weak(job_id: str) -> NormalizedJob:
    return NormalizedJob(
        id=job_id,
        title="Junior Accountant",
        company="Ledger Co",
        location="Dallas, TX",
        salary_min=30000,
        salary_max=40000,
        employment_type="Part-time",
        experience="Entry Level",
        tags=["Accounting"],
    )


def test_strong_and_weak_scores() -> None:
    scorer = MatchScorer(minimum_match_score=50)
    strong = scorer.calculate_match_score(_strong("s"), _profile())
    weak = scorer.calculate_match_score(_weak("w"), _profile())

    assert strong.match_score == pytest.approx(97)
    assert strong.should_apply
    assert "Remote work option available" in strong.match_reasons
    assert weak.match_score == pytest.approx(22)
    assert not weak.should_apply
    assert weak.match_reasons == []


def test_auto_apply_selects_only_jobs_over_threshold() -> None:
    jobs = [_strong(f"s{i}") for i in range(3)] + [_weak(f"w{i}") for i in range(7)]
    random.Random(7).shuffle(jobs)
    scorer = MatchScorer(minimum_match_score=50)

    eligible = scorer.get_auto_apply_jobs(jobs, _profile())
    assert sorted(m.job.id for m in eligible) == ["s0", "s1", "s2"]

    ranked = scorer.filter_jobs_by_profile(jobs, _profile())
    scores = [m.match.match_score for m in ranked]
    assert scores == sorted(scores, reverse=True)
    assert len(ranked) == 10


def test_scores_stay_in_bounds_for_any_valid_weights() -> None:
    rng = random.Random(42)
    jobs = [_strong("s"), _weak("w"), NormalizedJob(id="bare", title="Clerk")]
    profiles = [_profile(), JobProfile(), _profile(preferences=None, skills=[])]

    for _ in range(50):
        cuts = sorted(rng.sample(range(1, 100), 5))
        parts = [b - a for a, b in zip([0, *cuts], [*cuts, 100])]
        weights = MatchWeights(
            salary=parts[0],
            location=parts[1],
            job_type=parts[2],
            experience=parts[3],
            skills=parts[4],
            remote=parts[5],
        )
        minimum = rng.uniform(0, 100)
        scorer = MatchScorer(weights=weights, minimum_match_score=minimum)
        for job in jobs:
            for profile in profiles:
                result = scorer.calculate_match_score(job, profile)
                assert 0 <= result.match_score <= 100
                assert result.should_apply == (result.match_score >= minimum)


def test_weights_must_sum_to_100() -> None:
    scorer = MatchScorer()
    with pytest.raises(ValidationError):
        scorer.set_weights(salary=50)
    assert scorer.weights == MatchWeights()

    updated = scorer.set_weights(salary=30, remote=0)
    assert updated.salary == 30 and updated.remote == 0


def test_minimum_score_is_clamped() -> None:
    scorer = MatchScorer(minimum_match_score=150)
    assert scorer.minimum_match_score == 100
    scorer.set_minimum_match_score(-5)
    assert scorer.minimum_match_score == 0


def test_salary_sub_score_table() -> None:
    prefs = JobPreferences(desired_salary=100000)
    assert salary_score(NormalizedJob(id="a", title="x"), None) == 70
    assert salary_score(NormalizedJob(id="a", title="x"), prefs) == 50
    assert salary_score(NormalizedJob(id="a", title="x", salary_min=100000), prefs) == 100
    assert salary_score(NormalizedJob(id="a", title="x", salary_min=90000, salary_max=110000), prefs) == 85
    assert salary_score(NormalizedJob(id="a", title="x", salary_max=85000), prefs) == 70
    assert salary_score(NormalizedJob(id="a", title="x", salary_max=65000), prefs) == 40
    assert salary_score(NormalizedJob(id="a", title="x", salary_max=50000), prefs) == 20


def test_location_sub_score_table() -> None:
    profile = JobProfile(current_city="Austin", state="Texas", country="United States")
    onsite = NormalizedJob(
        id="a",
        title="x",
        location="Houston",
        locations=[JobLocation(location="Houston", city="Houston", state="Texas")],
    )
    assert location_score(onsite, profile, None) == 70
    assert location_score(onsite, profile, JobPreferences(locations=["houston"])) == 100
    assert location_score(NormalizedJob(id="b", title="x", work_mode="Remote"), profile, None) == 90
    assert location_score(NormalizedJob(id="c", title="x", location="Austin, TX"), profile, None) == 85
    assert location_score(NormalizedJob(id="d", title="x", location="Paris"), JobProfile(), None) == 40
    assert (
        location_score(NormalizedJob(id="d", title="x", location="Paris"), JobProfile(), JobPreferences(remote_only=True))
        == 10
    )


def test_job_type_experience_and_skills_tables() -> None:
    prefs = JobPreferences(job_type=["full_time"])
    assert job_type_score(NormalizedJob(id="a", title="x", employment_type="Contract"), prefs) == 50
    assert job_type_score(NormalizedJob(id="a", title="x", employment_type="Internship"), prefs) == 30

    assert years_to_level(None) == "entry"
    assert years_to_level(5) == "senior"
    assert years_to_level(20) == "executive"
    assert experience_score(NormalizedJob(id="a", title="x", experience="Lead"), JobProfile(years_of_experience=6)) == 75
    # Level words in the title alone do not count.
    assert experience_score(NormalizedJob(id="a", title="Staff Engineer"), JobProfile(years_of_experience=6)) == 70
    assert experience_score(NormalizedJob(id="a", title="Engineer"), JobProfile(years_of_experience=6)) == 70

    profile = JobProfile(skills=["python", "react", "sql", "go"])
    assert skills_score(NormalizedJob(id="a", title="Python Developer", tags=["SQL"]), profile) == 80
    assert skills_score(NormalizedJob(id="a", title="Developer"), profile) == 60
    assert skills_score(NormalizedJob(id="a", title="Developer", tags=["Rust"]), profile) == 20
    assert skills_score(NormalizedJob(id="a", title="Developer", tags=["Rust"]), JobProfile()) == 50


def test_match_by_voice_params_without_profile_is_neutral() -> None:
    scorer = MatchScorer(minimum_match_score=50)
    matches = scorer.match_by_voice_params([_strong("s"), _weak("w")], CommandParams(remote=True))

    assert [m.job.id for m in matches] == ["s"]
    assert matches[0].match.match_score == 70
    assert matches[0].match.should_apply
