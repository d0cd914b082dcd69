from datetime import datetime, timezone

from job_voice_agent.jobs.normalize import extract_tags_from_title, format_posted_at, normalize_api_job

NOW = datetime(2025, 3, 20, 12, 0, tzinfo=timezone.utc)


def _raw_job(**overrides):
    raw = {
        "id": 101,
        "title": "Senior Python Engineer",
        "company.name": "Acme",
        "locations": [{"location": "", "city": "Austin", "state": "Texas", "country": "United States"}],
        "compensation": {"min": 120000, "max": 150000},
        "employment_type": "full_time",
        "workplace_type": "hybrid",
        "experience_level": "senior",
        "is_remote": False,
        "date_posted": "2025-03-17T09:00:00Z",
        "listing_url": "https://jobs.example.com/101",
        "apply_url": "https://jobs.example.com/101/apply",
        "source": "ashby",
    }
    raw.update(overrides)
    return raw


def test_normalize_api_job_maps_display_fields() -> None:
    job = normalize_api_job(_raw_job(), now=NOW)

    assert job.id == "101"
    assert job.company == "Acme"
    assert job.location == "Austin, Texas, United States"
    assert job.locations[0].state == "Texas"
    assert job.salary == "$120k - $150k"
    assert job.salary_min == 120000
    assert job.salary_max == 150000
    assert job.employment_type == "Full-time"
    assert job.work_mode == "Hybrid"
    assert job.experience == "Senior Level"
    assert job.posted_at == "3 days ago"
    assert job.source == "ashby"
    assert "Python" in job.tags and "Senior" in job.tags


def test_normalize_api_job_remote_flag_wins_over_workplace_type() -> None:
    job = normalize_api_job(_raw_job(is_remote=True, workplace_type="onsite"), now=NOW)
    assert job.work_mode == "Remote"
    assert job.remote_like


def test_normalize_api_job_defaults_for_missing_data() -> None:
    job = normalize_api_job(
        {"id": "x", "title": "Support Specialist", "compensation": None, "locations": []},
        now=NOW,
    )
    assert job.location == "Location not specified"
    assert job.salary == "Salary not disclosed"
    assert job.salary_min is None and job.salary_max is None
    assert job.employment_type == "Full-time"
    assert job.work_mode == "On-site"
    assert job.experience == "Not specified"
    assert job.posted_at == ""
    assert job.tags == ["Support"]


def test_extract_tags_from_title_caps_at_four() -> None:
    tags = extract_tags_from_title("Senior React TypeScript Frontend Developer")
    assert len(tags) == 4
    assert tags[0] == "React"


def test_format_posted_at_buckets() -> None:
    assert format_posted_at("2025-03-20T08:00:00Z", now=NOW) == "Today"
    assert format_posted_at("2025-03-19T08:00:00Z", now=NOW) == "1 day ago"
    assert format_posted_at("2025-03-06T08:00:00Z", now=NOW) == "2 weeks ago"
    assert format_posted_at("2024-11-20T08:00:00Z", now=NOW) == "4 months ago"
    assert format_posted_at("not a date", now=NOW) == ""
