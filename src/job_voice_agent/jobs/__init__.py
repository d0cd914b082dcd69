"""
Job corpus module: backend client, normalization, local filtering and
the paginated in-memory cache.
"""

from job_voice_agent.jobs.api_client import JobSearchAPIError, JobSearchBackend, JobSearchClient, JobSearchPage
from job_voice_agent.jobs.corpus import CorpusStats, JobCorpusCache
from job_voice_agent.jobs.filters import filter_jobs, filter_jobs_by_params
from job_voice_agent.jobs.normalize import normalize_api_job

__all__ = [
    "CorpusStats",
    "JobCorpusCache",
    "JobSearchAPIError",
    "JobSearchBackend",
    "JobSearchClient",
    "JobSearchPage",
    "filter_jobs",
    "filter_jobs_by_params",
    "normalize_api_job",
]
