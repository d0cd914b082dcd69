"""
Job corpus cache and paginator.

Holds the client-side working set of jobs fetched from the backend.
Every network fetch, foreground or background, goes through the single
guarded `_fetch_batch` primitive, so a prefetch can never overlap a
`fetch_more` or `fetch_initial` on the same corpus.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Literal

from pydantic import BaseModel, Field

from job_voice_agent.config import get_settings
from job_voice_agent.jobs.api_client import JobSearchAPIError, JobSearchBackend
from job_voice_agent.jobs.filters import filter_jobs, filter_jobs_by_params
from job_voice_agent.jobs.normalize import normalize_api_job
from job_voice_agent.schemas import (
    CommandParams,
    JobSearchFilters,
    JobSearchResponse,
    NormalizedJob,
    SearchPreferences,
)

logger = logging.getLogger(__name__)

CorpusListener = Callable[[], None]
FetchTag = Literal["initial", "more", "prefetch"]


class CorpusStats(BaseModel):
    """Aggregate view of the cached corpus."""

    total: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)
    by_work_mode: dict[str, int] = Field(default_factory=dict)
    by_source: dict[str, int] = Field(default_factory=dict)
    with_salary: int = 0


class JobCorpusCache:
    """
    Client-side job corpus with deduplicating, incremental pagination.

    The corpus only grows between resets. Ids are unique, insertion order is
    fetch order, and a failed fetch stops pagination without discarding what
    is already cached.
    """

    def __init__(
        self,
        backend: JobSearchBackend,
        batch_size: int | None = None,
        prefetch_threshold: int | None = None,
        platforms: list[str] | None = None,
    ) -> None:
        settings = get_settings()
        self._backend = backend
        self._batch_size = batch_size or settings.jobs_batch_size
        self._prefetch_threshold = (
            settings.jobs_prefetch_threshold if prefetch_threshold is None else prefetch_threshold
        )
        self._supported_platforms = list(platforms or settings.jobs_platforms)

        self._jobs: list[NormalizedJob] = []
        self._seen_ids: set[str] = set()
        self._swiped_urls: set[str] = set()

        self._has_more = True
        self._is_fetching = False
        self._is_prefetching = False
        self._last_error: str | None = None
        self._preferences: SearchPreferences | None = None

        # Bumped on every reset; fetches started under an older generation are stale.
        self._generation = 0
        self._prefetch_task: asyncio.Task | None = None
        self._listeners: list[CorpusListener] = []

    # --- observers --------------------------------------------------------

    def subscribe(self, listener: CorpusListener) -> Callable[[], None]:
        """Register a state-change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                logger.warning(f"[JOBS] listener failed: {e}")

    # --- state ------------------------------------------------------------

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def is_fetching(self) -> bool:
        return self._is_fetching

    @property
    def is_prefetching(self) -> bool:
        return self._is_prefetching

    @property
    def is_initial_loading(self) -> bool:
        """Fetching with nothing cached yet; the only state that warrants a spinner."""
        return self._is_fetching and not self._jobs

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def preferences(self) -> SearchPreferences | None:
        return self._preferences

    def set_swiped_urls(self, urls: set[str] | list[str]) -> None:
        """Inject URLs of already-swiped jobs; matching jobs are dropped from future batches."""
        self._swiped_urls = {u for u in urls if u}

    def _clear(self) -> None:
        self._generation += 1
        self._jobs = []
        self._seen_ids = set()
        self._has_more = True
        self._is_fetching = False
        self._is_prefetching = False
        self._last_error = None
        self._prefetch_task = None

    def reset(self) -> None:
        """Discard the corpus and stored preferences (logout, preference change)."""
        self._clear()
        self._preferences = None
        self._notify()

    # --- payload ----------------------------------------------------------

    def build_payload(self, preferences: SearchPreferences | None = None) -> dict[str, Any]:
        """
        Map search preferences to the backend request body.

        The backend rejects an empty keyword list, so a missing one is
        logged and the field is left out.
        """
        prefs = preferences or self._preferences or SearchPreferences()

        if prefs.platforms:
            platforms = [p for p in prefs.platforms if p in self._supported_platforms]
        else:
            platforms = list(self._supported_platforms)

        payload: dict[str, Any] = {
            "limit": prefs.limit or self._batch_size,
            "platforms": platforms or list(self._supported_platforms),
        }

        if prefs.keywords:
            payload["keywords"] = list(prefs.keywords)
        else:
            logger.warning("[JOBS] no keywords in preferences; the backend requires at least one")
        if prefs.locations:
            payload["locations"] = list(prefs.locations)
        if prefs.work_modes:
            payload["workModes"] = list(prefs.work_modes)
        if prefs.job_types:
            payload["jobTypes"] = list(prefs.job_types)
        if prefs.experience_levels:
            payload["experienceLevels"] = list(prefs.experience_levels)
        if prefs.date_posted:
            payload["datePosted"] = prefs.date_posted
        if prefs.company_blacklist:
            payload["companyBlacklist"] = list(prefs.company_blacklist)

        return payload

    # --- fetching ---------------------------------------------------------

    async def fetch_initial(self, preferences: SearchPreferences | None = None) -> list[NormalizedJob]:
        """Clear the corpus and fetch the first page."""
        self._clear()
        if preferences is not None:
            self._preferences = preferences
        return await self._fetch_batch("initial")

    async def fetch_more(self) -> list[NormalizedJob]:
        """
        Fetch and append the next page.

        Returns only the newly added jobs, or ``[]`` without any network
        call when a fetch is in flight or pagination has ended.
        """
        if self._is_fetching or not self._has_more:
            return []
        return await self._fetch_batch("more")

    def prefetch_if_needed(self, current_index: int) -> asyncio.Task | None:
        """
        Start a background fetch when the viewer is close to the end.

        Must be called from a running event loop. Returns the scheduled task,
        or None when no prefetch was needed.
        """
        remaining = len(self._jobs) - current_index
        if (
            self._is_fetching
            or self._is_prefetching
            or not self._has_more
            or remaining > self._prefetch_threshold
        ):
            return None

        logger.debug(f"[JOBS] starting prefetch remaining={remaining}")
        self._is_prefetching = True
        generation = self._generation

        async def _run() -> None:
            try:
                new_jobs = await self._fetch_batch("prefetch")
                if new_jobs:
                    logger.debug(f"[JOBS] prefetch complete new={len(new_jobs)}")
            finally:
                if generation == self._generation:
                    self._is_prefetching = False

        self._prefetch_task = asyncio.create_task(_run())
        return self._prefetch_task

    async def _fetch_batch(self, tag: FetchTag) -> list[NormalizedJob]:
        """Single guarded fetch primitive shared by every fetch path."""
        if self._is_fetching:
            return []

        generation = self._generation
        self._is_fetching = True
        self._last_error = None
        self._notify()

        try:
            payload = self.build_payload()
            logger.debug(
                f"[JOBS] fetching tag={tag} existing={len(self._jobs)} seen={len(self._seen_ids)}"
            )
            page = await self._backend.search(payload)

            if generation != self._generation:
                logger.debug(f"[JOBS] discarding stale {tag} batch")
                return []

            if not page.jobs:
                logger.debug("[JOBS] backend returned no jobs")
                self._has_more = False
                return []

            normalized = self._normalize_new(page.jobs)
            if not normalized:
                logger.debug("[JOBS] no new unique jobs; stopping pagination")
                self._has_more = False
                return []

            fresh = [job for job in normalized if not self._is_swiped(job)]
            self._jobs = [*self._jobs, *fresh]

            if len(page.jobs) < self._batch_size:
                self._has_more = False

            logger.debug(
                f"[JOBS] fetched tag={tag} new={len(fresh)} "
                f"filtered={len(normalized) - len(fresh)} total={len(self._jobs)} has_more={self._has_more}"
            )
            return fresh

        except JobSearchAPIError as e:
            if generation != self._generation:
                return []
            logger.error(f"[JOBS] failed to fetch jobs ({tag}): {e}")
            self._last_error = str(e) or "Failed to fetch jobs"
            self._has_more = False
            return []

        except Exception as e:
            if generation != self._generation:
                return []
            logger.exception(f"[JOBS] unexpected error while fetching jobs ({tag}): {e}")
            self._last_error = str(e) or type(e).__name__
            self._has_more = False
            return []

        finally:
            if generation == self._generation:
                self._is_fetching = False
            self._notify()

    def _normalize_new(self, raw_jobs: list[dict[str, Any]]) -> list[NormalizedJob]:
        """Normalize unseen records; an id is marked seen only once it normalizes."""
        normalized: list[NormalizedJob] = []
        for raw in raw_jobs:
            if not isinstance(raw, dict) or raw.get("id") is None:
                continue
            job_id = str(raw["id"])
            if job_id in self._seen_ids:
                continue
            try:
                job = normalize_api_job(raw)
            except Exception as e:
                logger.warning(f"[JOBS] skipping malformed job id={job_id}: {e}")
                continue
            self._seen_ids.add(job_id)
            normalized.append(job)
        return normalized

    def _is_swiped(self, job: NormalizedJob) -> bool:
        if not self._swiped_urls:
            return False
        return job.apply_url in self._swiped_urls or job.listing_url in self._swiped_urls

    # --- queries ----------------------------------------------------------

    def all_jobs(self) -> list[NormalizedJob]:
        return list(self._jobs)

    def jobs_from(self, start_index: int) -> list[NormalizedJob]:
        return self._jobs[max(0, start_index):]

    def get_job_by_id(self, job_id: str) -> NormalizedJob | None:
        return next((job for job in self._jobs if job.id == job_id), None)

    def get_job_at(self, index: int) -> NormalizedJob | None:
        if 0 <= index < len(self._jobs):
            return self._jobs[index]
        return None

    def job_count(self) -> int:
        return len(self._jobs)

    def has_jobs(self) -> bool:
        return bool(self._jobs)

    def search_jobs(self, filters: JobSearchFilters | None = None) -> JobSearchResponse:
        """Filter the cached corpus locally. Never touches the network."""
        jobs = filter_jobs(self._jobs, filters or JobSearchFilters())
        return JobSearchResponse(jobs=jobs, total=len(jobs))

    def search_by_voice_params(self, params: CommandParams) -> list[NormalizedJob]:
        """Filter the cached corpus by parsed voice command parameters."""
        return filter_jobs_by_params(self._jobs, params)

    def unique_locations(self) -> list[str]:
        return sorted(
            {job.location for job in self._jobs if job.location and job.location != "Location not specified"}
        )

    def unique_companies(self) -> list[str]:
        return sorted({job.company for job in self._jobs if job.company})

    def stats(self) -> CorpusStats:
        stats = CorpusStats(total=len(self._jobs))
        for job in self._jobs:
            stats.by_type[job.employment_type] = stats.by_type.get(job.employment_type, 0) + 1
            stats.by_work_mode[job.work_mode] = stats.by_work_mode.get(job.work_mode, 0) + 1
            stats.by_source[job.source] = stats.by_source.get(job.source, 0) + 1
            if job.salary and job.salary != "Salary not disclosed":
                stats.with_salary += 1
        return stats
