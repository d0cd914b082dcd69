"""
Text-based command interface.

Provides a terminal REPL that feeds typed commands through the same
parse and dispatch path as spoken ones.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from job_voice_agent.jobs.corpus import JobCorpusCache
from job_voice_agent.jobs.normalize import normalize_api_job
from job_voice_agent.orchestrator.voice_orchestrator import VoiceCommandOrchestrator
from job_voice_agent.schemas import JobProfile, NormalizedJob, VoiceCommandResult

logger = logging.getLogger(__name__)

EXIT_WORDS = ("quit", "exit", "q")
LISTED_JOBS = 5


def load_jobs_file(path: str | Path) -> list[NormalizedJob]:
    """
    Load raw backend job records from a JSON file and normalize them.

    The file holds either a list of jobs or a search response
    (``{"data": {"jobs": [...]}}`` or ``{"jobs": [...]}``).
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = (raw.get("data") or raw).get("jobs", [])
    jobs: list[NormalizedJob] = []
    for item in raw:
        if not isinstance(item, dict) or item.get("id") is None:
            logger.warning("Skipping job record without an id")
            continue
        jobs.append(normalize_api_job(item))
    return jobs


def load_profile_file(path: str | Path) -> JobProfile:
    return JobProfile.model_validate_json(Path(path).read_text(encoding="utf-8"))


def describe_job(job: NormalizedJob, verbose: bool = False) -> str:
    line = f"{job.title} @ {job.company or 'Unknown company'} | {job.location} | {job.work_mode} | {job.salary}"
    if not verbose:
        return line
    details = [
        line,
        f"  Type: {job.employment_type}  Experience: {job.experience}  Posted: {job.posted_at or 'n/a'}",
    ]
    if job.tags:
        details.append(f"  Tags: {', '.join(job.tags)}")
    if job.description:
        details.append(f"  {job.description}")
    if job.apply_url:
        details.append(f"  Apply: {job.apply_url}")
    return "\n".join(details)


def describe_result(result: VoiceCommandResult) -> str:
    """Human-readable summary of a command result."""
    if not result.success:
        return f"✗ {result.error}"

    action = result.executed_action
    lines: list[str] = []
    if action in ("search", "filter"):
        lines.append(f"Found {result.matched_jobs or 0} job(s).")
        lines.extend(f"  - {describe_job(job)}" for job in result.filtered_jobs[:LISTED_JOBS])
        if len(result.filtered_jobs) > LISTED_JOBS:
            lines.append(f"  ... and {len(result.filtered_jobs) - LISTED_JOBS} more")
    elif action == "apply_all":
        lines.append(f"Applying to {result.applied_jobs} of {result.matched_jobs} matching job(s).")
        lines.extend(f"  - {describe_job(job)}" for job in result.filtered_jobs[:LISTED_JOBS])
    elif action == "apply":
        lines.append("Applying to the current job.")
        lines.extend(f"  - {describe_job(job)}" for job in result.filtered_jobs)
    elif action == "details":
        lines.extend(describe_job(job, verbose=True) for job in result.filtered_jobs)
    elif result.command.suggestion:
        lines.append(result.command.suggestion)
    else:
        lines.append(f"OK ({action})")
    return "\n".join(lines)


class CommandInterface(ABC):
    """Abstract base class for command interfaces."""

    def __init__(
        self,
        orchestrator: VoiceCommandOrchestrator,
        corpus: JobCorpusCache | None = None,
    ) -> None:
        """
        Initialize the interface.

        Args:
            orchestrator: Orchestrator that runs every command.
            corpus: Corpus backing the job feed, if jobs came from the backend.
        """
        self._orchestrator = orchestrator
        self._corpus = corpus
        self._feed_from_corpus = False
        if corpus is not None:
            corpus.subscribe(self._on_corpus_changed)

    @abstractmethod
    async def run(self) -> None:
        """Run the interface loop."""
        ...

    async def send_message(self, message: str) -> None:
        print(f"\n{message}\n")

    async def _get_input(self, prompt: str) -> str:
        try:
            return await asyncio.to_thread(input, prompt)
        except EOFError:
            return "exit"

    def use_corpus_feed(self) -> None:
        """Show the corpus as the job feed and keep it in sync as pages arrive."""
        if self._corpus is None:
            return
        self._feed_from_corpus = True
        self._orchestrator.set_jobs(self._corpus.all_jobs())
        self._orchestrator.set_current_job_index(0)

    def _on_corpus_changed(self) -> None:
        if self._feed_from_corpus and self._corpus is not None:
            self._orchestrator.set_jobs(self._corpus.all_jobs())

    def _move(self, step: int) -> None:
        jobs = self._orchestrator.current_jobs
        index = max(0, min(len(jobs), self._orchestrator.current_job_index + step))
        self._orchestrator.set_current_job_index(index)
        if self._feed_from_corpus and self._corpus is not None:
            self._corpus.prefetch_if_needed(index)

    def current_job_text(self) -> str:
        jobs = self._orchestrator.current_jobs
        index = self._orchestrator.current_job_index
        if index >= len(jobs):
            return "No more jobs."
        return f"[{index + 1}/{len(jobs)}] {describe_job(jobs[index])}"

    async def handle_result(self, result: VoiceCommandResult) -> None:
        """Print a result and apply its effect on the job feed."""
        await self.send_message(describe_result(result))
        if not result.success:
            return

        action = result.executed_action
        if action in ("skip", "next", "apply"):
            self._move(1)
        elif action == "undo":
            self._move(-1)
        elif action in ("search", "filter") and result.filtered_jobs:
            self._feed_from_corpus = False
            self._orchestrator.set_jobs(result.filtered_jobs)
            self._orchestrator.set_current_job_index(0)
        else:
            return
        await self.send_message(self.current_job_text())


class TextInterface(CommandInterface):
    """
    Command-line text interface.

    Typed commands run through `process_text_command`.
    """

    async def run(self) -> None:
        print("\n" + "=" * 60)
        print("Voice Job Search (text mode)")
        print("=" * 60)
        print("Type a command such as 'search for remote python jobs', 'skip' or 'help'.")
        print("Type 'quit' to exit.")

        await self.send_message(self.current_job_text())

        while True:
            line = (await self._get_input("You: ")).strip()
            if line.lower() in EXIT_WORDS:
                print("\nGoodbye.")
                break
            if not line:
                continue
            result = await self._orchestrator.process_text_command(line)
            await self.handle_result(result)
