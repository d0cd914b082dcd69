import asyncio
import json

from job_voice_agent.agents.intent_parser import VoiceCommandParser
from job_voice_agent.io.text_interface import TextInterface, describe_result, load_jobs_file, load_profile_file
from job_voice_agent.orchestrator.voice_orchestrator import VoiceCommandOrchestrator


class ScriptedTextInterface(TextInterface):
    """Feeds canned input lines and captures output messages."""

    def __init__(self, orchestrator, lines, corpus=None):
        super().__init__(orchestrator, corpus)
        self._lines = list(lines)
        self.messages: list[str] = []

    async def _get_input(self, prompt: str) -> str:
        return self._lines.pop(0) if self._lines else "quit"

    async def send_message(self, message: str) -> None:
        self.messages.append(message)


def _write_jobs(tmp_path):
    path = tmp_path / "jobs.json"
    path.write_text(
        json.dumps(
            {
                "success": True,
                "data": {
                    "jobs": [
                        {"id": 1, "title": "Frontend Developer", "is_remote": True, "company.name": "Globex"},
                        {"id": 2, "title": "Backend Engineer", "workplace_type": "onsite", "company.name": "Initech"},
                        {"title": "Missing id"},
                        "not a job",
                    ]
                },
            }
        ),
        encoding="utf-8",
    )
    return path


def test_load_jobs_file_accepts_search_response_and_skips_bad_records(tmp_path):
    jobs = load_jobs_file(_write_jobs(tmp_path))
    assert [j.id for j in jobs] == ["1", "2"]
    assert jobs[0].work_mode == "Remote"

    plain = tmp_path / "plain.json"
    plain.write_text(json.dumps([{"id": "a", "title": "Designer"}]), encoding="utf-8")
    assert [j.title for j in load_jobs_file(plain)] == ["Designer"]


def test_load_profile_file(tmp_path):
    path = tmp_path / "profile.json"
    path.write_text(
        json.dumps({"id": "u1", "skills": ["python"], "preferences": {"remote_only": True}}),
        encoding="utf-8",
    )
    profile = load_profile_file(path)
    assert profile.skills == ["python"]
    assert profile.preferences.remote_only


def test_text_session_moves_through_the_feed(tmp_path):
    orchestrator = VoiceCommandOrchestrator(VoiceCommandParser(model_enabled=False))
    orchestrator.set_jobs(load_jobs_file(_write_jobs(tmp_path)))
    interface = ScriptedTextInterface(orchestrator, ["skip", "", "undo", "find remote jobs", "next", "exit"])

    asyncio.run(interface.run())

    assert interface.messages[0].startswith("[1/2] Frontend Developer")
    assert any(m.startswith("[2/2] Backend Engineer") for m in interface.messages)
    assert "Found 1 job(s)." in "\n".join(interface.messages)
    assert interface.messages[-1] == "No more jobs."
    assert [j.id for j in orchestrator.current_jobs] == ["1"]


def test_describe_failed_result():
    orchestrator = VoiceCommandOrchestrator(VoiceCommandParser(model_enabled=False))
    result = asyncio.run(orchestrator.process_text_command("details"))
    assert describe_result(result) == "✗ No job selected"
