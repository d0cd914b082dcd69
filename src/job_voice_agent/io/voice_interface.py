"""Push-to-talk voice interface.

This file stays thin: recording, transcription and dispatch all live in
the orchestrator. Enter starts a recording and Enter stops it; silence or
the max duration may end it earlier.
"""

from __future__ import annotations

from job_voice_agent.io.text_interface import EXIT_WORDS, CommandInterface
from job_voice_agent.jobs.corpus import JobCorpusCache
from job_voice_agent.orchestrator.voice_orchestrator import VoiceCommandOrchestrator
from job_voice_agent.voice.feedback import SpeechFeedback


class VoiceInterface(CommandInterface):
    def __init__(
        self,
        orchestrator: VoiceCommandOrchestrator,
        corpus: JobCorpusCache | None = None,
        *,
        feedback: SpeechFeedback | None = None,
        warmup: bool = True,
    ) -> None:
        super().__init__(orchestrator, corpus)
        self._feedback = feedback
        self._warmup = warmup

    async def run(self) -> None:
        print("\n" + "=" * 60)
        print("Voice Job Search (voice mode)")
        print("=" * 60 + "\n")

        if not self._orchestrator.is_configured():
            print("Voice input is not configured; falling back to typed commands only.")

        if self._feedback is not None and self._warmup:
            generated = await self._feedback.warmup_cache()
            print(f"Spoken feedback: ENABLED ({generated} phrase(s) cached at startup)")
        elif self._feedback is None:
            print("Spoken feedback: DISABLED")

        if await self._orchestrator.enable_wake_word():
            print("Wake word: listening")

        await self.send_message(self.current_job_text())

        while True:
            line = (
                await self._get_input("[Voice] Press Enter to speak, type a command, or 'quit': ")
            ).strip()
            if line.lower() in EXIT_WORDS:
                print("\nGoodbye.")
                break

            if line:
                result = await self._orchestrator.process_text_command(line)
            else:
                if not await self._orchestrator.start_listening():
                    state = self._orchestrator.get_session_state()
                    print(f"[Voice] Could not start recording: {state.recording.error}")
                    continue
                await self._get_input("[Voice] Listening... press Enter to stop. ")
                print("[Voice] Processing...")
                result = await self._orchestrator.stop_listening()
                if result.command.raw_text:
                    print(f"[Voice] Heard: \"{result.command.raw_text}\"")

            await self.handle_result(result)
