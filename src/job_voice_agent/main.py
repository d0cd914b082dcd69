"""
Main entry point for the voice job search assistant.
"""

import argparse
import asyncio
import logging
import sys

from job_voice_agent.config import get_settings
from job_voice_agent.io.text_interface import CommandInterface, TextInterface, load_jobs_file, load_profile_file
from job_voice_agent.orchestrator.factory import build_voice_assistant
from job_voice_agent.schemas import SearchPreferences


def setup_logging() -> None:
    """Configure application logging."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="job_voice_agent")
    parser.add_argument(
        "--mode",
        choices=["text", "voice"],
        default="text",
        help="Run in text or voice mode",
    )
    parser.add_argument("--jobs-file", help="JSON file of backend job records to browse")
    parser.add_argument(
        "--keywords",
        nargs="*",
        default=[],
        help="Fetch jobs from the backend for these keywords (ignored with --jobs-file)",
    )
    parser.add_argument("--location", action="append", default=[], help="Preferred location (repeatable)")
    parser.add_argument("--profile-file", help="JSON file with the user's job profile")
    parser.add_argument("--no-model", action="store_true", help="Disable the language-model intent tier")
    parser.add_argument("--no-tts", action="store_true", help="Disable spoken feedback in voice mode")
    return parser


async def run_assistant(argv: list[str] | None = None) -> None:
    """
    Run an interactive command session.

    Wires the pipeline, loads the job feed and profile, then hands
    control to the text or voice interface.
    """
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logger = logging.getLogger(__name__)

    logger.info("Initializing voice job search assistant...")
    logger.debug(f"Using LLM model: {settings.llm_model_name}")

    assistant = build_voice_assistant(settings, voice=args.mode == "voice", tts=not args.no_tts)
    orchestrator = assistant.orchestrator
    if args.no_model:
        assistant.parser.set_model_enabled(False)

    interface: CommandInterface
    if args.mode == "voice":
        from job_voice_agent.io.voice_interface import VoiceInterface

        interface = VoiceInterface(orchestrator, assistant.corpus, feedback=assistant.feedback)
    else:
        interface = TextInterface(orchestrator, assistant.corpus)

    try:
        if args.profile_file:
            orchestrator.set_user_profile(load_profile_file(args.profile_file))

        if args.jobs_file:
            jobs = load_jobs_file(args.jobs_file)
            orchestrator.set_jobs(jobs)
            logger.info(f"Loaded {len(jobs)} jobs from {args.jobs_file}")
        elif args.keywords:
            jobs = await assistant.corpus.fetch_initial(
                SearchPreferences(keywords=args.keywords, locations=args.location)
            )
            if assistant.corpus.last_error:
                logger.warning(f"Job fetch failed: {assistant.corpus.last_error}")
            interface.use_corpus_feed()
            logger.info(f"Fetched {len(jobs)} jobs (more available: {assistant.corpus.has_more})")

        logger.info("Starting command session...")
        await interface.run()
    finally:
        await assistant.close()


def main() -> None:
    """Main entry point for the application."""
    setup_logging()

    try:
        asyncio.run(run_assistant(sys.argv[1:]))
    except KeyboardInterrupt:
        print("\nSession terminated by user.")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
