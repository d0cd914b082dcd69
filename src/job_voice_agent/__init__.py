"""Voice-driven job search commands: capture, transcribe, parse, match, act."""

__version__ = "0.1.0"
