"""
Voice command intent parser.

Turns a transcript into a `ParsedCommand` in two tiers:

1. A deterministic pattern tier (lead-anchored regexes plus keyword
   tables for parameter extraction). Bare one-word commands such as
   "skip" or "undo" are resolved here without any model call.
2. A language-model tier for everything else. Its output is untrusted:
   malformed JSON or a failed request falls back to the pattern tier.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from pydantic import ValidationError

from job_voice_agent.config import get_settings
from job_voice_agent.models.llm_client import LLMClientBase, LLMError, Message
from job_voice_agent.schemas import (
    EXPERIENCE_LEVELS,
    SIMPLE_INTENTS,
    CommandIntent,
    CommandParams,
    ParsedCommand,
)

logger = logging.getLogger(__name__)

PATTERN_CONFIDENCE = 0.8
INFERRED_SEARCH_CONFIDENCE = 0.7
SHORT_CIRCUIT_CONFIDENCE = 0.9
# Certainty assigned internally when the whole utterance is a bare command word.
EXACT_COMMAND_CERTAINTY = 0.95

SYSTEM_PROMPT = """You are a job search assistant that parses voice commands into structured actions.

Given a user's voice command about job searching, extract the intent and parameters.

INTENTS:
- "apply": User wants to apply to a job (current or matching profile)
- "skip": User wants to skip/reject the current job
- "search": User wants to search for specific jobs
- "filter": User wants to filter jobs by criteria
- "undo": User wants to undo the last action
- "next": User wants to see the next job
- "details": User wants more details about the current job
- "help": User needs help with commands
- "unknown": Cannot determine intent

PARAMETERS TO EXTRACT:
- jobTitle: Job role/title mentioned (e.g., "frontend developer", "software engineer")
- jobType: Employment type ["full_time", "part_time", "contract", "internship", "freelance"]
- location: General location mentioned
- country: Country mentioned (e.g., "USA", "United States", "Canada")
- state: State/province mentioned (e.g., "California", "New York")
- city: City mentioned (e.g., "San Francisco", "NYC")
- remote: Boolean if remote work is mentioned
- experienceLevel: Level mentioned ("entry", "mid", "senior", "lead", "executive")
- salaryMin: Minimum salary if mentioned (as number)
- salaryMax: Maximum salary if mentioned (as number)
- company: Specific company mentioned
- skills: Array of skills/technologies mentioned
- applyToAll: Boolean if user wants to apply to ALL matching jobs
- matchProfile: Boolean if user wants to match against their profile

Respond ONLY with valid JSON in this format:
{
  "intent": "search",
  "params": {
    "jobTitle": "frontend developer",
    "country": "United States",
    "remote": true
  },
  "confidence": 0.95,
  "suggestion": "I'll search for remote Frontend Developer jobs in the USA"
}"""

# First matching intent wins, so order matters.
INTENT_PATTERNS: dict[CommandIntent, list[re.Pattern[str]]] = {
    CommandIntent.APPLY: [
        re.compile(r"^(apply|yes|accept|apply to this|i want this|send application)\b"),
        re.compile(r"apply (to )?(all|every|matching)\b"),
    ],
    CommandIntent.SKIP: [
        re.compile(r"^(skip|no|reject|pass|not interested|swipe left)\b"),
    ],
    CommandIntent.SEARCH: [
        re.compile(r"^(search|find|look for|show me|looking for|i want|i need)\b"),
        re.compile(r"search for\b"),
    ],
    CommandIntent.FILTER: [
        re.compile(r"^(filter|only show|show only|narrow down)\b"),
        re.compile(r"filter by\b"),
    ],
    CommandIntent.UNDO: [
        re.compile(r"^(undo|go back|previous|take back|cancel)\b"),
    ],
    CommandIntent.NEXT: [
        re.compile(r"^(next|show next|another|more)\b"),
    ],
    CommandIntent.DETAILS: [
        re.compile(r"^(details|tell me more|more info|about this|what is)\b"),
    ],
    CommandIntent.HELP: [
        re.compile(r"^(help|what can you|how do i|commands)\b"),
    ],
}

# Whole-utterance forms of the simple intents.
EXACT_COMMANDS: dict[str, CommandIntent] = {
    "apply": CommandIntent.APPLY,
    "apply to this": CommandIntent.APPLY,
    "apply to this job": CommandIntent.APPLY,
    "yes": CommandIntent.APPLY,
    "accept": CommandIntent.APPLY,
    "send application": CommandIntent.APPLY,
    "skip": CommandIntent.SKIP,
    "skip this": CommandIntent.SKIP,
    "skip this job": CommandIntent.SKIP,
    "no": CommandIntent.SKIP,
    "reject": CommandIntent.SKIP,
    "pass": CommandIntent.SKIP,
    "not interested": CommandIntent.SKIP,
    "swipe left": CommandIntent.SKIP,
    "undo": CommandIntent.UNDO,
    "go back": CommandIntent.UNDO,
    "take back": CommandIntent.UNDO,
    "previous": CommandIntent.UNDO,
    "next": CommandIntent.NEXT,
    "next job": CommandIntent.NEXT,
    "show next": CommandIntent.NEXT,
    "another": CommandIntent.NEXT,
    "help": CommandIntent.HELP,
    "commands": CommandIntent.HELP,
}

JOB_TITLE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"(?:frontend|front-end|front end)\s*(?:developer|engineer)?"),
    re.compile(r"(?:backend|back-end|back end)\s*(?:developer|engineer)?"),
    re.compile(r"(?:full stack|fullstack)\s*(?:developer|engineer)?"),
    re.compile(r"software\s*(?:developer|engineer)"),
    re.compile(r"\b(?:mobile|ios|android)\s*(?:developer|engineer)?"),
    re.compile(r"\b(?:data|ml|machine learning)\s*(?:scientist|engineer)"),
    re.compile(r"\b(?:devops|sre|infrastructure)\s*(?:engineer)?\b"),
    re.compile(r"product\s*(?:manager|designer)"),
    re.compile(r"\b(?:ui/ux|ui|ux)\s*designer"),
]

COUNTRY_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("United States", re.compile(r"\b(usa|united states|u\.s\.a?\.?|america)(?!\w)")),
    ("United Kingdom", re.compile(r"\b(uk|united kingdom|britain)\b")),
    ("Canada", re.compile(r"\bcanada\b")),
    ("Germany", re.compile(r"\bgermany\b")),
]

STATE_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("California", re.compile(r"\b(california|ca)\b")),
    ("New York", re.compile(r"\b(new york|ny)\b")),
    ("Texas", re.compile(r"\b(texas|tx)\b")),
    ("Washington", re.compile(r"\b(washington|wa)\b")),
    ("Massachusetts", re.compile(r"\b(massachusetts|ma)\b")),
]

CITY_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("San Francisco", re.compile(r"\b(san francisco|sf|bay area)\b")),
    ("New York", re.compile(r"\b(new york city|nyc|manhattan)\b")),
    ("Los Angeles", re.compile(r"\b(los angeles|la)\b")),
    ("Seattle", re.compile(r"\bseattle\b")),
    ("Austin", re.compile(r"\baustin\b")),
    ("Boston", re.compile(r"\bboston\b")),
    ("Chicago", re.compile(r"\bchicago\b")),
]

EXPERIENCE_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("entry", re.compile(r"\b(entry|junior|entry-level|entry level)\b")),
    ("mid", re.compile(r"\b(mid|mid-level|mid level|intermediate)\b")),
    ("senior", re.compile(r"\b(senior|sr\.?)(?!\w)")),
    ("lead", re.compile(r"\b(lead|principal|staff)\b")),
    ("executive", re.compile(r"\b(executive|director|vp|c-level)\b")),
]

JOB_TYPE_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("full_time", re.compile(r"\bfull[\s-]?time\b")),
    ("part_time", re.compile(r"\bpart[\s-]?time\b")),
    ("contract", re.compile(r"\bcontract(or)?\b")),
    ("internship", re.compile(r"\bintern(ship)?s?\b")),
    ("freelance", re.compile(r"\bfreelance\b")),
]

SKILL_KEYWORDS: list[str] = [
    "react", "vue", "angular", "typescript", "javascript", "python", "java",
    "go", "rust", "node", "aws", "gcp", "azure", "docker", "kubernetes",
    "graphql", "sql", "mongodb", "redis", "kafka",
]

POLITE_PREFIX_RE = re.compile(r"^(?:(?:please|okay|ok|hey)[\s,]+)+")
REMOTE_RE = re.compile(r"\b(remote|work from home|wfh|remote only)\b")
SALARY_RANGE_RE = re.compile(r"\$?(\d+)k?\s*(?:-|to)\s*\$?(\d+)k?")
SALARY_FLOOR_RE = re.compile(r"(?:at least|minimum|over|above)\s*\$?(\d+)k?")
APPLY_ALL_RE = re.compile(r"apply\s*(to\s*)?(all|every|matching)")
MATCH_PROFILE_RE = re.compile(r"match(ing)?\s*(my\s*)?profile")

# camelCase keys used by the model prompt -> CommandParams fields.
MODEL_PARAM_KEYS: dict[str, str] = {
    "jobTitle": "job_title",
    "jobType": "job_type",
    "location": "location",
    "country": "country",
    "state": "state",
    "city": "city",
    "remote": "remote",
    "experienceLevel": "experience_level",
    "salaryMin": "salary_min",
    "salaryMax": "salary_max",
    "company": "company",
    "skills": "skills",
    "applyToAll": "apply_to_all",
    "matchProfile": "match_profile",
}

HELP_TEXT = (
    "You can say: 'Search for frontend jobs in USA', 'Apply to this job', "
    "'Skip', or 'Filter by remote'"
)


def _normalize(text: str) -> str:
    return (text or "").lower().strip()


def _salary_value(raw: str) -> float:
    """Amounts under 1000 are "k" shorthand."""
    value = int(raw)
    return float(value * 1000 if value < 1000 else value)


def _first_label(text: str, table: list[tuple[str, re.Pattern[str]]]) -> str | None:
    for label, pattern in table:
        if pattern.search(text):
            return label
    return None


def extract_params(text: str) -> CommandParams:
    """
    Extract command parameters with keyword and phrase tables.

    Never raises; unmatched fields stay ``None``.
    """
    text = _normalize(text)
    fields: dict[str, Any] = {}

    for pattern in JOB_TITLE_PATTERNS:
        match = pattern.search(text)
        if match and match.group(0).strip():
            fields["job_title"] = match.group(0).strip()
            break

    fields["country"] = _first_label(text, COUNTRY_PATTERNS)
    fields["state"] = _first_label(text, STATE_PATTERNS)
    fields["city"] = _first_label(text, CITY_PATTERNS)

    if REMOTE_RE.search(text):
        fields["remote"] = True

    fields["experience_level"] = _first_label(text, EXPERIENCE_PATTERNS)

    job_types = [label for label, pattern in JOB_TYPE_PATTERNS if pattern.search(text)]
    if job_types:
        fields["job_type"] = job_types

    salary_range = SALARY_RANGE_RE.search(text)
    if salary_range:
        fields["salary_min"] = _salary_value(salary_range.group(1))
        fields["salary_max"] = _salary_value(salary_range.group(2))
    else:
        floor = SALARY_FLOOR_RE.search(text)
        if floor:
            fields["salary_min"] = _salary_value(floor.group(1))

    skills = [s for s in SKILL_KEYWORDS if re.search(rf"\b{re.escape(s)}\b", text)]
    if skills:
        fields["skills"] = skills

    if APPLY_ALL_RE.search(text):
        fields["apply_to_all"] = True
    if MATCH_PROFILE_RE.search(text):
        fields["match_profile"] = True

    return CommandParams(**{k: v for k, v in fields.items() if v is not None})


def generate_suggestion(intent: CommandIntent, params: CommandParams) -> str:
    """Short restatement of the action, used for spoken feedback."""
    if intent == CommandIntent.APPLY:
        if params.apply_to_all:
            return "I'll apply to all matching jobs for you"
        return "Applying to this job"

    if intent == CommandIntent.SKIP:
        return "Skipping this job"

    if intent == CommandIntent.SEARCH:
        parts: list[str] = []
        if params.job_title:
            parts.append(params.job_title)
        if params.remote:
            parts.append("remote")
        parts.append("jobs")
        place = params.city or params.state or params.country
        if place:
            parts.append(f"in {place}")
        return f"Searching for {' '.join(parts)}"

    if intent == CommandIntent.FILTER:
        filter_parts: list[str] = []
        if params.remote:
            filter_parts.append("remote")
        if params.experience_level:
            filter_parts.append(params.experience_level)
        if params.salary_min:
            filter_parts.append(f"${params.salary_min / 1000:g}k+")
        return f"Filtering by {', '.join(filter_parts) or 'your criteria'}"

    if intent == CommandIntent.UNDO:
        return "Undoing last action"
    if intent == CommandIntent.NEXT:
        return "Showing next job"
    if intent == CommandIntent.DETAILS:
        return "Here are more details about this job"
    if intent == CommandIntent.HELP:
        return HELP_TEXT

    return "I didn't understand that. Try saying 'Search for [job type] jobs in [location]'"


def params_from_model(raw: Any) -> CommandParams:
    """
    Build `CommandParams` from the model's camelCase params object.

    Fields that fail validation are dropped one by one rather than
    discarding the whole bag.
    """
    if not isinstance(raw, dict):
        return CommandParams()

    fields: dict[str, Any] = {}
    for key, value in raw.items():
        name = MODEL_PARAM_KEYS.get(key, key if key in CommandParams.model_fields else None)
        if name is None or value is None:
            continue
        if name in ("job_type", "skills") and isinstance(value, str):
            value = [value]
        if name == "experience_level" and isinstance(value, str):
            value = value.lower().strip()
            if value not in EXPERIENCE_LEVELS:
                continue
        fields[name] = value

    try:
        return CommandParams(**fields)
    except ValidationError:
        kept: dict[str, Any] = {}
        for name, value in fields.items():
            try:
                CommandParams(**{name: value})
            except ValidationError:
                logger.debug(f"[INTENT] dropping invalid model param {name}={value!r}")
                continue
            kept[name] = value
        return CommandParams(**kept)


class IntentParserBase(ABC):
    """Abstract base class for voice command parsers."""

    @abstractmethod
    async def parse(self, text: str) -> ParsedCommand:
        """
        Parse a transcript into a structured command.

        Args:
            text: Transcribed utterance.

        Returns:
            The parsed command. Never raises.
        """
        ...


class VoiceCommandParser(IntentParserBase):
    """
    Two-tier voice command parser.

    The model tier is used only when it is enabled and the client is
    configured; otherwise the pattern tier result is returned as is.
    """

    def __init__(
        self,
        llm_client: LLMClientBase | None = None,
        model_enabled: bool | None = None,
    ) -> None:
        """
        Initialize the parser.

        Args:
            llm_client: Chat client for the model tier. The model tier is
                unavailable when None.
            model_enabled: Initial state of the model tier toggle
                (defaults to settings).
        """
        settings = get_settings()
        self._llm_client = llm_client
        self._model_enabled = settings.intent_model_enabled if model_enabled is None else model_enabled
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

    @property
    def model_enabled(self) -> bool:
        return self._model_enabled

    def set_model_enabled(self, enabled: bool) -> None:
        """Toggle the language-model tier (disable for offline use and tests)."""
        self._model_enabled = enabled

    def _model_available(self) -> bool:
        if not self._model_enabled or self._llm_client is None:
            return False
        return bool(getattr(self._llm_client, "is_configured", True))

    async def parse(self, text: str) -> ParsedCommand:
        pattern_result, certainty = self._parse_with_patterns(text)

        if pattern_result.intent in SIMPLE_INTENTS and certainty >= SHORT_CIRCUIT_CONFIDENCE:
            logger.debug(f"[INTENT] short-circuit intent={pattern_result.intent.value}")
            return pattern_result

        if not self._model_available():
            return pattern_result

        model_result = await self._parse_with_model(text)
        if model_result is None:
            logger.info("[INTENT] model tier unavailable, using pattern result")
            return pattern_result
        return model_result

    def parse_with_patterns(self, text: str) -> ParsedCommand:
        """Pattern tier only; synchronous and deterministic."""
        result, _ = self._parse_with_patterns(text)
        return result

    def _parse_with_patterns(self, text: str) -> tuple[ParsedCommand, float]:
        normalized = _normalize(text)
        spoken = POLITE_PREFIX_RE.sub("", normalized)

        intent = CommandIntent.UNKNOWN
        confidence = 0.0
        for candidate, patterns in INTENT_PATTERNS.items():
            if any(p.search(spoken) for p in patterns):
                intent = candidate
                confidence = PATTERN_CONFIDENCE
                break

        params = extract_params(normalized)

        has_criteria = params.job_title or params.skills or any(
            (params.location, params.city, params.state, params.country)
        )
        if intent == CommandIntent.UNKNOWN and has_criteria:
            intent = CommandIntent.SEARCH
            confidence = INFERRED_SEARCH_CONFIDENCE

        certainty = confidence
        bare = re.sub(r"[^\w\s]", "", spoken).strip()
        if EXACT_COMMANDS.get(bare) == intent:
            certainty = EXACT_COMMAND_CERTAINTY

        command = ParsedCommand(
            intent=intent,
            params=params,
            confidence=confidence,
            raw_text=text,
            suggestion=generate_suggestion(intent, params),
        )
        return command, certainty

    async def _parse_with_model(self, text: str) -> ParsedCommand | None:
        """Returns None on any failure so the caller can fall back."""
        if self._llm_client is None:
            return None
        messages = [
            Message(role="system", content=SYSTEM_PROMPT),
            Message(role="user", content=text),
        ]

        try:
            response = await self._llm_client.chat_with_json(
                messages,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except LLMError as e:
            logger.error(f"[INTENT] model request failed: {e}")
            return None
        except Exception as e:
            logger.exception(f"[INTENT] model tier raised {type(e).__name__}: {e}")
            return None

        if not isinstance(response, dict) or not response:
            return None

        raw_intent = str(response.get("intent") or "unknown").lower().strip()
        try:
            intent = CommandIntent(raw_intent)
        except ValueError:
            logger.warning(f"[INTENT] unknown model intent '{raw_intent}', defaulting to UNKNOWN")
            intent = CommandIntent.UNKNOWN

        try:
            confidence = float(response.get("confidence") or PATTERN_CONFIDENCE)
        except (TypeError, ValueError):
            confidence = PATTERN_CONFIDENCE
        confidence = max(0.0, min(1.0, confidence))

        params = params_from_model(response.get("params"))
        suggestion = response.get("suggestion")
        if not isinstance(suggestion, str) or not suggestion.strip():
            suggestion = generate_suggestion(intent, params)

        return ParsedCommand(
            intent=intent,
            params=params,
            confidence=confidence,
            raw_text=text,
            suggestion=suggestion,
        )
