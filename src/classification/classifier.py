"""LLM-backed categorization of project info and parsing of quick task text.

Two providers are supported: Anthropic (forced tool use, the default) and
OpenAI (JSON-object responses). Both always return a fully populated result;
provider errors and malformed payloads degrade to an uncategorized bundle or
a single task titled with the raw text.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Protocol

from anthropic import Anthropic
from openai import OpenAI
from pydantic import ValidationError

from src.classification.models import CATEGORIES, CategorizedBundle, ParsedTask
from src.config import Settings
from src.errors import ClassificationFailure, RemoteError
from src.extraction.parsers import today_in
from src.inference.keywords import known_projects
from src.resilience import ResilientCaller

logger = logging.getLogger(__name__)


class Classifier(Protocol):
    """Contract the processing engine relies on."""

    def categorize(self, bullets: list[str]) -> CategorizedBundle: ...

    def parse_tasks(self, text: str) -> list[ParsedTask]: ...


# ---------------------------------------------------------------------------
# Prompts and tool schemas
# ---------------------------------------------------------------------------

CATEGORIZE_SYSTEM_PROMPT = (
    "You file project information into a knowledge base. Sort every input line "
    "into exactly one category and tidy its wording, but never drop real data: "
    "keys, passwords, URLs, emails, phone numbers and names must survive verbatim.\n\n"
    "Categories:\n"
    "- credentials: API keys, passwords, access tokens, login details\n"
    "- contacts: people, emails, phone numbers, roles\n"
    "- links: URLs, documentation, repositories\n"
    "- decisions: decisions, commitments, approvals\n"
    "- other: anything else\n\n"
    "Drop filler such as 'this is the' or 'here is'. Examples:\n"
    "'this is the clickup api key sk-abc123 for the summaries project' -> "
    "'ClickUp API Key: sk-abc123 (for summaries project)'\n"
    "'contact is Karen Smith karen@example.com she handles sales' -> "
    "'Karen Smith - karen@example.com (Sales contact)'\n"
    "'we decided to use the new API starting next month' -> "
    "'Decision: Use new API starting next month'"
)

PARSE_TASKS_SYSTEM_PROMPT = (
    "You turn a free-form task note into structured tasks. If the note "
    "describes several distinct tasks, return one entry per task.\n\n"
    "- title: concise and actionable (5-10 words), starting with a verb\n"
    "- priority: High for urgent/asap/critical/blocking/today, Low for "
    "optional/someday/nice to have, otherwise Medium\n"
    "- due: YYYY-MM-DD or null; resolve weekdays to their next occurrence, "
    "end of week to Friday, end of month to its last day\n"
    "- project: one of {projects}, or null when unclear (do not guess)\n"
    "- context: brief extra detail or null\n\n"
    "Today is {today}."
)

CATEGORIZE_TOOL: dict[str, Any] = {
    "name": "store_categorized_info",
    "description": "Store the categorized and cleaned project information lines.",
    "input_schema": {
        "type": "object",
        "properties": {
            name: {"type": "array", "items": {"type": "string"}} for name in CATEGORIES
        },
        "required": list(CATEGORIES),
    },
}

PARSE_TASKS_TOOL: dict[str, Any] = {
    "name": "store_parsed_tasks",
    "description": "Store the tasks parsed from the note. Call once with every task.",
    "input_schema": {
        "type": "object",
        "properties": {
            "tasks": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "title": {"type": "string"},
                        "project": {"type": ["string", "null"]},
                        "priority": {"type": "string", "enum": ["High", "Medium", "Low"]},
                        "due": {"type": ["string", "null"], "description": "YYYY-MM-DD"},
                        "context": {"type": ["string", "null"]},
                    },
                    "required": ["title", "priority"],
                },
            }
        },
        "required": ["tasks"],
    },
}


def _numbered(bullets: list[str]) -> str:
    return "\n".join(f"{i}. {b}" for i, b in enumerate(bullets, 1))


def bundle_from_payload(data: Any) -> CategorizedBundle:
    """Validate a provider payload into a bundle.

    Raises:
        ClassificationFailure: the payload is not an object of string lists.
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ClassificationFailure(f"Categorization returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ClassificationFailure(f"Categorization returned {type(data).__name__}, not an object")
    try:
        return CategorizedBundle.model_validate(data)
    except ValidationError as exc:
        raise ClassificationFailure(f"Categorization payload failed validation: {exc}") from exc


def tasks_from_payload(data: Any, text: str) -> list[ParsedTask]:
    """Validate a provider payload into at least one task.

    Accepts ``{"tasks": [...]}`` or a single task object. Missing titles fall
    back to the raw ``text``.

    Raises:
        ClassificationFailure: the payload cannot be read as tasks.
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ClassificationFailure(f"Task parsing returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ClassificationFailure(f"Task parsing returned {type(data).__name__}, not an object")

    raw_tasks = data.get("tasks") if isinstance(data.get("tasks"), list) else [data]
    tasks: list[ParsedTask] = []
    for raw in raw_tasks:
        if not isinstance(raw, dict):
            continue
        fields = {**raw, "title": str(raw.get("title") or "").strip() or text}
        try:
            tasks.append(ParsedTask.model_validate(fields))
        except ValidationError as exc:
            raise ClassificationFailure(f"Task payload failed validation: {exc}") from exc
    if not tasks:
        raise ClassificationFailure("Task parsing returned no tasks")
    return tasks


def fallback_task(text: str) -> ParsedTask:
    return ParsedTask(title=text.strip())


class _BaseClassifier:
    """Shared degrade-on-failure behaviour for both providers."""

    def __init__(self, caller: ResilientCaller, timezone: str = "UTC") -> None:
        self._caller = caller
        self._timezone = timezone

    def _today(self) -> date:
        return today_in(self._timezone)

    def categorize(self, bullets: list[str]) -> CategorizedBundle:
        if not bullets:
            return CategorizedBundle()
        try:
            bundle = bundle_from_payload(self._categorize(bullets))
        except (RemoteError, ClassificationFailure) as exc:
            logger.error("Categorization failed, keeping all lines as other: %s", exc)
            return CategorizedBundle.uncategorized(bullets)
        logger.info("Categorized %d line(s): %s", len(bullets), bundle.counts())
        return bundle

    def parse_tasks(self, text: str) -> list[ParsedTask]:
        if not text.strip():
            raise ValueError("Task text cannot be empty")
        try:
            tasks = tasks_from_payload(self._parse_tasks(text), text.strip())
        except (RemoteError, ClassificationFailure) as exc:
            logger.error("Task parsing failed, using raw text as title: %s", exc)
            return [fallback_task(text)]
        logger.info("Parsed %d task(s)", len(tasks))
        return tasks

    def _categorize(self, bullets: list[str]) -> Any:
        raise NotImplementedError

    def _parse_tasks(self, text: str) -> Any:
        raise NotImplementedError


class AnthropicClassifier(_BaseClassifier):
    """Classifier using Claude with a forced tool call for structured output."""

    def __init__(
        self,
        client: Anthropic,
        model: str,
        caller: ResilientCaller,
        timezone: str = "UTC",
    ) -> None:
        super().__init__(caller, timezone)
        self._client = client
        self._model = model

    def _call_tool(self, tool: dict[str, Any], system: str, content: str) -> Any:
        response = self._caller.call(
            self._client.messages.create,
            model=self._model,
            max_tokens=2048,
            system=system,
            tools=[tool],
            tool_choice={"type": "tool", "name": tool["name"]},
            messages=[{"role": "user", "content": content}],
        )
        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.info(
                "%s token usage: input=%s output=%s",
                tool["name"],
                getattr(usage, "input_tokens", "?"),
                getattr(usage, "output_tokens", "?"),
            )
        return _tool_input(response, tool["name"])

    def _categorize(self, bullets: list[str]) -> Any:
        return self._call_tool(
            CATEGORIZE_TOOL,
            CATEGORIZE_SYSTEM_PROMPT,
            f"Categorize these project information lines:\n\n{_numbered(bullets)}",
        )

    def _parse_tasks(self, text: str) -> Any:
        system = PARSE_TASKS_SYSTEM_PROMPT.format(
            projects=", ".join(known_projects()), today=self._today().isoformat()
        )
        return self._call_tool(PARSE_TASKS_TOOL, system, f"Task note:\n\n{text}")


def _tool_input(response: Any, tool_name: str) -> Any:
    """Return the input of the first matching tool_use block."""
    for block in response.content:
        if getattr(block, "type", None) != "tool_use":
            continue
        if getattr(block, "name", None) != tool_name:
            continue
        return block.input
    raise ClassificationFailure(f"Response contained no {tool_name} tool call")


class OpenAIClassifier(_BaseClassifier):
    """Classifier using OpenAI chat completions in JSON-object mode."""

    def __init__(
        self,
        client: OpenAI,
        model: str,
        caller: ResilientCaller,
        timezone: str = "UTC",
    ) -> None:
        super().__init__(caller, timezone)
        self._client = client
        self._model = model

    def _complete_json(self, operation: str, system: str, content: str) -> Any:
        response = self._caller.call(
            self._client.chat.completions.create,
            model=self._model,
            messages=[
                {"role": "system", "content": f"{system}\n\nAlways return valid JSON."},
                {"role": "user", "content": content},
            ],
            response_format={"type": "json_object"},
        )
        if response.usage is not None:
            logger.info(
                "%s token usage: prompt=%d completion=%d",
                operation,
                response.usage.prompt_tokens,
                response.usage.completion_tokens,
            )
        return response.choices[0].message.content or ""

    def _categorize(self, bullets: list[str]) -> Any:
        keys = ", ".join(f'"{name}"' for name in CATEGORIES)
        return self._complete_json(
            "categorize",
            CATEGORIZE_SYSTEM_PROMPT,
            f"Categorize these project information lines:\n\n{_numbered(bullets)}\n\n"
            f"Return a JSON object with the keys {keys}, each a list of strings.",
        )

    def _parse_tasks(self, text: str) -> Any:
        system = PARSE_TASKS_SYSTEM_PROMPT.format(
            projects=", ".join(known_projects()), today=self._today().isoformat()
        )
        return self._complete_json(
            "parse_tasks",
            system,
            f"Task note:\n\n{text}\n\n"
            'Return a JSON object {"tasks": [{"title", "project", "priority", "due", "context"}]}.',
        )


def build_classifier(settings: Settings) -> Classifier:
    """Create the classifier selected by ``settings.classifier_provider``."""
    caller = ResilientCaller(
        min_interval=0.0,
        max_attempts=settings.max_retries,
        base_delay=settings.backoff_base_seconds,
        max_delay=settings.backoff_cap_seconds,
        jitter=settings.backoff_jitter_seconds,
    )
    provider = settings.classifier_provider.lower()
    if provider == "anthropic":
        return AnthropicClassifier(
            Anthropic(api_key=settings.anthropic_api_key),
            settings.llm_model,
            caller,
            settings.timezone,
        )
    if provider == "openai":
        return OpenAIClassifier(
            OpenAI(api_key=settings.openai_api_key),
            settings.openai_model,
            caller,
            settings.timezone,
        )
    raise ValueError(f"Unsupported classifier provider: {settings.classifier_provider}")
