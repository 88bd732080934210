"""
Assistant calls against the LLM: task parsing, command interpretation,
schedule suggestions, reflections, journal analysis and UI translation.

Model output is untrusted. Structured results are requested through a JSON
schema, and task payloads still go through normalize_task_data before use.
"""
import json
import logging
from datetime import date
from typing import Any, Optional

import anthropic
from pydantic import ValidationError

import config
from models import CommandResult, JournalAnalysis, ParsedTask, ScheduleResponse, Task
from normalization import is_valid_start_time, normalize_task_data
from productivity import day_period_for
from prompts import (
    COMMAND_PROMPT,
    COMMAND_SCHEMA,
    JOURNAL_PROMPT,
    JOURNAL_SCHEMA,
    REFLECTION_PROMPT,
    SCHEDULE_PROMPT,
    SCHEDULE_SCHEMA,
    TASK_PARSE_PROMPT,
    TASK_SCHEMA,
    TIME_OF_DAY_VALUES,
    TRANSLATION_PROMPT,
    translation_schema,
)

logger = logging.getLogger(__name__)

RESULT_TOOL = "emit_result"
DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

COMMAND_FALLBACK_REPLY = (
    "I encountered a processing issue with that schedule. "
    "Could you try providing it in smaller sections or clarify the dates?"
)
SCHEDULE_OFFLINE_RATIONALE = "Scheduling offline."
SCHEDULE_DEFAULT_RATIONALE = "Plan optimized."
DEFAULT_REFLECTION = "Every action creates your future."


class LLMError(Exception):
    """The model was unreachable or its answer was unusable."""


def _extract_json(text: str) -> Any:
    """Parse JSON from a text answer, tolerating a markdown code fence."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]  # Remove first line (```json)
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise LLMError(f"Failed to parse AI response: {e}") from e


class LLMClient:
    """
    Request/response completion service.
    complete() returns plain text, or the structured object when a schema is given.
    """

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, client=None):
        self.api_key = api_key if api_key is not None else config.ANTHROPIC_API_KEY
        self.model = model or config.ANTHROPIC_MODEL
        self._client = client

    @property
    def configured(self) -> bool:
        return self._client is not None or (bool(self.api_key) and self.api_key != "your-api-key-here")

    def _get_client(self):
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def complete(self, prompt: str, schema: Optional[dict] = None, max_tokens: int = 1024) -> Any:
        if not self.configured:
            raise LLMError("API key not configured")

        request: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if schema is not None:
            request["tools"] = [{
                "name": RESULT_TOOL,
                "description": "Return the result in the required structure.",
                "input_schema": schema,
            }]
            request["tool_choice"] = {"type": "tool", "name": RESULT_TOOL}

        try:
            response = await self._get_client().messages.create(**request)
        except anthropic.APIError as e:
            raise LLMError(f"API error: {e}") from e

        text = "".join(block.text for block in response.content if block.type == "text").strip()
        if schema is None:
            return text
        for block in response.content:
            if block.type == "tool_use":
                return block.input
        # Model answered in prose instead of calling the tool
        return _extract_json(text)


def _task_context(tasks: list[Task]) -> str:
    if not tasks:
        return "(none)"
    lines = []
    for task in tasks:
        line = f"- {task.id}: {task.title} [{task.frequency}]"
        if task.deadline:
            line += f" due {task.deadline}"
        lines.append(line)
    return "\n".join(lines)


def _normalize_command_tasks(items: Any) -> list[ParsedTask]:
    """Normalize each generated task; anything that fails is dropped from the batch."""
    if not isinstance(items, list):
        return []
    tasks = []
    for item in items:
        parsed = normalize_task_data(item)
        if parsed is None:
            continue
        start = item.get("scheduled_start")
        if is_valid_start_time(start):
            parsed.scheduled_start = start.zfill(5)
            if item.get("preferred_time") not in TIME_OF_DAY_VALUES:
                parsed.preferred_time = day_period_for(parsed.scheduled_start)
        tasks.append(parsed)
    return tasks


async def interpret_command(
    command: str,
    current_tasks: list[Task],
    language: str = "English",
    llm: Optional[LLMClient] = None,
    today: Optional[date] = None,
) -> CommandResult:
    """
    Classify a free-text command as ui / task / chat / routine_creation.
    Never raises: any failure degrades to a chat reply asking for smaller input.
    """
    llm = llm or LLMClient()
    today = today or date.today()
    prompt = COMMAND_PROMPT.format(
        command=command,
        today=today.isoformat(),
        day_name=DAY_NAMES[today.weekday()],
        language=language,
        task_context=_task_context(current_tasks),
    )

    try:
        raw = await llm.complete(prompt, COMMAND_SCHEMA, max_tokens=4096)
        if not isinstance(raw, dict):
            raise LLMError("Command result is not an object")
        return CommandResult.model_validate({
            "actionType": raw.get("actionType"),
            "reply": raw.get("reply"),
            "uiChange": raw.get("uiChange") or None,
            "tasksToCreate": _normalize_command_tasks(raw.get("tasksToCreate")),
        })
    except (LLMError, ValidationError) as e:
        logger.error("Command interpretation error: %s", e)
        return CommandResult(action_type="chat", reply=COMMAND_FALLBACK_REPLY)


async def parse_task_input(text: str, language: str = "English", llm: Optional[LLMClient] = None) -> ParsedTask:
    llm = llm or LLMClient()
    prompt = TASK_PARSE_PROMPT.format(text=text, language=language, today=date.today().isoformat())
    raw = await llm.complete(prompt, TASK_SCHEMA)
    parsed = normalize_task_data(raw)
    if parsed is None:
        raise ValueError("Validation failed for extracted task")
    return parsed


async def generate_schedule(tasks: list[Task], language: str = "English", llm: Optional[LLMClient] = None) -> ScheduleResponse:
    """Suggest start times. Falls back to the unchanged task list when the model is unavailable."""
    llm = llm or LLMClient()
    task_data = json.dumps([
        {
            "id": t.id,
            "title": t.title,
            "load": t.mental_load,
            "time": t.estimated_time_minutes,
            "priority": t.priority,
        }
        for t in tasks
    ])
    try:
        raw = await llm.complete(SCHEDULE_PROMPT.format(language=language, task_data=task_data), SCHEDULE_SCHEMA)
        if not isinstance(raw, dict):
            raise LLMError("Schedule result is not an object")
    except LLMError as e:
        logger.error("Scheduling error: %s", e)
        return ScheduleResponse(rationale=SCHEDULE_OFFLINE_RATIONALE, tasks=tasks)

    suggestions = {}
    for item in raw.get("tasks") or []:
        if isinstance(item, dict) and is_valid_start_time(item.get("scheduled_start")):
            suggestions[item.get("id")] = item["scheduled_start"].zfill(5)

    updated = [
        t.model_copy(update={"scheduled_start": suggestions[t.id]}) if t.id in suggestions else t
        for t in tasks
    ]
    rationale = raw.get("rationale")
    return ScheduleResponse(
        rationale=rationale if isinstance(rationale, str) and rationale else SCHEDULE_DEFAULT_RATIONALE,
        tasks=updated,
    )


async def generate_reflection(tasks: list[Task], language: str = "English", llm: Optional[LLMClient] = None) -> str:
    llm = llm or LLMClient()
    task_data = json.dumps([{"title": t.title, "completed": t.completed} for t in tasks])
    text = await llm.complete(REFLECTION_PROMPT.format(language=language, task_data=task_data))
    return text or DEFAULT_REFLECTION


async def analyze_journal_entry(content: str, language: str = "English", llm: Optional[LLMClient] = None) -> JournalAnalysis:
    llm = llm or LLMClient()
    raw = await llm.complete(JOURNAL_PROMPT.format(language=language, content=content), JOURNAL_SCHEMA)
    return JournalAnalysis.model_validate(raw)


async def translate_ui(target_language: str, base: dict[str, str], llm: Optional[LLMClient] = None) -> dict[str, str]:
    """Translate UI labels. English is the source dictionary and needs no call."""
    if target_language.strip().lower() == "english":
        return base
    llm = llm or LLMClient()
    raw = await llm.complete(
        TRANSLATION_PROMPT.format(language=target_language, labels=json.dumps(base)),
        translation_schema(list(base)),
        max_tokens=2048,
    )
    if not isinstance(raw, dict) or set(raw) != set(base):
        raise LLMError("Translation keys do not match the label dictionary")
    return {key: value for key, value in raw.items() if isinstance(value, str)}
