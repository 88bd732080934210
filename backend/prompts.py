# Prompt templates and output schemas for every assistant call site.
# Templates use str.format: literal braces are doubled.
# Schemas are JSON Schema objects passed to the model as a forced tool's input_schema.

LEVEL_VALUES = ["Low", "Medium", "High"]
TIME_OF_DAY_VALUES = ["Morning", "Afternoon", "Evening", "Night"]
FREQUENCY_VALUES = ["Once", "Daily", "Weekly", "Monthly", "Yearly"]
ACTION_TYPE_VALUES = ["ui", "task", "chat", "routine_creation"]
BACKGROUND_EFFECT_VALUES = ["none", "snow", "rain", "embers", "matrix", "breathe"]

TASK_PARSE_PROMPT = """Extract task details from: "{text}". Language: {language}.
Infer load, duration (default 30m), priority, and frequency (Once, Daily, Weekly, Monthly, Yearly).
Today's date is: {today}
Return JSON only."""

COMMAND_PROMPT = """User Command: "{command}"
Today's Reference: {today} ({day_name})
Language: {language}.

Current tasks:
{task_context}

Intent Detection Rules:
- 'routine_creation': Triggered when the user provides a TIMETABLE (daily/weekly), a structured schedule, or a bulk task list.
   * BULK PARSING: If the user pastes a weekly schedule (e.g., "Mon: ..., Tue: ..."), generate INDEPENDENT tasks for EACH day mention. Never collapse a bulk list into one task.
   * DATE CALCULATION: Map relative days (Today, Tomorrow, Wednesday) to their next occurring date on or after today ({today}).
   * TIME CLASSIFICATION (preferred_time):
     - Morning: 04:00 - 11:59
     - Afternoon: 12:00 - 16:59
     - Evening: 17:00 - 20:59
     - Night: 21:00 - 03:59
   * TIME EXTRACTION: Extract precise start times as scheduled_start in HH:MM 24h format (e.g., "3pm" -> "15:00").
   * INDEPENDENCE: Each generated task MUST be a separate object in 'tasksToCreate'. Set 'frequency' to 'Once' for specific dated tasks.
   * EXCLUSIVITY: Tasks tied to a specific date must have the calculated 'deadline' (YYYY-MM-DD). Tasks without a specific date keep the default frequency.
- 'task': A single task to add; put it in 'tasksToCreate'.
- 'ui': Visual theme changes (background, effect, accent color, blur, transparency, brightness) in 'uiChange'.
- 'chat': General assistant feedback and anything conversational.

Always include a short 'reply' for the user.
Response Format: JSON only."""

SCHEDULE_PROMPT = """Planner for {language}. Current tasks: {task_data}.
Suggest start times (HH:MM, 24h) for these tasks to maximize productivity.
Place high mental load work where focus is highest and keep the day realistic.
Return JSON with a short rationale."""

REFLECTION_PROMPT = """Analyze performance for {language}: {task_data}.
Provide a 1-2 sentence reflection."""

JOURNAL_PROMPT = """Analyze this journal entry in {language}: "{content}".
Return the writer's mood as a single word or short phrase, a brief supportive reflection, and a few topic tags."""

TRANSLATION_PROMPT = """Translate UI labels to {language}. Keep every key unchanged and translate only the values.
Labels: {labels}"""


def _parsed_task_properties() -> dict:
    return {
        "title": {"type": "string"},
        "category": {"type": "string"},
        "estimated_time_minutes": {"type": "integer"},
        "mental_load": {"type": "string", "enum": LEVEL_VALUES},
        "priority": {"type": "string", "enum": LEVEL_VALUES},
        "preferred_time": {"type": "string", "enum": TIME_OF_DAY_VALUES},
        "deadline": {"type": "string", "description": "YYYY-MM-DD format for specific date"},
        "subtasks": {"type": "array", "items": {"type": "string"}},
        "notes": {"type": "string"},
        "frequency": {"type": "string", "enum": FREQUENCY_VALUES},
    }


TASK_SCHEMA = {
    "type": "object",
    "properties": _parsed_task_properties(),
    "required": ["title", "category", "estimated_time_minutes", "mental_load", "priority", "preferred_time"],
}

COMMAND_SCHEMA = {
    "type": "object",
    "properties": {
        "actionType": {"type": "string", "enum": ACTION_TYPE_VALUES},
        "reply": {"type": "string"},
        "tasksToCreate": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    **_parsed_task_properties(),
                    "scheduled_start": {"type": "string", "description": "HH:MM 24h format"},
                },
                "required": ["title", "category", "estimated_time_minutes"],
            },
        },
        "uiChange": {
            "type": "object",
            "properties": {
                "backgroundImage": {"type": "string"},
                "backgroundEffect": {"type": "string", "enum": BACKGROUND_EFFECT_VALUES},
                "accentColor": {"type": "string"},
                "blurIntensity": {"type": "number"},
                "transparency": {"type": "number"},
                "backgroundBrightness": {"type": "number"},
            },
        },
    },
    "required": ["actionType", "reply"],
}

SCHEDULE_SCHEMA = {
    "type": "object",
    "properties": {
        "rationale": {"type": "string"},
        "tasks": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "scheduled_start": {"type": "string"},
                },
            },
        },
    },
}

JOURNAL_SCHEMA = {
    "type": "object",
    "properties": {
        "mood": {"type": "string"},
        "reflection": {"type": "string"},
        "tags": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["mood", "reflection", "tags"],
}


def translation_schema(keys: list[str]) -> dict:
    """One required string property per label key."""
    return {
        "type": "object",
        "properties": {key: {"type": "string"} for key in keys},
        "required": list(keys),
    }
