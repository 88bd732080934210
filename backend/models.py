from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Literal, Optional

Level = Literal["Low", "Medium", "High"]
MentalLoad = Level
Priority = Level
TimeOfDay = Literal["Morning", "Afternoon", "Evening", "Night"]
Frequency = Literal["Once", "Daily", "Weekly", "Monthly", "Yearly"]
BackgroundEffect = Literal["none", "snow", "rain", "embers", "matrix", "breathe"]
AnimationSpeed = Literal["slow", "normal", "fast"]
ActionType = Literal["ui", "task", "chat", "routine_creation"]
Role = Literal["user", "assistant", "system"]

DEFAULT_BACKGROUND = (
    "https://images.unsplash.com/photo-1451187580459-43490279c0fa"
    "?q=80&w=2072&auto=format&fit=crop"
)


class Task(BaseModel):
    id: str
    title: str
    category: str = "General"
    estimated_time_minutes: int = 30
    mental_load: MentalLoad = "Medium"
    priority: Priority = "Medium"
    preferred_time: TimeOfDay = "Morning"
    deadline: Optional[str] = None  # YYYY-MM-DD
    completed: bool = False  # Derived for the resolved logical day, never stored
    scheduled_start: Optional[str] = None  # HH:MM
    subtasks: list[str] = Field(default_factory=list)
    notes: Optional[str] = None
    is_alarm_enabled: bool = False
    alarm_time: Optional[str] = None
    alarm_sound: Optional[str] = None
    alarm_sound_name: Optional[str] = None
    completion_history: dict[str, bool] = Field(default_factory=dict)  # YYYY-MM-DD -> done
    frequency: Frequency = "Once"
    created_at: Optional[str] = None  # ISO format datetime string

class TaskInput(BaseModel):
    title: str = Field(min_length=1)
    category: str = "General"
    estimated_time_minutes: int = Field(default=30, ge=1, le=1440)
    mental_load: MentalLoad = "Medium"
    priority: Priority = "Medium"
    preferred_time: TimeOfDay = "Morning"
    deadline: Optional[str] = None
    scheduled_start: Optional[str] = None
    subtasks: list[str] = Field(default_factory=list)
    notes: Optional[str] = None
    is_alarm_enabled: bool = False
    alarm_time: Optional[str] = None
    alarm_sound: Optional[str] = None
    alarm_sound_name: Optional[str] = None
    frequency: Frequency = "Once"

class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = None
    estimated_time_minutes: Optional[int] = Field(default=None, ge=1, le=1440)
    mental_load: Optional[MentalLoad] = None
    priority: Optional[Priority] = None
    preferred_time: Optional[TimeOfDay] = None
    deadline: Optional[str] = None
    scheduled_start: Optional[str] = None
    subtasks: Optional[list[str]] = None
    notes: Optional[str] = None
    is_alarm_enabled: Optional[bool] = None
    alarm_time: Optional[str] = None
    alarm_sound: Optional[str] = None
    alarm_sound_name: Optional[str] = None
    frequency: Optional[Frequency] = None

class ParsedTask(BaseModel):
    """A task-like payload that has passed normalization."""
    title: str
    category: str = "General"
    estimated_time_minutes: int = 30
    mental_load: MentalLoad = "Medium"
    priority: Priority = "Medium"
    preferred_time: TimeOfDay = "Morning"
    deadline: Optional[str] = None
    subtasks: list[str] = Field(default_factory=list)
    notes: Optional[str] = None
    frequency: Frequency = "Once"
    scheduled_start: Optional[str] = None

class JournalEntry(BaseModel):
    id: str
    date: str  # YYYY-MM-DD
    content: str = ""
    mood: Optional[str] = None
    ai_reflection: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    last_updated: float  # Unix timestamp, newest first

class JournalInput(BaseModel):
    id: Optional[str] = None
    date: Optional[str] = None
    content: str = ""
    mood: Optional[str] = None
    ai_reflection: Optional[str] = None
    tags: Optional[list[str]] = None

class JournalAnalysis(BaseModel):
    mood: str
    reflection: str
    tags: list[str] = Field(default_factory=list)


class UIPreference(BaseModel):
    # Persisted with camelCase keys inside the user_preferences.config blob
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    theme_name: str = "Nexus Default"
    background_image: str = DEFAULT_BACKGROUND  # URL, data URL, or the local asset sentinel
    background_type: Literal["image", "video"] = "image"
    background_effect: BackgroundEffect = "breathe"
    blur_intensity: float = 12  # px
    transparency: float = Field(default=0.15, ge=0, le=1)
    background_brightness: float = Field(default=35, ge=0, le=100)
    accent_color: str = "#6366f1"
    animation_speed: AnimationSpeed = "normal"
    default_alarm_sound: Optional[str] = None
    default_alarm_sound_name: Optional[str] = None
    language: str = "English"

class UIChange(BaseModel):
    """Visual settings the assistant is allowed to change."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    background_image: Optional[str] = None
    background_effect: Optional[BackgroundEffect] = None
    accent_color: Optional[str] = None
    blur_intensity: Optional[float] = None
    transparency: Optional[float] = Field(default=None, ge=0, le=1)
    background_brightness: Optional[float] = Field(default=None, ge=0, le=100)


class ChatMessage(BaseModel):
    id: str
    role: Role
    content: str
    timestamp: float

class CommandResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    action_type: ActionType
    reply: str
    ui_change: Optional[UIChange] = None
    tasks_to_create: list[ParsedTask] = Field(default_factory=list)

class ScheduleResponse(BaseModel):
    rationale: str
    tasks: list[Task]
    rescheduled_tasks: list[str] = Field(default_factory=list)  # IDs moved to tomorrow


class Credentials(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)

class ChatRequest(BaseModel):
    message: str

class ToggleRequest(BaseModel):
    date: Optional[str] = None  # YYYY-MM-DD, defaults to the current logical day

class ParseRequest(BaseModel):
    text: str = Field(min_length=1)
