"""
Per-user session state: tasks, journal, preferences, UI labels and the chat
transcript. The transcript lives only as long as the workspace does.
"""
import logging
import time
import uuid
from pathlib import Path
from typing import Optional

import config
import database
from assistant import LLMClient, generate_reflection, generate_schedule, interpret_command
from models import ChatMessage, Role, ScheduleResponse, UIPreference
from mutations import JournalService, MutationResult, TaskMutationService
from preferences import DEFAULT_TRANSLATIONS, LocalAssetCache, PreferenceSynchronizer, refresh_translations
from productivity import resolve_logical_date

logger = logging.getLogger(__name__)

OFFLINE_CACHE_NAME = "offline"
GREETING = "Nexus Core online. Identity verified. Awaiting command parameters."
CORE_FAULT_REPLY = "Core Logic Fault. Recalibrating..."
NOTHING_TO_OPTIMIZE_REPLY = "All objectives clear. No optimization required."
OPTIMIZE_FAULT_REPLY = "Optimization Core Fault."


def routine_summary(created: list) -> str:
    dates = {t.deadline for t in created if t.deadline}
    if dates:
        return f"Neural mapping complete. Manifested {len(created)} objectives across {len(dates)} temporal points."
    return f"Patterns synthesized. Registered {len(created)} objectives in current cycle."


class Workspace:
    def __init__(self, user_id: Optional[str], cache_name: Optional[str] = None):
        self.user_id = user_id
        cache_dir = Path(config.LOCAL_CACHE_DIR) / (cache_name or user_id or OFFLINE_CACHE_NAME)
        self.tasks = TaskMutationService(user_id)
        self.journal = JournalService(user_id)
        self.preferences = PreferenceSynchronizer(user_id, LocalAssetCache(cache_dir))
        self.translations: dict[str, str] = dict(DEFAULT_TRANSLATIONS)
        self.messages: list[ChatMessage] = []
        self.say("assistant", GREETING)

    def say(self, role: Role, content: str) -> ChatMessage:
        message = ChatMessage(id=str(uuid.uuid4()), role=role, content=content, timestamp=time.time())
        self.messages.append(message)
        return message

    @property
    def language(self) -> str:
        return self.preferences.current.language or "English"

    async def load(self, llm: Optional[LLMClient] = None) -> None:
        """Pull remote state. Failures leave an empty but usable workspace."""
        try:
            self.tasks.load()
            self.journal.load()
        except database.PersistenceError as e:
            logger.error("Data recovery fault: %s", e)
        self.preferences.load()
        self.translations = await refresh_translations(self.language, llm)

    async def set_preferences(self, preference: UIPreference, llm: Optional[LLMClient] = None) -> bool:
        """Save preferences; a language change re-translates the UI labels."""
        previous_language = self.language
        synced = self.preferences.save(preference)
        if self.language != previous_language:
            self.translations = await refresh_translations(self.language, llm)
        return synced

    async def handle_command(self, text: str, llm: Optional[LLMClient] = None) -> ChatMessage:
        """Interpret a chat command and apply its effect. Never raises."""
        self.say("user", text)
        try:
            result = await interpret_command(text, self.tasks.tasks, self.language, llm)

            if result.action_type in ("routine_creation", "task") and result.tasks_to_create:
                outcome = self.tasks.bulk_create(result.tasks_to_create)
                if not outcome.ok:
                    return self.say("assistant", CORE_FAULT_REPLY)
                return self.say("assistant", routine_summary(outcome.tasks))

            if result.action_type == "ui" and result.ui_change:
                # Merge into the latest preferences, not the ones current when the command started
                self.preferences.apply_change(result.ui_change)
                return self.say("assistant", result.reply)

            return self.say("assistant", result.reply)
        except Exception:
            logger.exception("Command handling fault")
            return self.say("assistant", CORE_FAULT_REPLY)

    async def optimize_schedule(self, llm: Optional[LLMClient] = None) -> tuple[ChatMessage, Optional[MutationResult]]:
        today = resolve_logical_date()
        pending = [t for t in self.tasks.view(today) if not t.completed and (not t.deadline or t.deadline == today)]
        if not pending:
            return self.say("assistant", NOTHING_TO_OPTIMIZE_REPLY), None

        schedule: ScheduleResponse = await generate_schedule(pending, self.language, llm)
        outcome = self.tasks.apply_schedule(schedule)
        if not outcome.ok:
            return self.say("assistant", OPTIMIZE_FAULT_REPLY), outcome
        return self.say("assistant", schedule.rationale), outcome

    async def reflect(self, llm: Optional[LLMClient] = None) -> str:
        return await generate_reflection(self.tasks.view(), self.language, llm)
