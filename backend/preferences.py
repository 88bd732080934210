"""
UI preference synchronization across three layers: built-in defaults, the
remote user_preferences row, and the local device cache.

Remote storage never holds large media. Inline (data URL) backgrounds and alarm
sounds are written to the local cache; the remote copy gets the sentinel marker
(background) or nothing at all (alarm sound). On load, local media is promoted
back into memory whenever the remote copy is the sentinel, inline, or missing.
"""
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

import database
from assistant import LLMClient, LLMError, translate_ui
from models import DEFAULT_BACKGROUND, UIChange, UIPreference

logger = logging.getLogger(__name__)

LOCAL_ASSET_SENTINEL = "(Local Data Asset)"
INLINE_DATA_PREFIX = "data:"
BACKGROUND_CACHE_KEY = "nexus_bg_data"
ALARM_CACHE_KEY = "nexus_alarm_data"
MAX_INLINE_ASSET_BYTES = 10 * 1024 * 1024

DEFAULT_TRANSLATIONS: dict[str, str] = {
    "newTask": "New Task",
    "newEntry": "New Entry",
    "dashboard": "Dashboard",
    "schedule": "Planner",
    "journal": "Journal",
    "history": "Timeline",
    "settings": "Settings",
    "commandCenter": "Command Center",
    "yourAgenda": "Your Agenda",
    "personalJournal": "Personal Journal",
    "taskHistory": "Timeline Records",
    "overview": "Daily Overview",
    "journalSubtitle": "Record thoughts and let AI reflect.",
    "historySubtitle": "Strategic logs and future planning.",
    "allClear": "All clear. Enjoy the void.",
    "optimizeDay": "Optimize Flow",
    "analyzing": "Analyzing...",
    "save": "Save",
    "cancel": "Cancel",
    "applyTheme": "Sync Theme",
    "morning": "Morning Phase",
    "afternoon": "Midday Phase",
    "evening": "Sunset Phase",
    "night": "Night Phase",
    "completed": "Archived",
    "subtasks": "Subtasks",
    "notes": "Intel",
    "alarm": "Neuro-Alert",
    "completionRate": "Success Rate",
    "focusTime": "Cognitive Load",
    "highLoadTasks": "Peak Challenges",
    "dailyReflection": "Neural Reflection",
    "generateInsights": "Generate Insights",
    "uiCustomization": "Interface Core",
    "themeName": "Identity",
    "aiLanguage": "Linguistics",
    "backgroundMedia": "Environment",
    "defaultAlarm": "Audio Cue",
    "atmosphericEffect": "Atmospheric FX",
    "blur": "Diffusion",
    "opacity": "Opacity",
    "brightness": "Luminance",
    "accentColor": "Core Color",
    "motionSpeed": "Temporal Speed",
    "nexusAssistant": "Nexus Core",
    "askNexus": "Input command...",
}


class AssetTooLarge(ValueError):
    pass


class LocalAssetCache:
    """Device-local key/value storage, one file per key. Not synchronized anywhere."""

    def __init__(self, directory):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / key

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(value, encoding="utf-8")

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


def is_inline_data(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(INLINE_DATA_PREFIX)


def _validate(merged: dict) -> UIPreference:
    """Build a UIPreference, dropping any field whose stored value no longer validates."""
    try:
        return UIPreference.model_validate(merged)
    except ValidationError as e:
        bad_fields = {err["loc"][0] for err in e.errors() if err["loc"]}
        logger.warning("Discarding invalid preference fields: %s", sorted(map(str, bad_fields)))
        return UIPreference.model_validate({k: v for k, v in merged.items() if k not in bad_fields})


def merge_preferences(remote: Optional[dict], cache: LocalAssetCache) -> UIPreference:
    """Merge order: defaults -> remote config -> local cache for large media fields."""
    merged = UIPreference().model_dump(by_alias=True)
    local_background = cache.get(BACKGROUND_CACHE_KEY)
    local_alarm = cache.get(ALARM_CACHE_KEY)

    if remote:
        merged.update({k: v for k, v in remote.items() if k in merged})
        background = remote.get("backgroundImage")
        needs_local = not background or background == LOCAL_ASSET_SENTINEL or is_inline_data(background)
        if needs_local and local_background:
            merged["backgroundImage"] = local_background
        elif not background or background == LOCAL_ASSET_SENTINEL:
            merged["backgroundImage"] = DEFAULT_BACKGROUND
        if local_alarm and not remote.get("defaultAlarmSound"):
            merged["defaultAlarmSound"] = local_alarm
    else:
        if local_background:
            merged["backgroundImage"] = local_background
        if local_alarm:
            merged["defaultAlarmSound"] = local_alarm

    return _validate(merged)


def split_for_sync(preference: UIPreference, cache: LocalAssetCache) -> dict:
    """
    Move inline media into the local cache and return the payload for remote storage.
    Raises AssetTooLarge for inline media above MAX_INLINE_ASSET_BYTES.
    """
    for value in (preference.background_image, preference.default_alarm_sound):
        if is_inline_data(value) and len(value.encode("utf-8")) > MAX_INLINE_ASSET_BYTES:
            raise AssetTooLarge("Media file too large. Please use a file smaller than 10MB.")

    payload = preference.model_dump(by_alias=True)

    if is_inline_data(preference.background_image):
        cache.set(BACKGROUND_CACHE_KEY, preference.background_image)
        payload["backgroundImage"] = LOCAL_ASSET_SENTINEL
    else:
        cache.remove(BACKGROUND_CACHE_KEY)

    if is_inline_data(preference.default_alarm_sound):
        cache.set(ALARM_CACHE_KEY, preference.default_alarm_sound)
        payload.pop("defaultAlarmSound")
    else:
        cache.remove(ALARM_CACHE_KEY)

    return payload


class PreferenceSynchronizer:
    """
    Owns the authoritative in-memory preferences for one user.
    Async work reads `current` when it needs it instead of holding a copy.
    """

    def __init__(self, user_id: Optional[str], cache: LocalAssetCache):
        self.user_id = user_id
        self.cache = cache
        self.current = UIPreference()

    def load(self) -> UIPreference:
        remote = None
        if self.user_id is not None:
            try:
                remote = database.get_preferences(self.user_id)
            except database.PersistenceError as e:
                logger.error("Preference load fault: %s", e)
        self.current = merge_preferences(remote, self.cache)
        return self.current

    def save(self, preference: UIPreference) -> bool:
        """Apply locally, then back up remotely. A failed backup keeps the local state."""
        payload = split_for_sync(preference, self.cache)
        self.current = preference
        if self.user_id is None:
            return True
        try:
            database.upsert_preferences(self.user_id, payload)
        except database.PersistenceError as e:
            logger.warning("Cloud backup failed. Local persistence remains active: %s", e)
            return False
        return True

    def apply_change(self, change: UIChange) -> UIPreference:
        updated = self.current.model_copy(update=change.model_dump(exclude_none=True))
        self.save(updated)
        return self.current


async def refresh_translations(language: Optional[str], llm: Optional[LLMClient] = None) -> dict[str, str]:
    """UI labels for `language`; any failure falls back to the default dictionary."""
    if not language or language.strip().lower() == "english":
        return dict(DEFAULT_TRANSLATIONS)
    try:
        translated = await translate_ui(language, DEFAULT_TRANSLATIONS, llm)
    except (LLMError, ValidationError) as e:
        logger.error("Translation failed, falling back to English: %s", e)
        return dict(DEFAULT_TRANSLATIONS)
    return {**DEFAULT_TRANSLATIONS, **{k: v for k, v in translated.items() if k in DEFAULT_TRANSLATIONS}}
