from contextlib import asynccontextmanager
import asyncio
import hashlib
from datetime import date
from typing import Optional
import logging

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

import config
import database
from assistant import LLMClient, LLMError, analyze_journal_entry, parse_task_input
from auth import SIGNED_OUT, AuthError, IdentityService, Session
from models import (
    ChatRequest,
    Credentials,
    JournalInput,
    ParseRequest,
    TaskInput,
    TaskUpdate,
    ToggleRequest,
    UIPreference,
)
from mutations import MutationResult
from preferences import AssetTooLarge
from productivity import (
    agenda,
    group_by_period,
    resolve_logical_date,
    summarize,
    timeline_tasks,
    within_planning_horizon,
)
from workspace import Workspace

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

OFFLINE_PREFIX = "offline:"

identity = IdentityService()
llm = LLMClient()
workspaces: dict[str, Workspace] = {}
loading_workspaces: dict[str, asyncio.Future] = {}


def _on_auth_change(event: str, session: Session) -> None:
    if event == SIGNED_OUT:
        workspaces.pop(session.user_id, None)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    database.init_db()
    unsubscribe = identity.on_auth_state_change(_on_auth_change)
    yield
    # Shutdown
    unsubscribe()

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(database.PersistenceError)
async def persistence_error_handler(_request: Request, exc: database.PersistenceError):
    logger.error("Persistence fault: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    return authorization[7:].strip() or None


async def _load_workspace(key: str, user_id: Optional[str], cache_name: Optional[str]) -> Workspace:
    try:
        workspace = Workspace(user_id, cache_name)
        await workspace.load(llm)
        workspaces[key] = workspace
        return workspace
    finally:
        loading_workspaces.pop(key, None)


async def _workspace_for(key: str, user_id: Optional[str], cache_name: Optional[str] = None) -> Workspace:
    """One workspace per key; concurrent first requests share a single load."""
    workspace = workspaces.get(key)
    if workspace is not None:
        return workspace
    pending = loading_workspaces.get(key)
    if pending is None:
        pending = asyncio.ensure_future(_load_workspace(key, user_id, cache_name))
        loading_workspaces[key] = pending
    # A cancelled request must not cancel the load other requests are waiting on
    return await asyncio.shield(pending)


def _offline_key(token: str) -> tuple[str, str]:
    """Workspace key and cache directory name for a token seen during an identity outage."""
    digest = hashlib.sha256(token.encode("utf-8")).hexdigest()[:32]
    return OFFLINE_PREFIX + digest, f"offline-{digest}"


async def current_workspace(authorization: Optional[str] = Header(default=None)) -> Workspace:
    token = _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Not signed in")
    offline_key, offline_cache = _offline_key(token)
    try:
        session = identity.get_session(token)
    except database.PersistenceError as e:
        logger.warning("Identity store unavailable, offline mode initiated: %s", e)
        return await _workspace_for(offline_key, None, offline_cache)
    # Store is back; unsynced offline state for this token is discarded
    workspaces.pop(offline_key, None)
    if session is None:
        raise HTTPException(status_code=401, detail="Session expired")
    return await _workspace_for(session.user_id, session.user_id)


def _check_date(value: str) -> str:
    try:
        date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail="Date must be YYYY-MM-DD")
    return value


def _result_or_error(result: Optional[MutationResult], not_found: str = "Task not found") -> dict:
    if result is None:
        raise HTTPException(status_code=404, detail=not_found)
    if not result.ok:
        raise HTTPException(status_code=503, detail=f"Sync failed, change reverted: {result.error}")
    return result.tasks[0].model_dump()


# Identity
def _session_payload(session: Session) -> dict:
    return {"token": session.token, "user_id": session.user_id, "email": session.email}


@app.post("/auth/signup")
def sign_up(credentials: Credentials) -> dict:
    try:
        return _session_payload(identity.sign_up(credentials.email, credentials.password))
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/auth/signin")
def sign_in(credentials: Credentials) -> dict:
    try:
        return _session_payload(identity.sign_in(credentials.email, credentials.password))
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e))


@app.post("/auth/signout")
def sign_out(authorization: Optional[str] = Header(default=None)) -> dict:
    token = _bearer_token(authorization)
    if not token or not identity.sign_out(token):
        raise HTTPException(status_code=401, detail="Not signed in")
    return {"status": "signed_out"}


@app.get("/auth/session")
def get_session(authorization: Optional[str] = Header(default=None)) -> dict:
    token = _bearer_token(authorization)
    session = identity.get_session(token) if token else None
    if session is None:
        raise HTTPException(status_code=401, detail="Not signed in")
    return _session_payload(session)


# Tasks
@app.get("/tasks")
def get_tasks(workspace: Workspace = Depends(current_workspace)) -> list[dict]:
    return [t.model_dump() for t in workspace.tasks.tasks]


@app.get("/tasks/today")
def get_today(workspace: Workspace = Depends(current_workspace)) -> dict:
    day = resolve_logical_date()
    return {"date": day, "tasks": [t.model_dump() for t in workspace.tasks.view(day)]}


@app.get("/dashboard")
def get_dashboard(workspace: Workspace = Depends(current_workspace)) -> dict:
    day = resolve_logical_date()
    view = workspace.tasks.view(day)
    groups = group_by_period(view)
    return {
        "date": day,
        "periods": {name: [t.model_dump() for t in tasks] for name, tasks in groups.items()},
        "stats": summarize(view),
    }


@app.get("/agenda")
def get_agenda(workspace: Workspace = Depends(current_workspace)) -> list[dict]:
    return [t.model_dump() for t in agenda(workspace.tasks.view())]


@app.get("/timeline")
def get_timeline(day: str = Query(alias="date"), workspace: Workspace = Depends(current_workspace)) -> dict:
    query = _check_date(day)
    today = resolve_logical_date()
    if not within_planning_horizon(query, today):
        raise HTTPException(status_code=400, detail="Planning is limited to two weeks ahead")
    tasks = timeline_tasks(workspace.tasks.tasks, query, today)
    return {
        "date": query,
        "is_future": query > today,
        "tasks": [t.model_dump() for t in tasks],
        "completed_count": sum(1 for t in tasks if t.completed),
        "pending_count": sum(1 for t in tasks if not t.completed),
    }


@app.post("/tasks")
def create_task(task_data: TaskInput, workspace: Workspace = Depends(current_workspace)) -> dict:
    result = workspace.tasks.create(task_data.model_dump())
    if not result.ok:
        raise HTTPException(status_code=503, detail=f"Sync failed, change reverted: {result.error}")
    return result.tasks[0].model_dump()


@app.patch("/tasks/{task_id}")
def update_task(task_id: str, task_data: TaskUpdate, workspace: Workspace = Depends(current_workspace)) -> dict:
    try:
        result = workspace.tasks.update(task_id, task_data.model_dump(exclude_unset=True))
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))
    return _result_or_error(result)


@app.delete("/tasks/{task_id}")
def delete_task(task_id: str, workspace: Workspace = Depends(current_workspace)) -> dict:
    _result_or_error(workspace.tasks.delete(task_id))
    return {"status": "deleted"}


@app.post("/tasks/{task_id}/toggle")
def toggle_task(task_id: str, toggle: Optional[ToggleRequest] = None, workspace: Workspace = Depends(current_workspace)) -> dict:
    day = _check_date(toggle.date) if toggle and toggle.date else None
    return _result_or_error(workspace.tasks.toggle(task_id, day))


@app.post("/tasks/parse")
async def parse_task(request: ParseRequest, workspace: Workspace = Depends(current_workspace)) -> dict:
    """Extract a task draft from free text. Nothing is saved."""
    try:
        parsed = await parse_task_input(request.text, workspace.language, llm)
    except (LLMError, ValueError) as e:
        logger.error("Task parsing error: %s", e)
        raise HTTPException(status_code=502, detail="Could not extract a task from that text")
    return parsed.model_dump()


# Assistant
@app.post("/schedule/optimize")
async def optimize_schedule(workspace: Workspace = Depends(current_workspace)) -> dict:
    message, outcome = await workspace.optimize_schedule(llm)
    return {
        "response": message.content,
        "updated": [t.model_dump() for t in outcome.tasks] if outcome and outcome.ok else [],
        "tasks": [t.model_dump() for t in workspace.tasks.view()],
    }


@app.post("/reflection")
async def reflection(workspace: Workspace = Depends(current_workspace)) -> dict:
    try:
        text = await workspace.reflect(llm)
    except LLMError as e:
        logger.error("Reflection error: %s", e)
        raise HTTPException(status_code=502, detail="Reflection unavailable")
    return {"reflection": text}


@app.get("/conversation")
def get_conversation_endpoint(workspace: Workspace = Depends(current_workspace)) -> list[dict]:
    """Chat transcript for this session."""
    return [m.model_dump() for m in workspace.messages]


@app.post("/chat")
async def chat(chat_request: ChatRequest, workspace: Workspace = Depends(current_workspace)) -> dict:
    """Interpret a command and apply its effect to tasks or preferences."""
    text = chat_request.message.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Message is empty")
    reply = await workspace.handle_command(text, llm)
    return {
        "response": reply.content,
        "tasks": [t.model_dump() for t in workspace.tasks.view()],
        "preferences": workspace.preferences.current.model_dump(by_alias=True),
    }


# Journal
@app.get("/journal")
def get_journal(q: Optional[str] = None, workspace: Workspace = Depends(current_workspace)) -> list[dict]:
    return [e.model_dump() for e in workspace.journal.entries(q)]


@app.put("/journal")
def save_journal_entry(entry: JournalInput, workspace: Workspace = Depends(current_workspace)) -> dict:
    if entry.date:
        _check_date(entry.date)
    saved, synced = workspace.journal.save(entry.model_dump())
    if not synced:
        raise HTTPException(status_code=503, detail="Sync failed, change reverted")
    return saved.model_dump()


@app.delete("/journal/{entry_id}")
def delete_journal_entry(entry_id: str, workspace: Workspace = Depends(current_workspace)) -> dict:
    deleted = workspace.journal.delete(entry_id)
    if deleted is None:
        raise HTTPException(status_code=404, detail="Entry not found")
    if not deleted:
        raise HTTPException(status_code=503, detail="Sync failed, change reverted")
    return {"status": "deleted"}


@app.post("/journal/{entry_id}/analyze")
async def analyze_entry(entry_id: str, workspace: Workspace = Depends(current_workspace)) -> dict:
    entry = workspace.journal.find(entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Entry not found")
    if not entry.content.strip():
        raise HTTPException(status_code=400, detail="Entry is empty")
    try:
        analysis = await analyze_journal_entry(entry.content, workspace.language, llm)
    except (LLMError, ValidationError) as e:
        logger.error("Journal analysis error: %s", e)
        raise HTTPException(status_code=502, detail="Journal analysis unavailable")
    saved, synced = workspace.journal.apply_analysis(entry_id, analysis)
    if not synced:
        raise HTTPException(status_code=503, detail="Sync failed, change reverted")
    return saved.model_dump()


# Preferences
def _preferences_payload(workspace: Workspace) -> dict:
    return {
        "preferences": workspace.preferences.current.model_dump(by_alias=True),
        "translations": workspace.translations,
    }


@app.get("/preferences")
def get_preferences(workspace: Workspace = Depends(current_workspace)) -> dict:
    return _preferences_payload(workspace)


@app.put("/preferences")
async def save_preferences(preference: UIPreference, workspace: Workspace = Depends(current_workspace)) -> dict:
    try:
        await workspace.set_preferences(preference, llm)
    except AssetTooLarge as e:
        raise HTTPException(status_code=413, detail=str(e))
    return _preferences_payload(workspace)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
