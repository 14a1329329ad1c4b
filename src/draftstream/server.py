"""FastAPI web server for draftstream."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel

from .config import Settings
from .errors import ConversationError, StoreError
from .export import conversation_to_json, conversation_to_markdown, turn_to_dict
from .generator import ACTIONS, GENERATE, HttpTextGenerator
from .session import ProjectSession
from .stores import get_store

logger = logging.getLogger(__name__)

# Open sessions by project id (populated on first request)
_sessions: dict[str, ProjectSession] = {}
# One lock per project so concurrent first requests load it once
_load_locks: dict[str, asyncio.Lock] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    for session in list(_sessions.values()):
        await session.close()
    _sessions.clear()
    _load_locks.clear()


app = FastAPI(title="draftstream", version="0.1.0", lifespan=lifespan)


class SubmitBody(BaseModel):
    text: str
    action: str = GENERATE


class MetadataBody(BaseModel):
    title: str | None = None
    briefing: dict = {}


def build_session(project_id: str) -> ProjectSession:
    """Create a session wired to the configured store and generator."""
    settings = Settings.from_env()
    generator = HttpTextGenerator(settings.generator_url, api_key=settings.api_key)
    return ProjectSession(project_id, get_store(settings), generator, settings)


async def _get_session(project_id: str) -> ProjectSession:
    """Lazily open, load and cache the session for a project."""
    session = _sessions.get(project_id)
    if session is not None:
        return session

    lock = _load_locks.setdefault(project_id, asyncio.Lock())
    async with lock:
        session = _sessions.get(project_id)
        if session is not None:
            return session

        session = build_session(project_id)
        try:
            await session.load()
        except StoreError as e:
            logger.error("Failed to load project %s: %s", project_id, e)
            await session.close()
            raise HTTPException(status_code=502, detail="Failed to load project")
        _sessions[project_id] = session
    logger.info("Opened project %s with %d turns", project_id, len(session.turns))
    return session


def _session_state(session: ProjectSession) -> dict:
    return {
        "id": session.project_id,
        "title": session.metadata.title,
        "briefing": session.metadata.briefing,
        "turns": [turn_to_dict(t) for t in session.turns],
        "unsaved": session.unsaved,
        "metadata_dirty": session.autosave.dirty,
        "busy": session.busy,
    }


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/projects/{project_id}")
async def get_project(project_id: str):
    """Return the project's metadata and live conversation."""
    session = await _get_session(project_id)
    return _session_state(session)


@app.post("/api/projects/{project_id}/submit")
async def submit(project_id: str, body: SubmitBody):
    """Send an instruction and wait for the finalized reply."""
    if not body.text.strip():
        raise HTTPException(status_code=400, detail="Empty instruction")
    if body.action not in ACTIONS:
        raise HTTPException(status_code=400, detail=f"Unknown action: {body.action}")

    session = await _get_session(project_id)
    if session.busy:
        raise HTTPException(status_code=409, detail="A reply is still streaming")

    turn = await session.submit(body.text, body.action)
    return {
        "turn": turn_to_dict(turn) if turn else None,
        "unsaved": session.unsaved,
    }


@app.post("/api/projects/{project_id}/turns/{turn_id}/reasoning")
async def toggle_reasoning(project_id: str, turn_id: str):
    """Show or hide a turn's reasoning."""
    session = await _get_session(project_id)
    try:
        visible = session.toggle_reasoning_visible(turn_id)
    except ConversationError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"id": turn_id, "reasoning_visible": visible}


@app.patch("/api/projects/{project_id}/metadata")
async def update_metadata(project_id: str, body: MetadataBody):
    """Edit title or briefing fields; saving happens after a quiet period."""
    session = await _get_session(project_id)
    changed = session.update_metadata(title=body.title, **body.briefing)
    return {"changed": changed, "metadata_dirty": session.autosave.dirty}


@app.post("/api/projects/{project_id}/flush")
async def flush_metadata(project_id: str):
    """Save metadata immediately."""
    session = await _get_session(project_id)
    saved = await session.flush_metadata()
    return {"saved": saved, "error": session.autosave.last_error}


@app.post("/api/projects/{project_id}/retry")
async def retry_unsaved(project_id: str):
    """Try again to store turns that failed to save."""
    session = await _get_session(project_id)
    stored = await session.retry_unsaved()
    return {"stored": stored, "unsaved": session.unsaved}


@app.get("/api/export/{project_id}")
async def export_project(
    project_id: str,
    format: str = Query("md", description="Export format: md or json"),
):
    """Export a conversation as Markdown or JSON."""
    session = await _get_session(project_id)
    title = session.metadata.title or project_id
    safe_title = "".join(c if c.isalnum() or c in "-_ " else "" for c in title)[:50]

    if format == "json":
        content = conversation_to_json(project_id, session.metadata, session.turns)
        return Response(
            content=content,
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{safe_title}.json"'},
        )
    else:
        content = conversation_to_markdown(session.metadata, session.turns)
        return Response(
            content=content,
            media_type="text/markdown",
            headers={"Content-Disposition": f'attachment; filename="{safe_title}.md"'},
        )
