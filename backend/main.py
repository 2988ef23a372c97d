from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from datetime import datetime
from typing import Optional
import asyncio
import json
import logging
import time

import claude
import config
from breakdown import (
    BreakdownRun,
    claim_task,
    generate_context_recap,
    release_task,
    strip_code_fence,
)
from database import (
    init_db,
    get_task_db,
    update_task_db,
    get_preferences_db,
    upsert_preferences_db,
)
from errors import BreakdownError, BreakdownInProgress
from models import (
    BehavioralProfile,
    BreakdownRequest,
    PreferenceSet,
    PreferenceUpdate,
    RecapRequest,
    Task,
    ToneTestRequest,
)
from patterns import compute_user_patterns
from prompts import (
    PROMPT_VERSION,
    TASK_BREAKDOWN_PROMPT,
    TASK_BREAKDOWN_PROMPT_V1,
    build_user_message,
    compose_system_prompt,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

TONE_VALUES = ("SUPPORTIVE", "STRUCTURED", "CASUAL")
DETAIL_VALUES = ("DETAILED", "BRIEF")

@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    init_db()
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def require_user(x_user_id: Optional[str]) -> str:
    """The authenticating proxy forwards the user id; reject requests without one."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id


def get_owned_task(task_id: Optional[str], user_id: str) -> Task:
    if not task_id:
        raise HTTPException(status_code=400, detail="Task ID is required")
    task = get_task_db(task_id, user_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@app.post("/breakdown")
async def breakdown(
    breakdown_request: BreakdownRequest,
    request: Request,
    x_user_id: Optional[str] = Header(default=None)
) -> StreamingResponse:
    """Stream a personalised breakdown of a task, then save it.

    Events: data: {"type": "chunk", "text": ...} repeated, then a single
    {"type": "done", "taskId": ...} or {"type": "error", "message": ...}.
    """
    user_id = require_user(x_user_id)
    task = get_owned_task(breakdown_request.taskId, user_id)

    if not config.api_key_configured():
        raise HTTPException(status_code=503, detail="API key not configured")

    try:
        claim_task(task.id)
    except BreakdownInProgress as e:
        raise HTTPException(status_code=409, detail=e.message)

    try:
        # Profile and preferences are independent reads
        profile, preferences = await asyncio.gather(
            asyncio.to_thread(compute_user_patterns, user_id),
            asyncio.to_thread(get_preferences_db, user_id),
        )
    except Exception:
        release_task(task.id)
        raise

    system_prompt = compose_system_prompt(
        profile,
        energy_mode=breakdown_request.energyMode,
        tone_preference=preferences.tone_preference if preferences else None,
        detail_level=preferences.task_detail_level if preferences else None,
    )
    run = BreakdownRun(task.id, system_prompt, build_user_message(task), request.is_disconnected)

    return StreamingResponse(
        run.stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
        background=BackgroundTask(release_task, task.id),
    )


@app.get("/tasks/{task_id}")
def get_task(task_id: str, x_user_id: Optional[str] = Header(default=None)) -> Task:
    """
    Get a task with its ordered steps.
    Stamps last_interacted_at but returns the previous value, so the client
    can tell how long the user has been away.
    """
    user_id = require_user(x_user_id)
    task = get_owned_task(task_id, user_id)
    update_task_db(task_id, last_interacted_at=datetime.now().isoformat())
    return task


@app.get("/patterns")
def get_patterns(x_user_id: Optional[str] = Header(default=None)) -> BehavioralProfile:
    """What the app has learned about the current user."""
    return compute_user_patterns(require_user(x_user_id))


@app.get("/preferences")
def get_preferences(x_user_id: Optional[str] = Header(default=None)) -> PreferenceSet:
    user_id = require_user(x_user_id)
    return get_preferences_db(user_id) or PreferenceSet(user_id=user_id)


@app.put("/preferences")
def update_preferences(
    update: PreferenceUpdate,
    x_user_id: Optional[str] = Header(default=None)
) -> PreferenceSet:
    """Partial update. Values outside the allowed sets are ignored."""
    user_id = require_user(x_user_id)
    changes = {}
    if update.tone_preference and update.tone_preference.upper() in TONE_VALUES:
        changes["tone_preference"] = update.tone_preference.upper()
    if update.task_detail_level and update.task_detail_level.upper() in DETAIL_VALUES:
        changes["task_detail_level"] = update.task_detail_level.upper()
    return upsert_preferences_db(user_id, **changes)


@app.post("/recap")
async def recap(recap_request: RecapRequest, x_user_id: Optional[str] = Header(default=None)) -> dict:
    """Generate a context recap for a user returning to a task."""
    user_id = require_user(x_user_id)
    if not recap_request.taskId or not recap_request.lastInteractedAt:
        raise HTTPException(status_code=400, detail="taskId and lastInteractedAt are required")
    task = get_owned_task(recap_request.taskId, user_id)

    try:
        last_seen = datetime.fromisoformat(recap_request.lastInteractedAt)
    except ValueError:
        raise HTTPException(status_code=400, detail="lastInteractedAt must be an ISO datetime")
    now = datetime.now(last_seen.tzinfo) if last_seen.tzinfo else datetime.now()
    hours_since = max((now - last_seen).total_seconds() / 3600, 0)

    try:
        text = await generate_context_recap(task, hours_since)
    except BreakdownError as e:
        logger.error("Context recap failed for task %s: %s", task.id, e)
        raise HTTPException(status_code=502, detail=e.message)
    return {"recap": text}


@app.post("/admin/tone-test")
async def tone_test(tone_request: ToneTestRequest) -> dict:
    """Development only: run the base prompt once without touching any task."""
    if config.is_production():
        raise HTTPException(status_code=403, detail="Not available in production")
    if not tone_request.taskDescription.strip():
        raise HTTPException(status_code=400, detail="taskDescription is required")

    use_v1 = tone_request.promptVersion == "v1"
    system_prompt = TASK_BREAKDOWN_PROMPT_V1 if use_v1 else TASK_BREAKDOWN_PROMPT
    user_message = (
        f"Task Title: {tone_request.taskDescription.strip()}\n\n"
        "Please break this task down into manageable steps and provide supportive guidance."
    )

    start = time.monotonic()
    try:
        raw_text, usage = await claude.create_completion(system_prompt, user_message)
    except BreakdownError as e:
        raise HTTPException(status_code=502, detail=e.message)
    elapsed_ms = int((time.monotonic() - start) * 1000)

    parsed = None
    parse_error = None
    try:
        parsed = json.loads(strip_code_fence(raw_text))
    except json.JSONDecodeError as e:
        parse_error = str(e)

    return {
        "promptVersion": "1.0" if use_v1 else PROMPT_VERSION,
        "elapsedMs": elapsed_ms,
        "raw": raw_text,
        "parsed": parsed,
        "parseError": parse_error,
        "inputTokens": usage["input_tokens"],
        "outputTokens": usage["output_tokens"],
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
