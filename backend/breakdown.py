"""
Streaming task breakdown: relay Claude's deltas, then parse and persist.

A run moves through STREAMING -> TEXT_COMPLETE -> PERSISTED or
PERSIST_FAILED (FAILED for upstream and parse errors, CANCELLED when the
client goes away). The "done" event is only sent once the new steps are
saved, and every run ends with exactly one "done" or "error" event.
"""
import asyncio
import json
import logging
import sqlite3
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Optional

from pydantic import ValidationError

import claude
from database import replace_breakdown_db
from errors import BreakdownError, BreakdownInProgress, ParseError, PersistenceError, UpstreamError
from models import Decomposition, StreamEvent, Task
from prompts import CONTEXT_RECAP_PROMPT, build_recap_message, build_user_message

logger = logging.getLogger(__name__)


class BreakdownState(str, Enum):
    STREAMING = "streaming"
    TEXT_COMPLETE = "text_complete"
    PERSISTED = "persisted"
    PERSIST_FAILED = "persist_failed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Task ids with a breakdown currently running in this process
_in_flight: set[str] = set()


def claim_task(task_id: str) -> None:
    """Reserve a task for one breakdown. Raises BreakdownInProgress if already taken."""
    if task_id in _in_flight:
        raise BreakdownInProgress(f"Breakdown already running for task {task_id}")
    _in_flight.add(task_id)


def release_task(task_id: str) -> None:
    _in_flight.discard(task_id)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code block (```json ... ```) if present."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]  # Remove first line (```json)
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]  # Remove last line (```)
        text = "\n".join(lines)
    return text


def parse_breakdown(text: str) -> Decomposition:
    """Parse and validate the model's full output. Raises ParseError."""
    try:
        data = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise ParseError(f"Breakdown is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(f"Breakdown JSON is a {type(data).__name__}, expected an object")
    try:
        return Decomposition.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Breakdown JSON has the wrong shape: {e.error_count()} errors") from e


def finalize_breakdown(task_id: str, text: str) -> Task:
    """
    Persist a finished breakdown: replace the task's steps and update its
    title and guidance as one transaction. Returns the task with its new steps.

    Ownership must already have been checked by the caller.
    """
    decomposition = parse_breakdown(text)
    try:
        task = replace_breakdown_db(
            task_id,
            title=decomposition.taskTitle,
            guidance=decomposition.guidance,
            drafts=decomposition.subtasks,
        )
    except sqlite3.Error as e:
        raise PersistenceError(f"Could not save breakdown for task {task_id}: {e}") from e
    if task is None:
        raise PersistenceError(f"Task {task_id} disappeared before its breakdown was saved")
    return task


def format_event(event: StreamEvent) -> bytes:
    """Encode an event as one server-sent-events data line."""
    return f"data: {event.model_dump_json(exclude_none=True)}\n\n".encode("utf-8")


class BreakdownRun:
    """One streaming breakdown for one task."""

    def __init__(
        self,
        task_id: str,
        system_prompt: str,
        user_message: str,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None
    ):
        self.task_id = task_id
        self.system_prompt = system_prompt
        self.user_message = user_message
        self.is_disconnected = is_disconnected
        self.state = BreakdownState.STREAMING
        self.full_text = ""
        self.task: Optional[Task] = None

    def _transition(self, state: BreakdownState) -> None:
        logger.debug("Breakdown %s: %s -> %s", self.task_id, self.state.value, state.value)
        self.state = state

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield chunk events, then exactly one done or error event."""
        try:
            async for delta in claude.stream_completion(self.system_prompt, self.user_message):
                if self.is_disconnected is not None and await self.is_disconnected():
                    logger.info("Client left during breakdown of task %s; nothing saved", self.task_id)
                    self._transition(BreakdownState.CANCELLED)
                    return
                if not delta:
                    continue
                self.full_text += delta
                yield StreamEvent(type="chunk", text=delta)

            if not self.full_text:
                raise UpstreamError("No text response from Claude")
            self._transition(BreakdownState.TEXT_COMPLETE)
            parse_breakdown(self.full_text)

            try:
                self.task = await asyncio.to_thread(finalize_breakdown, self.task_id, self.full_text)
            except PersistenceError:
                self._transition(BreakdownState.PERSIST_FAILED)
                raise
            self._transition(BreakdownState.PERSISTED)
            yield StreamEvent(type="done", taskId=self.task_id)

        except ParseError as e:
            logger.warning(
                "Unparseable breakdown for task %s (%d chars): %s",
                self.task_id, len(self.full_text), e
            )
            self._transition(BreakdownState.FAILED)
            yield StreamEvent(type="error", message=e.message, reason=e.reason)
        except BreakdownError as e:
            logger.error("Breakdown for task %s failed: %s", self.task_id, e, exc_info=True)
            if self.state != BreakdownState.PERSIST_FAILED:
                self._transition(BreakdownState.FAILED)
            yield StreamEvent(type="error", message=e.message, reason=e.reason)
        except Exception:
            # Anything the SDK did not wrap still ends the stream with one error event
            logger.exception("Unexpected error during breakdown of task %s", self.task_id)
            self._transition(BreakdownState.FAILED)
            error = UpstreamError()
            yield StreamEvent(type="error", message=error.message, reason=error.reason)

    async def stream(self) -> AsyncIterator[bytes]:
        """events() encoded for a text/event-stream response. Releases the task claim when finished."""
        try:
            async for event in self.events():
                yield format_event(event)
        finally:
            release_task(self.task_id)


async def generate_task_breakdown(task: Task, system_prompt: str) -> Decomposition:
    """Non-streaming breakdown. Raises UpstreamError or ParseError; saves nothing."""
    text, _ = await claude.create_completion(system_prompt, build_user_message(task))
    return parse_breakdown(text)


async def generate_context_recap(task: Task, hours_since: float) -> str:
    """Short, warm recap of where the user left off on a task."""
    text, _ = await claude.create_completion(
        CONTEXT_RECAP_PROMPT,
        build_recap_message(task, hours_since),
        max_tokens=300
    )
    return text.strip()
