"""Breakdown pipeline errors.

`message` is always safe to show to the user; internal detail goes to the
log via the chained exception, never into `message`.
"""
from typing import Optional


class BreakdownError(Exception):
    reason = "upstream"
    message = "Something didn't work. Try again when you're ready."

    def __init__(self, detail: str = "", message: Optional[str] = None):
        super().__init__(detail or self.message)
        if message is not None:
            self.message = message


class UpstreamError(BreakdownError):
    """The LLM service was unreachable, rate limited, or returned no text."""
    reason = "upstream"


class ParseError(BreakdownError):
    """The model finished but its output was not the expected JSON."""
    reason = "parse"
    message = "Something interrupted the response. Let's try that again."


class PersistenceError(BreakdownError):
    """The decomposition could not be saved."""
    reason = "persistence"
    message = "Your plan was ready but didn't save. Try again when you're ready."


class BreakdownInProgress(BreakdownError):
    """Another breakdown for the same task is still running."""
    reason = "in_progress"
    message = "A plan for this task is already being written."
