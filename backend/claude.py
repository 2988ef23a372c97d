"""Thin wrapper around the Anthropic client.

Every SDK failure leaves this module as UpstreamError so callers only
deal with the pipeline's own error types.
"""
import logging
from typing import AsyncIterator, Optional

import anthropic

import config
from errors import UpstreamError

logger = logging.getLogger(__name__)

# Retries belong to the caller; a failed call surfaces immediately
client = anthropic.AsyncAnthropic(api_key=config.ANTHROPIC_API_KEY, max_retries=0)


async def stream_completion(
    system_prompt: str,
    user_message: str,
    max_tokens: Optional[int] = None
) -> AsyncIterator[str]:
    """Yield text deltas as Claude produces them.

    Raises UpstreamError if the stream fails or ends without any text.
    """
    received_text = False
    try:
        async with client.messages.stream(
            model=config.CLAUDE_MODEL,
            max_tokens=max_tokens or config.CLAUDE_MAX_TOKENS,
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}]
        ) as stream:
            async for text in stream.text_stream:
                if text:
                    received_text = True
                yield text
    except anthropic.APIError as e:
        raise UpstreamError(f"Claude stream failed: {e}") from e
    if not received_text:
        raise UpstreamError("No text response from Claude")


async def create_completion(
    system_prompt: str,
    user_message: str,
    max_tokens: Optional[int] = None
) -> tuple[str, dict]:
    """Single (non-streaming) completion. Returns (text, usage)."""
    try:
        response = await client.messages.create(
            model=config.CLAUDE_MODEL,
            max_tokens=max_tokens or config.CLAUDE_MAX_TOKENS,
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}]
        )
    except anthropic.APIError as e:
        raise UpstreamError(f"Claude request failed: {e}") from e

    text_block = next((block for block in response.content if block.type == "text"), None)
    if text_block is None:
        raise UpstreamError("No text response from Claude")

    usage = {
        "input_tokens": response.usage.input_tokens,
        "output_tokens": response.usage.output_tokens,
    }
    logger.debug("Claude completion: %d chars, usage %s", len(text_block.text), usage)
    return text_block.text, usage
