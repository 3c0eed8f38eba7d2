"""
OpenAI chat completion client.

Sends the full ordered conversation and returns one reply. A failed call is
raised as CompletionError; there is no retry here, the caller decides.
"""

import logging
import os
from typing import Iterable

from openai import OpenAI, OpenAIError

from .config import CHAT_MODEL, CHAT_TEMPERATURE
from .token_tracker import TokenTracker

logger = logging.getLogger(__name__)

EMPTY_REPLY = "…"


class CompletionError(RuntimeError):
    pass


class CompletionClient:
    def __init__(
        self,
        api_key: str | None = None,
        model: str = CHAT_MODEL,
        temperature: float = CHAT_TEMPERATURE,
        tracker: TokenTracker | None = None,
        client: OpenAI | None = None,
    ):
        self.model = model
        self.temperature = temperature
        self.tracker = tracker or TokenTracker()
        self._client = client or OpenAI(api_key=api_key or os.environ.get("OPENAI_API_KEY"))

    def complete(self, messages: Iterable) -> str:
        """Return the assistant reply for an ordered list of messages."""
        payload = [_as_dict(m) for m in messages]
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=payload,
                temperature=self.temperature,
            )
        except OpenAIError as e:
            raise CompletionError(f"completion request failed: {e}") from e

        usage = response.usage
        if usage is not None:
            self.tracker.log(
                model=self.model,
                input_tokens=usage.prompt_tokens,
                output_tokens=usage.completion_tokens,
            )

        if not response.choices:
            logger.warning("Completion returned no choices (model=%s)", self.model)
            return EMPTY_REPLY
        content = response.choices[0].message.content or ""
        return content.strip() or EMPTY_REPLY


def _as_dict(message) -> dict:
    if isinstance(message, dict):
        return {"role": message["role"], "content": message["content"]}
    return {"role": message.role, "content": message.content}
