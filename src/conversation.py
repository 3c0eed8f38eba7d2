"""
Conversation state: per-session history kept in the key-value store, with the
global system prompt merged in at the head of every conversation.

Stored record shape (JSON, one key per session, sliding 30-day TTL):

    {"createdAt": <epoch ms>, "history": [{"role": ..., "content": ...}, ...]}
"""

import json
import logging
import math
import time
from dataclasses import dataclass, field

from .config import SESSION_KEY_PREFIX, SESSION_TTL_SECONDS
from .prompt_store import PromptStore, validate_prompt

logger = logging.getLogger(__name__)

ROLES = ("system", "user", "assistant")


class InvalidMessage(ValueError):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class Message:
    role: str
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class SessionRecord:
    created_at: int = field(default_factory=_now_ms)
    history: list[Message] = field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps({
            "createdAt": self.created_at,
            "history": [m.to_dict() for m in self.history],
        })


# ── History helpers ─────────────────────────────────────────────────────────

def merge_system_prompt(history: list[Message], prompt: str) -> list[Message]:
    """Return history with exactly one system message, first, holding `prompt`.

    Extra system messages are dropped; the relative order of everything else
    is kept. Applying it twice with the same prompt equals applying it once.
    """
    rest = [m for m in history if m.role != "system"]
    return [Message(role="system", content=prompt)] + rest


def append_turn(history: list[Message], role: str, content: str) -> list[Message]:
    if role not in ROLES:
        raise ValueError(f"Unknown message role: {role!r}")
    return list(history) + [Message(role=role, content=content)]


def validate_message(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidMessage("message_required", "message (string) is required")
    return value.strip()


def _parse_history(raw) -> list[Message]:
    messages = []
    for item in raw:
        if (
            isinstance(item, dict)
            and item.get("role") in ROLES
            and isinstance(item.get("content"), str)
        ):
            messages.append(Message(role=item["role"], content=item["content"]))
    return messages


def parse_record(data: str | None, session_id: str = "?") -> SessionRecord:
    """Decode a stored record, repairing anything malformed instead of failing."""
    if not data:
        return SessionRecord()

    try:
        obj = json.loads(data)
    except (json.JSONDecodeError, TypeError, RecursionError):
        logger.warning("session=%s stored record is not valid JSON; starting fresh", session_id[:8])
        return SessionRecord()
    if not isinstance(obj, dict):
        logger.warning("session=%s stored record is not an object; starting fresh", session_id[:8])
        return SessionRecord()

    created_at = obj.get("createdAt")
    if (
        not isinstance(created_at, (int, float))
        or isinstance(created_at, bool)
        or not math.isfinite(created_at)
    ):
        created_at = _now_ms()

    raw_history = obj.get("history")
    if not isinstance(raw_history, list):
        logger.warning("session=%s history is not a list; resetting to empty", session_id[:8])
        raw_history = []

    history = _parse_history(raw_history)
    if len(history) != len(raw_history):
        logger.warning(
            "session=%s dropped %d malformed history entries",
            session_id[:8], len(raw_history) - len(history),
        )
    return SessionRecord(created_at=int(created_at), history=history)


# ── Manager ─────────────────────────────────────────────────────────────────

class ConversationManager:
    def __init__(
        self,
        store,
        prompts: PromptStore,
        completion,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        key_prefix: str = SESSION_KEY_PREFIX,
    ):
        self.store = store
        self.prompts = prompts
        self.completion = completion
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

    def session_key(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    def load_or_create(self, session_id: str) -> SessionRecord:
        return parse_record(self.store.get(self.session_key(session_id)), session_id)

    def persist(self, session_id: str, record: SessionRecord, ttl_seconds: int | None = None) -> None:
        self.store.set(
            self.session_key(session_id),
            record.to_json(),
            ttl_seconds=ttl_seconds or self.ttl_seconds,
        )

    def sync_prompt(self, session_id: str, prompt: str) -> SessionRecord:
        record = self.load_or_create(session_id)
        record.history = merge_system_prompt(record.history, prompt)
        self.persist(session_id, record)
        return record

    def update_prompt(self, session_id: str, prompt) -> str:
        """Write a new global prompt and apply it to the caller's session now.

        Other sessions pick it up on their next chat turn.
        """
        prompt = validate_prompt(prompt)
        self.prompts.set(prompt)
        self.sync_prompt(session_id, prompt)
        return prompt

    def chat(self, session_id: str, message) -> str:
        """Run one chat turn and return the assistant reply.

        The user message is persisted before the completion call, so it
        survives a failed call; the failure itself propagates.
        """
        message = validate_message(message)

        record = self.load_or_create(session_id)
        record.history = merge_system_prompt(record.history, self.prompts.get())
        record.history = append_turn(record.history, "user", message)
        self.persist(session_id, record)

        t0 = time.perf_counter()
        reply = self.completion.complete(record.history)
        elapsed_ms = (time.perf_counter() - t0) * 1000

        record.history = append_turn(record.history, "assistant", reply)
        record.created_at = _now_ms()
        self.persist(session_id, record)

        logger.info(
            "session=%s turns=%d reply_chars=%d completion=%.0fms",
            session_id[:8], len(record.history) - 1, len(reply), elapsed_ms,
        )
        return reply
