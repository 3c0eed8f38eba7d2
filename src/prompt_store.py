"""Global system prompt: one shared, administratively editable string."""

import logging

from .config import DEFAULT_SYSTEM_PROMPT, GLOBAL_PROMPT_KEY, MAX_PROMPT_LENGTH

logger = logging.getLogger(__name__)


class InvalidPrompt(ValueError):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def validate_prompt(value) -> str:
    """Return the trimmed prompt, or raise InvalidPrompt."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidPrompt("prompt_required", "prompt (string) is required")
    if len(value) > MAX_PROMPT_LENGTH:
        raise InvalidPrompt("prompt_too_long", f"prompt must be at most {MAX_PROMPT_LENGTH} characters")
    return value.strip()


class PromptStore:
    def __init__(self, store, key: str = GLOBAL_PROMPT_KEY, default: str = DEFAULT_SYSTEM_PROMPT):
        self._store = store
        self.key = key
        self.default = default

    def get(self) -> str:
        value = self._store.get(self.key)
        if value and value.strip():
            return value
        return self.default

    def set(self, value: str) -> str:
        prompt = validate_prompt(value)
        # No TTL: the prompt lives until overwritten
        self._store.set(self.key, prompt)
        logger.info("Global system prompt updated (%d chars)", len(prompt))
        return prompt

    def ensure_seeded(self) -> None:
        if not self._store.exists(self.key):
            self._store.set(self.key, self.default)
            logger.info("Seeded global system prompt from default")
            return

        current = self._store.get(self.key)
        if current and current.strip() != self.default.strip():
            logger.info("Global system prompt present in store (overrides default)")
        else:
            logger.info("Global system prompt matches default")
