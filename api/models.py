"""Pydantic request/response schemas for the chat API."""

from pydantic import BaseModel, Field


# ── Requests ───────────────────────────────────────────────────────────────

class PromptRequest(BaseModel):
    prompt: str | None = None


class ChatRequest(BaseModel):
    message: str | None = None


# ── Responses ──────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    ok: bool
    time: str


class PromptResponse(BaseModel):
    prompt: str


class OkResponse(BaseModel):
    ok: bool = True


class ChatResponse(BaseModel):
    session_id: str = Field(serialization_alias="sessionId")
    reply: str


class ErrorResponse(BaseModel):
    error: str
    message: str
