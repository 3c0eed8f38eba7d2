"""API routes wrapping the conversation manager."""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

from src.config import RATE_LIMIT_PER_MINUTE
from src.conversation import InvalidMessage, validate_message
from src.prompt_store import InvalidPrompt, validate_prompt

from .models import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    HealthResponse,
    OkResponse,
    PromptRequest,
    PromptResponse,
)

router = APIRouter(prefix="/api")

# Simple per-IP rate limiter for the write endpoints
_RATE_LIMIT = RATE_LIMIT_PER_MINUTE
_RATE_WINDOW = 60.0
_request_log: dict[str, list[float]] = {}


def _prune_request_log(now: float) -> None:
    """Drop timestamps outside the window, and clients left with none."""
    for ip, timestamps in list(_request_log.items()):
        recent = [t for t in timestamps if now - t < _RATE_WINDOW]
        if recent:
            _request_log[ip] = recent
        else:
            del _request_log[ip]


def _rate_limited(client_ip: str) -> bool:
    if _RATE_LIMIT <= 0:
        return False
    now = time.time()
    _prune_request_log(now)
    timestamps = _request_log.setdefault(client_ip, [])
    if len(timestamps) >= _RATE_LIMIT:
        return True
    timestamps.append(now)
    return False


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def error_response(status_code: int, code: str, message: str, response: Response | None = None) -> JSONResponse:
    """Build an error body, carrying over any Set-Cookie already queued on `response`."""
    body = ErrorResponse(error=code, message=message).model_dump()
    resp = JSONResponse(status_code=status_code, content=body)
    if response is not None:
        for key, value in response.raw_headers:
            if key == b"set-cookie":
                resp.raw_headers.append((key, value))
    return resp


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(ok=True, time=datetime.now(timezone.utc).isoformat())


@router.get("/prompt", response_model=PromptResponse)
def read_prompt(request: Request):
    try:
        return PromptResponse(prompt=request.app.state.prompts.get())
    except Exception:
        logger.exception("Reading global prompt failed")
        return error_response(500, "prompt_read_failed", "Could not read the prompt.")


@router.post("/prompt", response_model=OkResponse)
def write_prompt(req: PromptRequest, request: Request, response: Response):
    if _rate_limited(_client_ip(request)):
        return error_response(429, "rate_limited", "Rate limit exceeded. Try again shortly.")

    try:
        prompt = validate_prompt(req.prompt)
    except InvalidPrompt as e:
        return error_response(400, e.code, e.message)

    manager = request.app.state.manager
    resolver = request.app.state.resolver
    try:
        session_id, _ = resolver.resolve(request, response)
        manager.update_prompt(session_id, prompt)
    except Exception:
        logger.exception("Updating global prompt failed")
        return error_response(500, "prompt_update_failed", "Could not update the prompt.", response)

    logger.info("prompt updated by session=%s", session_id[:8])
    return OkResponse()


@router.post("/chat", response_model=ChatResponse)
def chat(req: ChatRequest, request: Request, response: Response):
    if _rate_limited(_client_ip(request)):
        return error_response(429, "rate_limited", "Rate limit exceeded. Try again shortly.")

    try:
        message = validate_message(req.message)
    except InvalidMessage as e:
        return error_response(400, e.code, e.message)

    manager = request.app.state.manager
    resolver = request.app.state.resolver
    try:
        session_id, is_new = resolver.resolve(request, response)
        if is_new:
            logger.info("new session=%s", session_id[:8])
        reply = manager.chat(session_id, message)
    except Exception:
        logger.exception("Chat turn failed")
        return error_response(500, "chat_failed", "The assistant could not reply. Please try again.", response)

    return ChatResponse(session_id=session_id, reply=reply)
