"""Cookie-backed session identity for browser visitors."""

import uuid

from fastapi import Request, Response

from src.config import APP_ENV, COOKIE_NAME, SESSION_TTL_SECONDS


def new_session_id() -> str:
    return str(uuid.uuid4())


def is_valid_session_id(value: str | None) -> bool:
    if not value:
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


class CookieSessionResolver:
    def __init__(
        self,
        cookie_name: str = COOKIE_NAME,
        max_age: int = SESSION_TTL_SECONDS,
        secure: bool | None = None,
    ):
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.secure = APP_ENV.lower() == "production" if secure is None else secure

    def resolve(self, request: Request, response: Response) -> tuple[str, bool]:
        """Return (session_id, is_new); sets the cookie only for a new id."""
        sid = request.cookies.get(self.cookie_name)
        if is_valid_session_id(sid):
            return sid, False

        sid = new_session_id()
        response.set_cookie(
            key=self.cookie_name,
            value=sid,
            max_age=self.max_age,
            path="/",
            httponly=True,
            samesite="lax",
            secure=self.secure,
        )
        return sid, True
