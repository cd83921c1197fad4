"""
Identity middleware — parses a JWT from the Authorization header into ``g.current_user``.

Identity is only used to stamp authorship on writes and to key per-user
snapshot buffers, so a missing, expired or invalid token never blocks a
request: it simply yields the anonymous user.

    Authorization: Bearer <token>   →  g.current_user = CurrentUser(sub, email)
    (no / bad token)                →  g.current_user = ANONYMOUS
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt as pyjwt
from flask import current_app, g, request

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# Paths that skip token parsing entirely
SKIP_PREFIXES = (
    "/api/v1/health",
)


@dataclass(frozen=True)
class CurrentUser:
    user_id: str | None = None
    email: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    @property
    def buffer_key(self) -> str:
        """Key used for per-user snapshot buffers."""
        return self.user_id or "anonymous"


ANONYMOUS = CurrentUser()


def encode_token(user_id: str, email: str | None = None, expires_in: timedelta = timedelta(hours=8)) -> str:
    """Issue a signed token; used by tests and local tooling."""
    now = datetime.now(timezone.utc)
    payload = {"sub": str(user_id), "iat": now, "exp": now + expires_in}
    if email:
        payload["email"] = email
    return pyjwt.encode(payload, current_app.config["JWT_SECRET_KEY"], algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    """
    Decode and verify a token.

    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, etc.)
    """
    return pyjwt.decode(token, current_app.config["JWT_SECRET_KEY"], algorithms=[ALGORITHM])


def get_current_user() -> CurrentUser:
    return getattr(g, "current_user", None) or ANONYMOUS


def init_identity(app):
    """Register identity parsing as a before_request hook."""

    @app.before_request
    def _resolve_identity():
        g.current_user = ANONYMOUS

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]
        try:
            payload = decode_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired token presented for %s", path)
            return
        except pyjwt.InvalidTokenError:
            logger.info("Invalid token presented for %s", path)
            return

        sub = payload.get("sub")
        if sub is None:
            return
        g.current_user = CurrentUser(user_id=str(sub), email=payload.get("email"))
