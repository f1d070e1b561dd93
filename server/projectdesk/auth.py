# Session resolution for bearer tokens issued by the external identity provider.
# Constant-time comparison prevents timing attacks on token lookup.


import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

import structlog
from starlette.requests import Request

from projectdesk.exceptions import AuthRequiredError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Session:
    """Authenticated caller. Every user owns exactly one personal team."""

    user_id: str

    @property
    def team_id(self) -> str:
        return f"team-{self.user_id}"


class SessionResolver(Protocol):
    async def resolve(self, token: str) -> Session | None: ...


class StaticTokenSessionResolver:
    """Resolve tokens from a fixed token → user id map (SESSION_TOKENS)."""

    def __init__(self, tokens: Mapping[str, str]) -> None:
        self._tokens = [(token, user_id) for token, user_id in tokens.items() if token]

    async def resolve(self, token: str) -> Session | None:
        match: str | None = None
        # Walk every entry so lookup time does not depend on where the token sits
        for known, user_id in self._tokens:
            if secrets.compare_digest(known.encode(), token.encode()):
                match = user_id
        return Session(user_id=match) if match else None


def bearer_token(request: Request) -> str | None:
    authorization = request.headers.get("authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def require_session(request: Request) -> Session:
    """Return the caller's session or raise AuthRequiredError.

    Called from inside guarded handlers so the 401 goes through the guard's
    error normalization like any other failure.
    """
    token = bearer_token(request)
    session = None
    if token:
        resolver: SessionResolver = request.app.state.session_resolver
        session = await resolver.resolve(token)

    if session is None:
        logger.warning(
            "auth_rejected",
            path=request.url.path,
            method=request.method,
            reason="missing_bearer_token" if token is None else "unknown_token",
        )
        raise AuthRequiredError("User not authenticated")
    return session
