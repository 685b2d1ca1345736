"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

AuthGate authenticates one request for one actor variant by walking a fixed
sequence of states:

  START -> TOKEN_EXTRACTED -> REVOCATION_CHECKED -> SIGNATURE_VERIFIED
        -> ACTOR_LOADED -> AUTHENTICATED

Each step needs the previous one to succeed. Any failure moves the request
to REJECTED and raises StructuredError(UNAUTHORIZED) with the same client
message, so a caller cannot tell a revoked token from an expired one or
from a token whose actor was deleted. The internal reason and the state
that rejected the request are logged, together with the elapsed time.
Token and actor data are never logged.

The gate reads its collaborators from app.state:
  app.state.tokens       -- TokenService
  app.state.revocations  -- RevocationStore
  app.state.directories  -- {ActorKind: ActorDirectory}

Use as a FastAPI dependency:
    @router.get("/profile")
    def profile(user: User = Depends(require_user)): ...

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
import time
from enum import Enum

from fastapi import Request

from auth.models import Actor, ActorKind
from auth.store import CastError
from auth.tokens import extract_token
from core.errors import ErrorKind, StructuredError

logger = logging.getLogger("ridehail.auth")


class GateState(str, Enum):
    START = "start"
    TOKEN_EXTRACTED = "token_extracted"
    REVOCATION_CHECKED = "revocation_checked"
    SIGNATURE_VERIFIED = "signature_verified"
    ACTOR_LOADED = "actor_loaded"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


class AuthGate:
    """Callable dependency that returns the authenticated actor or raises 401."""

    def __init__(self, kind: ActorKind) -> None:
        self.kind = kind

    def __call__(self, request: Request) -> Actor:
        started = time.perf_counter()
        try:
            actor = self._run(request)
        except _Rejection as rejection:
            logger.warning(
                "auth gate (%s) %s at %s: %s [%.1fms]",
                self.kind.value,
                GateState.REJECTED.value,
                rejection.state.value,
                rejection.reason,
                (time.perf_counter() - started) * 1000,
            )
            raise StructuredError(ErrorKind.UNAUTHORIZED, reason=rejection.reason) from None

        logger.info(
            "auth gate (%s) %s [%.1fms]",
            self.kind.value,
            GateState.AUTHENTICATED.value,
            (time.perf_counter() - started) * 1000,
        )
        return actor

    def _run(self, request: Request) -> Actor:
        app_state = request.app.state
        state = GateState.START

        # 1. Cookie first, then Authorization: Bearer
        token = extract_token(request.cookies, request.headers.get("Authorization"))
        if not token:
            raise _Rejection(state, "no token presented")
        state = GateState.TOKEN_EXTRACTED

        # 2. Revoked tokens are refused even when still validly signed
        if app_state.revocations.contains(token):
            raise _Rejection(state, "token revoked")
        state = GateState.REVOCATION_CHECKED

        # 3. Signature and expiry
        try:
            claims = app_state.tokens.verify(token)
        except StructuredError as exc:
            raise _Rejection(state, exc.reason or exc.message) from exc
        state = GateState.SIGNATURE_VERIFIED

        # 4. The actor must still exist
        directory = app_state.directories[self.kind]
        try:
            actor = directory.get_by_id(claims.actor_id)
        except CastError as exc:
            raise _Rejection(state, "token subject is not an actor id") from exc
        if actor is None:
            raise _Rejection(state, f"no {self.kind.value} for token subject")
        state = GateState.ACTOR_LOADED

        # 5. Attach to the request context
        request.state.actor = actor
        return actor


class _Rejection(Exception):
    def __init__(self, state: GateState, reason: str) -> None:
        self.state = state
        self.reason = reason
        super().__init__(reason)


require_user = AuthGate(ActorKind.USER)
require_captain = AuthGate(ActorKind.CAPTAIN)
