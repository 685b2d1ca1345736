"""
api/routes/v1/captains.py -- Driver registration, login, logout and profile.

Routes:
  POST /api/v1/auth/captains/register  -- create a captain with vehicle; 201
  POST /api/v1/auth/captains/login     -- password login; sets the "token" cookie
  POST /api/v1/auth/captains/logout    -- revokes the presented token, clears cookie
  GET  /api/v1/captains/profile        -- current captain (requires auth)

Same shape as the user family. The one difference is logout: the presented
token is written to the revocation store, so a copy of it held elsewhere is
refused by the auth gate until it would have expired anyway.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, RegisterCaptainRequest, public_view
from api.responses import created, ok
from auth.credentials import authenticate_actor
from auth.dependencies import require_captain
from auth.models import ActorKind, Captain
from auth.tokens import clear_auth_cookie, extract_token, set_auth_cookie
from core.errors import ErrorKind, StructuredError

# Auth policy:
# - POST /auth/captains/register: public
# - POST /auth/captains/login:    public
# - POST /auth/captains/logout:   public -- revokes whatever token is presented
# - GET  /captains/profile:       requires auth (require_captain)
router = APIRouter()


@router.post("/auth/captains/register", status_code=201)
def register(request: Request, body: RegisterCaptainRequest) -> JSONResponse:
    """Register a captain. 409 if the email is taken, 422 if the vehicle is not accepted."""
    state = request.app.state
    captains = state.directories[ActorKind.CAPTAIN]
    captain = captains.create(body.to_record(state.codec.hash(body.password)))
    return created(public_view(captain), "Captain registered successfully")


@router.post("/auth/captains/login")
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the token cookie."""
    state = request.app.state
    captain = authenticate_actor(state.directories[ActorKind.CAPTAIN], state.codec, body.email, body.password)
    if captain is None:
        raise StructuredError(ErrorKind.UNAUTHORIZED, "Invalid credentials", reason="login rejected")

    token = state.tokens.mint(captain.id)
    resp = ok(public_view(captain), "Captain logged in successfully")
    set_auth_cookie(resp, token, secure=state.settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/captains/logout")
def logout(request: Request) -> JSONResponse:
    """Revoke the presented token (if any) and clear the cookie."""
    token = extract_token(request.cookies, request.headers.get("Authorization"))
    if token:
        request.app.state.revocations.add(token)
    resp = ok(message="Captain logged out successfully")
    clear_auth_cookie(resp)
    return resp


@router.get("/captains/profile")
def profile(current_captain: Captain = Depends(require_captain)) -> JSONResponse:
    """Return the currently authenticated captain."""
    return ok(public_view(current_captain))
