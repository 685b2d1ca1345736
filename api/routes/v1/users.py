"""
api/routes/v1/users.py -- Rider registration, login, logout and profile.

Routes:
  POST /api/v1/auth/users/register  -- create a user; 201 with the user (no credential)
  POST /api/v1/auth/users/login     -- password login; sets the "token" cookie
  POST /api/v1/auth/users/logout    -- clears the cookie; 200
  GET  /api/v1/users/profile        -- current user (requires auth)

Handlers never build error bodies. They raise StructuredError (or let store
and library errors propagate) and api/errors.py renders the response.

Security:
  authenticate_actor() provides timing equalization. Do not inline
  get_by_email() + verify(). Unknown email and wrong password return the
  same 401 message. Login responses carry Cache-Control: no-store.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import LoginRequest, RegisterUserRequest, public_view
from api.responses import created, ok
from auth.credentials import authenticate_actor
from auth.dependencies import require_user
from auth.models import ActorKind, User
from auth.tokens import clear_auth_cookie, set_auth_cookie
from core.errors import ErrorKind, StructuredError

# Auth policy:
# - POST /auth/users/register: public
# - POST /auth/users/login:    public
# - POST /auth/users/logout:   public -- clearing a cookie needs no prior auth
# - GET  /users/profile:       requires auth (require_user)
router = APIRouter()


@router.post("/auth/users/register", status_code=201)
def register(request: Request, body: RegisterUserRequest) -> JSONResponse:
    """Register a rider. 409 if the email is taken, 422 if the record is invalid."""
    state = request.app.state
    users = state.directories[ActorKind.USER]
    user = users.create(body.to_record(state.codec.hash(body.password)))
    return created(public_view(user), "User created successfully")


@router.post("/auth/users/login")
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the token cookie."""
    state = request.app.state
    user = authenticate_actor(state.directories[ActorKind.USER], state.codec, body.email, body.password)
    if user is None:
        raise StructuredError(ErrorKind.UNAUTHORIZED, "Invalid credentials", reason="login rejected")

    token = state.tokens.mint(user.id)
    resp = ok(public_view(user), "User logged in successfully")
    set_auth_cookie(resp, token, secure=state.settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/users/logout")
def logout() -> JSONResponse:
    """Clear the token cookie."""
    resp = ok(message="User logged out successfully")
    clear_auth_cookie(resp)
    return resp


@router.get("/users/profile")
def profile(current_user: User = Depends(require_user)) -> JSONResponse:
    """Return the currently authenticated user."""
    return ok(public_view(current_user))
