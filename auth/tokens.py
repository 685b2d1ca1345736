"""
auth/tokens.py -- Signed access tokens and their transport.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry only the actor id ("sub"), the
       issue time and an expiry exactly TOKEN_LIFETIME after issue. Nothing
       about the token is persisted; possession is the session.

  Secret: passed in explicitly when the TokenService is built (once, by the
       application factory). An empty secret raises ConfigurationError at
       construction, so a misconfigured process fails at startup instead of
       on the first login.

  Failures: verify() raises StructuredError(UNAUTHORIZED) for every bad
       token. The client-facing message is identical for malformed, expired
       and badly-signed tokens; the `reason` attribute tells them apart in
       logs only.

  Transport: the token travels in an httpOnly cookie named "token" or in an
       "Authorization: Bearer <token>" header, checked in that order.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from core.errors import ConfigurationError, ErrorKind, StructuredError

TOKEN_LIFETIME = timedelta(hours=24)
TOKEN_COOKIE = "token"

_ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenClaims:
    actor_id: str
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """Mints and verifies signed, time-limited actor tokens.

    Usage:
        tokens = TokenService(settings.secret_key)
        token = tokens.mint(actor.id)
        tokens.verify(token).actor_id == actor.id
    """

    def __init__(self, secret_key: str) -> None:
        if not secret_key:
            raise ConfigurationError("Token signing secret is not configured.")
        self._secret_key = secret_key

    def mint(self, actor_id: str, issued_at: datetime | None = None) -> str:
        """Encode a signed token for actor_id, valid for TOKEN_LIFETIME.

        issued_at defaults to now; tests pass an earlier time to produce an
        already-expired token without sleeping.
        """
        iat = issued_at or datetime.now(timezone.utc)
        payload = {
            "sub": str(actor_id),
            "iat": iat,
            "exp": iat + TOKEN_LIFETIME,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Check signature and expiry; return the claims or raise UNAUTHORIZED."""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise StructuredError(ErrorKind.UNAUTHORIZED, reason="token expired") from exc
        except JWTError as exc:
            raise StructuredError(ErrorKind.UNAUTHORIZED, reason="token malformed or signature invalid") from exc

        actor_id = payload.get("sub")
        if not actor_id or "exp" not in payload:
            raise StructuredError(ErrorKind.UNAUTHORIZED, reason="token missing required claims")
        return TokenClaims(
            actor_id=actor_id,
            issued_at=_from_timestamp(payload.get("iat", 0)),
            expires_at=_from_timestamp(payload["exp"]),
        )


def _from_timestamp(value: int | float) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


# ---------------------------------------------------------------------------
# Transport helpers
# ---------------------------------------------------------------------------


def extract_token(cookies: dict, authorization: str | None) -> str | None:
    """Return the token from the cookie jar, else from a Bearer header."""
    token = cookies.get(TOKEN_COOKIE)
    if token:
        return token
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    return None


def set_auth_cookie(response, token: str, secure: bool = False) -> None:
    """Write the token as an httpOnly cookie whose max_age matches the token expiry.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST (CSRF mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    """
    response.set_cookie(
        TOKEN_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=int(TOKEN_LIFETIME.total_seconds()),
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(TOKEN_COOKIE, httponly=True, samesite="lax")
