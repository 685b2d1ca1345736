"""
auth/credentials.py -- Password hashing and constant-time login checks.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). The work factor comes
       from Settings.bcrypt_rounds and is fixed per CredentialCodec instance.
       bcrypt.gensalt() makes every hash unique, so two registrations with
       the same password store different hashes that both verify.

       bcrypt only looks at the first 72 bytes of a password and bcrypt 5.x
       raises instead of truncating. The codec truncates explicitly so any
       non-empty password hashes without error, and verify() truncates the
       same way so the two stay consistent.

  Timing equalization: authenticate_actor() always runs one bcrypt
       comparison, against a dummy hash when the email is unknown, so the
       response time does not reveal whether an email is registered.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import bcrypt

if TYPE_CHECKING:
    from auth.models import Actor
    from auth.store import ActorDirectory

logger = logging.getLogger("ridehail.auth")

_BCRYPT_MAX_BYTES = 72


def _encode(secret: str) -> bytes:
    return secret.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class CredentialCodec:
    """One-way hashing and verification of plaintext secrets.

    Usage:
        codec = CredentialCodec(rounds=settings.bcrypt_rounds)
        stored = codec.hash("longpass1")
        codec.verify("longpass1", stored)   # True
    """

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds
        # Computed once so the first unknown-email login is not measurably
        # slower than later ones.
        self._dummy_hash = self.hash("ridehail_timing_dummy")

    def hash(self, secret: str) -> str:
        """Return a salted bcrypt hash of the given plaintext secret."""
        return bcrypt.hashpw(_encode(secret), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, secret: str, hashed: str) -> bool:
        """Return True if secret matches hashed.

        A malformed or foreign hash returns False rather than raising.
        """
        try:
            return bcrypt.checkpw(_encode(secret), hashed.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            return False

    def burn(self, secret: str) -> None:
        """Run one full-cost comparison whose result is discarded."""
        self.verify(secret, self._dummy_hash)


def authenticate_actor(directory: ActorDirectory, codec: CredentialCodec, email: str, password: str) -> Actor | None:
    """Return the actor for a correct email/password pair, None otherwise.

    Unknown email and wrong password cost the same bcrypt work and both
    return None; the route turns that into a single 401 message.
    """
    actor = directory.get_by_email(email, include_credential=True)
    if actor is None or not actor.hashed_password:
        # Do NOT return before running bcrypt
        codec.burn(password)
        return None
    if not codec.verify(password, actor.hashed_password):
        return None
    return actor
