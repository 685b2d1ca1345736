"""
auth/revocation.py -- Blacklist of tokens invalidated before their natural expiry.

Retention:
  An entry is honoured for exactly RETENTION (24h, the maximum token
  lifetime) after it is created. contains() filters on created_at at read
  time, so an old entry is absent the moment it ages out whether or not a
  physical delete has run. purge_expired() removes those rows; the API
  lifespan calls it periodically from a background task.

  Because a token can never outlive 24h and its entry is created after the
  token was issued, no revoked token can outlive its entry.

Writes:
  add() is idempotent. A duplicate insert trips the UNIQUE constraint on
  token and is treated as "already revoked". Entries are never updated.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from sqlalchemy import Column, Float, Integer, MetaData, Table, Text, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.tokens import TOKEN_LIFETIME

logger = logging.getLogger("ridehail.auth")

RETENTION_SECONDS = TOKEN_LIFETIME.total_seconds()

_metadata = MetaData()

_revoked_tokens = Table(
    "revoked_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token", Text, nullable=False, unique=True),
    Column("created_at", Float, nullable=False, index=True),  # epoch seconds
)


class RevocationStore:
    """Repository for revoked tokens.

    clock returns the current time in epoch seconds; tests inject a fake
    clock to cross the retention boundary without sleeping.

    Usage:
        revocations = RevocationStore(engine)
        revocations.add(token)
        revocations.contains(token)   # True for the next 24 hours
    """

    def __init__(self, engine: Engine, clock: Callable[[], float] = time.time) -> None:
        self.engine = engine
        self._clock = clock
        _metadata.create_all(self.engine)

    def add(self, token: str) -> None:
        """Revoke token. Revoking an already-revoked token is a no-op."""
        try:
            with self.engine.connect() as conn:
                conn.execute(_revoked_tokens.insert().values(token=token, created_at=self._clock()))
                conn.commit()
        except IntegrityError:
            logger.debug("Token already revoked; keeping the existing entry")

    def contains(self, token: str) -> bool:
        """Return True if token was revoked less than RETENTION_SECONDS ago."""
        cutoff = self._clock() - RETENTION_SECONDS
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_revoked_tokens.c.id).where(
                    (_revoked_tokens.c.token == token) & (_revoked_tokens.c.created_at > cutoff)
                )
            ).fetchone()
        return row is not None

    def purge_expired(self) -> int:
        """Delete entries past retention. Returns the number of rows removed."""
        cutoff = self._clock() - RETENTION_SECONDS
        with self.engine.connect() as conn:
            result = conn.execute(_revoked_tokens.delete().where(_revoked_tokens.c.created_at <= cutoff))
            conn.commit()
        if result.rowcount:
            logger.info("Purged %d expired revocation entries", result.rowcount)
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()
