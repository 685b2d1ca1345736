"""
auth/models.py -- Domain dataclasses for authenticating actors.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work.

An Actor is a tagged record: User and Captain are independent dataclasses
that share the common identity fields and carry a `kind` discriminator.
Captain does not subclass User, so a change to one variant cannot leak
into the other. Code that needs to branch on the variant checks
`actor.kind`, never isinstance().

The shared capabilities (credential check, token mint) are not methods:
auth/credentials.authenticate_actor() and TokenService.mint(actor.id) work
on either variant, so the dataclasses stay pure data.

hashed_password is only populated when a store is explicitly asked for the
credential (login). Outward representations are built by api/models.py
and never include it.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Union


class ActorKind(str, Enum):
    USER = "user"
    CAPTAIN = "captain"

    @property
    def label(self) -> str:
        """Capitalized name used in client messages ("User", "Captain")."""
        return self.value.capitalize()


@dataclass
class FullName:
    first_name: str
    last_name: str | None = None


@dataclass
class Vehicle:
    color: str
    license_plate: str
    capacity: int
    type: str  # "car" | "bike"


@dataclass
class Location:
    latitude: float | None = None
    longitude: float | None = None


@dataclass
class User:
    """A rider account."""

    email: str
    full_name: FullName
    id: str | None = None
    hashed_password: str | None = None  # None unless loaded for login
    socket_id: str | None = None  # ephemeral realtime connection id
    created_at: str | None = None
    updated_at: str | None = None
    kind: Literal[ActorKind.USER] = ActorKind.USER


@dataclass
class Captain:
    """A driver account. Same identity fields as User plus the vehicle."""

    email: str
    full_name: FullName
    vehicle: Vehicle
    id: str | None = None
    hashed_password: str | None = None  # None unless loaded for login
    socket_id: str | None = None
    status: str = "inactive"  # "active" | "inactive"
    location: Location | None = None
    created_at: str | None = None
    updated_at: str | None = None
    kind: Literal[ActorKind.CAPTAIN] = ActorKind.CAPTAIN


Actor = Union[User, Captain]
