"""
API request and response models for the auth endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire names are camelCase (fullName, licensePlate); Python attributes stay
snake_case through an alias generator. Response models are built with the
from_actor() factories and never include the password hash.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import ActorKind, Captain, User

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class _Wire(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class FullNameIn(_Wire):
    first_name: str = Field(min_length=3, max_length=255)
    last_name: Optional[str] = Field(default=None, min_length=3, max_length=255)


class VehicleIn(_Wire):
    color: str = Field(min_length=3, max_length=255)
    license_plate: str = Field(min_length=3, max_length=255)
    capacity: int = Field(ge=2, le=6)
    # Accepted types are enforced by the storage schema, not here.
    type: str = Field(min_length=3, max_length=16)


class RegisterUserRequest(_Wire):
    """Body for POST /auth/users/register."""

    full_name: FullNameIn
    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)
    password: str = Field(min_length=8, max_length=255)

    def to_record(self, hashed_password: str) -> dict:
        """Client-shaped dict for ActorDirectory.create(), password replaced by its hash."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        data["password"] = hashed_password
        return data


class RegisterCaptainRequest(RegisterUserRequest):
    """Body for POST /auth/captains/register."""

    vehicle: VehicleIn


class LoginRequest(_Wire):
    """Body for POST /auth/{users,captains}/login.

    Any non-empty password is accepted so that a wrong password is a 401,
    not a validation error.
    """

    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class FullNameOut(_Wire):
    first_name: str
    last_name: Optional[str] = None


class VehicleOut(_Wire):
    color: str
    license_plate: str
    capacity: int
    type: str


class LocationOut(_Wire):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class UserOut(_Wire):
    id: str
    full_name: FullNameOut
    email: str
    socket_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_actor(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            full_name=FullNameOut(first_name=user.full_name.first_name, last_name=user.full_name.last_name),
            email=user.email,
            socket_id=user.socket_id,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class CaptainOut(UserOut):
    vehicle: VehicleOut
    status: str
    location: Optional[LocationOut] = None

    @classmethod
    def from_actor(cls, captain: Captain) -> "CaptainOut":
        return cls(
            id=captain.id,
            full_name=FullNameOut(first_name=captain.full_name.first_name, last_name=captain.full_name.last_name),
            email=captain.email,
            socket_id=captain.socket_id,
            created_at=captain.created_at,
            updated_at=captain.updated_at,
            vehicle=VehicleOut(
                color=captain.vehicle.color,
                license_plate=captain.vehicle.license_plate,
                capacity=captain.vehicle.capacity,
                type=captain.vehicle.type,
            ),
            status=captain.status,
            location=(
                LocationOut(latitude=captain.location.latitude, longitude=captain.location.longitude)
                if captain.location
                else None
            ),
        )


def public_view(actor: User | Captain) -> dict:
    """JSON-ready outward representation of an actor (no credential)."""
    model = CaptainOut.from_actor(actor) if actor.kind is ActorKind.CAPTAIN else UserOut.from_actor(actor)
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
