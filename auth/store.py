"""
auth/store.py -- SQLAlchemy Core persistence layer for actors.

Pattern: Repository + Data Mapper. ActorDirectory is the repository for one
actor variant (users or captains); _row_to_user / _row_to_captain are the
mappers. Route and dependency code never touches SQL directly.

Storage schema:
  Every insert is validated against a pydantic record model before any SQL
  runs (_UserRecord / _CaptainRecord). A violation raises
  pydantic.ValidationError listing every offending field; the API boundary
  maps it to VALIDATION_FAILURE (422). Field paths use the same camelCase
  names clients send ("vehicle.type").

Uniqueness:
  email carries a UNIQUE constraint per table. create() checks first and
  raises CONFLICT, but the check and the insert are two statements. When a
  concurrent registration wins the race, the insert raises
  sqlalchemy.exc.IntegrityError, which is left to propagate; the API
  boundary maps it to CONFLICT as well. The constraint is the real
  guarantee, the pre-check only gives a nicer message.

Identifiers:
  Actor ids are opaque uuid4 hex strings. get_by_id() raises CastError for a
  value that cannot be an id at all, mirroring a document store's cast
  failure; the boundary maps it to BAD_REQUEST.

Security:
  All queries use bound parameters. The password column is only read when
  include_credential=True.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Engine

from auth.models import Actor, ActorKind, Captain, FullName, Location, User, Vehicle
from core.errors import ErrorDetail, ErrorKind, StructuredError

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()


def _identity_columns() -> list[Column]:
    return [
        Column("id", String(32), primary_key=True),
        Column("first_name", String(255), nullable=False),
        Column("last_name", String(255)),
        Column("email", String(320), nullable=False, unique=True),
        Column("password", Text, nullable=False),  # bcrypt hash, never the plaintext
        Column("socket_id", String(255)),
        Column("created_at", String(32), nullable=False),
        Column("updated_at", String(32), nullable=False),
    ]


_users = Table("users", _metadata, *_identity_columns())

_captains = Table(
    "captains",
    _metadata,
    *_identity_columns(),
    Column("status", String(16), nullable=False, server_default="inactive"),
    Column("vehicle_color", String(255), nullable=False),
    Column("vehicle_license_plate", String(255), nullable=False),
    Column("vehicle_capacity", Integer, nullable=False),
    Column("vehicle_type", String(16), nullable=False),
    Column("location_latitude", Float),
    Column("location_longitude", Float),
)

_TABLES: dict[ActorKind, Table] = {ActorKind.USER: _users, ActorKind.CAPTAIN: _captains}

# Column name -> field path as clients know it. Used when a constraint
# failure names a column rather than a request field.
COLUMN_FIELDS: dict[str, str] = {
    "first_name": "fullName.firstName",
    "last_name": "fullName.lastName",
    "email": "email",
    "password": "password",
    "socket_id": "socketId",
    "status": "status",
    "vehicle_color": "vehicle.color",
    "vehicle_license_plate": "vehicle.licensePlate",
    "vehicle_capacity": "vehicle.capacity",
    "vehicle_type": "vehicle.type",
}


# ---------------------------------------------------------------------------
# Record validation (storage-level schema)
# ---------------------------------------------------------------------------


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


class _FullNameRecord(_Record):
    first_name: str = Field(min_length=3)
    last_name: Optional[str] = Field(default=None, min_length=3)


class _VehicleRecord(_Record):
    color: str = Field(min_length=3)
    license_plate: str = Field(min_length=3)
    capacity: int = Field(ge=2)
    type: Literal["car", "bike"]


class _LocationRecord(_Record):
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class _UserRecord(_Record):
    full_name: _FullNameRecord
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)
    socket_id: Optional[str] = None


class _CaptainRecord(_UserRecord):
    vehicle: _VehicleRecord
    status: Literal["active", "inactive"] = "inactive"
    location: Optional[_LocationRecord] = None


_RECORDS: dict[ActorKind, type[_UserRecord]] = {ActorKind.USER: _UserRecord, ActorKind.CAPTAIN: _CaptainRecord}


class CastError(ValueError):
    """A lookup value cannot be interpreted as the column's type."""

    def __init__(self, path: str, value: object) -> None:
        self.path = path
        self.value = value
        super().__init__(f"Invalid {path}: {value}")


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an engine with the SQLite settings every store needs."""
    kwargs: dict = {}
    if db_url.startswith("sqlite"):
        # Named binds keep IntegrityError.params a dict keyed by column.
        kwargs["connect_args"] = {"check_same_thread": False}
        kwargs["paramstyle"] = "named"
    engine = create_engine(db_url, **kwargs)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _section(data: dict, key: str) -> dict:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _missing_fields(kind: ActorKind, data: dict) -> list[ErrorDetail]:
    full_name = _section(data, "fullName")
    required = {
        "fullName.firstName": full_name.get("firstName"),
        "email": data.get("email"),
        "password": data.get("password"),
    }
    if kind is ActorKind.CAPTAIN:
        vehicle = _section(data, "vehicle")
        for key in ("color", "licensePlate", "capacity", "type"):
            required[f"vehicle.{key}"] = vehicle.get(key)
    return [ErrorDetail(field=f, message=f"{f} is required") for f, v in required.items() if v in (None, "")]


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ActorDirectory:
    """Repository for one actor variant.

    Usage:
        users = ActorDirectory(ActorKind.USER, engine)
        user = users.create({"fullName": {"firstName": "Ann"}, "email": "a@b.com", "password": hashed})
        users.get_by_email("a@b.com")
    """

    def __init__(self, kind: ActorKind, engine: Engine) -> None:
        self.kind = kind
        self.engine = engine
        self._table = _TABLES[kind]
        _metadata.create_all(self.engine, tables=[self._table])

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create(self, data: dict) -> Actor:
        """Validate and insert a new actor; return it without its credential.

        data uses the client-facing camelCase shape and must already carry
        the hashed password under "password".

        Raises StructuredError(VALIDATION_FAILURE) listing every missing
        required field, StructuredError(CONFLICT) if the email is taken,
        pydantic.ValidationError if a field violates the storage schema, and
        sqlalchemy.exc.IntegrityError if a concurrent insert claimed the
        email between the check and the insert.
        """
        missing = _missing_fields(self.kind, data)
        if missing:
            raise StructuredError(ErrorKind.VALIDATION_FAILURE, details=missing)

        record = _RECORDS[self.kind].model_validate(data)

        if self._exists(record.email):
            raise StructuredError(
                ErrorKind.CONFLICT,
                f"{self.kind.label} already exists",
                details=[ErrorDetail(field="email", message=f"{record.email} already exists", value=record.email)],
            )

        now = _now_iso()
        actor_id = uuid.uuid4().hex
        values = {
            "id": actor_id,
            "first_name": record.full_name.first_name,
            "last_name": record.full_name.last_name,
            "email": record.email,
            "password": record.password,
            "socket_id": record.socket_id,
            "created_at": now,
            "updated_at": now,
        }
        if isinstance(record, _CaptainRecord):
            values.update(
                status=record.status,
                vehicle_color=record.vehicle.color,
                vehicle_license_plate=record.vehicle.license_plate,
                vehicle_capacity=record.vehicle.capacity,
                vehicle_type=record.vehicle.type,
                location_latitude=record.location.latitude if record.location else None,
                location_longitude=record.location.longitude if record.location else None,
            )

        with self.engine.connect() as conn:
            conn.execute(self._table.insert().values(**values))
            conn.commit()

        return self.get_by_id(actor_id)

    def delete(self, actor_id: str) -> bool:
        """Permanently delete an actor. Returns True if a row was removed."""
        with self.engine.connect() as conn:
            result = conn.execute(self._table.delete().where(self._table.c.id == _coerce_id(actor_id)))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_by_email(self, email: str, include_credential: bool = False) -> Actor | None:
        """Look up an actor by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(self._table.select().where(self._table.c.email == email)).fetchone()
        return self._map(row, include_credential) if row is not None else None

    def get_by_id(self, actor_id: str, include_credential: bool = False) -> Actor | None:
        """Look up an actor by id. Raises CastError if actor_id is not an id."""
        with self.engine.connect() as conn:
            row = conn.execute(self._table.select().where(self._table.c.id == _coerce_id(actor_id))).fetchone()
        return self._map(row, include_credential) if row is not None else None

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _exists(self, email: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(self._table.c.id).where(self._table.c.email == email)).fetchone()
        return row is not None

    def _map(self, row, include_credential: bool) -> Actor:
        if self.kind is ActorKind.CAPTAIN:
            return _row_to_captain(row, include_credential)
        return _row_to_user(row, include_credential)


def _coerce_id(actor_id: object) -> str:
    try:
        return uuid.UUID(str(actor_id)).hex
    except ValueError as exc:
        raise CastError("id", actor_id) from exc


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row, include_credential: bool) -> User:
    return User(
        id=row.id,
        email=row.email,
        full_name=FullName(first_name=row.first_name, last_name=row.last_name),
        hashed_password=row.password if include_credential else None,
        socket_id=row.socket_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_captain(row, include_credential: bool) -> Captain:
    location = None
    if row.location_latitude is not None or row.location_longitude is not None:
        location = Location(latitude=row.location_latitude, longitude=row.location_longitude)
    return Captain(
        id=row.id,
        email=row.email,
        full_name=FullName(first_name=row.first_name, last_name=row.last_name),
        vehicle=Vehicle(
            color=row.vehicle_color,
            license_plate=row.vehicle_license_plate,
            capacity=row.vehicle_capacity,
            type=row.vehicle_type,
        ),
        hashed_password=row.password if include_credential else None,
        socket_id=row.socket_id,
        status=row.status,
        location=location,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
