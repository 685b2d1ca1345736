"""
core/errors.py -- Closed error taxonomy shared by every layer.

Every failure that reaches a client is expressed as a StructuredError whose
kind is one member of ErrorKind. The kind alone fixes the HTTP status and
whether the error is operational (client-caused, safe to show verbatim) or
internal (masked outside development mode). Components raise these; only
api/errors.py turns them into HTTP responses.

  kind               status  operational
  BAD_REQUEST          400   yes
  UNAUTHORIZED         401   yes
  FORBIDDEN            403   yes
  NOT_FOUND            404   yes
  CONFLICT             409   yes
  VALIDATION_FAILURE   422   yes
  INTERNAL_ERROR       500   no
  NOT_IMPLEMENTED      501   yes
  UNAVAILABLE          503   yes

ConfigurationError sits outside the taxonomy: it is raised at startup and
stops the process. If one ever reaches the request boundary it is treated
like any unknown exception (INTERNAL_ERROR).

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from http import HTTPStatus
from typing import Any


class ErrorKind(Enum):
    BAD_REQUEST = (400, True, "Bad request")
    UNAUTHORIZED = (401, True, "Unauthorized access")
    FORBIDDEN = (403, True, "Forbidden")
    NOT_FOUND = (404, True, "Resource not found")
    CONFLICT = (409, True, "Conflict")
    VALIDATION_FAILURE = (422, True, "Validation failed")
    INTERNAL_ERROR = (500, False, "An unexpected error occurred. Please try again later.")
    NOT_IMPLEMENTED = (501, True, "Feature not implemented yet")
    UNAVAILABLE = (503, True, "Service unavailable")

    def __init__(self, status: int, operational: bool, default_message: str) -> None:
        self.status = status
        self.operational = operational
        self.default_message = default_message

    @property
    def error_type(self) -> str:
        """HTTP reason phrase, e.g. "Unprocessable Entity"."""
        return HTTPStatus(self.status).phrase

    @classmethod
    def for_status(cls, status: int) -> ErrorKind:
        """Return the kind with this exact status, else the closest catch-all."""
        for kind in cls:
            if kind.status == status:
                return kind
        return cls.BAD_REQUEST if 400 <= status < 500 else cls.INTERNAL_ERROR


@dataclass(frozen=True)
class ErrorDetail:
    """One offending input: which field, what was wrong, what was sent.

    value must never carry a secret; api/errors.py scrubs it on the way out.
    """

    message: str
    field: str | None = None
    value: Any = None

    def to_dict(self) -> dict:
        out: dict = {"message": self.message}
        if self.field is not None:
            out["field"] = self.field
        if self.value is not None:
            out["value"] = self.value
        return out


class StructuredError(Exception):
    """A failure already classified into the taxonomy.

    message is what the client sees. reason is an internal note for logs
    and development-mode responses (e.g. "token expired" vs "signature
    invalid"); it is never part of a production response body.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str | None = None,
        details: list[ErrorDetail] | None = None,
        reason: str | None = None,
    ) -> None:
        self.kind = kind
        self.message = message or kind.default_message
        self.details = list(details) if details else []
        self.reason = reason
        super().__init__(self.message)

    @property
    def status(self) -> int:
        return self.kind.status

    @property
    def operational(self) -> bool:
        return self.kind.operational

    def __repr__(self) -> str:
        return f"StructuredError({self.kind.name}, {self.message!r})"


class ConfigurationError(Exception):
    """Fatal misconfiguration detected at startup (e.g. missing SECRET_KEY)."""
