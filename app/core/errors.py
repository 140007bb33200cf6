"""
Typed error values returned by domain and use-case operations.

Business failures are returned, not raised: an operation returns either its
value or a list of ``Error``. Only infrastructure faults (database, disposed
Unit of Work) travel as exceptions.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeGuard, TypeVar

T = TypeVar("T")


class ErrorType(str, Enum):
    """Error categories, each mapped to one HTTP status code."""

    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FAILURE = "failure"
    UNEXPECTED = "unexpected"


HTTP_STATUS_BY_ERROR_TYPE: dict[ErrorType, int] = {
    ErrorType.VALIDATION: 400,
    ErrorType.UNAUTHORIZED: 401,
    ErrorType.FORBIDDEN: 403,
    ErrorType.NOT_FOUND: 404,
    ErrorType.CONFLICT: 409,
    ErrorType.FAILURE: 500,
    ErrorType.UNEXPECTED: 422,
}


@dataclass(frozen=True)
class Error:
    """A stable error code plus a human readable description."""

    code: str
    description: str
    type: ErrorType = ErrorType.FAILURE

    @classmethod
    def validation(cls, code: str, description: str) -> "Error":
        return cls(code, description, ErrorType.VALIDATION)

    @classmethod
    def unauthorized(cls, code: str, description: str) -> "Error":
        return cls(code, description, ErrorType.UNAUTHORIZED)

    @classmethod
    def forbidden(cls, code: str, description: str) -> "Error":
        return cls(code, description, ErrorType.FORBIDDEN)

    @classmethod
    def not_found(cls, code: str, description: str) -> "Error":
        return cls(code, description, ErrorType.NOT_FOUND)

    @classmethod
    def conflict(cls, code: str, description: str) -> "Error":
        return cls(code, description, ErrorType.CONFLICT)

    @classmethod
    def failure(cls, code: str, description: str) -> "Error":
        return cls(code, description, ErrorType.FAILURE)

    @classmethod
    def unexpected(cls, code: str, description: str) -> "Error":
        return cls(code, description, ErrorType.UNEXPECTED)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_ERROR_TYPE[self.type]

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "description": self.description, "type": self.type.value}


# Result of an operation that may fail with one or more typed errors
ErrorOr = T | list[Error]


def is_error(result: Any) -> TypeGuard[list[Error]]:
    """True when ``result`` is a non-empty list of ``Error`` values."""
    return (
        isinstance(result, list)
        and len(result) > 0
        and all(isinstance(item, Error) for item in result)
    )


def status_code_for(errors: list[Error]) -> int:
    """HTTP status for a list of errors: the first error decides."""
    if not errors:
        return 500
    return errors[0].status_code
