"""Error taxonomy for the liveblog post core.

* ``SchemaError``: programming errors against the field schema (fail fast)
* ``ValidationError``: rejected values; carries the offending field
* ``ProjectionError``: payload projection failed; the post is untouched
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class SchemaErrorCode(str, Enum):
    UNKNOWN_FIELD = "unknown-field"
    INVALID_DEFINITION = "invalid-definition"


class ValidationCode(str, Enum):
    MISSING_REQUIRED = "missing-required"
    INVALID_ENUM_VALUE = "invalid-enum-value"
    INVALID_REFERENCE_KIND = "invalid-reference-kind"
    TOO_LONG = "too-long"
    INVALID_VALUE = "invalid-value"
    READ_ONLY = "read-only"


class ProjectionErrorCode(str, Enum):
    RENDER_FAILURE = "render-failure"
    RENDER_TIMEOUT = "render-timeout"
    DANGLING_REFERENCE = "dangling-reference"


class LiveblogError(Exception):
    """Base class for every error raised by this package."""


class SchemaError(LiveblogError):
    """Raised on unknown field names or an invalid field table."""

    def __init__(
        self,
        message: str,
        *,
        code: SchemaErrorCode = SchemaErrorCode.UNKNOWN_FIELD,
        field: str | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.field = field


class ValidationError(LiveblogError):
    """Structured rejection of a value; recoverable by the caller."""

    def __init__(self, code: ValidationCode, field: str, message: str = ""):
        super().__init__(message or f"{field}: {code.value}")
        self.code = code
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "field": self.field, "message": str(self)}


class ProjectionError(LiveblogError):
    """Raised when a payload cannot be assembled in full."""

    def __init__(self, code: ProjectionErrorCode, message: str, *, uuid: str | None = None):
        super().__init__(message)
        self.code = code
        self.uuid = uuid
