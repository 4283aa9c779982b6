"""Value objects and referenced records.

``Node`` and ``Actor`` stand in for the records owned by the storage
collaborator; the post only ever keeps an ``EntityReference`` to them.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .enums import TargetType


class Node(BaseModel):
    """A content record a post can point at (a stream is a node of kind ``stream``)."""
    model_config = ConfigDict(frozen=True)

    id: int
    kind: str
    title: str = ""


class Actor(BaseModel):
    """A user account; ``name`` is shown as the author display name."""
    model_config = ConfigDict(frozen=True)

    id: int
    name: str


class EntityReference(BaseModel):
    """Typed pointer to a record held by the storage collaborator."""
    model_config = ConfigDict(frozen=True)

    target_type: TargetType
    target_id: int | None = None


class FormattedText(BaseModel):
    """Rich text value plus the name of its text format."""
    model_config = ConfigDict(frozen=True)

    value: str = ""
    format: str = "basic_html"


class Link(BaseModel):
    model_config = ConfigDict(frozen=True)

    uri: str = Field(min_length=1)
    title: str = Field(min_length=1)
