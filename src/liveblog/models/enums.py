"""Shared enumerations used across the field schema and the post entity."""

from __future__ import annotations

from enum import Enum


# ── Semantic field types ────────────────────────────────
class FieldType(str, Enum):
    IDENTIFIER = "identifier"          # storage-assigned integer id
    UUID = "uuid"
    STRING = "string"                  # short plain text
    TEXT_LONG = "text_long"            # formatted long text
    LIST_STRING = "list_string"        # one value from a vocabulary
    LINK = "link"                      # uri + title
    ENTITY_REFERENCE = "entity_reference"
    BOOLEAN = "boolean"
    CREATED = "created"
    CHANGED = "changed"


# ── How a missing value gets filled ─────────────────────
class DefaultRule(str, Enum):
    NONE = "none"
    VALUE = "value"                    # literal ``FieldDescriptor.default``
    CURRENT_ACTOR = "current_actor"    # the acting identity passed to create()
    NOW = "now"
    UUID = "uuid"
    STORAGE = "storage"                # assigned by the storage collaborator


class DisplayContext(str, Enum):
    FORM = "form"
    VIEW = "view"


# ── Reference target types ──────────────────────────────
class TargetType(str, Enum):
    NODE = "node"
    USER = "user"
