"""Field Schema Registry: the static description of a liveblog post.

Provides:
  1. ``FieldDescriptor`` per attribute (type, required, default rule, settings)
  2. Per-context display options and display-configurability
  3. The built-in field table for ``liveblog_post``
  4. Parsing / validation of field tables from dicts or YAML
  5. A process-wide registry singleton
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

import yaml
from pydantic import BaseModel, ConfigDict, Field

from liveblog.errors import SchemaError, SchemaErrorCode
from liveblog.logging import get_logger
from liveblog.models.enums import DefaultRule, DisplayContext, FieldType

log = get_logger("schema")

ENTITY_TYPE_ID = "liveblog_post"


# ── Data containers ─────────────────────────────────────

class DisplayOptions(BaseModel):
    """How a field is shown in one display context."""
    model_config = ConfigDict(frozen=True)

    type: str | None = None
    label: str | None = None
    weight: int = 0
    settings: dict[str, Any] = Field(default_factory=dict)


class FieldDescriptor(BaseModel):
    """Definition of a single post attribute."""
    model_config = ConfigDict(frozen=True)

    name: str
    machine_name: str
    type: FieldType
    label: str = ""
    description: str = ""
    required: bool = False
    read_only: bool = False
    default_rule: DefaultRule = DefaultRule.NONE
    default: Any = None
    settings: dict[str, Any] = Field(default_factory=dict)
    display: dict[DisplayContext, DisplayOptions] = Field(default_factory=dict)
    display_configurable: frozenset[DisplayContext] = frozenset()

    def has_default(self) -> bool:
        return self.default_rule is not DefaultRule.NONE


class FieldSchemaRegistry(BaseModel):
    """Immutable field name → descriptor table for one entity type."""
    model_config = ConfigDict(frozen=True)

    entity_type: str = ENTITY_TYPE_ID
    label_key: str = "title"
    links: dict[str, str] = Field(default_factory=dict)
    fields: dict[str, FieldDescriptor] = Field(default_factory=dict)

    # ── Public API ──────────────────────────────────────

    def get(self, name: str) -> FieldDescriptor:
        """Return the descriptor for ``name``; raise ``SchemaError`` if unknown."""
        try:
            return self.fields[name]
        except KeyError:
            raise SchemaError(
                f"Unknown field '{name}' on {self.entity_type}",
                code=SchemaErrorCode.UNKNOWN_FIELD,
                field=name,
            ) from None

    def by_machine_name(self, machine_name: str) -> FieldDescriptor:
        for descriptor in self.fields.values():
            if descriptor.machine_name == machine_name:
                return descriptor
        raise SchemaError(
            f"Unknown machine name '{machine_name}' on {self.entity_type}",
            code=SchemaErrorCode.UNKNOWN_FIELD,
            field=machine_name,
        )

    def names(self) -> list[str]:
        return list(self.fields)

    def required_fields(self) -> list[str]:
        return [name for name, d in self.fields.items() if d.required]

    def is_display_configurable(self, name: str, context: DisplayContext | str) -> bool:
        return DisplayContext(context) in self.get(name).display_configurable

    def check_fields(self, names: Iterable[str]) -> None:
        """Fail fast on the first name that is not part of the schema."""
        for name in names:
            self.get(name)

    def link_template(self, rel: str) -> str:
        try:
            return self.links[rel]
        except KeyError:
            raise SchemaError(
                f"No '{rel}' link template on {self.entity_type}",
                code=SchemaErrorCode.UNKNOWN_FIELD,
                field=rel,
            ) from None

    def to_dict(self) -> dict[str, Any]:
        """Serialise the registry to plain JSON-compatible data."""
        return {
            "entity_type": self.entity_type,
            "label_key": self.label_key,
            "links": dict(self.links),
            "fields": {
                name: {
                    "machine_name": d.machine_name,
                    "type": d.type.value,
                    "label": d.label,
                    "description": d.description,
                    "required": d.required,
                    "read_only": d.read_only,
                    "default_rule": d.default_rule.value,
                    "default": d.default,
                    "settings": d.settings,
                    "display": {
                        ctx.value: opts.model_dump(exclude_none=True)
                        for ctx, opts in d.display.items()
                    },
                    "display_configurable": sorted(c.value for c in d.display_configurable),
                }
                for name, d in self.fields.items()
            },
        }


# ── Built-in field table ────────────────────────────────

_TIMESTAMP_VIEW = {
    "label": "hidden",
    "type": "timestamp",
    "settings": {"date_format": "medium", "custom_date_format": "", "timezone": ""},
}

DEFAULT_FIELD_TABLE: dict[str, Any] = {
    "entity_type": ENTITY_TYPE_ID,
    "label_key": "title",
    "links": {
        "canonical": "/liveblog_post/{id}",
        "edit-form": "/liveblog_post/{id}/edit",
        "delete-form": "/liveblog_post/{id}/delete",
    },
    "fields": {
        "id": {
            "machine_name": "id",
            "type": "identifier",
            "label": "ID",
            "description": "The ID of the liveblog post.",
            "read_only": True,
            "default_rule": "storage",
        },
        "uuid": {
            "machine_name": "uuid",
            "type": "uuid",
            "label": "UUID",
            "description": "The UUID of the liveblog post.",
            "read_only": True,
            "default_rule": "uuid",
        },
        "title": {
            "machine_name": "title",
            "type": "string",
            "label": "Title",
            "description": "The title of the liveblog post.",
            "required": True,
            "default": "",
            "settings": {"max_length": 255, "text_processing": 0},
            "display": {
                "view": {"label": "hidden", "type": "string", "weight": 1},
                "form": {"type": "string_textfield", "weight": 1},
            },
            "display_configurable": ["form", "view"],
        },
        "body": {
            "machine_name": "body",
            "type": "text_long",
            "label": "Body",
            "description": "Body text for the liveblog post.",
            "required": True,
            "display": {
                "form": {"type": "text_textarea", "weight": 2, "settings": {"rows": 3}},
                "view": {"type": "string", "weight": 5, "label": "hidden"},
            },
            "display_configurable": ["form", "view"],
        },
        "highlight": {
            "machine_name": "highlight",
            "type": "list_string",
            "label": "Highlight",
            "description": "Adds the possibility to mark a post as a highlight.",
            "default": "",
            "settings": {"vocabulary": "highlights"},
            "display": {
                "form": {"type": "select", "weight": 3},
                "view": {"label": "hidden", "weight": 0},
            },
            "display_configurable": ["form", "view"],
        },
        "source": {
            "machine_name": "source",
            "type": "link",
            "label": "Source",
            "description": "The source of the liveblog post.",
            "settings": {"title_required": True, "link_type": "generic"},
            "display": {
                "form": {"type": "link", "weight": 4},
                "view": {"label": "inline", "type": "string", "weight": 6},
            },
            "display_configurable": ["form", "view"],
        },
        "location": {
            "machine_name": "location",
            "type": "string",
            "label": "Location",
            "description": "Location address string related to the post.",
            "display": {
                "form": {"type": "string_textfield", "weight": 5},
                "view": {"type": "simple_gmap", "weight": 7, "label": "hidden"},
            },
            "display_configurable": ["form", "view"],
        },
        "stream_ref": {
            "machine_name": "liveblog",
            "type": "entity_reference",
            "label": "Liveblog",
            "description": "The stream this post belongs to.",
            "required": True,
            "settings": {"target_type": "node", "target_kinds": ["stream"]},
            "display": {
                "form": {
                    "type": "entity_reference_autocomplete",
                    "weight": 8,
                    "settings": {"match_operator": "CONTAINS", "size": "60", "placeholder": ""},
                },
                "view": {"label": "inline", "weight": 7, "type": "entity_reference_label"},
            },
            "display_configurable": ["form", "view"],
        },
        "author_ref": {
            "machine_name": "uid",
            "type": "entity_reference",
            "label": "Authored by",
            "description": "The username of the content author.",
            "required": True,
            "default_rule": "current_actor",
            "settings": {"target_type": "user"},
            "display": {
                "form": {
                    "type": "entity_reference_autocomplete",
                    "weight": 6,
                    "settings": {"match_operator": "CONTAINS", "size": "60", "placeholder": ""},
                },
                "view": {"label": "hidden", "type": "author", "weight": 2},
            },
            "display_configurable": ["form", "view"],
        },
        "published": {
            "machine_name": "status",
            "type": "boolean",
            "label": "Status",
            "description": "Whether post is published.",
            "default": True,
            "display": {"form": {"weight": 8, "settings": {"display_label": True}}},
            "display_configurable": ["form"],
        },
        "created_at": {
            "machine_name": "created",
            "type": "created",
            "label": "Created",
            "description": "The time that the post was created.",
            "read_only": True,
            "default_rule": "now",
            "display": {"view": {**_TIMESTAMP_VIEW, "weight": 3}},
            "display_configurable": ["view"],
        },
        "updated_at": {
            "machine_name": "changed",
            "type": "changed",
            "label": "Changed",
            "description": "The time that the post was last edited.",
            "read_only": True,
            "default_rule": "now",
            "display": {"view": {**_TIMESTAMP_VIEW, "weight": 4}},
            "display_configurable": ["view"],
        },
    },
}


# ── Loading & parsing ───────────────────────────────────

def load_field_schema(path: str | Path) -> FieldSchemaRegistry:
    """Load and parse a field table from YAML.

    Raises ``SchemaError`` (``invalid-definition``) on a missing file or invalid content.
    """
    path = Path(path)
    if not path.exists():
        raise SchemaError(
            f"Field schema file not found: {path}",
            code=SchemaErrorCode.INVALID_DEFINITION,
        )

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    registry = _parse_table(raw, source_path=str(path))
    _check_post_fields(registry, source_path=str(path))
    return registry


def _check_post_fields(registry: FieldSchemaRegistry, *, source_path: str) -> None:
    """Reject a table whose field names differ from the ``LiveblogPost`` attributes."""
    from liveblog.post import LiveblogPost

    declared = set(registry.fields)
    modelled = set(LiveblogPost.model_fields)
    errors = [f"Field '{name}' is not a LiveblogPost attribute" for name in sorted(declared - modelled)]
    errors += [f"Field '{name}' is missing" for name in sorted(modelled - declared)]
    if errors:
        raise SchemaError(
            f"Field schema does not match the post model ({source_path}):\n  - " + "\n  - ".join(errors),
            code=SchemaErrorCode.INVALID_DEFINITION,
        )


def parse_field_table(raw: dict[str, Any]) -> FieldSchemaRegistry:
    """Parse a field table from a plain dict (useful for tests / programmatic use)."""
    return _parse_table(raw, source_path="<dict>")


def _parse_table(raw: Any, *, source_path: str) -> FieldSchemaRegistry:
    """Internal: raw dict → ``FieldSchemaRegistry``, collecting every problem."""
    if not isinstance(raw, dict):
        raise SchemaError(
            f"Field schema must be a mapping at the top level ({source_path})",
            code=SchemaErrorCode.INVALID_DEFINITION,
        )

    errors: list[str] = []
    raw_fields = raw.get("fields", {})
    if not isinstance(raw_fields, dict) or not raw_fields:
        errors.append("'fields' must be a non-empty mapping")
        raw_fields = {}

    fields: dict[str, FieldDescriptor] = {}
    machine_names: set[str] = set()
    for name, fdef in raw_fields.items():
        if not isinstance(fdef, dict):
            errors.append(f"Field '{name}' must be a mapping")
            continue
        descriptor = _parse_field(name, fdef, errors)
        if descriptor is None:
            continue
        if descriptor.machine_name in machine_names:
            errors.append(f"Field '{name}': duplicate machine name '{descriptor.machine_name}'")
            continue
        machine_names.add(descriptor.machine_name)
        fields[name] = descriptor

    label_key = raw.get("label_key", "title")
    if fields and label_key not in fields:
        errors.append(f"label_key '{label_key}' is not a field")

    if errors:
        raise SchemaError(
            f"Field schema validation failed ({source_path}):\n  - " + "\n  - ".join(errors),
            code=SchemaErrorCode.INVALID_DEFINITION,
        )

    registry = FieldSchemaRegistry(
        entity_type=raw.get("entity_type", ENTITY_TYPE_ID),
        label_key=label_key,
        links=dict(raw.get("links", {})),
        fields=fields,
    )
    log.info(
        "field_schema_loaded",
        source=source_path,
        entity_type=registry.entity_type,
        fields=len(fields),
        required=registry.required_fields(),
    )
    return registry


def _parse_field(name: str, fdef: dict[str, Any], errors: list[str]) -> FieldDescriptor | None:
    try:
        ftype = FieldType(fdef.get("type", "string"))
    except ValueError:
        errors.append(
            f"Field '{name}': unknown type '{fdef.get('type')}'. "
            f"Allowed: {', '.join(t.value for t in FieldType)}"
        )
        return None

    if "default_rule" in fdef:
        try:
            rule = DefaultRule(fdef["default_rule"])
        except ValueError:
            errors.append(f"Field '{name}': unknown default_rule '{fdef['default_rule']}'")
            return None
    else:
        # A literal default implies the "value" rule
        rule = DefaultRule.VALUE if "default" in fdef else DefaultRule.NONE

    if rule is DefaultRule.VALUE and "default" not in fdef:
        errors.append(f"Field '{name}': default_rule 'value' needs a 'default'")
        return None

    display: dict[DisplayContext, DisplayOptions] = {}
    for ctx, opts in (fdef.get("display") or {}).items():
        try:
            display[DisplayContext(ctx)] = DisplayOptions(**(opts or {}))
        except ValueError:
            errors.append(f"Field '{name}': invalid display context or options for '{ctx}'")

    configurable: set[DisplayContext] = set()
    for ctx in fdef.get("display_configurable") or []:
        try:
            configurable.add(DisplayContext(ctx))
        except ValueError:
            errors.append(f"Field '{name}': unknown display context '{ctx}'")

    if ftype is FieldType.ENTITY_REFERENCE and "target_type" not in (fdef.get("settings") or {}):
        errors.append(f"Field '{name}': entity_reference needs settings.target_type")
        return None

    return FieldDescriptor(
        name=name,
        machine_name=fdef.get("machine_name", name),
        type=ftype,
        label=fdef.get("label", ""),
        description=fdef.get("description", ""),
        required=bool(fdef.get("required", False)),
        read_only=bool(fdef.get("read_only", False)),
        default_rule=rule,
        default=fdef.get("default"),
        settings=dict(fdef.get("settings") or {}),
        display=display,
        display_configurable=frozenset(configurable),
    )


# ── Singleton registry management ───────────────────────

_active_schema: FieldSchemaRegistry | None = None


def get_field_schema() -> FieldSchemaRegistry:
    """Return the active field registry (loaded on first call).

    Uses ``field_schema_path`` from config when that file exists,
    otherwise the built-in table.
    """
    global _active_schema
    if _active_schema is not None:
        return _active_schema

    from liveblog.config import get_settings
    path = Path(get_settings().field_schema_path)

    if path.exists():
        _active_schema = load_field_schema(path)
    else:
        log.debug("field_schema_file_absent_using_builtin", path=str(path))
        _active_schema = parse_field_table(DEFAULT_FIELD_TABLE)
    return _active_schema


def set_field_schema(registry: FieldSchemaRegistry) -> None:
    """Override the active registry (useful for tests)."""
    global _active_schema
    _active_schema = registry


def reset_field_schema() -> None:
    """Clear the cached registry so it gets reloaded on next access."""
    global _active_schema
    _active_schema = None
