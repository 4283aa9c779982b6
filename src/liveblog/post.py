"""The liveblog post entity and its lifecycle rules.

A post is created through ``LiveblogPost.create()``, which fills defaults
from the field schema (the author defaults to the acting identity) and
rejects the values before any instance exists. After that, writes go
through the setters so reference and vocabulary checks always run at
the boundary.

Owner and author are the same relation: both accessor pairs read and
write ``author_ref``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Mapping
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic import ValidationError as PydanticValidationError

from liveblog.collaborators import HighlightVocabularyProvider, ReferenceResolver
from liveblog.config import get_settings
from liveblog.errors import LiveblogError, ValidationCode, ValidationError
from liveblog.logging import get_logger
from liveblog.models.enums import DefaultRule, FieldType, TargetType
from liveblog.models.records import Actor, EntityReference, FormattedText, Link, Node
from liveblog.schema import FieldDescriptor, FieldSchemaRegistry, get_field_schema

log = get_logger("post")

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class LiveblogPost(BaseModel):
    """One post in a liveblog stream."""
    model_config = ConfigDict(validate_assignment=True)

    id: int | None = None
    uuid: UUID = Field(frozen=True)
    title: str
    body: FormattedText
    highlight: str = ""
    source: Link | None = None
    location: str | None = None
    stream_ref: EntityReference
    author_ref: EntityReference
    published: bool = True
    created_at: datetime = Field(frozen=True)
    updated_at: datetime

    _resolver: ReferenceResolver | None = PrivateAttr(default=None)
    _vocabulary: HighlightVocabularyProvider | None = PrivateAttr(default=None)
    _registry: FieldSchemaRegistry | None = PrivateAttr(default=None)
    _clock: Clock = PrivateAttr(default_factory=lambda: utcnow)

    def __setattr__(self, name: str, value: Any) -> None:
        # uuid and created_at are frozen; id may go from None to a value once
        if name in ("uuid", "created_at") or (name == "id" and self.id is not None):
            raise ValidationError(ValidationCode.READ_ONLY, name, f"{name} is write-once")
        super().__setattr__(name, value)

    # ── Creation ────────────────────────────────────────

    @classmethod
    def create(
        cls,
        values: Mapping[str, Any],
        acting_identity: Actor | EntityReference | int,
        *,
        resolver: ReferenceResolver,
        vocabulary: HighlightVocabularyProvider | None = None,
        registry: FieldSchemaRegistry | None = None,
        clock: Clock | None = None,
    ) -> LiveblogPost:
        """Build a validated post from a partial value set.

        ``author_ref`` falls back to ``acting_identity``; every other missing
        field with a default rule gets its default. Raises ``SchemaError`` for
        unknown field names and ``ValidationError`` for rejected values.
        """
        registry = registry or get_field_schema()
        clock = clock or utcnow
        values = dict(values)
        registry.check_fields(values)

        try:
            for name in values:
                if registry.get(name).read_only:
                    raise ValidationError(ValidationCode.READ_ONLY, name, f"{name} cannot be supplied on create")

            if values.get("author_ref") is None:
                values["author_ref"] = acting_identity

            now = clock()
            for name, descriptor in registry.fields.items():
                if values.get(name) is None:
                    default = _default_for(descriptor, now, acting_identity)
                    if default is not None:
                        values[name] = default

            typed = {
                name: _coerce(registry.get(name), value)
                for name, value in values.items()
            }
            for name in registry.required_fields():
                if _is_empty(typed.get(name)):
                    raise ValidationError(ValidationCode.MISSING_REQUIRED, name, f"{name} is required")

            try:
                post = cls(**typed)
            except PydanticValidationError as exc:
                raise _from_pydantic(exc) from exc

            post._bind(resolver=resolver, vocabulary=vocabulary, registry=registry, clock=clock)
            for name in typed:
                post._check_constraints(name, getattr(post, name))
        except ValidationError as exc:
            log.warning("post_validation_failed", field=exc.field, code=exc.code.value)
            raise

        log.info(
            "post_created",
            uuid=str(post.uuid),
            stream_id=post.stream_id,
            author_id=post.author_id,
            published=post.published,
        )
        return post

    def _bind(
        self,
        *,
        resolver: ReferenceResolver | None,
        vocabulary: HighlightVocabularyProvider | None = None,
        registry: FieldSchemaRegistry | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._resolver = resolver
        self._vocabulary = vocabulary
        self._registry = registry
        if clock is not None:
            self._clock = clock

    # ── Identity ────────────────────────────────────────

    def assign_id(self, post_id: int) -> LiveblogPost:
        """Set the storage id; a post's id can only be set once."""
        if self.id is not None:
            raise ValidationError(ValidationCode.READ_ONLY, "id", f"post already has id {self.id}")
        self.id = post_id
        return self

    def is_new(self) -> bool:
        return self.id is None

    def label(self) -> str:
        return getattr(self, self.registry.label_key)

    def url(self, rel: str = "canonical") -> str:
        if self.id is None:
            raise ValidationError(ValidationCode.MISSING_REQUIRED, "id", "an unsaved post has no URL")
        return self.registry.link_template(rel).format(id=self.id)

    # ── Owner / author (one relation) ───────────────────

    @property
    def owner_id(self) -> int | None:
        return self.author_ref.target_id

    @property
    def author_id(self) -> int | None:
        return self.author_ref.target_id

    @property
    def owner(self) -> Actor | None:
        return self._resolve(self.author_ref)

    @property
    def author(self) -> Actor | None:
        return self._resolve(self.author_ref)

    def set_owner(self, account: Actor | EntityReference | int) -> LiveblogPost:
        return self._write_author(account)

    def set_owner_id(self, uid: int) -> LiveblogPost:
        return self._write_author(uid)

    def set_author(self, account: Actor | EntityReference | int) -> LiveblogPost:
        return self._write_author(account)

    def _write_author(self, account: Actor | EntityReference | int) -> LiveblogPost:
        ref = _coerce(self.registry.get("author_ref"), account)
        if _is_empty(ref):
            raise ValidationError(ValidationCode.MISSING_REQUIRED, "author_ref", "author_ref is required")
        self.author_ref = ref
        self._touch()
        log.info("post_author_changed", uuid=str(self.uuid), author_id=ref.target_id)
        return self

    # ── Stream ──────────────────────────────────────────

    @property
    def stream_id(self) -> int | None:
        """Referenced stream id, read straight off the reference."""
        return self.stream_ref.target_id

    @property
    def stream(self) -> Node | None:
        return self._resolve(self.stream_ref)

    def set_stream(self, stream: Node | EntityReference | int) -> LiveblogPost:
        """Point the post at another stream; the target must be a stream-kind node."""
        ref = _coerce(self.registry.get("stream_ref"), stream)
        if _is_empty(ref):
            raise ValidationError(ValidationCode.MISSING_REQUIRED, "stream_ref", "stream_ref is required")
        self._check_constraints("stream_ref", ref)
        self.stream_ref = ref
        self._touch()
        log.info("post_stream_changed", uuid=str(self.uuid), stream_id=ref.target_id)
        return self

    # ── Generic writes ──────────────────────────────────

    def set(self, name: str, value: Any) -> LiveblogPost:
        """Write one field with the same checks ``create()`` applies."""
        descriptor = self.registry.get(name)
        if descriptor.read_only:
            raise ValidationError(ValidationCode.READ_ONLY, name, f"{name} is read-only")
        if name == "stream_ref":
            return self.set_stream(value)
        if name == "author_ref":
            return self.set_author(value)

        typed = _coerce(descriptor, value)
        if descriptor.required and _is_empty(typed):
            raise ValidationError(ValidationCode.MISSING_REQUIRED, name, f"{name} is required")
        if typed is None and descriptor.has_default():
            typed = descriptor.default
        self._check_constraints(name, typed)
        try:
            setattr(self, name, typed)
        except PydanticValidationError as exc:
            raise _from_pydantic(exc) from exc
        self._touch()
        return self

    # ── Timestamps ──────────────────────────────────────

    @property
    def created_time(self) -> datetime:
        return self.created_at

    @property
    def changed_time(self) -> datetime:
        return self.updated_at

    def _touch(self) -> None:
        # Never move backwards, even if the clock does
        self.updated_at = max(self._clock(), self.updated_at)

    # ── Internals ───────────────────────────────────────

    @property
    def registry(self) -> FieldSchemaRegistry:
        if self._registry is None:
            self._registry = get_field_schema()
        return self._registry

    def _require_resolver(self) -> ReferenceResolver:
        if self._resolver is None:
            raise LiveblogError(f"Post {self.uuid} is not bound to a reference resolver")
        return self._resolver

    def _resolve(self, ref: EntityReference) -> Any:
        if ref.target_id is None:
            return None
        return self._require_resolver().resolve_reference(ref.target_type, ref.target_id)

    def _check_constraints(self, name: str, value: Any) -> None:
        descriptor = self.registry.get(name)
        if value is None:
            return

        max_length = descriptor.settings.get("max_length")
        if max_length is not None and isinstance(value, str) and len(value) > max_length:
            raise ValidationError(
                ValidationCode.TOO_LONG, name, f"{name} is longer than {max_length} characters",
            )

        if descriptor.type is FieldType.LIST_STRING:
            vocabulary = self._vocabulary
            if vocabulary is None:
                from liveblog.vocabulary import get_highlight_vocabulary
                vocabulary = get_highlight_vocabulary()
            if not vocabulary.is_valid_highlight(value):
                raise ValidationError(
                    ValidationCode.INVALID_ENUM_VALUE, name, f"'{value}' is not an allowed {name} value",
                )

        kinds = descriptor.settings.get("target_kinds")
        if descriptor.type is FieldType.ENTITY_REFERENCE and kinds:
            record = self._resolve(value)
            if record is None or getattr(record, "kind", None) not in kinds:
                raise ValidationError(
                    ValidationCode.INVALID_REFERENCE_KIND,
                    name,
                    f"{name} must reference one of {', '.join(kinds)} (got id {value.target_id})",
                )


# ── Value helpers ───────────────────────────────────────

def _default_for(descriptor: FieldDescriptor, now: datetime, acting_identity: Any) -> Any:
    rule = descriptor.default_rule
    if rule is DefaultRule.VALUE:
        return descriptor.default
    if rule is DefaultRule.NOW:
        return now
    if rule is DefaultRule.UUID:
        return uuid4()
    if rule is DefaultRule.CURRENT_ACTOR:
        return acting_identity
    return None


def _coerce(descriptor: FieldDescriptor, value: Any) -> Any:
    """Normalise loose input (ids, plain strings, dicts) into field values."""
    if value is None:
        return None
    if descriptor.type is FieldType.ENTITY_REFERENCE:
        return _to_reference(descriptor, value)
    if descriptor.type is FieldType.TEXT_LONG:
        if isinstance(value, str):
            return FormattedText(value=value, format=get_settings().body_default_format)
        if isinstance(value, dict):
            return _build(descriptor.name, FormattedText, value)
    if descriptor.type is FieldType.LINK and isinstance(value, dict):
        return _build(descriptor.name, Link, value)
    return value


def _to_reference(descriptor: FieldDescriptor, value: Any) -> EntityReference:
    target_type = TargetType(descriptor.settings["target_type"])
    expected = Node if target_type is TargetType.NODE else Actor

    if isinstance(value, EntityReference):
        ref = value
    elif isinstance(value, (Node, Actor)):
        if not isinstance(value, expected):
            raise ValidationError(
                ValidationCode.INVALID_REFERENCE_KIND,
                descriptor.name,
                f"{descriptor.name} must reference a {target_type.value}",
            )
        ref = EntityReference(target_type=target_type, target_id=value.id)
    elif isinstance(value, int) and not isinstance(value, bool):
        ref = EntityReference(target_type=target_type, target_id=value)
    else:
        raise ValidationError(
            ValidationCode.INVALID_VALUE,
            descriptor.name,
            f"{descriptor.name} must be an id, a record or a reference",
        )

    if ref.target_type is not target_type:
        raise ValidationError(
            ValidationCode.INVALID_REFERENCE_KIND,
            descriptor.name,
            f"{descriptor.name} must reference a {target_type.value}",
        )
    return ref


def _build(name: str, model: type[BaseModel], data: dict[str, Any]) -> BaseModel:
    try:
        return model(**data)
    except PydanticValidationError as exc:
        raise ValidationError(ValidationCode.INVALID_VALUE, name, f"{name}: {exc.errors()[0]['msg']}") from exc


def _from_pydantic(exc: PydanticValidationError) -> ValidationError:
    first = exc.errors()[0]
    name = str(first["loc"][0]) if first["loc"] else "?"
    return ValidationError(ValidationCode.INVALID_VALUE, name, f"{name}: {first['msg']}")


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, FormattedText):
        return not value.value.strip()
    if isinstance(value, EntityReference):
        return value.target_id is None
    return False
