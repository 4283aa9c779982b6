"""Contracts for the collaborators the post core consumes.

Storage, rendering, the highlight vocabulary and the acting identity are all
owned elsewhere; the core only talks to them through these base classes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Awaitable, Mapping

from liveblog.models.enums import TargetType
from liveblog.models.records import Actor, EntityReference, Node

if TYPE_CHECKING:
    from liveblog.post import LiveblogPost


class ReferenceResolver(ABC):
    """Looks up records that posts reference."""

    @abstractmethod
    def resolve_reference(self, target_type: TargetType | str, target_id: int) -> Node | Actor | None:
        """Return the referenced record, or ``None`` when it does not exist."""
        ...


class Storage(ReferenceResolver):
    """Persistence side of a post: identity assignment plus reference lookup."""

    @abstractmethod
    def assign_identity(self, post: LiveblogPost) -> int:
        """Give ``post`` its storage id (no-op for posts that already have one)."""
        ...


class Renderer(ABC):
    """Turns a post into named display fragments.

    ``render`` may return the mapping directly or an awaitable resolving to
    it; awaitables are only accepted by ``PayloadProjector.aproject``.
    """

    @abstractmethod
    def render(self, post: LiveblogPost) -> Mapping[str, Any] | Awaitable[Mapping[str, Any]]:
        ...


class NullRenderer(Renderer):
    """Renders nothing; the payload then holds raw values only."""

    def render(self, post: LiveblogPost) -> Mapping[str, Any]:
        return {}


class HighlightVocabularyProvider(ABC):
    @abstractmethod
    def is_valid_highlight(self, value: str | None) -> bool:
        ...


class IdentityProvider(ABC):
    """Supplies the acting identity used as the default author."""

    @abstractmethod
    def current_actor(self) -> Actor | EntityReference | int:
        ...


class StaticIdentityProvider(IdentityProvider):
    """Always answers with the same actor (CLI runs, background jobs, tests)."""

    def __init__(self, actor: Actor | EntityReference | int):
        self._actor = actor

    def current_actor(self) -> Actor | EntityReference | int:
        return self._actor
