"""In-memory storage collaborator: identity assignment and reference lookup."""

from __future__ import annotations

from typing import TYPE_CHECKING

from liveblog.collaborators import Storage
from liveblog.logging import get_logger
from liveblog.models.enums import TargetType
from liveblog.models.records import Actor, Node

if TYPE_CHECKING:
    from liveblog.post import LiveblogPost

log = get_logger("stores.memory")


class InMemoryStorage(Storage):
    """Keeps nodes, actors and saved posts in dicts.

    Saved posts are stored as copies, so a loaded post can be mutated
    without touching the stored one until it is saved again.
    """

    def __init__(self) -> None:
        self._nodes: dict[int, Node] = {}
        self._actors: dict[int, Actor] = {}
        self._posts: dict[int, LiveblogPost] = {}
        self._next_id = 1

    # ── Referenced records ──────────────────────────────
    def add_node(self, node: Node) -> Node:
        self._nodes[node.id] = node
        return node

    def add_actor(self, actor: Actor) -> Actor:
        self._actors[actor.id] = actor
        return actor

    def resolve_reference(self, target_type: TargetType | str, target_id: int) -> Node | Actor | None:
        target_type = TargetType(target_type)
        if target_type is TargetType.NODE:
            return self._nodes.get(target_id)
        return self._actors.get(target_id)

    # ── Posts ───────────────────────────────────────────
    def assign_identity(self, post: LiveblogPost) -> int:
        if post.id is not None:
            return post.id
        new_id = self._next_id
        self._next_id += 1
        post.assign_id(new_id)
        return new_id

    def save(self, post: LiveblogPost) -> int:
        """Persist ``post``; the first save assigns its id."""
        is_new = post.is_new()
        post_id = self.assign_identity(post)
        self._posts[post_id] = post.model_copy()
        log.info("post_saved", id=post_id, uuid=str(post.uuid), new=is_new)
        return post_id

    def load(self, post_id: int) -> LiveblogPost | None:
        stored = self._posts.get(post_id)
        return stored.model_copy() if stored is not None else None

    def delete(self, post_id: int) -> bool:
        removed = self._posts.pop(post_id, None) is not None
        if removed:
            log.info("post_deleted", id=post_id)
        return removed

    def count(self) -> int:
        return len(self._posts)
