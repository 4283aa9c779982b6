"""Payload projection: the flattened, externally consumed view of a post.

The payload is the raw-value map (fixed keys, read straight off the post)
merged with whatever the renderer produced. Raw values always win: a
rendered key only lands in the payload when the raw map does not already
hold it.

Key names are a public contract for feed / API readers and must not change.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Mapping

from liveblog.collaborators import Renderer
from liveblog.config import get_settings
from liveblog.errors import ProjectionError, ProjectionErrorCode
from liveblog.logging import get_logger
from liveblog.post import LiveblogPost

log = get_logger("payload")

RAW_KEYS: tuple[str, ...] = (
    "id",
    "uuid",
    "title",
    "liveblog",
    "body__value",
    "highlight",
    "location",
    "source__uri",
    "uid",
    "changed",
    "created",
    "status",
)


class PayloadProjector:
    """Combines a renderer's output with a post's raw values."""

    def __init__(self, renderer: Renderer):
        self._renderer = renderer

    # ── Public API ──────────────────────────────────────

    def project(self, post: LiveblogPost) -> dict[str, Any]:
        """Render ``post`` and return the merged payload.

        Raises ``ProjectionError`` if the renderer fails or hands back an
        awaitable (use ``aproject`` for async renderers).
        """
        rendered = self._render(post)
        if inspect.isawaitable(rendered):
            if inspect.iscoroutine(rendered):
                rendered.close()
            raise ProjectionError(
                ProjectionErrorCode.RENDER_FAILURE,
                "Renderer returned an awaitable; use aproject()",
                uuid=str(post.uuid),
            )
        return self._finish(post, rendered)

    async def aproject(self, post: LiveblogPost, timeout: float | None = None) -> dict[str, Any]:
        """Async variant of ``project``; awaits the renderer when needed.

        ``timeout`` defaults to ``render_timeout_seconds`` from settings.
        """
        if timeout is None:
            timeout = get_settings().render_timeout_seconds

        rendered = self._render(post)
        if inspect.isawaitable(rendered):
            try:
                rendered = await asyncio.wait_for(rendered, timeout)
            except asyncio.TimeoutError as exc:
                log.warning("payload_render_timeout", uuid=str(post.uuid), timeout=timeout)
                raise ProjectionError(
                    ProjectionErrorCode.RENDER_TIMEOUT,
                    f"Renderer did not finish within {timeout}s",
                    uuid=str(post.uuid),
                ) from exc
            except ProjectionError:
                raise
            except Exception as exc:
                raise self._render_failure(post, exc) from exc
        return self._finish(post, rendered)

    @staticmethod
    def raw_values(post: LiveblogPost) -> dict[str, Any]:
        """Authoritative values, keyed by their payload names."""
        stream_id = post.stream_id
        if stream_id is None:
            raise ProjectionError(
                ProjectionErrorCode.DANGLING_REFERENCE,
                f"Post {post.uuid} has no stream id",
                uuid=str(post.uuid),
            )
        try:
            author = post.author
        except Exception as exc:
            log.warning("payload_author_unresolved", uuid=str(post.uuid), error=str(exc))
            raise ProjectionError(
                ProjectionErrorCode.DANGLING_REFERENCE,
                f"Resolving the author of post {post.uuid} failed: {exc}",
                uuid=str(post.uuid),
            ) from exc

        return {
            "id": post.id,
            "uuid": str(post.uuid),
            "title": post.title,
            "liveblog": stream_id,
            "body__value": post.body.value,
            "highlight": post.highlight,
            "location": post.location,
            "source__uri": post.source.uri if post.source is not None else None,
            "uid": author.name if author is not None else None,
            "changed": post.updated_at,
            "created": post.created_at,
            "status": post.published,
        }

    @staticmethod
    def merge(raw: Mapping[str, Any], rendered: Mapping[str, Any]) -> dict[str, Any]:
        """``raw`` plus every rendered key that ``raw`` does not hold."""
        payload = dict(raw)
        for key, value in rendered.items():
            payload.setdefault(key, value)
        return payload

    # ── Internals ───────────────────────────────────────

    def _render(self, post: LiveblogPost) -> Any:
        try:
            return self._renderer.render(post)
        except ProjectionError:
            raise
        except Exception as exc:
            raise self._render_failure(post, exc) from exc

    def _finish(self, post: LiveblogPost, rendered: Any) -> dict[str, Any]:
        if not isinstance(rendered, Mapping):
            raise ProjectionError(
                ProjectionErrorCode.RENDER_FAILURE,
                f"Renderer returned {type(rendered).__name__}, expected a mapping",
                uuid=str(post.uuid),
            )
        payload = self.merge(self.raw_values(post), rendered)
        log.debug(
            "payload_projected",
            uuid=str(post.uuid),
            rendered_keys=len(rendered),
            overlay_keys=len(payload) - len(RAW_KEYS),
        )
        return payload

    @staticmethod
    def _render_failure(post: LiveblogPost, exc: Exception) -> ProjectionError:
        log.warning("payload_render_failed", uuid=str(post.uuid), error=str(exc))
        return ProjectionError(
            ProjectionErrorCode.RENDER_FAILURE,
            f"Rendering post {post.uuid} failed: {exc}",
            uuid=str(post.uuid),
        )
