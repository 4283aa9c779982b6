"""Tests for payload projection (raw values + rendered overlay)."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

import pytest

from liveblog.collaborators import NullRenderer, Renderer
from liveblog.errors import LiveblogError, ProjectionError, ProjectionErrorCode
from liveblog.models.enums import TargetType
from liveblog.models.records import EntityReference
from liveblog.payload import RAW_KEYS, PayloadProjector
from liveblog.post import LiveblogPost

from conftest import T0


class StaticRenderer(Renderer):
    def __init__(self, output: Any):
        self.output = output
        self.calls = 0

    def render(self, post) -> Any:
        self.calls += 1
        return self.output


class FailingRenderer(Renderer):
    def render(self, post) -> Mapping[str, Any]:
        raise RuntimeError("template missing")


class AsyncRenderer(Renderer):
    def __init__(self, output: Mapping[str, Any], delay: float = 0.0, error: Exception | None = None):
        self.output = output
        self.delay = delay
        self.error = error

    async def _render(self) -> Mapping[str, Any]:
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.output

    def render(self, post):
        return self._render()


class TestRawValues:
    def test_breaking_scenario(self, make_post, storage):
        post = make_post()
        storage.save(post)
        payload = PayloadProjector(NullRenderer()).project(post)
        assert payload == {
            "id": post.id,
            "uuid": str(post.uuid),
            "title": "Breaking",
            "liveblog": 7,
            "body__value": "Details...",
            "highlight": "",
            "location": None,
            "source__uri": None,
            "uid": "editor42",
            "status": True,
            "created": T0,
            "changed": T0,
        }
        assert post.id == 1

    def test_keys_are_stable(self, make_post):
        payload = PayloadProjector(NullRenderer()).project(make_post())
        assert tuple(payload) == RAW_KEYS

    def test_matches_instance_fields(self, make_post):
        post = make_post(
            highlight="breaking",
            location="Berlin",
            source={"uri": "https://example.com/a", "title": "Example"},
            published=False,
        )
        raw = PayloadProjector.raw_values(post)
        assert raw["highlight"] == post.highlight
        assert raw["location"] == post.location
        assert raw["source__uri"] == "https://example.com/a"
        assert raw["status"] is False
        assert raw["liveblog"] == post.stream_id
        assert raw["body__value"] == post.body.value

    def test_unresolvable_author(self, make_post):
        payload = PayloadProjector(NullRenderer()).project(make_post(acting=1000))
        assert payload["uid"] is None

    def test_follows_mutations(self, make_post, clock):
        post = make_post()
        clock.advance(30)
        post.set_stream(9).set_author(43)
        raw = PayloadProjector.raw_values(post)
        assert raw["liveblog"] == 9
        assert raw["uid"] == "reporter43"
        assert raw["changed"] > raw["created"]

    def test_dangling_stream_keeps_stored_id(self, make_post, storage):
        post = make_post()
        storage._nodes.pop(7)
        assert PayloadProjector.raw_values(post)["liveblog"] == 7

    def test_missing_stream_id(self, make_post):
        post = make_post()
        post.stream_ref = EntityReference(target_type=TargetType.NODE)
        with pytest.raises(ProjectionError) as exc_info:
            PayloadProjector(NullRenderer()).project(post)
        assert exc_info.value.code is ProjectionErrorCode.DANGLING_REFERENCE

    def test_resolver_failure_becomes_projection_error(self, make_post, storage, monkeypatch):
        post = make_post()

        def broken(target_type, target_id):
            raise ConnectionError("db down")

        monkeypatch.setattr(storage, "resolve_reference", broken)
        with pytest.raises(ProjectionError) as exc_info:
            PayloadProjector(NullRenderer()).project(post)
        assert exc_info.value.code is ProjectionErrorCode.DANGLING_REFERENCE
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    def test_unbound_post_becomes_projection_error(self, make_post):
        clone = LiveblogPost.model_validate(make_post().model_dump())
        with pytest.raises(ProjectionError) as exc_info:
            PayloadProjector(NullRenderer()).project(clone)
        assert exc_info.value.code is ProjectionErrorCode.DANGLING_REFERENCE
        assert isinstance(exc_info.value.__cause__, LiveblogError)


class TestMerge:
    def test_raw_wins(self):
        merged = PayloadProjector.merge({"title": "A"}, {"title": "B", "extra": "C"})
        assert merged == {"title": "A", "extra": "C"}

    def test_raw_none_still_wins(self):
        merged = PayloadProjector.merge({"location": None}, {"location": "<div>map</div>"})
        assert merged["location"] is None

    def test_inputs_untouched(self):
        raw, rendered = {"a": 1}, {"b": 2}
        PayloadProjector.merge(raw, rendered)
        assert raw == {"a": 1} and rendered == {"b": 2}

    def test_rendered_overlay(self, make_post):
        renderer = StaticRenderer({"title": "<h2>Breaking</h2>", "content": "<article>...</article>"})
        payload = PayloadProjector(renderer).project(make_post())
        assert payload["title"] == "Breaking"
        assert payload["content"] == "<article>...</article>"
        assert renderer.calls == 1


class TestRenderFailures:
    def test_renderer_raises(self, make_post):
        post = make_post()
        before = post.model_dump()
        with pytest.raises(ProjectionError) as exc_info:
            PayloadProjector(FailingRenderer()).project(post)
        assert exc_info.value.code is ProjectionErrorCode.RENDER_FAILURE
        assert exc_info.value.uuid == str(post.uuid)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert post.model_dump() == before

    def test_renderer_returns_non_mapping(self, make_post):
        with pytest.raises(ProjectionError) as exc_info:
            PayloadProjector(StaticRenderer(["not", "a", "map"])).project(make_post())
        assert exc_info.value.code is ProjectionErrorCode.RENDER_FAILURE

    def test_sync_project_rejects_async_renderer(self, make_post):
        with pytest.raises(ProjectionError, match="aproject"):
            PayloadProjector(AsyncRenderer({})).project(make_post())


class TestAsyncProjection:
    @pytest.mark.asyncio
    async def test_awaits_renderer(self, make_post):
        payload = await PayloadProjector(AsyncRenderer({"content": "<p/>", "title": "X"})).aproject(make_post())
        assert payload["content"] == "<p/>"
        assert payload["title"] == "Breaking"

    @pytest.mark.asyncio
    async def test_sync_renderer(self, make_post):
        payload = await PayloadProjector(StaticRenderer({"content": "<p/>"})).aproject(make_post())
        assert payload["content"] == "<p/>"

    @pytest.mark.asyncio
    async def test_timeout(self, make_post):
        projector = PayloadProjector(AsyncRenderer({}, delay=1.0))
        with pytest.raises(ProjectionError) as exc_info:
            await projector.aproject(make_post(), timeout=0.01)
        assert exc_info.value.code is ProjectionErrorCode.RENDER_TIMEOUT

    @pytest.mark.asyncio
    async def test_timeout_from_settings(self, make_post, monkeypatch):
        monkeypatch.setenv("RENDER_TIMEOUT_SECONDS", "0.01")
        projector = PayloadProjector(AsyncRenderer({}, delay=1.0))
        with pytest.raises(ProjectionError) as exc_info:
            await projector.aproject(make_post())
        assert exc_info.value.code is ProjectionErrorCode.RENDER_TIMEOUT

    @pytest.mark.asyncio
    async def test_async_renderer_error(self, make_post):
        projector = PayloadProjector(AsyncRenderer({}, error=ValueError("boom")))
        with pytest.raises(ProjectionError) as exc_info:
            await projector.aproject(make_post())
        assert exc_info.value.code is ProjectionErrorCode.RENDER_FAILURE
        assert isinstance(exc_info.value.__cause__, ValueError)
