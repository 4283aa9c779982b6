"""CLI entry point for inspecting the post schema and projecting posts."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from liveblog.collaborators import NullRenderer, StaticIdentityProvider
from liveblog.config import get_settings
from liveblog.errors import LiveblogError, ValidationError
from liveblog.logging import setup_logging
from liveblog.models.records import Actor, Node
from liveblog.payload import PayloadProjector
from liveblog.post import LiveblogPost
from liveblog.schema import get_field_schema
from liveblog.stores.memory import InMemoryStorage
from liveblog.vocabulary import get_highlight_vocabulary


def cmd_schema(args: argparse.Namespace) -> None:
    """Print the field schema (or a single field) as JSON."""
    data = get_field_schema().to_dict()
    if args.field:
        if args.field not in data["fields"]:
            print(f"Error: unknown field '{args.field}'", file=sys.stderr)
            sys.exit(1)
        data = data["fields"][args.field]
    print(json.dumps(data, indent=2, default=str))


def cmd_highlights(args: argparse.Namespace) -> None:
    """Print the highlight select options."""
    vocabulary = get_highlight_vocabulary()
    print(json.dumps({"vid": vocabulary.vid, "options": vocabulary.options()}, indent=2))


def cmd_project(args: argparse.Namespace) -> None:
    """Create a post from a JSON fixture file and print its payload.

    The file holds ``nodes`` and ``actors`` to seed the store plus the
    post ``values``.
    """
    path = Path(args.file)
    if not path.exists():
        print(f"Error: file not found: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        fixture = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        print(f"Error: invalid JSON in {path}: {exc}", file=sys.stderr)
        sys.exit(1)

    storage = InMemoryStorage()
    try:
        for node in fixture.get("nodes", []):
            storage.add_node(Node(**node))
        for actor in fixture.get("actors", []):
            storage.add_actor(Actor(**actor))
    except (PydanticValidationError, TypeError) as exc:
        print(f"Error: invalid fixture records in {path}: {exc}", file=sys.stderr)
        sys.exit(1)

    identity = StaticIdentityProvider(args.actor)
    try:
        post = LiveblogPost.create(fixture.get("values", {}), identity.current_actor(), resolver=storage)
        storage.save(post)
        payload = PayloadProjector(NullRenderer()).project(post)
    except ValidationError as exc:
        print(json.dumps({"error": exc.to_dict()}, indent=2), file=sys.stderr)
        sys.exit(1)
    except LiveblogError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(payload, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="liveblog",
        description="Liveblog post schema and payload tools",
    )
    sub = parser.add_subparsers(dest="command")

    # schema
    p_schema = sub.add_parser("schema", help="Print the post field schema")
    p_schema.add_argument("--field", default=None, help="Only print this field")
    p_schema.set_defaults(func=cmd_schema)

    # highlights
    p_hl = sub.add_parser("highlights", help="Print the highlight vocabulary options")
    p_hl.set_defaults(func=cmd_highlights)

    # project
    p_proj = sub.add_parser("project", help="Create a post from JSON and print its payload")
    p_proj.add_argument("file", help="Path to a JSON fixture with nodes, actors and values")
    p_proj.add_argument("--actor", type=int, required=True, help="Acting user id")
    p_proj.set_defaults(func=cmd_project)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    settings = get_settings()
    setup_logging(settings.log_level.value, settings.log_format.value)
    parser = build_parser()
    args = parser.parse_args(argv)
    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
