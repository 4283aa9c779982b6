"""Highlight vocabulary: the values a post's ``highlight`` may take.

The vocabulary is a YAML file of terms, either a mapping of key → label::

    vid: highlights
    terms:
      breaking: Breaking news
      quote: Quote

or a plain list of labels, in which case keys are derived from the labels.
The empty value always means "no highlight".
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from liveblog.collaborators import HighlightVocabularyProvider
from liveblog.errors import SchemaError, SchemaErrorCode
from liveblog.logging import get_logger

log = get_logger("vocabulary")

NONE_OPTION_LABEL = "- None -"


def term_key(label: str) -> str:
    """Machine key for a term label: lower-case, non-alphanumerics → ``_``."""
    return re.sub(r"[^a-z0-9]+", "_", label.strip().lower()).strip("_")


class HighlightVocabulary(BaseModel, HighlightVocabularyProvider):
    vid: str = "highlights"
    terms: dict[str, str] = Field(default_factory=dict)

    def is_valid_highlight(self, value: str | None) -> bool:
        if value is None or value == "":
            return True
        return value in self.terms

    def options(self) -> dict[str, str]:
        """Select options, empty choice first."""
        return {"": NONE_OPTION_LABEL, **self.terms}


def parse_vocabulary(raw: Any, *, default_vid: str = "highlights") -> HighlightVocabulary:
    if isinstance(raw, list):
        raw = {"terms": raw}
    if not isinstance(raw, dict):
        raise SchemaError(
            "Highlight vocabulary must be a mapping or a list of labels",
            code=SchemaErrorCode.INVALID_DEFINITION,
        )

    raw_terms = raw.get("terms") or {}
    if isinstance(raw_terms, list):
        terms = {term_key(str(label)): str(label) for label in raw_terms}
    elif isinstance(raw_terms, dict):
        terms = {str(k): str(v) for k, v in raw_terms.items()}
    else:
        raise SchemaError(
            "'terms' must be a mapping or a list",
            code=SchemaErrorCode.INVALID_DEFINITION,
        )

    if "" in terms:
        raise SchemaError(
            "The empty key is reserved for 'no highlight'",
            code=SchemaErrorCode.INVALID_DEFINITION,
        )
    return HighlightVocabulary(vid=str(raw.get("vid", default_vid)), terms=terms)


def load_highlight_vocabulary(path: str | Path, *, default_vid: str = "highlights") -> HighlightVocabulary:
    path = Path(path)
    if not path.exists():
        raise SchemaError(
            f"Highlight vocabulary file not found: {path}",
            code=SchemaErrorCode.INVALID_DEFINITION,
        )
    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    vocabulary = parse_vocabulary(raw, default_vid=default_vid)
    log.info("highlight_vocabulary_loaded", path=str(path), vid=vocabulary.vid, terms=len(vocabulary.terms))
    return vocabulary


# ── Singleton vocabulary management ─────────────────────

_active_vocabulary: HighlightVocabulary | None = None


def get_highlight_vocabulary() -> HighlightVocabulary:
    """Return the configured vocabulary; empty when the file is missing."""
    global _active_vocabulary
    if _active_vocabulary is not None:
        return _active_vocabulary

    from liveblog.config import get_settings
    settings = get_settings()
    path = Path(settings.highlight_vocabulary_path)

    if not path.exists():
        log.warning("highlight_vocabulary_not_found_using_empty", path=str(path))
        _active_vocabulary = HighlightVocabulary(vid=settings.highlight_vocabulary_id)
        return _active_vocabulary

    _active_vocabulary = load_highlight_vocabulary(path, default_vid=settings.highlight_vocabulary_id)
    return _active_vocabulary


def set_highlight_vocabulary(vocabulary: HighlightVocabulary) -> None:
    global _active_vocabulary
    _active_vocabulary = vocabulary


def reset_highlight_vocabulary() -> None:
    global _active_vocabulary
    _active_vocabulary = None
