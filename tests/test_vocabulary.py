"""Tests for the highlight vocabulary."""

from __future__ import annotations

import pytest

from liveblog.errors import SchemaError
from liveblog.vocabulary import (
    HighlightVocabulary,
    get_highlight_vocabulary,
    load_highlight_vocabulary,
    parse_vocabulary,
    set_highlight_vocabulary,
    term_key,
)


class TestHighlightVocabulary:
    def test_empty_is_always_valid(self):
        vocabulary = HighlightVocabulary()
        assert vocabulary.is_valid_highlight("")
        assert vocabulary.is_valid_highlight(None)
        assert not vocabulary.is_valid_highlight("breaking")

    def test_terms(self, vocabulary):
        assert vocabulary.is_valid_highlight("breaking")
        assert not vocabulary.is_valid_highlight("Breaking news")

    def test_options(self, vocabulary):
        assert vocabulary.options() == {"": "- None -", "breaking": "Breaking news", "quote": "Quote"}
        assert list(vocabulary.options())[0] == ""


class TestParsing:
    def test_term_key(self):
        assert term_key("  Breaking News! ") == "breaking_news"

    def test_label_list(self):
        vocabulary = parse_vocabulary(["Breaking News", "Quote"])
        assert vocabulary.vid == "highlights"
        assert vocabulary.terms == {"breaking_news": "Breaking News", "quote": "Quote"}

    def test_mapping(self):
        vocabulary = parse_vocabulary({"vid": "tags", "terms": {"hot": "Hot"}})
        assert vocabulary.vid == "tags"
        assert vocabulary.terms == {"hot": "Hot"}

    def test_reserved_empty_key(self):
        with pytest.raises(SchemaError):
            parse_vocabulary({"terms": {"": "Nothing"}})

    @pytest.mark.parametrize("raw", ["breaking", {"terms": "breaking"}])
    def test_invalid(self, raw):
        with pytest.raises(SchemaError):
            parse_vocabulary(raw)


class TestLoading:
    def test_load_file(self, tmp_path):
        path = tmp_path / "highlights.yaml"
        path.write_text("terms:\n  breaking: Breaking news\n", encoding="utf-8")
        assert load_highlight_vocabulary(path).terms == {"breaking": "Breaking news"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(SchemaError):
            load_highlight_vocabulary(tmp_path / "missing.yaml")

    def test_singleton_from_working_directory(self, tmp_path):
        (tmp_path / "highlights.yaml").write_text("- Breaking\n- Quote\n", encoding="utf-8")
        vocabulary = get_highlight_vocabulary()
        assert vocabulary.terms == {"breaking": "Breaking", "quote": "Quote"}
        assert get_highlight_vocabulary() is vocabulary

    def test_singleton_without_file(self, monkeypatch):
        monkeypatch.setenv("HIGHLIGHT_VOCABULARY_ID", "tags")
        vocabulary = get_highlight_vocabulary()
        assert vocabulary.vid == "tags"
        assert vocabulary.terms == {}

    def test_set(self, vocabulary):
        set_highlight_vocabulary(vocabulary)
        assert get_highlight_vocabulary() is vocabulary
