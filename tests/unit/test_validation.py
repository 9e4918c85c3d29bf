"""Tests for shared validation helpers."""

from __future__ import annotations

import pytest

from issuedeck.validation import sanitize_tag_name, sanitize_title, validate_priority


class TestSanitizeTagName:
    def test_strips_whitespace_and_trigger(self) -> None:
        assert sanitize_tag_name("  #Work ") == ("Work", None)

    def test_rejects_empty(self) -> None:
        assert sanitize_tag_name("  # ") == ("", "tag name must not be empty")

    def test_rejects_control_characters(self) -> None:
        name, error = sanitize_tag_name("bad\nname")
        assert name == ""
        assert error is not None
        assert "U+000A" in error

    def test_rejects_long_names(self) -> None:
        _, error = sanitize_tag_name("x" * 65)
        assert error is not None
        assert "at most 64" in error

    def test_rejects_non_string(self) -> None:
        assert sanitize_tag_name(42) == ("", "tag name must be a string")


class TestSanitizeTitle:
    def test_allows_empty(self) -> None:
        assert sanitize_title("   ") == ("", None)

    def test_rejects_long_titles(self) -> None:
        _, error = sanitize_title("x" * 501)
        assert error is not None


class TestValidatePriority:
    @pytest.mark.parametrize("value", [0, 1, 2])
    def test_valid(self, value: int) -> None:
        assert validate_priority(value) == value

    @pytest.mark.parametrize("value", [-1, 3, "1", 1.0, None, False])
    def test_invalid(self, value: object) -> None:
        with pytest.raises(ValueError):
            validate_priority(value)
