"""
Tests for sanitize.py - free-text normalisation.
"""
import pytest

from solace_vault.sanitize import sanitize_text


class TestSanitizeText:

    def test_plain_text_unchanged(self):
        assert sanitize_text("feeling better today") == "feeling better today"

    def test_collapses_whitespace_and_null_bytes(self):
        assert sanitize_text("  a\t\tb\n\0c  ") == "a b c"

    def test_strips_script_blocks(self):
        assert sanitize_text("hi<script>alert('x')</script>there") == "hithere"

    @pytest.mark.parametrize("raw, expected", [
        ("javascript:run()", "run()"),
        ("img onerror=boom", "img boom"),
        ("<iframe src=x>text", "text"),
    ])
    def test_strips_injection_patterns(self, raw, expected):
        assert sanitize_text(raw) == expected

    def test_trims_edge_characters(self):
        assert sanitize_text("\"<quoted>\"") == "quoted"

    def test_truncates(self):
        assert sanitize_text("a" * 100, max_length=10) == "a" * 10

    @pytest.mark.parametrize("value", [None, "", 42, ["list"]])
    def test_non_strings(self, value):
        assert sanitize_text(value) == ""
