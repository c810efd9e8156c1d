"""Unit tests for session_notes.codec — wire encoding of note content."""

from __future__ import annotations

import pytest

from session_notes import codec
from session_notes.richtext import RichText


class TestRoundTrip:
    @pytest.mark.parametrize(
        "markup",
        [
            "",
            "<p>Hello world</p>",
            "<p>C++ &amp; a+b = c</p>",
            "<p>100% sure?</p>",
            '<ol><li style="text-decoration: line-through; color: green;">one</li><li>two</li></ol>',
            "<h1>日本語</h1><p>emoji 🎉 and ñ</p>",
            "<p><b><i><u>deep</u></i></b> nesting<br>next line</p>",
        ],
    )
    def test_decode_inverts_encode(self, markup):
        fragment = RichText.from_html(markup)
        assert codec.decode(codec.encode(fragment)) == fragment

    def test_encoded_output_never_contains_plus(self):
        wire = codec.encode(RichText.from_html("<p>a + b and c+d</p>"))
        assert "+" not in wire
        assert "%2B" in wire

    def test_encoded_output_is_ascii(self):
        wire = codec.encode(RichText.from_html("<p>ü 😀</p>"))
        assert wire.isascii()


class TestLegacyDecoding:
    def test_plus_means_space(self):
        assert codec.decode_text("Hello+world%21") == "Hello world!"

    def test_legacy_content(self):
        fragment = codec.decode("%3Cp%3Ethe+quick+fox%3C%2Fp%3E")
        assert fragment.to_html() == "<p>the quick fox</p>"

    def test_content_without_plus_untouched(self):
        assert codec.decode_text("a%20b") == "a b"

    def test_empty(self):
        assert codec.decode_text("") == ""
        assert codec.decode("") == RichText()


class TestTitles:
    def test_title_round_trip(self):
        title = "Question: Why does C++ need 50% more?"
        assert codec.decode_text(codec.encode_text(title)) == title
