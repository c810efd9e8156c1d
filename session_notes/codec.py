"""Wire encoding for note content and titles.

Content is serialized to HTML and fully percent-encoded (UTF-8, no safe
characters), so encoded output never contains ``+``.  Notes written by older
clients were URL-form-encoded, where ``+`` stands for a space; a ``+`` in the
wire string selects that legacy decoding path.
"""

from __future__ import annotations

from urllib.parse import quote, unquote

from session_notes.richtext import RichText


def encode_text(text: str) -> str:
    """Percent-encode an arbitrary string for transport."""
    return quote(text, safe="")


def decode_text(wire: str) -> str:
    """Inverse of :func:`encode_text`, tolerating legacy form encoding."""
    if not wire:
        return ""
    if "+" in wire:
        wire = wire.replace("+", " ")
    return unquote(wire)


def encode(fragment: RichText) -> str:
    """Encode a rich-text fragment as a wire string."""
    return encode_text(fragment.to_html())


def decode(wire: str) -> RichText:
    """Decode a wire string back into a rich-text fragment."""
    return RichText.from_html(decode_text(wire))
