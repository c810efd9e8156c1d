"""Rich-text fragment tree.

Note content is the HTML fragment produced by the editor toolbar (bold,
italic, strike, headings, lists, font color and highlight).  It is held as an
explicit tree of elements and text nodes so that checklist toggling and
transport encoding never operate on raw markup strings.

Trees built by :meth:`RichText.from_html` are normalized (lowercase names,
adjacent text merged, empty text dropped), and ``from_html(x.to_html()) == x``
holds for every normalized tree.
"""

from __future__ import annotations

import copy
import html
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Union

from bs4 import BeautifulSoup, NavigableString, Tag
from pydantic import GetCoreSchemaHandler, GetJsonSchemaHandler
from pydantic_core import CoreSchema, core_schema

VOID_TAGS = frozenset(
    {"area", "br", "col", "embed", "hr", "img", "input", "source", "track", "wbr"}
)
BLOCK_TAGS = frozenset(
    {"p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "li", "ul", "ol", "blockquote", "pre"}
)


@dataclass
class Text:
    """A run of character data."""

    text: str


@dataclass
class Element:
    """A markup element with string attributes and ordered children."""

    tag: str
    attrs: dict[str, str] = field(default_factory=dict)
    children: list[Node] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.tag = self.tag.lower()
        self.attrs = {k.lower(): v for k, v in self.attrs.items()}
        self.children = _normalize(self.children)

    @property
    def style(self) -> dict[str, str]:
        """The ``style`` attribute parsed into a property map."""
        return parse_style(self.attrs.get("style", ""))

    def iter(self, tag: Optional[str] = None) -> Iterator[Element]:
        """Yield descendant elements in document order."""
        yield from _iter_elements(self.children, tag)

    def text_content(self) -> str:
        return "".join(_iter_text(self.children))


Node = Union[Text, Element]


@dataclass
class RichText:
    """Root of a rich-text fragment."""

    children: list[Node] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.children = _normalize(self.children)

    # ------------------------------------------------------------------
    # Parsing / serialization
    # ------------------------------------------------------------------

    @classmethod
    def from_html(cls, markup: str) -> RichText:
        """Parse an HTML fragment into a tree."""
        if not markup:
            return cls()
        soup = BeautifulSoup(markup, "html.parser", multi_valued_attributes=None)
        return cls(_convert(soup.contents))

    @classmethod
    def from_lines(cls, lines: list[str]) -> RichText:
        """Build a fragment with one paragraph per line."""
        return cls([Element("p", children=[Text(line)]) for line in lines if line])

    def to_html(self) -> str:
        return "".join(_serialize(node) for node in self.children)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def iter(self, tag: Optional[str] = None) -> Iterator[Element]:
        """Yield every element (optionally only ``tag``) in document order."""
        yield from _iter_elements(self.children, tag)

    def text_content(self) -> str:
        return "".join(_iter_text(self.children))

    def text_lines(self) -> list[str]:
        """Visible text split on line breaks and block boundaries."""
        parts: list[str] = []
        _collect_lines(self.children, parts)
        return [line.strip() for line in "".join(parts).splitlines() if line.strip()]

    def is_blank(self) -> bool:
        if any(True for _ in self.iter("img")):
            return False
        return not self.text_content().strip()

    def copy(self) -> RichText:
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # pydantic integration
    # ------------------------------------------------------------------

    @classmethod
    def __get_pydantic_core_schema__(cls, source: Any, handler: GetCoreSchemaHandler) -> CoreSchema:
        # instances pass through untouched; markup strings are parsed
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda value: value.to_html(), when_used="json"
            ),
        )

    @classmethod
    def __get_pydantic_json_schema__(cls, schema: CoreSchema, handler: GetJsonSchemaHandler) -> dict:
        return {"type": "string", "format": "html"}

    @classmethod
    def _validate(cls, value: Any) -> RichText:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls.from_html(value)
        raise ValueError("expected an HTML fragment")


# ---------------------------------------------------------------------------
# Style attribute helpers
# ---------------------------------------------------------------------------


def parse_style(style: str) -> dict[str, str]:
    """Parse ``"color: red; text-decoration: line-through"`` into a dict."""
    props: dict[str, str] = {}
    for decl in style.split(";"):
        name, sep, value = decl.partition(":")
        if sep and name.strip():
            props[name.strip().lower()] = value.strip()
    return props


def format_style(props: dict[str, str]) -> str:
    """Inverse of :func:`parse_style`, with a trailing semicolon."""
    return "".join(f"{name}: {value}; " for name, value in props.items()).rstrip()


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _normalize(children: list[Node]) -> list[Node]:
    out: list[Node] = []
    for child in children:
        if isinstance(child, Text):
            if not child.text:
                continue
            if out and isinstance(out[-1], Text):
                out[-1] = Text(out[-1].text + child.text)
                continue
        out.append(child)
    return out


def _convert(contents) -> list[Node]:
    nodes: list[Node] = []
    for item in contents:
        if isinstance(item, Tag):
            attrs = {k: v if isinstance(v, str) else " ".join(v) for k, v in item.attrs.items()}
            nodes.append(Element(item.name, attrs, _convert(item.contents)))
        elif type(item) is NavigableString:
            nodes.append(Text(str(item)))
        # comments, doctypes and processing instructions are dropped
    return nodes


def _serialize(node: Node) -> str:
    if isinstance(node, Text):
        return html.escape(node.text, quote=False)
    attrs = "".join(
        f' {name}="{html.escape(value, quote=True)}"' for name, value in node.attrs.items()
    )
    if node.tag in VOID_TAGS:
        return f"<{node.tag}{attrs}>"
    inner = "".join(_serialize(child) for child in node.children)
    return f"<{node.tag}{attrs}>{inner}</{node.tag}>"


def _iter_elements(children: list[Node], tag: Optional[str]) -> Iterator[Element]:
    for child in children:
        if isinstance(child, Element):
            if tag is None or child.tag == tag:
                yield child
            yield from _iter_elements(child.children, tag)


def _iter_text(children: list[Node]) -> Iterator[str]:
    for child in children:
        if isinstance(child, Text):
            yield child.text
        else:
            yield from _iter_text(child.children)


def _collect_lines(children: list[Node], parts: list[str]) -> None:
    for child in children:
        if isinstance(child, Text):
            parts.append(child.text)
        elif child.tag == "br":
            parts.append("\n")
        elif child.tag in BLOCK_TAGS:
            parts.append("\n")
            _collect_lines(child.children, parts)
            parts.append("\n")
        else:
            _collect_lines(child.children, parts)
