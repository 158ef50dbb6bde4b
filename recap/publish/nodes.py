"""
HTML to Telegraph node conversion.

Telegraph stores page content as a JSON array of nodes, where a node is
either a string or ``{"tag": ..., "attrs": {...}, "children": [...]}``.
Size limits apply to that JSON, so all budget checks measure the serialized
node tree rather than the HTML source.
"""

import json
from typing import Any, Union

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

Node = Union[str, dict[str, Any]]

ALLOWED_TAGS = frozenset(
    {
        "a", "aside", "b", "blockquote", "br", "code", "em", "figcaption",
        "figure", "h3", "h4", "hr", "i", "iframe", "img", "li", "ol", "p",
        "pre", "s", "strong", "u", "ul", "video",
    }
)
ALLOWED_ATTRS = ("href", "src")
TAG_ALIASES = {
    "h1": "h3",
    "h2": "h3",
    "h5": "h4",
    "h6": "h4",
    "del": "s",
    "strike": "s",
    "ins": "u",
}


def _convert(element: Any) -> list[Node]:
    if isinstance(element, Comment):
        return []
    if isinstance(element, NavigableString):
        text = str(element)
        return [text] if text else []
    if not isinstance(element, Tag):
        return []

    children: list[Node] = []
    for child in element.children:
        children.extend(_convert(child))

    name = TAG_ALIASES.get(element.name, element.name)
    if name not in ALLOWED_TAGS:
        # Unknown wrappers (div, span, small, ...) are dropped, their content kept.
        return children

    node: dict[str, Any] = {"tag": name}
    attrs = {key: element[key] for key in ALLOWED_ATTRS if element.get(key)}
    if attrs:
        node["attrs"] = attrs
    if children:
        node["children"] = children
    return [node]


def html_to_nodes(html: str) -> list[Node]:
    """Convert an HTML fragment into Telegraph nodes."""
    soup = BeautifulSoup(html, "html.parser")
    nodes: list[Node] = []
    for element in soup.contents:
        nodes.extend(_convert(element))
    return nodes


def serialize_nodes(nodes: list[Node]) -> str:
    """Serialize nodes exactly as they are sent to the API."""
    return json.dumps(nodes, ensure_ascii=False, separators=(",", ":"))


def node_size(node: Node) -> int:
    """Encoded size of a single node."""
    return len(json.dumps(node, ensure_ascii=False, separators=(",", ":")).encode("utf-8"))


def serialized_size(html: str) -> int:
    """Wire size in bytes of the HTML once converted to nodes."""
    return len(serialize_nodes(html_to_nodes(html)).encode("utf-8"))


def top_level_blocks(html: str) -> list[str]:
    """Split an HTML fragment into its top-level elements.

    Whitespace between blocks and comments are dropped; every other
    top-level element (including bare text) becomes one block.
    """
    soup = BeautifulSoup(html, "html.parser")
    blocks: list[str] = []
    for element in soup.contents:
        if isinstance(element, Comment):
            continue
        if isinstance(element, NavigableString) and not element.strip():
            continue
        if isinstance(element, NavigableString):
            blocks.append(element.output_ready(formatter="minimal"))
        else:
            blocks.append(str(element))
    return blocks
