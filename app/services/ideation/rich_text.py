"""Plain-text extraction from Lexical rich-text JSON."""

from __future__ import annotations

from typing import Any

_INLINE_CONTAINERS = frozenset({"paragraph", "heading", "listitem"})


def extract_text(rich_text: Any) -> str:
    """Collect the text leaves of a Lexical document.

    Paragraph-like nodes join their inline children directly; any other
    container joins its children with newlines. Anything unrecognised is empty.
    """
    if not isinstance(rich_text, dict):
        return ""
    root = rich_text.get("root")
    if not root:
        return ""
    return _node_text(root).strip()


def _node_text(node: Any) -> str:
    if not isinstance(node, dict):
        return ""
    if isinstance(node.get("text"), str):
        return node["text"]

    children = node.get("children")
    if not isinstance(children, list):
        return ""
    parts = [text for text in (_node_text(child) for child in children) if text]
    separator = "" if node.get("type") in _INLINE_CONTAINERS else "\n"
    return separator.join(parts)
