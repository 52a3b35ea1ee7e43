"""Rich Text Extraction Module

Flattens rich-text documents (the editor's JSON tree of typed nodes) into
plain text for embedding. Extraction is total: malformed nodes contribute
nothing, and if the tree cannot be walked at all the raw structure is
serialized and scrubbed instead. A string is always returned.

Node shapes understood by the walk:
  - text leaf:      {"type": "text", "text": "..."}
  - container:      {"type": "...", "children": [...]}
  - root wrapper:   {"root": {...}}
"""

import html
import json
import logging
import re
from typing import Any, List, Mapping

logger = logging.getLogger(__name__)

RICH_TEXT_CHAR_LIMIT = 2000
MAX_TREE_DEPTH = 64

TAG_RE = re.compile(r"<[^>]*>")
STRUCTURE_NOISE_RE = re.compile(r'[{}"\[\]]')
MULTIPLE_SPACES = re.compile(r"\s+")


def _walk(node: Any, depth: int, parts: List[str]) -> None:
    if depth > MAX_TREE_DEPTH or not isinstance(node, Mapping):
        return

    if node.get("type") == "text" and isinstance(node.get("text"), str):
        parts.append(node["text"])
        return

    children = node.get("children")
    if isinstance(children, list):
        for child in children:
            _walk(child, depth + 1, parts)
        return

    root = node.get("root")
    if isinstance(root, Mapping):
        _walk(root, depth + 1, parts)


def scrub_serialized(value: Any, max_chars: int = RICH_TEXT_CHAR_LIMIT) -> str:
    """Serialize ``value`` and strip markup and JSON punctuation from it."""
    if isinstance(value, str):
        raw = value
    else:
        try:
            raw = json.dumps(value, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            # circular structures
            raw = repr(value)
    text = html.unescape(raw)
    text = TAG_RE.sub(" ", text)
    text = STRUCTURE_NOISE_RE.sub(" ", text)
    text = MULTIPLE_SPACES.sub(" ", text)
    return text.strip()[:max_chars]


def extract_text(rich_text: Any, max_chars: int = RICH_TEXT_CHAR_LIMIT) -> str:
    """Extract plain text from a rich-text tree.

    Text leaves are joined with single spaces in document order and the
    result is cut to ``max_chars``. A string that holds a serialized tree is
    parsed first; any other string, including one that merely starts with a
    brace, is taken as already-plain text.

    Args:
        rich_text: Tree (mapping), serialized tree, plain string or None
        max_chars: Maximum number of characters returned

    Returns:
        Extracted text, possibly empty. Never raises.
    """
    if rich_text is None or rich_text == "":
        return ""

    if isinstance(rich_text, str):
        stripped = rich_text.lstrip()
        if not stripped.startswith("{"):
            return rich_text[:max_chars]
        try:
            rich_text = json.loads(stripped)
        except ValueError:
            return rich_text[:max_chars]

    parts: List[str] = []
    try:
        _walk(rich_text, 0, parts)
    except Exception:
        logger.warning("Could not walk rich text tree; falling back to scrubbed dump", exc_info=True)
        return scrub_serialized(rich_text, max_chars)

    return " ".join(part for part in parts if part)[:max_chars]
