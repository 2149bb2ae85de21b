"""
Grammar - Block delimiters and their JSON attribute payload.

A block is written as an HTML comment pair around its content:

    <!-- wp:demo/box {"color":"red"} -->inner markup<!-- /wp:demo/box -->
    <!-- wp:demo/spacer {"height":20} /-->

Names in the default namespace are written without it (``wp:paragraph``
for ``core/paragraph``). The payload is single-line JSON whose characters
that could end the comment or be read as markup are unicode-escaped.
"""

from __future__ import annotations
import json
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterator, Literal


TokenType = Literal["opener", "closer", "void"]

# Payload characters escaped so the delimiter stays a valid, inert comment.
_PAYLOAD_ESCAPES = (
    ("--", "\\u002d\\u002d"),
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
)
# an escaped quote, not the escaped backslash before a closing quote
_ESCAPED_QUOTE = re.compile(r'(?<!\\)((?:\\\\)*)\\"')


@lru_cache(maxsize=8)
def delimiter_pattern(prefix: str = "wp") -> re.Pattern[str]:
    return re.compile(
        r"<!--\s+(?P<closer>/)?" + re.escape(prefix) + r":"
        r"(?P<namespace>[a-z][a-z0-9_-]*/)?(?P<name>[a-z][a-z0-9_-]*)\s+"
        r"(?P<attrs>\{.*?\}\s+)?"
        r"(?P<void>/)?-->",
        re.DOTALL,
    )


@dataclass
class Token:
    """
    One block delimiter found in markup.

    Attributes:
        type: opener, closer or void (self-closing)
        name: Full block name, namespace included
        attrs_json: Raw JSON payload text, None when absent
        start / end: Offsets of the delimiter in the scanned text
    """
    type: TokenType
    name: str
    attrs_json: str | None
    start: int
    end: int


def normalize_name(raw_name: str, default_namespace: str = "core") -> str:
    """``paragraph`` -> ``core/paragraph``; namespaced names are kept."""
    if "/" in raw_name:
        return raw_name
    return f"{default_namespace}/{raw_name}"


def serialize_name(name: str, default_namespace: str = "core") -> str:
    """``core/paragraph`` -> ``paragraph``; other namespaces are kept."""
    prefix = f"{default_namespace}/"
    if name.startswith(prefix):
        return name[len(prefix):]
    return name


def iter_tokens(text: str, prefix: str = "wp", default_namespace: str = "core", start: int = 0) -> Iterator[Token]:
    """Yield every delimiter in text in document order."""
    for match in delimiter_pattern(prefix).finditer(text, start):
        raw_name = (match.group("namespace") or "") + match.group("name")
        if match.group("closer"):
            token_type: TokenType = "closer"
        elif match.group("void"):
            token_type = "void"
        else:
            token_type = "opener"
        attrs = match.group("attrs")
        yield Token(
            type=token_type,
            name=normalize_name(raw_name, default_namespace),
            attrs_json=attrs.rstrip() if attrs else None,
            start=match.start(),
            end=match.end(),
        )


def parse_attributes_json(attrs_json: str | None) -> dict[str, Any]:
    """
    Decode a delimiter payload.

    Raises:
        ValueError: The payload is not a JSON object.
    """
    if attrs_json is None:
        return {}
    value = json.loads(attrs_json)
    if not isinstance(value, dict):
        raise ValueError(f"block attributes must be a JSON object, got {type(value).__name__}")
    return value


def serialize_attributes(attributes: dict[str, Any]) -> str:
    """
    Encode attributes as a delimiter payload.

    Example:
        serialize_attributes({"caption": "a <b> -- c"})
        # '{"caption":"a \\u003cb\\u003e \\u002d\\u002d c"}'
    """
    text = json.dumps(attributes, separators=(",", ":"), ensure_ascii=False)
    for raw, escaped in _PAYLOAD_ESCAPES:
        text = text.replace(raw, escaped)
    text = _ESCAPED_QUOTE.sub(r"\1\\u0022", text)
    return text


def opener(name: str, attributes: dict[str, Any] | None = None, *, void: bool = False,
           prefix: str = "wp", default_namespace: str = "core") -> str:
    """Opening (or self-closing, when void) delimiter for a block."""
    parts = [f"<!-- {prefix}:{serialize_name(name, default_namespace)} "]
    if attributes:
        parts.append(serialize_attributes(attributes) + " ")
    parts.append("/-->" if void else "-->")
    return "".join(parts)


def closer(name: str, prefix: str = "wp", default_namespace: str = "core") -> str:
    return f"<!-- /{prefix}:{serialize_name(name, default_namespace)} -->"
