"""
Shortcode - Scanner for bracketed macro tags.

Recognizes the three macro forms used in freeform content:

    [gallery ids="1,2"]                 single
    [gallery ids="1,2" /]               self-closing
    [caption align="left"]Hi[/caption]  closed

Doubled brackets (``[[gallery]]``) escape a macro and are skipped.
"""

from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Literal


ShortcodeType = Literal["single", "self-closing", "closed"]

_ATTRIBUTE_PATTERN = re.compile(
    r"""([\w-]+)\s*=\s*"([^"]*)"(?:\s|$)"""
    r"""|([\w-]+)\s*=\s*'([^']*)'(?:\s|$)"""
    r"""|([\w-]+)\s*=\s*([^\s'"]+)(?:\s|$)"""
    r"""|"([^"]*)"(?:\s|$)"""
    r"""|'([^']*)'(?:\s|$)"""
    r"""|(\S+)(?:\s|$)"""
)


def _shortcode_pattern(tag: str) -> re.Pattern[str]:
    tag = re.escape(tag)
    return re.compile(
        r"\[(\[?)(" + tag + r")(?![\w-])"
        r"([^\]/]*(?:/(?!\])[^\]/]*)*?)"
        r"(?:(/)\]|\](?:([^\[]*(?:\[(?!/\2\])[^\[]*)*)(\[/\2\]))?)"
        r"(\]?)"
    )


@dataclass
class Shortcode:
    """
    A macro tag found in text.

    Attributes:
        tag: Macro name
        named: Named attributes (keys lowercased)
        numeric: Positional attributes
        content: Text between opening and closing tag (closed form only)
        type: single, self-closing or closed
        index: Offset of the macro in the scanned text
        source: The exact matched text
    """
    tag: str
    named: dict[str, str] = field(default_factory=dict)
    numeric: list[str] = field(default_factory=list)
    content: str | None = None
    type: ShortcodeType = "single"
    index: int = 0
    source: str = ""

    def get(self, key: str | int, default: str | None = None) -> str | None:
        """Read a named (str key) or positional (int key) attribute."""
        if isinstance(key, int):
            return self.numeric[key] if key < len(self.numeric) else default
        return self.named.get(key.lower(), default)

    def to_text(self) -> str:
        """Render the macro back to text."""
        parts = [self.tag]
        for value in self.numeric:
            parts.append(f'"{value}"' if " " in value else value)
        for key, value in self.named.items():
            parts.append(f'{key}="{value}"')
        opening = "[" + " ".join(parts)
        if self.type == "self-closing":
            return opening + " /]"
        if self.type == "closed":
            return opening + "]" + (self.content or "") + f"[/{self.tag}]"
        return opening + "]"


def parse_attributes(text: str) -> tuple[dict[str, str], list[str]]:
    """
    Split a macro attribute string into named and positional attributes.

    Example:
        parse_attributes('ids="1,2" columns=3 "first"')
        # ({'ids': '1,2', 'columns': '3'}, ['first'])
    """
    named: dict[str, str] = {}
    numeric: list[str] = []
    text = text.replace("\u00a0", " ").replace("\u200b", " ")
    for match in _ATTRIBUTE_PATTERN.finditer(text):
        groups = match.groups()
        if groups[0]:
            named[groups[0].lower()] = groups[1]
        elif groups[2]:
            named[groups[2].lower()] = groups[3]
        elif groups[4]:
            named[groups[4].lower()] = groups[5]
        elif groups[6] is not None:
            numeric.append(groups[6])
        elif groups[7] is not None:
            numeric.append(groups[7])
        elif groups[8]:
            numeric.append(groups[8])
    return named, numeric


def next_shortcode(tag: str, text: str, index: int = 0) -> Shortcode | None:
    """
    Find the next macro with the given tag at or after index.

    Returns None if there is none. Escaped macros (``[[tag]]``) are skipped.
    """
    pattern = _shortcode_pattern(tag)
    position = index
    while True:
        match = pattern.search(text, position)
        if match is None:
            return None

        opening_bracket, name, attributes, self_closing, content, closing, trailing_bracket = match.groups()
        if opening_bracket == "[" and trailing_bracket == "]":
            position = match.end()
            continue

        start = match.start()
        source = match.group(0)
        if opening_bracket:
            source = source[1:]
            start += 1
        if trailing_bracket:
            source = source[:-1]

        named, numeric = parse_attributes(attributes)
        if self_closing:
            shortcode_type: ShortcodeType = "self-closing"
        elif closing:
            shortcode_type = "closed"
        else:
            shortcode_type = "single"

        return Shortcode(
            tag=name,
            named=named,
            numeric=numeric,
            content=content if closing else None,
            type=shortcode_type,
            index=start,
            source=source,
        )
