"""
Serializer - Writes block trees back to delimited markup.

Each block becomes its delimiters around its content:

- Payload: declared attributes without a markup source whose value differs
  from the default, in schema order (all attributes for unregistered blocks)
- Content: the ``save`` callback's markup when the block type declares one,
  otherwise the parsed markup fragments with changed markup-sourced
  attributes written back, otherwise just the serialized children
- Children fill the ``None`` slots of the content, depth first

Parsed, unchanged blocks re-emit their original fragments so a document
round-trips byte for byte, empty delimiter pairs included. Write-back only
rewrites the bytes of the edited location. Invalid blocks re-emit their
original source.
"""

from __future__ import annotations
import logging
import re
from typing import TYPE_CHECKING, Any, Iterable

from bs4 import Tag
from bs4.dammit import EntitySubstitution

from .attributes import MISSING, AttributeShape, MetaStore, extract_attributes, parse_markup
from .block import BlockInstance, InnerContent
from .grammar import closer, opener
from ..settings import EngineSettings

if TYPE_CHECKING:
    from .block_type import BlockType
    from .registry import BlockTypeRegistry


logger = logging.getLogger(__name__)


SLOT_MARKER = "<!--blockcraft:slot-->"

_BETWEEN_TAGS_WHITESPACE = re.compile(r">\s+<")


def _normalize_whitespace(html: str) -> str:
    return _BETWEEN_TAGS_WHITESPACE.sub("><", html.strip())


def is_equivalent_markup(expected: str, actual: str, api_version: int = 1) -> bool:
    """
    Compare saved markup with parsed markup.

    api_version 1 requires identical text; later versions ignore whitespace
    at the content boundaries and between tags.
    """
    if api_version == 1:
        return expected == actual
    return _normalize_whitespace(expected) == _normalize_whitespace(actual)


def _as_fragments(saved: Any) -> InnerContent:
    if saved is None:
        return []
    if isinstance(saved, str):
        return [saved]
    return [part if part is None else str(part) for part in saved]


def fill_slots(fragments: InnerContent, children: list[str], spread_single: bool = False) -> str:
    """
    Interleave serialized children into the None slots of fragments.

    Extra children are appended, extra slots stay empty. With spread_single,
    a single slot receives every child.
    """
    slots = sum(1 for part in fragments if part is None)
    if slots == 0:
        return "".join(fragments) + "".join(children)
    if spread_single and slots == 1:
        return "".join("".join(children) if part is None else part for part in fragments)

    remaining = iter(children)
    parts = []
    for part in fragments:
        if part is None:
            parts.append(next(remaining, ""))
        else:
            parts.append(part)
    parts.extend(remaining)
    return "".join(parts)


def get_saved_content(block_type: "BlockType", attributes: dict[str, Any]) -> str:
    """Markup of the save callback with children left out."""
    if block_type.save is None:
        return ""
    fragments = _as_fragments(block_type.save(dict(attributes), []))
    return "".join(part for part in fragments if part is not None)


def get_comment_attributes(block_type: "BlockType | None", attributes: dict[str, Any]) -> dict[str, Any]:
    """
    Attributes written to the delimiter payload.

    Example:
        # color declared with default "blue", caption sourced from markup
        get_comment_attributes(box_type, {"color": "red", "caption": "Hi"})
        # {'color': 'red'}
    """
    if block_type is None:
        return dict(attributes)
    result: dict[str, Any] = {}
    for name, shape in block_type.attributes.items():
        if not shape.is_payload_sourced:
            continue
        value = attributes.get(name, MISSING)
        if value is MISSING or value == shape.effective_default():
            continue
        result[name] = value
    return result


_START_TAG = re.compile(r"""<[^\s/>!]+(?:"[^"]*"|'[^']*'|[^'">])*>""")
_TAG_NAME = re.compile(r"<[^\s/>]+")
_TAG_ATTRIBUTE = re.compile(r"""\s+([^\s"'>/=]+)(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'>]+))?""")


def _start_tag_span(text: str, node: Tag) -> tuple[int, int] | None:
    """Offsets of a node's start tag in the markup it was parsed from."""
    if node.sourceline is None or node.sourcepos is None:
        return None
    line_starts = [0] + [match.end() for match in re.finditer("\n", text)]
    start = line_starts[node.sourceline - 1] + node.sourcepos
    match = _START_TAG.match(text, start)
    if match is None:
        return None
    return start, match.end()


def _end_tag_start(text: str, name: str, position: int) -> int | None:
    """Offset of the end tag closing an element whose content starts at position."""
    tags = re.compile(
        r"<(/?)" + re.escape(name) + r"""(?=[\s/>])(?:"[^"]*"|'[^']*'|[^'">])*>""",
        re.IGNORECASE,
    )
    depth = 1
    for match in tags.finditer(text, position):
        if match.group(1):
            depth -= 1
            if depth == 0:
                return match.start()
        elif not match.group(0).endswith("/>"):
            depth += 1
    return None


def _set_tag_attribute(tag: str, name: str, rendered: str) -> str:
    """Replace, add or (with an empty rendering) drop one attribute of a start tag."""
    position = _TAG_NAME.match(tag).end()
    while True:
        match = _TAG_ATTRIBUTE.match(tag, position)
        if match is None:
            break
        if match.group(1).lower() == name.lower():
            return tag[:match.start()] + rendered + tag[match.end():]
        position = match.end()
    return tag[:position] + rendered + tag[position:]


def _write_back(shape: AttributeShape, markup: str, value: Any) -> str | None:
    """
    Write one attribute value into its selector location.

    Only the bytes of that location change. Returns None if the selector
    matches nothing that can be rewritten.
    """
    root = parse_markup(markup)
    node = root.select_one(shape.selector) if shape.selector else root
    if node is None:
        return None

    if shape.source == "attribute":
        span = _start_tag_span(markup, node)
        if span is None:
            return None
        if value is None or value is False:
            rendered = ""
        elif value is True and "boolean" in shape.types:
            rendered = f" {shape.attribute}"
        else:
            rendered = f" {shape.attribute}={EntitySubstitution.substitute_xml(str(value), True)}"
        start, end = span
        return markup[:start] + _set_tag_attribute(markup[start:end], shape.attribute, rendered) + markup[end:]

    if shape.source == "html":
        if shape.multiline and isinstance(value, list):
            value = "".join(f"<{shape.multiline}>{line}</{shape.multiline}>" for line in value)
        inner = "" if value is None else str(value)
    else:
        inner = EntitySubstitution.substitute_xml("" if value is None else str(value))

    if node is root:
        return inner
    span = _start_tag_span(markup, node)
    if span is None or markup[:span[1]].endswith("/>"):
        return None
    end = _end_tag_start(markup, node.name, span[1])
    if end is None:
        return None
    return markup[:span[1]] + inner + markup[end:]


class Serializer:
    """
    Serializes BlockInstance trees.

    Example:
        serializer = Serializer(registry)
        markup = serializer.serialize(blocks)
    """

    def __init__(
        self,
        registry: "BlockTypeRegistry",
        settings: EngineSettings | None = None,
        meta_store: MetaStore | None = None,
    ):
        self.registry = registry
        self.settings = settings or registry.settings
        self.meta_store = meta_store

    def serialize(self, blocks: BlockInstance | Iterable[BlockInstance], is_inner_blocks: bool = False) -> str:
        """
        Serialize one block or a sequence of blocks.

        Freeform blocks are written bare at the top level; with
        is_inner_blocks they are nested content and keep their delimiters.
        """
        if isinstance(blocks, BlockInstance):
            return self.serialize_block(blocks, is_inner_blocks)
        return "".join(self.serialize_block(block, is_inner_blocks) for block in blocks)

    def serialize_block(self, block: BlockInstance, is_inner_blocks: bool = False) -> str:
        if not block.is_valid and block.source is not None:
            return block.source

        block_type = self.registry.lookup(block.name)
        attributes = block.attributes
        if block.name == self.registry.freeform_block_name and not block.has_markup:
            content = str(attributes.get("content") or "")
            if not is_inner_blocks:
                return content
            attributes = {name: value for name, value in attributes.items() if name != "content"}
        else:
            if block_type is not None:
                self._write_meta(block_type, block)
            content = self.get_block_content(block, block_type)
        attributes = get_comment_attributes(block_type, attributes)

        prefix = self.settings.delimiter_prefix
        namespace = self.settings.default_namespace
        # a parsed empty pair stays a pair
        if not content and (block.is_void or not block.has_markup):
            return opener(block.name, attributes, void=True, prefix=prefix, default_namespace=namespace)
        return (
            opener(block.name, attributes, prefix=prefix, default_namespace=namespace)
            + content
            + closer(block.name, prefix=prefix, default_namespace=namespace)
        )

    def get_block_content(self, block: BlockInstance, block_type: "BlockType | None" = None) -> str:
        """A block's content between its delimiters, children included."""
        if block_type is None:
            block_type = self.registry.lookup(block.name)
        children = [self.serialize_block(child, is_inner_blocks=True) for child in block.children]

        if block_type is not None and block_type.save is not None:
            if block.is_valid and block.has_markup:
                expected = get_saved_content(block_type, block.attributes)
                if is_equivalent_markup(expected, block.inner_html, block_type.api_version):
                    return fill_slots(block.inner_content, children)
            saved = _as_fragments(block_type.save(dict(block.attributes), list(block.children)))
            return fill_slots(saved, children, spread_single=True)

        if block.has_markup:
            return fill_slots(self._patch_sourced_attributes(block, block_type), children)
        return "".join(children)

    def _patch_sourced_attributes(self, block: BlockInstance, block_type: "BlockType | None") -> InnerContent:
        fragments = list(block.inner_content or [])
        if block_type is None:
            return fragments
        sourced = {name: shape for name, shape in block_type.attributes.items() if shape.is_markup_sourced}
        if not sourced:
            return fragments

        parsed = extract_attributes(sourced, block.inner_html, {})
        changed = {
            name: shape for name, shape in sourced.items()
            if name in block.attributes and block.attributes[name] != parsed[name]
        }
        if not changed:
            return fragments

        markup = "".join(SLOT_MARKER if part is None else part for part in fragments)
        for name, shape in changed.items():
            if shape.source == "query":
                logger.debug("Not writing back query attribute '%s' of '%s'", name, block.name)
                continue
            written = _write_back(shape, markup, block.attributes[name])
            if written is None:
                logger.debug("No markup location for attribute '%s' of '%s'", name, block.name)
            else:
                markup = written

        patched: InnerContent = []
        for index, part in enumerate(markup.split(SLOT_MARKER)):
            if index:
                patched.append(None)
            if part:
                patched.append(part)
        return patched

    def _write_meta(self, block_type: "BlockType", block: BlockInstance) -> None:
        if self.meta_store is None:
            return
        for name, shape in block_type.attributes.items():
            if shape.source == "meta" and name in block.attributes:
                self.meta_store.set(shape.meta, block.attributes[name])


def serialize(
    blocks: BlockInstance | Iterable[BlockInstance],
    registry: "BlockTypeRegistry",
    settings: EngineSettings | None = None,
    meta_store: MetaStore | None = None,
    is_inner_blocks: bool = False,
) -> str:
    """Serialize with a one-off Serializer."""
    return Serializer(registry, settings, meta_store).serialize(blocks, is_inner_blocks)


def get_block_content(block: BlockInstance, registry: "BlockTypeRegistry") -> str:
    return Serializer(registry).get_block_content(block)
