"""
Transforms - Rules converting between block types and other content kinds.

A block type declares transform rules in two scopes:

- ``from``: how other content becomes this block type (another block, typed
  text, a file list, a leading prefix, a markup node or a macro tag)
- ``to``: how this block type becomes another block type

Each rule kind is its own dataclass (BlockTransform, EnterTransform,
FilesTransform, PrefixTransform, RawTransform, ShortcodeTransform).
TransformResolver gathers candidate rules from the registry, filters them by
their match conditions, orders them by ascending priority (declaration order
breaks ties) and applies the first survivor.

Example:
    resolver = TransformResolver(registry)
    cards = resolver.switch_to_block_type(box, "demo/card")
"""

from __future__ import annotations
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Iterable, Sequence, Union

from bs4 import NavigableString, Tag

from .attributes import AttributeShape, MISSING, extract_from_node, parse_markup, resolve_value
from .block import BlockInstance
from .errors import NoMatchingTransform, UnknownBlock
from .shortcode import Shortcode, next_shortcode
from .templates import create_block
from ..settings import EngineSettings

if TYPE_CHECKING:
    from .block_type import BlockType
    from .registry import BlockTypeRegistry


logger = logging.getLogger(__name__)


WILDCARD = "*"


# =============================================================================
# Rule Kinds
# =============================================================================


@dataclass
class BlockTransform:
    """
    Structural block-to-block rule.

    Single-block rules are called as ``transform(attributes, inner_blocks)``
    and ``is_match(attributes, block)``. Multi-block rules receive lists:
    ``transform([attributes, ...], [inner_blocks, ...])`` and
    ``is_match([attributes, ...], [block, ...])``.
    """
    blocks: list[str]
    transform: Callable[..., Any]
    is_match: Callable[..., bool] | None = None
    is_multi_block: bool = False
    priority: int | None = None

    kind: ClassVar[str] = "block"

    def names_block(self, name: str) -> bool:
        return WILDCARD in self.blocks or name in self.blocks


@dataclass
class EnterTransform:
    """Typed text matching regexp, e.g. ``---`` followed by Enter."""
    regexp: re.Pattern[str] | str
    transform: Callable[[str], Any]
    priority: int | None = None

    kind: ClassVar[str] = "enter"

    def __post_init__(self):
        if isinstance(self.regexp, str):
            self.regexp = re.compile(self.regexp)


@dataclass
class FilesTransform:
    """A list of dropped or pasted files."""
    transform: Callable[[list[Any]], Any]
    is_match: Callable[[list[Any]], bool] | None = None
    priority: int | None = None

    kind: ClassVar[str] = "files"


@dataclass
class PrefixTransform:
    """Text starting with prefix; the transform receives the remainder."""
    prefix: str
    transform: Callable[[str], Any]
    priority: int | None = None

    kind: ClassVar[str] = "prefix"


@dataclass
class RawTransform:
    """
    A markup node (BeautifulSoup Tag), matched by is_match or by selector.

    schema describes the markup the rule expects; it is carried for callers
    that sanitize pasted content and is not interpreted by the resolver.
    """
    transform: Callable[[Tag], Any]
    is_match: Callable[[Tag], bool] | None = None
    selector: str | None = None
    schema: dict[str, Any] | Callable[[], dict[str, Any]] | None = None
    priority: int | None = None

    kind: ClassVar[str] = "raw"

    def matches(self, node: Tag) -> bool:
        if self.is_match is not None:
            return bool(self.is_match(node))
        if self.selector is not None:
            return bool(node.css.match(self.selector))
        return False


class ShortcodeAttribute(AttributeShape):
    """Attribute of a shortcode rule; shortcode(named, match) computes the value directly."""
    shortcode: Callable[..., Any] | None = None


@dataclass
class ShortcodeTransform:
    """
    A macro tag such as ``[gallery ids="1,2"]``.

    Without a transform callable, the block is built from attributes: each
    entry either computes its value from the macro (``shortcode``) or
    extracts it from the macro content like any markup-sourced attribute.
    """
    tag: str | list[str]
    attributes: dict[str, ShortcodeAttribute] = field(default_factory=dict)
    transform: Callable[[dict[str, str], Shortcode], Any] | None = None
    is_match: Callable[[dict[str, str]], bool] | None = None
    priority: int | None = None

    kind: ClassVar[str] = "shortcode"

    def __post_init__(self):
        self.attributes = {
            name: value if isinstance(value, ShortcodeAttribute) else ShortcodeAttribute.model_validate(value)
            for name, value in self.attributes.items()
        }

    @property
    def tags(self) -> list[str]:
        return [self.tag] if isinstance(self.tag, str) else list(self.tag)


TransformRule = Union[
    BlockTransform, EnterTransform, FilesTransform, PrefixTransform, RawTransform, ShortcodeTransform
]

_RULE_KINDS: dict[str, type] = {
    "block": BlockTransform,
    "enter": EnterTransform,
    "files": FilesTransform,
    "prefix": PrefixTransform,
    "raw": RawTransform,
    "shortcode": ShortcodeTransform,
}

_CAMEL_KEYS = {"isMatch": "is_match", "isMultiBlock": "is_multi_block", "regExp": "regexp"}


def rule_from_dict(data: dict[str, Any]) -> TransformRule:
    """
    Build a rule from a declarative mapping keyed by ``type``.

    Example:
        rule_from_dict({"type": "prefix", "prefix": "#", "transform": make_heading})
    """
    data = dict(data)
    kind = data.pop("type", None)
    rule_cls = _RULE_KINDS.get(kind)
    if rule_cls is None:
        raise ValueError(f"Unknown transform type {kind!r}; expected one of {sorted(_RULE_KINDS)}")
    kwargs = {_CAMEL_KEYS.get(key, key): value for key, value in data.items()}
    return rule_cls(**kwargs)


def _as_rule(value: Any) -> TransformRule:
    if isinstance(value, tuple(_RULE_KINDS.values())):
        return value
    if isinstance(value, dict):
        return rule_from_dict(value)
    raise ValueError(f"Not a transform rule: {value!r}")


@dataclass
class BlockTransforms:
    """Transform rules of one block type, split by direction."""
    from_: list[TransformRule] = field(default_factory=list)
    to: list[BlockTransform] = field(default_factory=list)
    ungroup: Callable[[dict[str, Any], list[BlockInstance]], list[BlockInstance]] | None = None

    def __post_init__(self):
        self.from_ = [_as_rule(rule) for rule in self.from_]
        self.to = [_as_rule(rule) for rule in self.to]
        for rule in self.to:
            if not isinstance(rule, BlockTransform):
                raise ValueError(f"Only block transforms can be declared in 'to', got '{rule.kind}'")

    @classmethod
    def coerce(cls, value: Any) -> BlockTransforms:
        """Accept an instance, None, or a mapping with 'from' / 'to' / 'ungroup' keys."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            return cls(
                from_=list(value.get("from", value.get("from_", []))),
                to=list(value.get("to", [])),
                ungroup=value.get("ungroup"),
            )
        raise ValueError(f"Cannot build transforms from {value!r}")

    def get(self, direction: str) -> list[TransformRule]:
        if direction == "from":
            return list(self.from_)
        if direction == "to":
            return list(self.to)
        raise ValueError(f"direction must be 'from' or 'to', got {direction!r}")


# =============================================================================
# Resolver
# =============================================================================


def _normalize_result(result: Any) -> list[BlockInstance]:
    if result is None:
        return []
    blocks = [result] if isinstance(result, BlockInstance) else list(result)
    for block in blocks:
        if not isinstance(block, BlockInstance):
            raise TypeError(f"Transform returned {block!r}, expected BlockInstance objects")
    return blocks


class TransformResolver:
    """
    Finds and applies transform rules using the rules declared in a registry.
    """

    def __init__(self, registry: "BlockTypeRegistry", settings: EngineSettings | None = None):
        self.registry = registry
        self.settings = settings or registry.settings

    # -------------------------------------------------------------------------
    # Rule selection
    # -------------------------------------------------------------------------

    def priority_of(self, rule: TransformRule) -> int:
        return rule.priority if rule.priority is not None else self.settings.default_transform_priority

    def order(self, rules: Iterable[Any], key: Callable[[Any], TransformRule] = lambda rule: rule) -> list[Any]:
        """Stable sort by ascending priority."""
        return sorted(rules, key=lambda item: self.priority_of(key(item)))

    def find_transform(
        self,
        rules: Sequence[TransformRule],
        predicate: Callable[[TransformRule], bool],
    ) -> TransformRule | None:
        """Highest-priority rule satisfying predicate, or None."""
        for rule in self.order(rules):
            if predicate(rule):
                return rule
        return None

    def get_transforms(self, direction: str, name: str) -> list[TransformRule]:
        """Rules declared by a block type in the given direction."""
        block_type = self.registry.lookup(name)
        if block_type is None:
            raise UnknownBlock(name)
        return block_type.transforms.get(direction)

    def _targets(self, target: str | None) -> list["BlockType"]:
        if target is None:
            return list(self.registry.list())
        block_type = self.registry.lookup(target)
        if block_type is None:
            raise UnknownBlock(target)
        return [block_type]

    def _from_candidates(self, rule_cls: type, target: str | None) -> list[tuple["BlockType", Any]]:
        return [
            (block_type, rule)
            for block_type in self._targets(target)
            for rule in block_type.transforms.from_
            if isinstance(rule, rule_cls)
        ]

    # -------------------------------------------------------------------------
    # Block to block
    # -------------------------------------------------------------------------

    def _block_rule_matches(self, rule: BlockTransform, source_name: str, blocks: list[BlockInstance], mixed_allowed: bool) -> bool:
        is_multi = len(blocks) > 1
        if is_multi and not rule.is_multi_block:
            return False
        if is_multi and not mixed_allowed and any(block.name != source_name for block in blocks):
            return False
        if rule.is_match is None:
            return True
        if rule.is_multi_block:
            return bool(rule.is_match([block.attributes for block in blocks], blocks))
        return bool(rule.is_match(blocks[0].attributes, blocks[0]))

    def _block_candidates(self, blocks: list[BlockInstance], target: str) -> list[BlockTransform]:
        source_name = blocks[0].name
        source_type = self.registry.lookup(source_name)
        target_type = self.registry.lookup(target)
        if target_type is None:
            raise UnknownBlock(target)

        # (rule, whether the selection may mix block types)
        candidates: list[tuple[BlockTransform, bool]] = []
        if source_type is not None:
            candidates.extend((rule, False) for rule in source_type.transforms.to if rule.names_block(target))
        candidates.extend(
            (rule, WILDCARD in rule.blocks) for rule in target_type.transforms.from_
            if isinstance(rule, BlockTransform) and rule.names_block(source_name)
        )
        return [
            rule for rule, mixed_allowed in candidates
            if self._block_rule_matches(rule, source_name, blocks, mixed_allowed)
        ]

    def switch_to_block_type(
        self,
        blocks: BlockInstance | Sequence[BlockInstance],
        name: str,
    ) -> list[BlockInstance]:
        """
        Convert one block (or a multi-block selection) into blocks of another type.

        The source blocks are never modified: rules receive deep copies and
        their result is returned as a new list.

        Raises:
            NoMatchingTransform: No rule matches, or the winning rule produced
                no block of the target type.
            UnknownBlock: The target type is not registered.
        """
        sources = [blocks] if isinstance(blocks, BlockInstance) else list(blocks)
        if not sources:
            raise NoMatchingTransform("No source blocks given")

        candidates = self.order(self._block_candidates(sources, name))
        if not candidates:
            raise NoMatchingTransform(f"No transform from '{sources[0].name}' to '{name}'")
        rule = candidates[0]

        copies = [block.copy() for block in sources]
        if rule.is_multi_block:
            result = rule.transform(
                [block.attributes for block in copies],
                [list(block.children) for block in copies],
            )
        else:
            result = rule.transform(copies[0].attributes, list(copies[0].children))

        results = _normalize_result(result)
        if not any(block.name == name for block in results):
            raise NoMatchingTransform(f"Transform from '{sources[0].name}' produced no '{name}' block")
        for block in results:
            if block.parent is not None:
                block.parent.remove_child(block)
        logger.debug("Transformed %d '%s' block(s) into %s", len(sources), sources[0].name, [b.name for b in results])
        return results

    def get_possible_block_transformations(
        self,
        blocks: BlockInstance | Sequence[BlockInstance],
    ) -> list["BlockType"]:
        """Block types the selection can be switched to, in registration order."""
        sources = [blocks] if isinstance(blocks, BlockInstance) else list(blocks)
        if not sources:
            return []
        source_name = sources[0].name
        possible = []
        for block_type in self.registry.list():
            if block_type.name == source_name:
                continue
            if self._block_candidates(sources, block_type.name):
                possible.append(block_type)
        return possible

    def ungroup(self, block: BlockInstance) -> list[BlockInstance]:
        """
        Replace a container block by its content.

        Uses the type's ungroup callback, or returns the children of the
        registry's grouping block.
        """
        block_type = self.registry.lookup(block.name)
        if block_type is None:
            raise UnknownBlock(block.name)
        source = block.copy()
        if block_type.transforms.ungroup is not None:
            return _normalize_result(block_type.transforms.ungroup(source.attributes, list(source.children)))
        if block.name == self.registry.grouping_block_name:
            children = list(source.children)
            source.replace_children([])
            return children
        raise NoMatchingTransform(f"Block type '{block.name}' cannot be ungrouped")

    # -------------------------------------------------------------------------
    # Other content kinds into blocks
    # -------------------------------------------------------------------------

    def _apply_first(self, candidates: list[tuple["BlockType", Any, Callable[[], Any]]], what: str) -> list[BlockInstance]:
        ordered = self.order(candidates, key=lambda item: item[1])
        if not ordered:
            raise NoMatchingTransform(f"No transform matches {what}")
        block_type, rule, apply = ordered[0]
        results = _normalize_result(apply())
        logger.debug("Applied '%s' transform of '%s' to %s", rule.kind, block_type.name, what)
        return results

    def from_enter(self, text: str, target: str | None = None) -> list[BlockInstance]:
        """Blocks for typed text followed by Enter (e.g. ``---``)."""
        candidates = [
            (block_type, rule, lambda rule=rule: rule.transform(text))
            for block_type, rule in self._from_candidates(EnterTransform, target)
            if rule.regexp.search(text)
        ]
        return self._apply_first(candidates, f"entered text {text!r}")

    def from_prefix(self, text: str, target: str | None = None) -> list[BlockInstance]:
        """Blocks for text that starts with a rule's prefix (e.g. ``# Title``)."""
        candidates = [
            (block_type, rule, lambda rule=rule: rule.transform(text[len(rule.prefix):].lstrip()))
            for block_type, rule in self._from_candidates(PrefixTransform, target)
            if text.startswith(rule.prefix)
        ]
        return self._apply_first(candidates, f"prefixed text {text!r}")

    def from_files(self, files: Sequence[Any], target: str | None = None) -> list[BlockInstance]:
        """Blocks for a list of file-like inputs."""
        files = list(files)
        candidates = [
            (block_type, rule, lambda rule=rule: rule.transform(files))
            for block_type, rule in self._from_candidates(FilesTransform, target)
            if rule.is_match is None or rule.is_match(files)
        ]
        return self._apply_first(candidates, f"{len(files)} file(s)")

    def from_raw(self, node: Tag, target: str | None = None) -> list[BlockInstance]:
        """Blocks for a markup node."""
        candidates = [
            (block_type, rule, lambda rule=rule: rule.transform(node))
            for block_type, rule in self._from_candidates(RawTransform, target)
            if rule.matches(node)
        ]
        return self._apply_first(candidates, f"<{node.name}> node")

    def from_shortcode(self, text: str, target: str | None = None) -> list[BlockInstance]:
        """Blocks for the first macro tag in text that a shortcode rule accepts."""
        candidates = []
        for block_type, rule in self._from_candidates(ShortcodeTransform, target):
            for tag in rule.tags:
                shortcode = next_shortcode(tag, text)
                if shortcode is None:
                    continue
                if rule.is_match is not None and not rule.is_match(shortcode.named):
                    continue
                candidates.append(
                    (block_type, rule, lambda block_type=block_type, rule=rule, shortcode=shortcode:
                        self._apply_shortcode(block_type, rule, shortcode))
                )
                break
        return self._apply_first(candidates, f"shortcode in {text[:40]!r}")

    def _apply_shortcode(self, block_type: "BlockType", rule: ShortcodeTransform, shortcode: Shortcode) -> Any:
        if rule.transform is not None:
            return rule.transform(shortcode.named, shortcode)

        content_root = parse_markup(shortcode.content or "")
        attributes: dict[str, Any] = {}
        for name, shape in rule.attributes.items():
            if shape.shortcode is not None:
                raw = shape.shortcode(shortcode.named, shortcode)
            elif shape.is_markup_sourced:
                raw = extract_from_node(shape, content_root)
            else:
                raw = shortcode.named.get(name.lower(), MISSING)
            attributes[name] = resolve_value(name, shape, raw)
        return create_block(self.registry, block_type.name, attributes)

    def raw_to_blocks(self, html: str) -> list[BlockInstance]:
        """
        Convert pasted markup into blocks.

        Each top-level element goes through the raw transforms; anything no
        rule accepts is kept as freeform content.
        """
        blocks: list[BlockInstance] = []
        pending: list[str] = []

        def flush():
            if pending and "".join(pending).strip():
                blocks.append(BlockInstance(self.registry.freeform_block_name, {"content": "".join(pending)}))
            pending.clear()

        for node in list(parse_markup(html).contents):
            if isinstance(node, Tag):
                try:
                    converted = self.from_raw(node)
                except NoMatchingTransform:
                    pending.append(str(node))
                    continue
                flush()
                blocks.extend(converted)
            elif isinstance(node, NavigableString):
                pending.append(str(node))
        flush()
        return blocks


__all__ = [
    "WILDCARD",
    "BlockTransform",
    "EnterTransform",
    "FilesTransform",
    "PrefixTransform",
    "RawTransform",
    "ShortcodeAttribute",
    "ShortcodeTransform",
    "TransformRule",
    "BlockTransforms",
    "TransformResolver",
    "rule_from_dict",
]
