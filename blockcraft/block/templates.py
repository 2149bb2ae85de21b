"""
Block factory and inner-block templates.

Templates are nested tuples ``(name, attributes, inner_template)``; the
attributes and inner template are optional:

    create_blocks_from_template(registry, [
        ("demo/box", {"color": "red"}, [
            ("demo/card", {"title": "One"}),
            ("demo/card",),
        ]),
    ])
"""

from __future__ import annotations
from typing import TYPE_CHECKING, Any, Sequence

from .attributes import sanitize_attributes
from .block import BlockInstance
from .errors import UnknownBlock

if TYPE_CHECKING:
    from .registry import BlockTypeRegistry


TemplateEntry = tuple  # (name, attributes?, inner_template?)


def create_block(
    registry: "BlockTypeRegistry",
    name: str,
    attributes: dict[str, Any] | None = None,
    inner_blocks: Sequence[BlockInstance] | None = None,
) -> BlockInstance:
    """
    Build a block of a registered type with a complete attribute set.

    Undeclared attributes are dropped, missing ones take their default and
    the rest are coerced to their declared type.

    Raises:
        UnknownBlock: name is not registered
    """
    block_type = registry.lookup(name)
    if block_type is None:
        raise UnknownBlock(name)
    values = sanitize_attributes(block_type.attributes, attributes or {})
    return BlockInstance(name, values, list(inner_blocks or []))


def create_blocks_from_template(
    registry: "BlockTypeRegistry",
    template: Sequence[TemplateEntry],
) -> list[BlockInstance]:
    blocks = []
    for entry in template:
        name, *rest = entry
        attributes = rest[0] if len(rest) > 0 else None
        inner_template = rest[1] if len(rest) > 1 else []
        inner_blocks = create_blocks_from_template(registry, inner_template or [])
        blocks.append(create_block(registry, name, attributes, inner_blocks))
    return blocks


def clone_block(
    block: BlockInstance,
    attributes: dict[str, Any] | None = None,
    inner_blocks: Sequence[BlockInstance] | None = None,
) -> BlockInstance:
    """
    Deep copy of a block with fresh client ids.

    Given attributes are merged over the copy's; given inner_blocks replace
    its children.
    """
    clone = block.copy(deep=inner_blocks is None)
    if attributes:
        clone.attributes.update(attributes)
    if inner_blocks is not None:
        clone.replace_children(list(inner_blocks))
    return clone
