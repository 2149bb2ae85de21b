"""
Variation Matcher - Which named variation a block currently is.

Example:
    variation = get_active_variation(registry.lookup("demo/box"), block.attributes)
    if variation is not None:
        print(variation.title)
"""

from __future__ import annotations
import copy
import logging
from typing import TYPE_CHECKING, Any, Mapping

from .block import BlockInstance
from .block_type import BlockType, Variation, VariationScope
from .templates import create_blocks_from_template

if TYPE_CHECKING:
    from .registry import BlockTypeRegistry


logger = logging.getLogger(__name__)


def _in_scope(variation: Variation, scope: VariationScope | None) -> bool:
    return scope is None or scope in variation.scope


def get_active_variation(
    block_type: BlockType,
    attributes: Mapping[str, Any],
    scope: VariationScope | None = None,
) -> Variation | None:
    """
    First variation, in declaration order, whose isActive matches attributes.

    Variations without isActive never match.
    """
    for variation in block_type.variations:
        if _in_scope(variation, scope) and variation.matches(attributes):
            logger.debug("Block '%s' matches variation '%s'", block_type.name, variation.name)
            return variation
    return None


def get_default_variation(block_type: BlockType, scope: VariationScope | None = None) -> Variation | None:
    """The last variation flagged is_default, if any."""
    default = None
    for variation in block_type.variations:
        if variation.is_default and _in_scope(variation, scope):
            default = variation
    return default


def apply_variation(
    registry: "BlockTypeRegistry",
    block: BlockInstance,
    variation: Variation,
) -> BlockInstance:
    """
    Merge a variation's attributes into block and, if the variation declares
    an inner template, replace the block's children with it.
    """
    block.attributes.update(copy.deepcopy(variation.attributes))
    if variation.inner_blocks:
        block.replace_children(create_blocks_from_template(registry, variation.inner_blocks))
    return block
