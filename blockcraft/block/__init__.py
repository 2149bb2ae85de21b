"""
Block - Schema-driven block content model.

This module provides:
- BlockInstance: Tree node holding a block's name, attributes and children
- AttributeShape: Extraction contract for one block attribute
- BlockType / Variation / StyleVariation: Block type definitions
- BlockTypeRegistry: Store of block types with init/teardown lifecycle
- MarkupParser / parse: Delimited markup to block trees
- Serializer / serialize: Block trees back to markup
- TransformResolver: Applies transform rules between block types and other content
- get_active_variation: Finds the variation a block currently is
- create_block / create_blocks_from_template: Block factory
- diff_blocks: Structured comparison of block trees
"""

from .errors import (
    BlockError,
    InvalidBlockName,
    DuplicateName,
    DuplicateVariation,
    UnknownBlock,
    MalformedMarkup,
    NoMatchingTransform,
    AttributeCoercionFailure,
)
from .attributes import AttributeShape, MetaStore, MISSING, coerce_value, extract_attributes, sanitize_attributes
from .block import BlockInstance, FREEFORM_BLOCK_NAME
from .path import IndexPath
from .block_type import BlockType, BlockCollection, Variation, StyleVariation, KeyList, Predicate
from .registry import BlockTypeRegistry
from .grammar import serialize_attributes
from .serializer import Serializer, serialize, get_comment_attributes, get_block_content
from .parsers import MarkupParser, parse
from .shortcode import Shortcode, next_shortcode
from .templates import create_block, create_blocks_from_template, clone_block
from .transforms import (
    BlockTransform,
    EnterTransform,
    FilesTransform,
    PrefixTransform,
    RawTransform,
    ShortcodeTransform,
    ShortcodeAttribute,
    BlockTransforms,
    TransformResolver,
)
from .variations import get_active_variation, get_default_variation, apply_variation
from .diff import BlockDiff, NodeDiff, diff_blocks

__all__ = [
    "BlockError",
    "InvalidBlockName",
    "DuplicateName",
    "DuplicateVariation",
    "UnknownBlock",
    "MalformedMarkup",
    "NoMatchingTransform",
    "AttributeCoercionFailure",
    "AttributeShape",
    "MetaStore",
    "MISSING",
    "coerce_value",
    "extract_attributes",
    "sanitize_attributes",
    "BlockInstance",
    "FREEFORM_BLOCK_NAME",
    "IndexPath",
    "BlockType",
    "BlockCollection",
    "Variation",
    "StyleVariation",
    "KeyList",
    "Predicate",
    "BlockTypeRegistry",
    "serialize_attributes",
    "Serializer",
    "serialize",
    "get_comment_attributes",
    "get_block_content",
    "MarkupParser",
    "parse",
    "Shortcode",
    "next_shortcode",
    "create_block",
    "create_blocks_from_template",
    "clone_block",
    "BlockTransform",
    "EnterTransform",
    "FilesTransform",
    "PrefixTransform",
    "RawTransform",
    "ShortcodeTransform",
    "ShortcodeAttribute",
    "BlockTransforms",
    "TransformResolver",
    "get_active_variation",
    "get_default_variation",
    "apply_variation",
    "BlockDiff",
    "NodeDiff",
    "diff_blocks",
]
