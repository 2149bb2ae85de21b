"""
blockcraft - Block content engine.

Parses delimited block markup into typed block trees, serializes them back
byte for byte, and resolves transform and variation rules between block
types. See blockcraft.block for the full surface.
"""

from .settings import EngineSettings
from .block import (
    BlockInstance,
    BlockType,
    BlockTypeRegistry,
    MarkupParser,
    Serializer,
    TransformResolver,
    parse,
    serialize,
)

__all__ = [
    "EngineSettings",
    "BlockInstance",
    "BlockType",
    "BlockTypeRegistry",
    "MarkupParser",
    "Serializer",
    "TransformResolver",
    "parse",
    "serialize",
]
