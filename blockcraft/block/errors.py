"""
Errors raised by the block engine.

Registry conflicts and failed transforms propagate to the caller.
MalformedMarkup and AttributeCoercionFailure are raised internally and
recovered by the parser and attribute extraction, so a single bad block
never aborts a whole document.
"""

from __future__ import annotations
from typing import Any


class BlockError(Exception):
    """Base class for block engine errors."""
    pass


class InvalidBlockName(BlockError, ValueError):
    """Block name is not of the form ``namespace/slug``."""

    def __init__(self, name: Any):
        self.name = name
        super().__init__(
            f"Block name {name!r} must be a lowercase 'namespace/slug' string, e.g. 'demo/box'"
        )


class DuplicateName(BlockError):
    """A block type with this name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Block type '{name}' is already registered")


class DuplicateVariation(BlockError):
    """The block type already declares a variation with this name."""

    def __init__(self, block_name: str, variation_name: str):
        self.block_name = block_name
        self.variation_name = variation_name
        super().__init__(f"Block type '{block_name}' already has a variation named '{variation_name}'")


class UnknownBlock(BlockError, LookupError):
    """Operation references a block type that is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Block type '{name}' is not registered")


class MalformedMarkup(BlockError):
    """Delimiter mismatch, truncated block or unparsable attribute payload."""

    def __init__(self, message: str, offset: int | None = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} (at offset {offset})"
        super().__init__(message)


class NoMatchingTransform(BlockError):
    """No transform rule matched the given input."""

    def __init__(self, message: str):
        super().__init__(message)


class AttributeCoercionFailure(BlockError, ValueError):
    """A value cannot be coerced to the attribute's declared type."""

    def __init__(self, value: Any, types: tuple[str, ...], reason: str | None = None):
        self.value = value
        self.types = types
        message = f"Cannot coerce {value!r} to {' | '.join(types)}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
