"""
BlockInstance - A parsed or constructed block node.

A BlockInstance is one node of a content tree: a block name, its attribute
values, the child blocks it owns and the bookkeeping the parser needs to
re-emit the block exactly (markup fragments with child slots, validity and
the original bytes of blocks that failed validation).

Children are owned exclusively: appending a block that already has a parent
detaches it from that parent first.

Usage:
    box = BlockInstance("demo/box", {"color": "red"})
    box.append_child(BlockInstance("demo/card"))
    for block in box.iter_depth_first():
        print(block.name)
"""

from __future__ import annotations
import copy as _copy
from collections import UserList
from typing import Any, Iterable, Iterator, TYPE_CHECKING, Self, SupportsIndex, overload
from uuid import uuid4

if TYPE_CHECKING:
    from .path import IndexPath
    from .diff import BlockDiff


FREEFORM_BLOCK_NAME = "core/freeform"

# One entry per markup fragment; None marks the slot of the next child block.
InnerContent = list["str | None"]


def _generate_id() -> str:
    """Generate a short unique ID."""
    return uuid4().hex[:8]


class BlockChildren(UserList["BlockInstance"]):
    """
    Child list of a block.

    Adding a block through the list goes through the owning block, so the
    child is detached from its previous parent and points at the new one.
    Slices are plain lists.
    """

    def __init__(self, parent: BlockInstance, items: list[BlockInstance] | None = None):
        self.parent: BlockInstance = parent
        UserList.__init__(self, items)

    def append(self, item: "BlockInstance") -> None:
        self.parent.append_child(item)

    def insert(self, index: SupportsIndex, item: "BlockInstance") -> None:
        self.parent.insert_child(int(index), item)

    def extend(self, items: Iterable["BlockInstance"]) -> None:
        for item in list(items):
            self.parent.append_child(item)

    def __iadd__(self, items: Iterable["BlockInstance"]) -> Self:
        self.extend(items)
        return self

    def __iter__(self) -> Iterator["BlockInstance"]:
        return iter(self.data)

    @overload
    def __getitem__(self, index: SupportsIndex) -> 'BlockInstance': ...

    @overload
    def __getitem__(self, index: slice) -> list["BlockInstance"]: ...

    def __getitem__(self, index: SupportsIndex | slice) -> 'BlockInstance | list[BlockInstance]':
        if isinstance(index, slice):
            return self.data[index]
        try:
            return self.data[index]
        except IndexError:
            raise IndexError(f"{self.parent!r} has no child at index {index}") from None


class BlockInstance:
    """
    Tree node holding a block's name, attributes and children.

    Attributes:
        client_id: Short generated identifier, not part of equality
        name: Namespaced block name, e.g. "demo/box"
        attributes: Attribute values, one per declared attribute
        children: Child blocks in document order
        parent: Owning block (None for top-level blocks)
        is_valid: False when the block could not be re-serialized to its source
        original_content: Raw inner markup retained for invalid blocks
        is_unregistered: True when the name did not resolve in the registry
        validation_issues: Reasons the block was marked invalid
        inner_content: Markup fragments with None slots for child blocks
        source: Exact source bytes of an invalid block
        is_void: True when parsed from a self-closing delimiter
    """

    __slots__ = [
        "client_id", "name", "attributes", "children", "parent",
        "is_valid", "original_content", "is_unregistered", "validation_issues",
        "inner_content", "source", "is_void",
    ]

    def __init__(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
        children: list[BlockInstance] | None = None,
        *,
        is_valid: bool = True,
        original_content: str | None = None,
        is_unregistered: bool = False,
        validation_issues: list[str] | None = None,
        inner_content: InnerContent | None = None,
        source: str | None = None,
        is_void: bool = False,
        client_id: str | None = None,
    ):
        self.client_id: str = client_id or _generate_id()
        self.name = name
        self.attributes: dict[str, Any] = dict(attributes) if attributes else {}
        self.parent: BlockInstance | None = None
        self.children: BlockChildren = BlockChildren(parent=self)
        self.is_valid = is_valid
        self.original_content = original_content
        self.is_unregistered = is_unregistered
        self.validation_issues: list[str] = list(validation_issues) if validation_issues else []
        self.inner_content: InnerContent | None = inner_content
        self.source = source
        self.is_void = is_void

        if children is not None:
            for child in children:
                self.append_child(child)

    # =========================================================================
    # Basic Properties
    # =========================================================================

    @property
    def root(self) -> BlockInstance:
        """Get the top-level block of this tree."""
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    @property
    def depth(self) -> int:
        """Number of ancestors (0 for top-level blocks)."""
        return sum(1 for _ in self.iter_ancestors()) - 1

    @property
    def path(self) -> "IndexPath":
        """Position of this block below its top-level block."""
        from .path import IndexPath
        return IndexPath.from_block(self)

    @property
    def is_freeform(self) -> bool:
        return self.name == FREEFORM_BLOCK_NAME

    @property
    def inner_html(self) -> str:
        """The block's own markup with nested blocks left out."""
        if not self.inner_content:
            return ""
        return "".join(part for part in self.inner_content if part is not None)

    @property
    def has_markup(self) -> bool:
        """True if the block carries parsed markup fragments."""
        return self.inner_content is not None

    # =========================================================================
    # Tree Operations
    # =========================================================================

    def _connect_block(self, child: BlockInstance) -> None:
        if child is self or any(ancestor is child for ancestor in self.iter_ancestors()):
            raise ValueError("A block cannot be appended to itself or to one of its descendants")
        if child.parent is not None:
            child.parent.remove_child(child)
        child.parent = self

    def append_child(self, child: BlockInstance) -> BlockInstance:
        """Append a child, taking it over from its previous parent."""
        self._connect_block(child)
        self.children.data.append(child)
        return child

    def insert_child(self, index: int, child: BlockInstance) -> BlockInstance:
        """Insert a child at index, taking it over from its previous parent."""
        self._connect_block(child)
        self.children.data.insert(index, child)
        return child

    def remove_child(self, child: BlockInstance) -> BlockInstance:
        """
        Remove a child block from the tree.
        """
        for i, existing in enumerate(self.children):
            if existing is child:
                del self.children.data[i]
                child.parent = None
                return child
        raise ValueError("Block is not a child of this block")

    def replace_children(self, children: list[BlockInstance]) -> None:
        """Drop every current child and adopt the given ones."""
        for child in list(self.children):
            self.remove_child(child)
        for child in children:
            self.append_child(child)

    def __itruediv__(self, other: BlockInstance) -> Self:
        """
        Append a child using the /= operator.

        Usage:
            box /= BlockInstance("demo/card")
        """
        self.append_child(other)
        return self

    # =========================================================================
    # Traversal
    # =========================================================================

    def iter_depth_first(self, children_only: bool = False) -> Iterator[BlockInstance]:
        """Iterate this subtree in depth-first order."""
        if not children_only:
            yield self
        for child in self.children:
            yield from child.iter_depth_first()

    def iter_ancestors(self) -> Iterator[BlockInstance]:
        """Iterate from this block up to root (inclusive)."""
        node = self
        while node is not None:
            yield node
            node = node.parent

    def next_sibling(self) -> BlockInstance | None:
        """Get next sibling or None."""
        if self.parent is None:
            return None
        siblings = self.parent.children
        for i, sibling in enumerate(siblings):
            if sibling is self:
                return siblings[i + 1] if i + 1 < len(siblings) else None
        return None

    def prev_sibling(self) -> BlockInstance | None:
        """Get previous sibling or None."""
        if self.parent is None:
            return None
        siblings = self.parent.children
        for i, sibling in enumerate(siblings):
            if sibling is self:
                return siblings[i - 1] if i > 0 else None
        return None

    def find(self, name: str) -> BlockInstance | None:
        """First block in this subtree with the given name."""
        for block in self.iter_depth_first():
            if block.name == name:
                return block
        return None

    def find_all(self, name: str) -> list[BlockInstance]:
        """Every block in this subtree with the given name."""
        return [block for block in self.iter_depth_first() if block.name == name]

    def get_path(self, idx_path: int | tuple[int, ...] | list[int]) -> BlockInstance:
        """Descend through children by index."""
        if isinstance(idx_path, int):
            idx_path = [idx_path]
        block = self
        for idx in idx_path:
            block = block.children[idx]
        return block

    def __getitem__(self, key: str | int | tuple[int, ...]) -> BlockInstance:
        if isinstance(key, str):
            block = self.find(key)
            if block is None:
                raise KeyError(f"No block named '{key}' below {self!r}")
            return block
        return self.get_path(key)

    def __iter__(self) -> Iterator[BlockInstance]:
        return iter(self.children)

    def __len__(self) -> int:
        return len(self.children)

    # =========================================================================
    # Equality
    # =========================================================================

    def __eq__(self, other: object) -> bool:
        """
        Attribute equality: same name, same attribute values, equal children.

        Client ids, parse bookkeeping and validity are ignored.
        """
        if not isinstance(other, BlockInstance):
            return NotImplemented
        if self.name != other.name or self.attributes != other.attributes:
            return False
        if len(self.children) != len(other.children):
            return False
        return all(a == b for a, b in zip(self.children, other.children))

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self) -> int:
        """
        Hash based on client id (not content) to allow blocks in sets/dicts.
        """
        return hash(self.client_id)

    # =========================================================================
    # Copy & Serialization
    # =========================================================================

    def copy(self, deep: bool = True) -> BlockInstance:
        """
        Create a copy of this block with a fresh client id.

        Args:
            deep: If True, copy the entire subtree. If False, just this block.
        """
        new_block = BlockInstance(
            self.name,
            _copy.deepcopy(self.attributes),
            is_valid=self.is_valid,
            original_content=self.original_content,
            is_unregistered=self.is_unregistered,
            validation_issues=list(self.validation_issues),
            inner_content=list(self.inner_content) if self.inner_content is not None else None,
            source=self.source,
            is_void=self.is_void,
        )
        if deep:
            for child in self.children:
                new_block.append_child(child.copy(deep=True))
        return new_block

    def model_dump(self) -> dict[str, Any]:
        """Serialize the block tree to a JSON-compatible dict."""
        result: dict[str, Any] = {
            "client_id": self.client_id,
            "name": self.name,
            "attributes": _copy.deepcopy(self.attributes),
            "is_valid": self.is_valid,
            "children": [child.model_dump() for child in self.children],
        }
        if self.is_unregistered:
            result["is_unregistered"] = True
        if self.original_content is not None:
            result["original_content"] = self.original_content
        if self.validation_issues:
            result["validation_issues"] = list(self.validation_issues)
        if self.inner_content is not None:
            result["inner_content"] = list(self.inner_content)
        if self.source is not None:
            result["source"] = self.source
        if self.is_void:
            result["is_void"] = True
        return result

    @classmethod
    def model_load(cls, data: dict[str, Any]) -> BlockInstance:
        """Deserialize a block tree from model_dump() output."""
        block = cls(
            data["name"],
            data.get("attributes", {}),
            is_valid=data.get("is_valid", True),
            original_content=data.get("original_content"),
            is_unregistered=data.get("is_unregistered", False),
            validation_issues=data.get("validation_issues"),
            inner_content=data.get("inner_content"),
            source=data.get("source"),
            is_void=data.get("is_void", False),
            client_id=data.get("client_id"),
        )
        for child_data in data.get("children", []):
            block.append_child(cls.model_load(child_data))
        return block

    # =========================================================================
    # Debug
    # =========================================================================

    def debug_tree(self, indent: int = 0) -> str:
        """Generate debug representation of the block tree."""
        prefix = "  " * indent
        parts = [f"{prefix}{self.name}[{self.path}]("]
        parts.append(f"attributes={self.attributes!r}")
        if not self.is_valid:
            parts.append(f", invalid={self.validation_issues!r}")
        if self.is_unregistered:
            parts.append(", unregistered")
        parts.append(")")

        lines = ["".join(parts)]
        for child in self.children:
            lines.append(child.debug_tree(indent + 1))
        return "\n".join(lines)

    def print_debug(self) -> None:
        """Print debug tree."""
        print(self.debug_tree())

    def diff(self, other: BlockInstance) -> "BlockDiff":
        """
        Compare this block with another and return a structured diff.

        Example:
            diff = parsed.diff(expected)
            if not diff.is_identical:
                print(diff.summary())
        """
        from .diff import diff_blocks
        return diff_blocks(self, other)

    def __repr__(self) -> str:
        block_meta = ""
        if self.attributes:
            block_meta += f", attributes={self.attributes}"
        if not self.is_valid:
            block_meta += ", invalid"
        if self.is_unregistered:
            block_meta += ", unregistered"
        return f"BlockInstance({self.name!r}{block_meta}, children={len(self.children)})"
