"""
Path - A block's position in a content tree.

An IndexPath holds the child indices leading from a top-level block down to
a nested one; "1.0" is the first child of the second child. Paths order by
document position, so sorting paths sorts blocks in reading order.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .block import BlockInstance


@dataclass(frozen=True, order=True)
class IndexPath:
    """
    Position of a block below its top-level block.

    Example:
        path = counter.path
        str(path)             # "1.1"
        path.resolve(root)    # counter
    """
    indices: tuple[int, ...] = ()

    @classmethod
    def from_block(cls, block: "BlockInstance") -> IndexPath:
        indices: list[int] = []
        node = block
        while node.parent is not None:
            siblings = node.parent.children
            indices.append(next(i for i, sibling in enumerate(siblings) if sibling is node))
            node = node.parent
        return cls(tuple(reversed(indices)))

    @classmethod
    def parse(cls, text: str) -> IndexPath:
        """Parse a dotted path; the empty string is the top-level block itself."""
        return cls(tuple(int(part) for part in text.split("."))) if text else cls()

    def resolve(self, block: "BlockInstance") -> "BlockInstance":
        return block.get_path(self.indices)

    @property
    def depth(self) -> int:
        return len(self.indices)

    @property
    def parent(self) -> IndexPath:
        return IndexPath(self.indices[:-1])

    def is_ancestor_of(self, other: IndexPath) -> bool:
        """True for a proper or improper prefix: "1" is an ancestor of "1" and "1.0"."""
        return other.indices[:len(self.indices)] == self.indices

    def is_sibling_of(self, other: IndexPath) -> bool:
        return self.depth == other.depth and self.parent == other.parent

    def common_ancestor(self, other: IndexPath) -> IndexPath:
        shared = []
        for mine, theirs in zip(self.indices, other.indices):
            if mine != theirs:
                break
            shared.append(mine)
        return IndexPath(tuple(shared))

    def __str__(self) -> str:
        return ".".join(map(str, self.indices))

    def __repr__(self) -> str:
        return f"IndexPath('{self}')"
