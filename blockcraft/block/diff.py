"""
Block Diff - Structured comparison of two block trees.

Trees are compared by attribute equality: block names, attribute values and
children position by position. Client ids and parse bookkeeping never count
as changes; a validity flip is reported on nodes that differ otherwise.

Usage:
    diff = diff_blocks(parsed, expected)
    if diff:
        print(diff.summary())
        print(format_diff_tree(diff))
"""

from __future__ import annotations
import difflib
import hashlib
import json
from collections import Counter
from typing import TYPE_CHECKING, Any, Iterator, Literal

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from .block import BlockInstance
    from .registry import BlockTypeRegistry


DiffStatus = Literal["unchanged", "modified", "added", "removed"]

_STATUS_MARKS: dict[str, str] = {"unchanged": " ", "modified": "~", "added": "+", "removed": "-"}


class AttributeChange(BaseModel):
    key: str
    before: Any = None
    after: Any = None

    def __str__(self) -> str:
        return f"{self.key}: {self.before!r} -> {self.after!r}"


class NodeDiff(BaseModel):
    """
    Comparison of the blocks found at one index path of both trees.

    Added and removed nodes carry the dumped block in block_data.
    """
    path: str = ""
    status: DiffStatus = "unchanged"
    name_change: tuple[str, str] | None = None
    attribute_changes: list[AttributeChange] = Field(default_factory=list)
    validity_change: tuple[bool, bool] | None = None
    block_data: dict[str, Any] | None = None
    children: list[NodeDiff] = Field(default_factory=list)

    @property
    def changed_fields(self) -> list[str]:
        fields = ["name"] if self.name_change else []
        fields += [f"attributes.{change.key}" for change in self.attribute_changes]
        if self.validity_change:
            fields.append("is_valid")
        return fields

    def walk(self, changed_only: bool = False) -> Iterator[NodeDiff]:
        if not changed_only or self.status != "unchanged":
            yield self
        for child in self.children:
            yield from child.walk(changed_only)


class BlockDiff(BaseModel):
    hash_a: str
    hash_b: str
    root: NodeDiff

    @property
    def is_identical(self) -> bool:
        return self.hash_a == self.hash_b

    def changes(self) -> list[NodeDiff]:
        return list(self.root.walk(changed_only=True))

    def paths(self, status: DiffStatus) -> list[str]:
        """Index paths of the nodes with the given status, in document order."""
        return [node.path for node in self.root.walk() if node.status == status]

    @property
    def has_structural_changes(self) -> bool:
        return any(node.status in ("added", "removed") for node in self.changes())

    @property
    def has_attribute_changes(self) -> bool:
        return any(node.attribute_changes for node in self.changes())

    def summary(self) -> str:
        if self.is_identical:
            return "Blocks are identical"
        counts = Counter(node.status for node in self.changes())
        return ", ".join(f"{counts[status]} {status}" for status in ("modified", "added", "removed") if counts[status])

    def __bool__(self) -> bool:
        return not self.is_identical

    def __repr__(self) -> str:
        return f"BlockDiff({self.summary()})"


def _content(block: "BlockInstance") -> dict[str, Any]:
    return {
        "name": block.name,
        "attributes": block.attributes,
        "children": [_content(child) for child in block.children],
    }


def compute_block_hash(block: "BlockInstance") -> str:
    """Hash of a block's name, attributes and children, independent of client ids."""
    payload = json.dumps(_content(block), sort_keys=True, default=repr)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _attribute_changes(before: dict[str, Any], after: dict[str, Any]) -> list[AttributeChange]:
    keys = list(before) + [key for key in after if key not in before]
    return [
        AttributeChange(key=key, before=before.get(key), after=after.get(key))
        for key in keys
        if key not in before or key not in after or before[key] != after[key]
    ]


def _diff_node(block_a: "BlockInstance | None", block_b: "BlockInstance | None", path: str) -> NodeDiff:
    if block_a is None:
        return NodeDiff(path=path, status="added", block_data=block_b.model_dump())
    if block_b is None:
        return NodeDiff(path=path, status="removed", block_data=block_a.model_dump())

    node = NodeDiff(path=path, attribute_changes=_attribute_changes(block_a.attributes, block_b.attributes))
    if block_a.name != block_b.name:
        node.name_change = (block_a.name, block_b.name)
    if block_a.is_valid != block_b.is_valid:
        node.validity_change = (block_a.is_valid, block_b.is_valid)

    count = max(len(block_a.children), len(block_b.children))
    for i in range(count):
        child_a = block_a.children[i] if i < len(block_a.children) else None
        child_b = block_b.children[i] if i < len(block_b.children) else None
        node.children.append(_diff_node(child_a, child_b, f"{path}.{i}" if path else str(i)))

    differs = node.name_change or node.attribute_changes or any(
        child.status != "unchanged" for child in node.children
    )
    node.status = "modified" if differs else "unchanged"
    return node


def diff_blocks(block_a: "BlockInstance", block_b: "BlockInstance") -> BlockDiff:
    hash_a = compute_block_hash(block_a)
    hash_b = compute_block_hash(block_b)
    if hash_a == hash_b:
        return BlockDiff(hash_a=hash_a, hash_b=hash_b, root=NodeDiff())
    return BlockDiff(hash_a=hash_a, hash_b=hash_b, root=_diff_node(block_a, block_b, ""))


def get_markup_diff(
    block_a: "BlockInstance",
    block_b: "BlockInstance",
    registry: "BlockTypeRegistry",
    context_lines: int = 3,
) -> str:
    """Unified diff of the serialized markup of two blocks; empty when they serialize the same."""
    from .serializer import serialize

    return "".join(difflib.unified_diff(
        serialize(block_a, registry).splitlines(keepends=True),
        serialize(block_b, registry).splitlines(keepends=True),
        fromfile="block_a",
        tofile="block_b",
        n=context_lines,
    ))


def format_diff_tree(diff: BlockDiff, indent: int = 2) -> str:
    """
    Render a diff as an indented tree, one line per node:

        ~ (root)
          ~ 0 [attributes.count]
          + 1
    """
    lines = []

    def render(node: NodeDiff, depth: int) -> None:
        line = f"{' ' * (indent * depth)}{_STATUS_MARKS[node.status]} {node.path or '(root)'}"
        if node.status == "modified" and node.changed_fields:
            line += f" [{', '.join(node.changed_fields)}]"
        lines.append(line)
        for child in node.children:
            render(child, depth + 1)

    render(diff.root, 0)
    return "\n".join(lines)


__all__ = [
    "AttributeChange",
    "NodeDiff",
    "BlockDiff",
    "compute_block_hash",
    "diff_blocks",
    "get_markup_diff",
    "format_diff_tree",
]
