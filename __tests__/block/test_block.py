"""Tests for the block tree, index paths and the block factory."""
import pytest
from blockcraft.block import (
    BlockInstance,
    IndexPath,
    UnknownBlock,
    clone_block,
    create_block,
    create_blocks_from_template,
)


def build_tree() -> BlockInstance:
    return BlockInstance("demo/box", {"color": "red"}, [
        BlockInstance("demo/card", {"title": "One"}),
        BlockInstance("demo/box", {}, [
            BlockInstance("demo/counter", {"count": 1}),
            BlockInstance("demo/counter", {"count": 2}),
        ]),
    ])


class TestTreeOperations:
    """Tests for building and editing block trees."""

    def test_children_know_their_parent(self):
        root = build_tree()
        assert root.children[1].parent is root
        assert root.children[1].children[0].root is root
        assert root.children[1].children[0].depth == 2

    def test_append_takes_child_from_previous_parent(self):
        first = BlockInstance("demo/box")
        second = BlockInstance("demo/box")
        card = first.append_child(BlockInstance("demo/card"))

        second.append_child(card)
        assert len(first.children) == 0
        assert card.parent is second

    def test_children_list_methods_take_ownership(self):
        first = BlockInstance("demo/box")
        second = BlockInstance("demo/box")
        card = first.append_child(BlockInstance("demo/card"))
        counter = BlockInstance("demo/counter")

        second.children.append(card)
        second.children.insert(0, counter)
        second.children.extend([BlockInstance("demo/quote")])
        second.children += [BlockInstance("demo/box")]
        assert len(first.children) == 0
        assert [child.name for child in second.children] == ["demo/counter", "demo/card", "demo/quote", "demo/box"]
        assert all(child.parent is second for child in second.children)

    def test_children_list_rejects_cycles(self):
        root = build_tree()
        with pytest.raises(ValueError):
            root.children[1].children.append(root)

    def test_children_slice_is_a_plain_list(self):
        root = build_tree()
        head = root.children[:1]
        head.append(BlockInstance("demo/counter"))
        assert len(root.children) == 2

    def test_insert_child(self):
        root = build_tree()
        root.insert_child(0, BlockInstance("demo/counter"))
        assert [child.name for child in root.children] == ["demo/counter", "demo/card", "demo/box"]

    def test_cycles_are_rejected(self):
        root = build_tree()
        with pytest.raises(ValueError):
            root.children[1].append_child(root)
        with pytest.raises(ValueError):
            root.append_child(root)

    def test_remove_unknown_child(self):
        with pytest.raises(ValueError):
            BlockInstance("demo/box").remove_child(BlockInstance("demo/card"))

    def test_append_operator(self):
        box = BlockInstance("demo/box")
        box /= BlockInstance("demo/card")
        assert [child.name for child in box.children] == ["demo/card"]

    def test_siblings(self):
        root = build_tree()
        card, inner = root.children
        assert card.next_sibling() is inner
        assert inner.prev_sibling() is card
        assert inner.next_sibling() is None
        assert root.prev_sibling() is None


class TestTraversal:
    """Tests for searching and indexing block trees."""

    def test_find(self):
        root = build_tree()
        assert root.find("demo/counter").attributes == {"count": 1}
        assert [block.attributes["count"] for block in root.find_all("demo/counter")] == [1, 2]
        assert root.find("demo/never") is None

    def test_getitem(self):
        root = build_tree()
        assert root["demo/card"].attributes == {"title": "One"}
        assert root[1, 1].attributes == {"count": 2}
        with pytest.raises(KeyError):
            root["demo/never"]

    def test_depth_first_order(self):
        names = [block.name for block in build_tree().iter_depth_first()]
        assert names == ["demo/box", "demo/card", "demo/box", "demo/counter", "demo/counter"]


class TestPaths:
    """Tests for IndexPath."""

    def test_path_of_nested_block(self):
        root = build_tree()
        counter = root.children[1].children[1]
        assert counter.path == IndexPath((1, 1))
        assert str(counter.path) == "1.1"
        assert counter.path.resolve(root) is counter

    def test_document_order(self):
        assert IndexPath.parse("0.2") < IndexPath.parse("1")
        assert IndexPath.parse("1") < IndexPath.parse("1.0")

    def test_relations(self):
        parent = IndexPath.parse("1")
        child = IndexPath.parse("1.0")
        assert parent.is_ancestor_of(child)
        assert child.parent == parent
        assert child.is_sibling_of(IndexPath.parse("1.3"))
        assert IndexPath.parse("1.0.2").common_ancestor(IndexPath.parse("1.1")) == parent


class TestEqualityAndCopy:
    """Tests for attribute equality, copies and dumps."""

    def test_equality_ignores_client_id_and_validity(self):
        a = build_tree()
        b = build_tree()
        b.children[0].is_valid = False
        assert a.client_id != b.client_id
        assert a == b

    def test_attribute_difference(self):
        a = build_tree()
        b = build_tree()
        b.children[1].children[0].attributes["count"] = 5
        assert a != b

    def test_copy_has_fresh_ids(self):
        root = build_tree()
        copied = root.copy()
        assert copied == root
        assert copied.client_id != root.client_id
        assert copied.children[1].children[0].client_id != root.children[1].children[0].client_id
        copied.children[0].attributes["title"] = "Changed"
        assert root.children[0].attributes["title"] == "One"

    def test_shallow_copy(self):
        copied = build_tree().copy(deep=False)
        assert len(copied.children) == 0

    def test_model_dump_and_load(self):
        root = build_tree()
        root.children[0].is_valid = False
        root.children[0].source = "<!-- wp:demo/card -->"
        root.children[1].children[0].is_void = True
        loaded = BlockInstance.model_load(root.model_dump())
        assert loaded == root
        assert loaded.client_id == root.client_id
        assert loaded.children[0].is_valid is False
        assert loaded.children[0].source == "<!-- wp:demo/card -->"
        assert loaded.children[1].parent is loaded
        assert loaded.children[1].children[0].is_void
        assert root.copy().children[1].children[0].is_void


class TestFactory:
    """Tests for create_block, templates and clone_block."""

    def test_create_block_sanitizes(self, demo_registry):
        counter = create_block(demo_registry, "demo/counter", {"count": "4", "stray": True})
        assert counter.attributes == {"count": 4}
        assert counter.has_markup is False

    def test_create_block_unknown_name(self, demo_registry):
        with pytest.raises(UnknownBlock):
            create_block(demo_registry, "demo/never")

    def test_template(self, demo_registry):
        blocks = create_blocks_from_template(demo_registry, [
            ("demo/box", None, [("demo/card", {"title": "A"})]),
            ("demo/counter",),
        ])
        assert [block.name for block in blocks] == ["demo/box", "demo/counter"]
        assert blocks[0].attributes == {"color": "blue"}
        assert blocks[0].children[0].attributes == {"title": "A", "url": ""}

    def test_template_unknown_name(self, demo_registry):
        with pytest.raises(UnknownBlock):
            create_blocks_from_template(demo_registry, [("demo/box", {}, [("demo/never",)])])

    def test_clone_block(self):
        root = build_tree()
        clone = clone_block(root, {"color": "green"})
        assert clone.attributes == {"color": "green"}
        assert len(clone.children) == 2
        assert root.attributes == {"color": "red"}

    def test_clone_with_new_children(self):
        root = build_tree()
        clone = clone_block(root, inner_blocks=[BlockInstance("demo/counter")])
        assert [child.name for child in clone.children] == ["demo/counter"]
        assert len(root.children) == 2
