"""Tests for parsing delimited block markup."""
import pytest
from blockcraft import EngineSettings
from blockcraft.block import FREEFORM_BLOCK_NAME, MarkupParser, parse
from utils import DictMetaStore, roundtrip


class TestBasicParsing:
    """Tests for well-formed markup."""

    def test_declared_default_without_payload(self, demo_registry):
        blocks = parse("<!-- wp:demo/box --><p>Inside</p><!-- /wp:demo/box -->", demo_registry)
        assert len(blocks) == 1
        box = blocks[0]
        assert box.name == "demo/box"
        assert box.attributes == {"color": "blue"}
        assert box.is_valid
        assert box.original_content is None

    def test_payload_attributes(self, demo_registry):
        blocks = parse('<!-- wp:demo/box {"color":"red"} --><p>x</p><!-- /wp:demo/box -->', demo_registry)
        assert blocks[0].attributes == {"color": "red"}

    def test_self_closing(self, demo_registry):
        blocks = parse('<!-- wp:demo/counter {"count":3} /-->', demo_registry)
        assert blocks[0].attributes == {"count": 3}
        assert blocks[0].inner_content == []

    def test_default_namespace_shorthand(self, demo_registry):
        blocks = parse("<!-- wp:paragraph --><p>Hi</p><!-- /wp:paragraph -->", demo_registry)
        assert blocks[0].name == "core/paragraph"
        assert blocks[0].attributes == {"content": "Hi"}

    def test_markup_sourced_attributes(self, demo_registry):
        markup = '<!-- wp:demo/card --><div><h3>Title</h3><a href="/x">go</a></div><!-- /wp:demo/card -->'
        card = parse(markup, demo_registry)[0]
        assert card.attributes == {"title": "Title", "url": "/x"}

    def test_nested_children(self, demo_registry):
        markup = (
            "<!-- wp:demo/box -->\n"
            "<div><!-- wp:demo/card --><h3>One</h3><!-- /wp:demo/card -->\n"
            '<!-- wp:demo/counter {"count":2} /--></div>\n'
            "<!-- /wp:demo/box -->"
        )
        box = parse(markup, demo_registry)[0]
        assert [child.name for child in box.children] == ["demo/card", "demo/counter"]
        assert box.children[0].attributes["title"] == "One"
        assert box.children[1].parent is box
        assert box.inner_content == ["\n<div>", None, "\n", None, "</div>\n"]
        assert box.inner_html == "\n<div>\n</div>\n"

    def test_children_are_excluded_from_parent_extraction(self, demo_registry):
        demo_registry.register("demo/panel", {
            "attributes": {"heading": {"type": "string", "source": "text", "selector": "h3"}},
        })
        markup = (
            "<!-- wp:demo/panel --><section>"
            "<!-- wp:demo/card --><h3>Child</h3><!-- /wp:demo/card -->"
            "</section><!-- /wp:demo/panel -->"
        )
        panel = parse(markup, demo_registry)[0]
        assert panel.attributes == {"heading": ""}
        assert panel.children[0].attributes["title"] == "Child"

    def test_meta_sourced_attribute(self, demo_registry):
        demo_registry.register("demo/byline", {
            "attributes": {"author": {"type": "string", "source": "meta", "meta": "author_name"}},
        })
        parser = MarkupParser(demo_registry, meta_store=DictMetaStore({"author_name": "Ada"}))
        blocks = parser.parse("<!-- wp:demo/byline /-->")
        assert blocks[0].attributes == {"author": "Ada"}


class TestFreeform:
    """Tests for markup outside of any block."""

    def test_text_between_blocks(self, demo_registry):
        blocks = parse("Before<!-- wp:demo/counter /-->After", demo_registry)
        assert [block.name for block in blocks] == [FREEFORM_BLOCK_NAME, "demo/counter", FREEFORM_BLOCK_NAME]
        assert blocks[0].attributes == {"content": "Before"}
        assert blocks[2].attributes == {"content": "After"}

    def test_whitespace_between_blocks_is_kept(self, demo_registry):
        blocks = parse("<!-- wp:demo/counter /-->\n\n<!-- wp:demo/counter /-->", demo_registry)
        assert len(blocks) == 3
        assert blocks[1].attributes == {"content": "\n\n"}

    def test_plain_document(self, demo_registry):
        blocks = parse("<p>No blocks here</p>", demo_registry)
        assert len(blocks) == 1
        assert blocks[0].is_freeform
        assert blocks[0].is_valid

    def test_empty_document(self, demo_registry):
        assert parse("", demo_registry) == []


class TestUnregistered:
    """Tests for block names missing from the registry."""

    def test_unregistered_block_keeps_payload(self, demo_registry):
        blocks = parse('<!-- wp:acme/thing {"a":1,"b":[true]} --><p>x</p><!-- /wp:acme/thing -->', demo_registry)
        thing = blocks[0]
        assert thing.is_unregistered
        assert thing.is_valid
        assert thing.attributes == {"a": 1, "b": [True]}

    def test_unregistered_payload_spacing_is_kept(self, demo_registry):
        markup = '<!-- wp:acme/thing {"a": 1} /-->'
        thing = parse(markup, demo_registry)[0]
        assert thing.is_unregistered
        assert thing.attributes == {"a": 1}
        assert thing.is_valid is False
        assert roundtrip(markup, demo_registry) == markup


class TestDelimiterWriteBack:
    """Tests for blocks whose opening delimiter would not be written back as is."""

    @pytest.mark.parametrize("markup", [
        '<!-- wp:demo/counter {"count":1,"stray":2} /-->',
        '<!-- wp:demo/counter {"count":"abc"} /-->',
        '<!-- wp:demo/counter {"count":"5"} /-->',
        '<!-- wp:demo/counter {"count": 1} /-->',
        '<!-- wp:demo/counter {"count":0} /-->',
        '<!-- wp:demo/box {"color":"blue"} --><p>x</p><!-- /wp:demo/box -->',
        '<!-- wp:demo/card {"title":"Payload"} --><h3>Markup</h3><!-- /wp:demo/card -->',
        "<!-- wp:core/paragraph --><p>Hi</p><!-- /wp:core/paragraph -->",
    ])
    def test_block_keeps_its_bytes(self, demo_registry, markup):
        block = parse(markup, demo_registry)[0]
        assert block.is_valid is False
        assert block.source == markup
        assert roundtrip(markup, demo_registry) == markup

    def test_undeclared_key_is_not_extracted(self, demo_registry):
        counter = parse('<!-- wp:demo/counter {"count":1,"stray":2} /-->', demo_registry)[0]
        assert counter.attributes == {"count": 1}
        assert not counter.is_unregistered

    def test_uncoercible_value_falls_back_to_default(self, demo_registry):
        counter = parse('<!-- wp:demo/counter {"count":"abc"} /-->', demo_registry)[0]
        assert counter.attributes == {"count": 0}
        assert "would be written as" in counter.validation_issues[0]

    def test_canonical_payload_is_valid(self, demo_registry):
        blocks = parse('<!-- wp:demo/counter {"count":1} /--><!-- wp:demo/box --><!-- /wp:demo/box -->', demo_registry)
        assert [block.is_valid for block in blocks] == [True, True]
        assert [block.is_void for block in blocks] == [True, False]


class TestMalformedMarkup:
    """Tests for recovery from malformed markup."""

    def test_unclosed_block(self, demo_registry):
        blocks = parse("<!-- wp:demo/box --><p>Lost</p>", demo_registry)
        assert len(blocks) == 1
        box = blocks[0]
        assert box.name == "demo/box"
        assert box.is_valid is False
        assert box.original_content == "<p>Lost</p>"
        assert box.validation_issues

    def test_unclosed_block_is_logged(self, demo_registry, caplog):
        parse("<!-- wp:demo/box --><p>Lost</p>", demo_registry)
        assert "never closed" in caplog.text

    def test_invalid_payload(self, demo_registry):
        blocks = parse('<!-- wp:demo/box {"color":} --><p>x</p><!-- /wp:demo/box -->', demo_registry)
        assert blocks[0].is_valid is False
        assert blocks[0].attributes == {"color": "blue"}
        assert blocks[0].original_content == "<p>x</p>"

    def test_unbalanced_payload(self, demo_registry):
        blocks = parse('<!-- wp:acme/thing {"a":[1} /-->', demo_registry)
        assert blocks[0].is_valid is False

    def test_mismatched_closer_stays_literal(self, demo_registry):
        markup = "<!-- wp:demo/box -->a<!-- /wp:demo/card -->b<!-- /wp:demo/box -->"
        box = parse(markup, demo_registry)[0]
        assert box.is_valid is False
        assert box.original_content == "a<!-- /wp:demo/card -->b"
        assert box.source == markup

    def test_stray_closer_becomes_freeform(self, demo_registry):
        blocks = parse("x<!-- /wp:demo/box -->y", demo_registry)
        assert len(blocks) == 1
        assert blocks[0].attributes == {"content": "x<!-- /wp:demo/box -->y"}

    def test_closer_of_ancestor_closes_inner_block(self, demo_registry):
        markup = "<!-- wp:demo/box --><!-- wp:demo/card --><h3>c</h3><!-- /wp:demo/box -->after"
        blocks = parse(markup, demo_registry)
        box = blocks[0]
        assert box.is_valid
        card = box.children[0]
        assert card.is_valid is False
        assert card.source == "<!-- wp:demo/card --><h3>c</h3>"
        assert blocks[1].attributes == {"content": "after"}

    def test_malformed_block_does_not_affect_siblings(self, demo_registry):
        markup = '<!-- wp:demo/counter {bad} /--><!-- wp:demo/counter {"count":4} /-->'
        blocks = parse(markup, demo_registry)
        assert [block.is_valid for block in blocks] == [False, True]
        assert blocks[1].attributes == {"count": 4}

    def test_depth_limit(self, demo_registry):
        markup = (
            "<!-- wp:demo/box --><!-- wp:demo/box -->"
            "<!-- wp:demo/box -->x<!-- /wp:demo/box -->"
            "<!-- /wp:demo/box --><!-- /wp:demo/box -->"
        )
        parser = MarkupParser(demo_registry, EngineSettings(max_depth=2))
        outer = parser.parse(markup)[0]
        assert outer.is_valid
        inner = outer.children[0]
        assert inner.is_valid is False
        assert len(inner.children) == 0
        assert inner.original_content == "<!-- wp:demo/box -->x<!-- /wp:demo/box -->"


class TestValidation:
    """Tests for comparing parsed markup with the save callback."""

    def test_matching_save_is_valid(self, demo_registry):
        blocks = parse("<!-- wp:demo/quote --><blockquote><p>Hi</p></blockquote><!-- /wp:demo/quote -->", demo_registry)
        assert blocks[0].is_valid
        assert blocks[0].attributes == {"text": "Hi"}

    def test_changed_markup_is_invalid(self, demo_registry):
        markup = '<!-- wp:demo/quote --><blockquote class="x"><p>Hi</p></blockquote><!-- /wp:demo/quote -->'
        quote = parse(markup, demo_registry)[0]
        assert quote.is_valid is False
        assert quote.original_content == '<blockquote class="x"><p>Hi</p></blockquote>'

    def test_api_version_1_is_whitespace_strict(self, demo_registry):
        markup = "<!-- wp:demo/quote -->\n<blockquote><p>Hi</p></blockquote>\n<!-- /wp:demo/quote -->"
        assert parse(markup, demo_registry)[0].is_valid is False

    def test_api_version_2_ignores_boundary_whitespace(self, demo_registry):
        demo_registry.register("demo/quote2", {
            "apiVersion": 2,
            "attributes": {"text": {"type": "string", "source": "html", "selector": "p"}},
            "save": lambda attributes, inner_blocks: f'<blockquote><p>{attributes["text"]}</p></blockquote>',
        })
        markup = "<!-- wp:demo/quote2 -->\n<blockquote>\n  <p>Hi</p>\n</blockquote>\n<!-- /wp:demo/quote2 -->"
        assert parse(markup, demo_registry)[0].is_valid

    def test_failing_save_marks_block_invalid(self, demo_registry):
        def broken_save(attributes, inner_blocks):
            raise RuntimeError("boom")

        demo_registry.register("demo/broken", {"save": broken_save})
        blocks = parse("<!-- wp:demo/broken --><p>x</p><!-- /wp:demo/broken -->", demo_registry)
        assert blocks[0].is_valid is False
        assert "boom" in blocks[0].validation_issues[0]
