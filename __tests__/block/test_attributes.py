"""Tests for attribute shapes, extraction and coercion."""
import pytest
from blockcraft.block import AttributeShape, AttributeCoercionFailure, coerce_value, extract_attributes, sanitize_attributes
from utils import DictMetaStore


class TestCoercion:
    """Tests for coercing raw values to declared types."""

    def test_numeric_string_to_integer(self):
        assert coerce_value(AttributeShape(type="integer"), "42") == 42

    def test_integer_rejects_fractional_part(self):
        with pytest.raises(AttributeCoercionFailure):
            coerce_value(AttributeShape(type="integer"), "4.5")

    def test_integral_float_to_integer(self):
        assert coerce_value(AttributeShape(type="integer"), 3.0) == 3

    def test_numeric_string_to_number(self):
        assert coerce_value(AttributeShape(type="number"), "4.5") == 4.5
        assert coerce_value(AttributeShape(type="number"), "-2") == -2

    def test_boolean_is_not_a_number(self):
        with pytest.raises(AttributeCoercionFailure):
            coerce_value(AttributeShape(type="number"), True)

    def test_boolean_strings(self):
        shape = AttributeShape(type="boolean")
        assert coerce_value(shape, "true") is True
        assert coerce_value(shape, "false") is False
        with pytest.raises(AttributeCoercionFailure):
            coerce_value(shape, "yes")

    def test_types_are_tried_in_order(self):
        shape = AttributeShape(type=["number", "string"])
        assert coerce_value(shape, "12") == 12
        assert coerce_value(shape, "abc") == "abc"

    def test_enum(self):
        shape = AttributeShape(type="string", enum=["left", "right"])
        assert coerce_value(shape, "left") == "left"
        with pytest.raises(AttributeCoercionFailure):
            coerce_value(shape, "center")

    def test_array_items(self):
        shape = AttributeShape(type="array", items={"type": "integer"})
        assert coerce_value(shape, ["1", 2]) == [1, 2]

    def test_object_properties(self):
        shape = AttributeShape(type="object", properties={"width": {"type": "number"}})
        assert coerce_value(shape, {"width": "10", "unit": "px"}) == {"width": 10, "unit": "px"}


class TestShapeDefinition:
    """Tests for shape invariants and defaults."""

    def test_meta_source_requires_meta_key(self):
        with pytest.raises(ValueError):
            AttributeShape(type="string", source="meta")

    def test_attribute_source_requires_attribute_name(self):
        with pytest.raises(ValueError):
            AttributeShape(type="string", source="attribute", selector="a")

    def test_zero_values(self):
        assert AttributeShape(type="string").effective_default() == ""
        assert AttributeShape(type="integer").effective_default() == 0
        assert AttributeShape(type="boolean").effective_default() is False
        assert AttributeShape(type="array").effective_default() == []
        assert AttributeShape(type="object").effective_default() == {}
        assert AttributeShape(type="null").effective_default() is None

    def test_declared_none_default_wins(self):
        shape = AttributeShape(type="string", default=None)
        assert shape.has_default
        assert shape.effective_default() is None

    def test_default_is_copied(self):
        shape = AttributeShape(type="array", default=[1])
        shape.effective_default().append(2)
        assert shape.effective_default() == [1]


class TestExtraction:
    """Tests for reading attribute values out of block markup."""

    def test_text_source(self):
        attributes = {"title": AttributeShape(type="string", source="text", selector="h3")}
        values = extract_attributes(attributes, "<div><h3>Hello <b>World</b></h3></div>", {})
        assert values == {"title": "Hello World"}

    def test_text_without_selector_reads_whole_markup(self):
        attributes = {"text": AttributeShape(type="string", source="text")}
        assert extract_attributes(attributes, "<p>a</p><p>b</p>", {}) == {"text": "ab"}

    def test_html_source(self):
        attributes = {"content": AttributeShape(type="string", source="html", selector="p")}
        values = extract_attributes(attributes, "<p>Hi <em>there</em></p>", {})
        assert values == {"content": "Hi <em>there</em>"}

    def test_multiline_html_as_array(self):
        attributes = {"lines": AttributeShape(type="array", source="html", selector="div", multiline="p")}
        values = extract_attributes(attributes, "<div><p>a</p><p>b</p></div>", {})
        assert values == {"lines": ["a", "b"]}

    def test_multiline_html_as_string(self):
        attributes = {"lines": AttributeShape(type="string", source="html", selector="div", multiline="p")}
        values = extract_attributes(attributes, "<div><p>a</p><p>b</p></div>", {})
        assert values == {"lines": "<p>a</p><p>b</p>"}

    def test_attribute_source(self):
        attributes = {"url": AttributeShape(type="string", source="attribute", selector="img", attribute="src")}
        values = extract_attributes(attributes, '<figure><img src="a.png"/></figure>', {})
        assert values == {"url": "a.png"}

    def test_boolean_attribute_presence(self):
        attributes = {"checked": AttributeShape(type="boolean", source="attribute", selector="input", attribute="checked")}
        assert extract_attributes(attributes, "<input checked>", {}) == {"checked": True}
        assert extract_attributes(attributes, "<input>", {}) == {"checked": False}

    def test_query_source(self):
        attributes = {
            "items": AttributeShape(type="array", source="query", selector="li", query={
                "label": {"type": "string", "source": "text"},
                "id": {"type": "integer", "source": "attribute", "attribute": "data-id"},
            }),
        }
        values = extract_attributes(attributes, '<ul><li data-id="1">A</li><li data-id="2">B</li></ul>', {})
        assert values == {"items": [{"label": "A", "id": 1}, {"label": "B", "id": 2}]}

    def test_payload_source_is_coerced(self):
        attributes = {"count": AttributeShape(type="integer")}
        assert extract_attributes(attributes, "", {"count": "3"}) == {"count": 3}

    def test_missing_value_takes_default(self):
        attributes = {
            "color": AttributeShape(type="string", default="blue"),
            "title": AttributeShape(type="string", source="text", selector="h3", default="Untitled"),
        }
        assert extract_attributes(attributes, "<p>no heading</p>", {}) == {"color": "blue", "title": "Untitled"}

    def test_uncoercible_value_takes_default(self):
        attributes = {"count": AttributeShape(type="integer", default=5)}
        assert extract_attributes(attributes, "", {"count": "many"}) == {"count": 5}

    def test_meta_source_reads_store(self):
        attributes = {"subtitle": AttributeShape(type="string", source="meta", meta="post_subtitle")}
        store = DictMetaStore({"post_subtitle": "From meta"})
        assert extract_attributes(attributes, "", {}, store) == {"subtitle": "From meta"}
        assert extract_attributes(attributes, "", {}) == {"subtitle": ""}

    def test_declaration_order(self):
        attributes = {
            "b": AttributeShape(type="string", default="2"),
            "a": AttributeShape(type="string", default="1"),
        }
        assert list(extract_attributes(attributes, "", {})) == ["b", "a"]


class TestSanitize:
    """Tests for fitting caller-supplied values to a schema."""

    def test_drops_undeclared_and_fills_defaults(self):
        attributes = {
            "color": AttributeShape(type="string", default="blue"),
            "count": AttributeShape(type="integer"),
        }
        assert sanitize_attributes(attributes, {"count": "7", "extra": True}) == {"color": "blue", "count": 7}
