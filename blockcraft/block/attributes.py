"""
Attributes - Declarative attribute schema, extraction and coercion.

AttributeShape describes one attribute of a block type: its data type,
where its value lives (the block's JSON payload, or a location inside the
block's own markup) and the default used when nothing can be extracted.

Extraction reads values from the block markup using BeautifulSoup CSS
selectors, then coerces them to the declared type. Values that cannot be
coerced fall back to the declared default (or the type's zero value).

Example:
    shape = AttributeShape(type="string", source="attribute", selector="img", attribute="src")
    extract_attributes({"url": shape}, '<figure><img src="a.png"/></figure>', {})
    # {'url': 'a.png'}
"""

from __future__ import annotations
import copy
import logging
import math
import re
from typing import Any, Literal, Mapping, Protocol, runtime_checkable

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, ConfigDict, model_validator

from .errors import AttributeCoercionFailure


logger = logging.getLogger(__name__)


DataType = Literal["null", "boolean", "object", "array", "number", "string", "integer"]
AttributeSource = Literal["text", "html", "query", "attribute", "meta"]

MARKUP_SOURCES = frozenset({"text", "html", "query", "attribute"})


class _Missing:
    """Marker for a value that extraction could not find."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


_ZERO_VALUES: dict[str, Any] = {
    "null": None,
    "boolean": False,
    "object": {},
    "array": [],
    "number": 0,
    "integer": 0,
    "string": "",
}

_BOOLEAN_STRINGS = {"true": True, "false": False}

_INTEGER_PATTERN = re.compile(r"^[-+]?\d+$")
_NUMBER_PATTERN = re.compile(r"^[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?$")


@runtime_checkable
class MetaStore(Protocol):
    """External store for attributes declared with ``source="meta"``."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...


class AttributeShape(BaseModel):
    """
    Extraction contract for a single block attribute.

    Attributes:
        type: Declared data type, or a list of accepted types tried in order
        source: Markup location of the value; None reads the JSON payload
        selector: CSS selector locating the element inside the block markup
        attribute: HTML attribute name (source="attribute")
        multiline: Wrapper tag producing one entry per line (source="html")
        query: Sub-shapes applied to every element matched by selector (source="query")
        items: Element shape for arrays
        properties: Field shapes for objects
        enum: Allowed values
        meta: External meta store key (source="meta")
        default: Value used when nothing is extracted
    """

    model_config = ConfigDict(extra="ignore")

    type: DataType | list[DataType]
    source: AttributeSource | None = None
    selector: str | None = None
    attribute: str | None = None
    multiline: str | None = None
    query: dict[str, AttributeShape] | None = None
    items: AttributeShape | None = None
    properties: dict[str, AttributeShape] | None = None
    enum: list[str | bool | int | float] | None = None
    meta: str | None = None
    default: Any = None

    @model_validator(mode="after")
    def _check_source_parameters(self) -> AttributeShape:
        if self.source == "meta" and not self.meta:
            raise ValueError("an attribute with source 'meta' must declare a 'meta' key")
        if self.source == "attribute" and not self.attribute:
            raise ValueError("an attribute with source 'attribute' must declare the 'attribute' name")
        if self.source == "query" and not self.query:
            raise ValueError("an attribute with source 'query' must declare a 'query' mapping")
        if isinstance(self.type, list) and not self.type:
            raise ValueError("'type' must list at least one data type")
        return self

    @property
    def types(self) -> tuple[str, ...]:
        """Declared data types as a tuple."""
        if isinstance(self.type, list):
            return tuple(self.type)
        return (self.type,)

    @property
    def has_default(self) -> bool:
        """True if a default was declared explicitly (even None)."""
        return "default" in self.model_fields_set

    @property
    def is_markup_sourced(self) -> bool:
        """True if the value lives inside the block markup."""
        return self.source in MARKUP_SOURCES

    @property
    def is_payload_sourced(self) -> bool:
        """True if the value lives in the block's JSON payload."""
        return self.source is None

    def zero_value(self) -> Any:
        """Zero value of the first declared type."""
        return copy.deepcopy(_ZERO_VALUES[self.types[0]])

    def effective_default(self) -> Any:
        """The declared default, or the type's zero value when none is declared."""
        if self.has_default:
            return copy.deepcopy(self.default)
        return self.zero_value()


AttributeShape.model_rebuild()


# -------------------------------------------------------------------------
# Coercion
# -------------------------------------------------------------------------


def _parse_number(value: str) -> int | float:
    text = value.strip()
    if _INTEGER_PATTERN.match(text):
        return int(text)
    if _NUMBER_PATTERN.match(text):
        number = float(text)
        if math.isfinite(number):
            return number
    raise ValueError(f"{value!r} is not a number")


def _coerce_null(shape: AttributeShape, value: Any) -> Any:
    if value is None:
        return None
    raise AttributeCoercionFailure(value, ("null",))


def _coerce_boolean(shape: AttributeShape, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _BOOLEAN_STRINGS:
        return _BOOLEAN_STRINGS[value.strip().lower()]
    raise AttributeCoercionFailure(value, ("boolean",))


def _coerce_number(shape: AttributeShape, value: Any) -> int | float:
    if isinstance(value, bool):
        raise AttributeCoercionFailure(value, ("number",))
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return value
    if isinstance(value, str):
        try:
            return _parse_number(value)
        except ValueError as e:
            raise AttributeCoercionFailure(value, ("number",), str(e)) from e
    raise AttributeCoercionFailure(value, ("number",))


def _coerce_integer(shape: AttributeShape, value: Any) -> int:
    try:
        number = _coerce_number(shape, value)
    except AttributeCoercionFailure as e:
        raise AttributeCoercionFailure(value, ("integer",)) from e
    if isinstance(number, float):
        if not number.is_integer():
            raise AttributeCoercionFailure(value, ("integer",), "has a fractional part")
        return int(number)
    return number


def _coerce_string(shape: AttributeShape, value: Any) -> str:
    if isinstance(value, str):
        return value
    raise AttributeCoercionFailure(value, ("string",))


def _coerce_array(shape: AttributeShape, value: Any) -> list[Any]:
    if not isinstance(value, list):
        raise AttributeCoercionFailure(value, ("array",))
    if shape.items is None:
        return list(value)
    return [coerce_value(shape.items, item) for item in value]


def _coerce_object(shape: AttributeShape, value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise AttributeCoercionFailure(value, ("object",))
    result = dict(value)
    for key, prop in (shape.properties or {}).items():
        if key in result:
            result[key] = coerce_value(prop, result[key])
    return result


_COERCERS = {
    "null": _coerce_null,
    "boolean": _coerce_boolean,
    "number": _coerce_number,
    "integer": _coerce_integer,
    "string": _coerce_string,
    "array": _coerce_array,
    "object": _coerce_object,
}


def coerce_value(shape: AttributeShape, value: Any) -> Any:
    """
    Coerce a raw value to the shape's declared type.

    Declared types are tried in order and the first successful coercion wins.

    Raises:
        AttributeCoercionFailure: No declared type accepts the value, or the
            coerced value is not one of the shape's enum values.
    """
    for data_type in shape.types:
        try:
            result = _COERCERS[data_type](shape, value)
        except AttributeCoercionFailure:
            continue
        if shape.enum is not None and result not in shape.enum:
            raise AttributeCoercionFailure(value, shape.types, f"not one of {shape.enum!r}")
        return result
    raise AttributeCoercionFailure(value, shape.types)


# -------------------------------------------------------------------------
# Extraction
# -------------------------------------------------------------------------


def parse_markup(html: str) -> BeautifulSoup:
    """Parse a markup fragment, keeping every HTML attribute as a plain string."""
    return BeautifulSoup(html, "html.parser", multi_valued_attributes=None)


def extract_from_node(shape: AttributeShape, root: Tag) -> Any:
    """
    Read the raw value a markup-sourced shape points at.

    Returns MISSING when the selector matches nothing or the source does not
    live in markup.
    """
    if shape.source == "query":
        elements = root.select(shape.selector) if shape.selector else [root]
        return [
            {key: resolve_value(key, sub_shape, extract_from_node(sub_shape, element))
             for key, sub_shape in (shape.query or {}).items()}
            for element in elements
        ]

    if shape.source not in MARKUP_SOURCES:
        return MISSING

    node = root.select_one(shape.selector) if shape.selector else root
    if node is None:
        return MISSING

    if shape.source == "text":
        return node.get_text()

    if shape.source == "html":
        if shape.multiline:
            lines = node.find_all(shape.multiline, recursive=False)
            if "array" in shape.types:
                return [line.decode_contents() for line in lines]
            return "".join(str(line) for line in lines)
        return node.decode_contents()

    # attribute
    value = node.get(shape.attribute)
    if value is None:
        return MISSING
    if "boolean" in shape.types and value.strip().lower() not in _BOOLEAN_STRINGS:
        # boolean HTML attributes are true by presence
        return True
    return value


def resolve_value(name: str, shape: AttributeShape, raw: Any) -> Any:
    """Coerce an extracted value, falling back to the default."""
    if raw is MISSING:
        return shape.effective_default()
    try:
        return coerce_value(shape, raw)
    except AttributeCoercionFailure as e:
        logger.debug("Attribute '%s' falls back to its default: %s", name, e)
        return shape.effective_default()


def get_raw_value(
    name: str,
    shape: AttributeShape,
    root: Tag | None,
    comment_attributes: Mapping[str, Any],
    meta_store: MetaStore | None = None,
) -> Any:
    """Locate the uncoerced value of one attribute."""
    if shape.source is None:
        return comment_attributes.get(name, MISSING)

    if shape.source == "meta":
        if meta_store is None:
            logger.debug("No meta store available for attribute '%s' (meta key '%s')", name, shape.meta)
            return MISSING
        value = meta_store.get(shape.meta)
        return MISSING if value is None else value

    if root is None:
        return MISSING
    return extract_from_node(shape, root)


def extract_attributes(
    attributes: Mapping[str, AttributeShape],
    inner_html: str,
    comment_attributes: Mapping[str, Any],
    meta_store: MetaStore | None = None,
) -> dict[str, Any]:
    """
    Extract every declared attribute of a block, in declaration order.

    Args:
        attributes: Attribute schema of the block type
        inner_html: The block's own markup (nested blocks excluded)
        comment_attributes: The decoded JSON payload of the opening delimiter
        meta_store: Collaborator for meta-sourced attributes

    Returns:
        Mapping with a value for every declared attribute
    """
    root: BeautifulSoup | None = None
    result: dict[str, Any] = {}
    for name, shape in attributes.items():
        if shape.is_markup_sourced and root is None:
            root = parse_markup(inner_html)
        raw = get_raw_value(name, shape, root, comment_attributes, meta_store)
        result[name] = resolve_value(name, shape, raw)
    return result


def sanitize_attributes(
    attributes: Mapping[str, AttributeShape],
    values: Mapping[str, Any],
) -> dict[str, Any]:
    """
    Fit a caller-supplied attribute mapping to a schema.

    Undeclared keys are dropped, missing ones take their default and every
    value is coerced to its declared type.
    """
    result: dict[str, Any] = {}
    for name, shape in attributes.items():
        result[name] = resolve_value(name, shape, values.get(name, MISSING))
    dropped = set(values) - set(attributes)
    if dropped:
        logger.debug("Dropping undeclared attributes: %s", sorted(dropped))
    return result
