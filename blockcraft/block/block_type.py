"""
Block type definitions.

A BlockType is the full definition of one kind of block: its attribute
schema, named variations, cosmetic styles, transform rules, capability flags
and the optional ``save`` render callback. Definitions are pydantic models,
so they can be declared as plain (camelCase or snake_case) dicts:

    BlockType.model_validate({
        "name": "demo/box",
        "title": "Box",
        "apiVersion": 2,
        "attributes": {"color": {"type": "string", "default": "blue"}},
        "variations": [{"name": "red", "attributes": {"color": "red"}, "isActive": ["color"]}],
    })
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, InstanceOf, field_validator
from pydantic.alias_generators import to_camel

from .attributes import MISSING, AttributeShape
from .transforms import BlockTransforms


VariationScope = Literal["block", "inserter", "transform"]


def get_dotted(mapping: Mapping[str, Any], path: str) -> Any:
    """Follow a dotted key path through nested mappings; MISSING when absent."""
    value: Any = mapping
    for key in path.split("."):
        if not isinstance(value, Mapping) or key not in value:
            return MISSING
        value = value[key]
    return value


# -------------------------------------------------------------------------
# isActive
# -------------------------------------------------------------------------


@dataclass(frozen=True)
class KeyList:
    """Variation is active when every listed key equals the variation's value."""
    keys: tuple[str, ...]

    def matches(self, attributes: Mapping[str, Any], variation_attributes: Mapping[str, Any]) -> bool:
        return all(
            get_dotted(attributes, key) == get_dotted(variation_attributes, key)
            for key in self.keys
        )


@dataclass(frozen=True)
class Predicate:
    """Variation is active when func(attributes, variation_attributes) is truthy."""
    func: Callable[[dict[str, Any], dict[str, Any]], bool]

    def matches(self, attributes: Mapping[str, Any], variation_attributes: Mapping[str, Any]) -> bool:
        return bool(self.func(dict(attributes), dict(variation_attributes)))


IsActive = Union[KeyList, Predicate]


def to_is_active(value: Any) -> IsActive | None:
    if value is None or isinstance(value, (KeyList, Predicate)):
        return value
    if isinstance(value, (list, tuple)):
        return KeyList(tuple(value))
    if callable(value):
        return Predicate(value)
    raise ValueError(f"isActive must be a list of attribute keys or a callable, got {value!r}")


# -------------------------------------------------------------------------
# Definitions
# -------------------------------------------------------------------------


class _Definition(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        frozen=True,
    )


class Variation(_Definition):
    """
    Named alternative of a block type.

    Attributes:
        name: Unique within the block type
        attributes: Attribute values the variation applies
        inner_blocks: Child template as (name, attributes, inner_template) tuples
        is_default: Replaces the block type in the inserter
        scope: Where the variation is offered
        is_active: KeyList or Predicate deciding whether a block is this variation
    """
    name: str
    title: str = ""
    description: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)
    inner_blocks: list[Any] = Field(default_factory=list)
    is_default: bool = False
    scope: list[VariationScope] = Field(default_factory=lambda: ["block", "inserter"])
    keywords: list[str] = Field(default_factory=list)
    example: dict[str, Any] | None = None
    is_active: InstanceOf[KeyList] | InstanceOf[Predicate] | None = None

    @field_validator("is_active", mode="before")
    @classmethod
    def _build_is_active(cls, value: Any) -> IsActive | None:
        return to_is_active(value)

    def matches(self, attributes: Mapping[str, Any]) -> bool:
        """True if the block attributes make this variation active."""
        if self.is_active is None:
            return False
        return self.is_active.matches(attributes, self.attributes)


class StyleVariation(_Definition):
    """Cosmetic style (a class name), not attribute-bearing."""
    name: str
    label: str = ""
    is_default: bool = False


class BlockCollection(_Definition):
    """Section grouping every block type of one namespace."""
    namespace: str
    title: str
    icon: str | None = None


class BlockType(_Definition):
    """
    Full definition of a block type.

    Attributes:
        name: ``namespace/slug``
        parent: Block types this one may be placed directly inside
        ancestor: Block types this one may be placed anywhere inside
        attributes: Attribute schema in declaration order
        transforms: ``from`` / ``to`` rules and the ungroup callback
        supports: Capability flags for external UI, possibly nested
        api_version: Grammar revision; 1 validates saved markup strictly
        save: Render callback producing the block's own markup
        provides_context / uses_context: Carried for external consumers
    """
    name: str
    title: str = ""
    description: str = ""
    category: str | None = None
    keywords: list[str] = Field(default_factory=list)
    parent: list[str] | None = None
    ancestor: list[str] | None = None
    attributes: dict[str, AttributeShape] = Field(default_factory=dict)
    variations: list[Variation] = Field(default_factory=list)
    styles: list[StyleVariation] = Field(default_factory=list)
    transforms: InstanceOf[BlockTransforms] = Field(default_factory=BlockTransforms)
    supports: dict[str, Any] = Field(default_factory=dict)
    api_version: Literal[1, 2, 3] = 1
    save: Callable[..., Any] | None = None
    example: dict[str, Any] | None = None
    provides_context: dict[str, str] = Field(default_factory=dict)
    uses_context: list[str] = Field(default_factory=list)

    @field_validator("transforms", mode="before")
    @classmethod
    def _build_transforms(cls, value: Any) -> BlockTransforms:
        return BlockTransforms.coerce(value)

    @field_validator("variations", mode="after")
    @classmethod
    def _unique_variations(cls, value: list[Variation]) -> list[Variation]:
        names = [variation.name for variation in value]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            raise ValueError(f"duplicate variation names: {sorted(duplicates)}")
        return value

    def get_variation(self, name: str) -> Variation | None:
        for variation in self.variations:
            if variation.name == name:
                return variation
        return None

    def get_support(self, feature: str, default: Any = None) -> Any:
        """Value of a (dotted) supports flag, or default when undeclared."""
        value = get_dotted(self.supports, feature)
        return default if value is MISSING else value

    def has_support(self, feature: str, default: bool = False) -> bool:
        """
        True if the feature is supported.

        A feature declared as a mapping (``{"color": {"text": True}}``)
        counts as supported.
        """
        value = self.get_support(feature, default)
        return value is True or isinstance(value, Mapping) or (isinstance(value, (str, list)) and bool(value))
