"""
Block Type Registry - The store of block type definitions keyed by name.

The registry is an explicit object handed to the parser, serializer and
resolvers. Mutations run under a lock and publish a new read-only snapshot;
readers always see a complete snapshot and never take the lock.

Usage:
    registry = BlockTypeRegistry()
    registry.init()
    registry.register("demo/box", {"attributes": {"color": {"type": "string", "default": "blue"}}})
    registry.lookup("demo/box").attributes["color"].default   # "blue"
    registry.teardown()
"""

from __future__ import annotations
import logging
import re
import threading
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from .block import FREEFORM_BLOCK_NAME
from .block_type import BlockCollection, BlockType, StyleVariation, Variation, VariationScope
from .errors import DuplicateName, DuplicateVariation, InvalidBlockName, UnknownBlock
from ..settings import EngineSettings


logger = logging.getLogger(__name__)


BLOCK_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]*/[a-z][a-z0-9-]*$")
NAMESPACE_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")


def _builtin_types() -> list[BlockType]:
    return [
        BlockType(
            name=FREEFORM_BLOCK_NAME,
            title="Classic",
            description="Markup outside of any block.",
            attributes={"content": {"type": "string", "source": "html"}},
            supports={"html": False, "reusable": False},
        ),
    ]


class BlockTypeRegistry:
    """
    Registry of block types.

    Attributes:
        settings: Engine settings shared by components using this registry
        default_block_name: Block inserted by default (e.g. a paragraph)
        grouping_block_name: Block used to group and ungroup selections
        freeform_block_name: Block holding markup outside of any delimiter
    """

    def __init__(self, settings: EngineSettings | None = None):
        self.settings = settings or EngineSettings()
        self._lock = threading.Lock()
        self._types: Mapping[str, BlockType] = MappingProxyType({})
        self._collections: Mapping[str, BlockCollection] = MappingProxyType({})
        self.default_block_name: str | None = None
        self.grouping_block_name: str | None = None
        self.freeform_block_name: str = FREEFORM_BLOCK_NAME

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def init(self) -> BlockTypeRegistry:
        """Register the built-in block types."""
        for block_type in _builtin_types():
            if block_type.name not in self._types:
                self.register(block_type.name, block_type)
        return self

    def teardown(self) -> None:
        """Remove every block type and collection and reset the block name settings."""
        with self._lock:
            self._types = MappingProxyType({})
            self._collections = MappingProxyType({})
            self.default_block_name = None
            self.grouping_block_name = None
            self.freeform_block_name = FREEFORM_BLOCK_NAME

    def _publish(self, types: dict[str, BlockType]) -> None:
        self._types = MappingProxyType(types)

    # -------------------------------------------------------------------------
    # Block types
    # -------------------------------------------------------------------------

    def register(self, name: str, definition: BlockType | Mapping[str, Any] | None = None) -> BlockType:
        """
        Register a block type under name.

        Args:
            name: ``namespace/slug`` name
            definition: BlockType or a mapping accepted by BlockType.model_validate

        Raises:
            InvalidBlockName: name is not ``namespace/slug``
            DuplicateName: a block type with this name exists; the original is kept
        """
        if not isinstance(name, str) or not BLOCK_NAME_PATTERN.match(name):
            raise InvalidBlockName(name)

        if definition is None:
            block_type = BlockType(name=name)
        elif isinstance(definition, BlockType):
            block_type = definition if definition.name == name else definition.model_copy(update={"name": name})
        else:
            block_type = BlockType.model_validate({**definition, "name": name})

        with self._lock:
            if name in self._types:
                raise DuplicateName(name)
            types = dict(self._types)
            types[name] = block_type
            self._publish(types)
        logger.debug("Registered block type '%s'", name)
        return block_type

    def unregister(self, name: str) -> BlockType | None:
        """Remove a block type, returning its definition, or None if it was not registered."""
        with self._lock:
            if name not in self._types:
                removed = None
            else:
                types = dict(self._types)
                removed = types.pop(name)
                self._publish(types)
        if removed is None:
            logger.warning("Block type '%s' is not registered", name)
        return removed

    def lookup(self, name: str) -> BlockType | None:
        return self._types.get(name)

    def list(self) -> Iterator[BlockType]:
        """Lazily iterate block types in registration order."""
        snapshot = self._types
        for block_type in snapshot.values():
            yield block_type

    def names(self) -> list[str]:
        return list(self._types)

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def __len__(self) -> int:
        return len(self._types)

    def _require(self, name: str) -> BlockType:
        block_type = self._types.get(name)
        if block_type is None:
            raise UnknownBlock(name)
        return block_type

    def _replace(self, block_type: BlockType) -> None:
        types = dict(self._types)
        types[block_type.name] = block_type
        self._publish(types)

    # -------------------------------------------------------------------------
    # Variations
    # -------------------------------------------------------------------------

    def register_variation(self, block_name: str, variation: Variation | Mapping[str, Any]) -> Variation:
        """
        Append a variation to a block type.

        Raises:
            UnknownBlock: block_name is not registered
            DuplicateVariation: the block type already has a variation with this name
        """
        if not isinstance(variation, Variation):
            variation = Variation.model_validate(variation)
        with self._lock:
            block_type = self._require(block_name)
            if block_type.get_variation(variation.name) is not None:
                raise DuplicateVariation(block_name, variation.name)
            self._replace(block_type.model_copy(update={"variations": [*block_type.variations, variation]}))
        return variation

    def unregister_variation(self, block_name: str, variation_name: str) -> Variation | None:
        """Remove a variation, returning it, or None if the block type or variation is unknown."""
        with self._lock:
            block_type = self._types.get(block_name)
            variation = block_type.get_variation(variation_name) if block_type is not None else None
            if variation is not None:
                remaining = [v for v in block_type.variations if v.name != variation_name]
                self._replace(block_type.model_copy(update={"variations": remaining}))
        if variation is None:
            logger.warning("Block type '%s' has no variation '%s'", block_name, variation_name)
        return variation

    def get_variations(self, block_name: str, scope: VariationScope | None = None) -> list[Variation]:
        """Variations of a block type, optionally only those offered in scope."""
        block_type = self._types.get(block_name)
        if block_type is None:
            return []
        if scope is None:
            return list(block_type.variations)
        return [variation for variation in block_type.variations if scope in variation.scope]

    # -------------------------------------------------------------------------
    # Supports
    # -------------------------------------------------------------------------

    def get_support(self, block_name: str, feature: str, default: Any = None) -> Any:
        block_type = self._types.get(block_name)
        if block_type is None:
            return default
        return block_type.get_support(feature, default)

    def has_support(self, block_name: str, feature: str, default: bool = False) -> bool:
        block_type = self._types.get(block_name)
        if block_type is None:
            return default
        return block_type.has_support(feature, default)

    # -------------------------------------------------------------------------
    # Styles
    # -------------------------------------------------------------------------

    def register_style(self, block_name: str, style: StyleVariation | Mapping[str, Any]) -> StyleVariation:
        """Add a style to a block type; a style with the same name is kept as is."""
        if not isinstance(style, StyleVariation):
            style = StyleVariation.model_validate(style)
        with self._lock:
            block_type = self._require(block_name)
            for existing in block_type.styles:
                if existing.name == style.name:
                    logger.debug("Block type '%s' already has style '%s'", block_name, style.name)
                    return existing
            self._replace(block_type.model_copy(update={"styles": [*block_type.styles, style]}))
        return style

    def unregister_style(self, block_name: str, style_name: str) -> StyleVariation | None:
        with self._lock:
            block_type = self._types.get(block_name)
            removed = None
            if block_type is not None:
                for style in block_type.styles:
                    if style.name == style_name:
                        removed = style
                        break
            if removed is not None:
                remaining = [s for s in block_type.styles if s.name != style_name]
                self._replace(block_type.model_copy(update={"styles": remaining}))
        if removed is None:
            logger.warning("Block type '%s' has no style '%s'", block_name, style_name)
        return removed

    def get_styles(self, block_name: str) -> list[StyleVariation]:
        block_type = self._types.get(block_name)
        return list(block_type.styles) if block_type is not None else []

    # -------------------------------------------------------------------------
    # Block name settings
    # -------------------------------------------------------------------------

    def set_default_block_name(self, name: str | None) -> None:
        with self._lock:
            self.default_block_name = name

    def set_grouping_block_name(self, name: str | None) -> None:
        with self._lock:
            self.grouping_block_name = name

    def set_freeform_block_name(self, name: str) -> None:
        with self._lock:
            self.freeform_block_name = name

    def get_child_block_names(self, name: str) -> list[str]:
        """Block types that declare name as an allowed parent."""
        return [
            block_type.name for block_type in self.list()
            if block_type.parent and name in block_type.parent
        ]

    def has_child_blocks(self, name: str) -> bool:
        return bool(self.get_child_block_names(name))

    def has_child_blocks_with_inserter_support(self, name: str) -> bool:
        """True if a block type allowed directly inside name is offered in the inserter."""
        return any(
            self.has_support(child, "inserter", default=True)
            for child in self.get_child_block_names(name)
        )

    # -------------------------------------------------------------------------
    # Collections
    # -------------------------------------------------------------------------

    def register_block_collection(
        self,
        namespace: str,
        definition: BlockCollection | Mapping[str, Any],
    ) -> BlockCollection:
        """
        Group every block type of a namespace under a title.

        Registering a namespace again replaces its collection.

        Raises:
            ValueError: namespace is not a lowercase slug
        """
        if not isinstance(namespace, str) or not NAMESPACE_PATTERN.match(namespace):
            raise ValueError(f"Collection namespace {namespace!r} must be a lowercase slug, e.g. 'demo'")
        if isinstance(definition, BlockCollection):
            collection = definition.model_copy(update={"namespace": namespace})
        else:
            collection = BlockCollection.model_validate({**definition, "namespace": namespace})

        with self._lock:
            collections = dict(self._collections)
            if namespace in collections:
                logger.debug("Replacing block collection '%s'", namespace)
            collections[namespace] = collection
            self._collections = MappingProxyType(collections)
        return collection

    def unregister_block_collection(self, namespace: str) -> BlockCollection | None:
        with self._lock:
            collections = dict(self._collections)
            removed = collections.pop(namespace, None)
            if removed is not None:
                self._collections = MappingProxyType(collections)
        if removed is None:
            logger.warning("Block collection '%s' is not registered", namespace)
        return removed

    def get_block_collection(self, namespace: str) -> BlockCollection | None:
        return self._collections.get(namespace)

    def get_block_collections(self) -> list[BlockCollection]:
        return list(self._collections.values())

    def get_collection_block_names(self, namespace: str) -> list[str]:
        """Registered block types in namespace, in registration order."""
        return [
            block_type.name for block_type in self.list()
            if block_type.name.split("/", 1)[0] == namespace
        ]
