import pytest

from blockcraft.block import BlockTypeRegistry
from utils import register_demo_types


@pytest.fixture()
def registry():
    """Fresh registry with the built-in block types."""
    registry = BlockTypeRegistry().init()
    yield registry
    registry.teardown()


@pytest.fixture()
def demo_registry(registry):
    """Registry with the demo block types used across the tests."""
    register_demo_types(registry)
    return registry
