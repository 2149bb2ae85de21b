from typing import Any

from blockcraft.block import BlockTypeRegistry, parse, serialize


def save_quote(attributes: dict, inner_blocks: list) -> str:
    return f'<blockquote><p>{attributes["text"]}</p></blockquote>'


def register_demo_types(registry: BlockTypeRegistry) -> BlockTypeRegistry:
    registry.register("demo/box", {
        "title": "Box",
        "apiVersion": 2,
        "attributes": {
            "color": {"type": "string", "default": "blue"},
        },
        "supports": {"color": {"background": True, "text": False}, "align": ["wide"]},
    })
    registry.register("demo/card", {
        "title": "Card",
        "parent": ["demo/box"],
        "attributes": {
            "title": {"type": "string", "source": "text", "selector": "h3"},
            "url": {"type": "string", "source": "attribute", "selector": "a", "attribute": "href"},
        },
    })
    registry.register("demo/counter", {
        "title": "Counter",
        "parent": ["demo/box"],
        "attributes": {
            "count": {"type": "integer", "default": 0},
        },
    })
    registry.register("demo/quote", {
        "title": "Quote",
        "attributes": {
            "text": {"type": "string", "source": "html", "selector": "p"},
        },
        "save": save_quote,
    })
    registry.register("core/paragraph", {
        "title": "Paragraph",
        "attributes": {
            "content": {"type": "string", "source": "html", "selector": "p"},
        },
    })
    return registry


def roundtrip(markup: str, registry: BlockTypeRegistry) -> str:
    return serialize(parse(markup, registry), registry)


class DictMetaStore:
    """In-memory meta store."""

    def __init__(self, values: dict[str, Any] | None = None):
        self.values = dict(values or {})

    def get(self, key: str) -> Any:
        return self.values.get(key)

    def set(self, key: str, value: Any) -> None:
        self.values[key] = value
