"""
MarkupParser - Builds block trees from delimited markup.

Scans block delimiters in document order with an explicit stack:
- Opener → push a frame
- Markup between delimiters → fragment of the innermost open block
- Closer → pop, extract attributes, validate, attach to the parent
- Self-closing delimiter → complete block with no content

Markup outside any block becomes a freeform block. Malformed input never
raises: a block with a broken payload, a missing or mismatched closer, or
nesting beyond the depth limit is kept as an invalid block that re-emits its
exact source bytes. So is a block whose opening delimiter would not be
written back as is (undeclared or uncoercible payload keys, explicit
defaults, non-compact JSON).
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .attributes import MetaStore, extract_attributes
from .block import BlockInstance, InnerContent
from .errors import MalformedMarkup
from .grammar import Token, iter_tokens, opener, parse_attributes_json
from .serializer import get_comment_attributes, get_saved_content, is_equivalent_markup
from ..settings import EngineSettings

if TYPE_CHECKING:
    from .block_type import BlockType
    from .registry import BlockTypeRegistry


logger = logging.getLogger(__name__)


@dataclass
class _Frame:
    """An open block on the parser stack."""
    token: Token
    fragments: InnerContent = field(default_factory=list)
    children: list[BlockInstance] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.token.name


class MarkupParser:
    """
    Parses delimited markup into BlockInstance trees.

    Example:
        parser = MarkupParser(registry)
        blocks = parser.parse('<!-- wp:demo/box --><p>Hi</p><!-- /wp:demo/box -->')
        blocks[0].attributes["color"]   # "blue" (declared default)
    """

    def __init__(
        self,
        registry: "BlockTypeRegistry",
        settings: EngineSettings | None = None,
        meta_store: MetaStore | None = None,
    ):
        self.registry = registry
        self.settings = settings or registry.settings
        self.meta_store = meta_store
        self._document = ""
        self._stack: list[_Frame] = []
        self._output: list[BlockInstance] = []

    @property
    def current_frame(self) -> _Frame | None:
        return self._stack[-1] if self._stack else None

    def parse(self, document: str) -> list[BlockInstance]:
        """Parse a document into its top-level blocks."""
        self._document = document
        self._stack = []
        self._output = []
        position = 0
        suppressed = 0

        for token in iter_tokens(document, self.settings.delimiter_prefix, self.settings.default_namespace):
            if suppressed:
                # delimiters below the depth limit stay literal markup
                if token.type == "opener":
                    suppressed += 1
                elif token.type == "closer":
                    suppressed -= 1
                continue

            if token.type in ("opener", "void") and len(self._stack) >= self.settings.max_depth:
                self._mark_invalid(self._stack[-1], MalformedMarkup(
                    f"nesting deeper than {self.settings.max_depth} levels", token.start
                ))
                if token.type == "opener":
                    suppressed = 1
                continue

            if token.type == "opener":
                self._add_text(document[position:token.start])
                self._stack.append(_Frame(token))
                position = token.end

            elif token.type == "void":
                self._add_text(document[position:token.start])
                self._add_block(self._finish(_Frame(token), end=token.end, content_end=token.start))
                position = token.end

            elif self._handle_closer(token, position):
                position = token.end

        self._add_text(document[position:])
        while self._stack:
            frame = self._stack.pop()
            self._mark_invalid(frame, MalformedMarkup(f"block '{frame.name}' is never closed", frame.token.start))
            self._add_block(self._finish(frame, end=len(document), content_end=len(document)))

        blocks = self._output
        self._output = []
        return blocks

    def _handle_closer(self, token: Token, position: int) -> bool:
        """Close the matching open block; False if the closer stays literal text."""
        if not self._stack:
            logger.warning("Ignoring closer of '%s' at offset %d with no open block", token.name, token.start)
            return False

        index = len(self._stack) - 1
        while index >= 0 and self._stack[index].name != token.name:
            index -= 1
        if index < 0:
            self._mark_invalid(self._stack[-1], MalformedMarkup(
                f"closer of '{token.name}' does not match '{self._stack[-1].name}'", token.start
            ))
            return False

        self._add_text(self._document[position:token.start])
        while len(self._stack) > index + 1:
            frame = self._stack.pop()
            self._mark_invalid(frame, MalformedMarkup(f"block '{frame.name}' is never closed", frame.token.start))
            self._add_block(self._finish(frame, end=token.start, content_end=token.start))
        frame = self._stack.pop()
        self._add_block(self._finish(frame, end=token.end, content_end=token.start))
        return True

    # -------------------------------------------------------------------------
    # Tree building
    # -------------------------------------------------------------------------

    def _add_text(self, text: str) -> None:
        if not text:
            return
        frame = self.current_frame
        if frame is not None:
            frame.fragments.append(text)
        else:
            self._output.append(BlockInstance(self.registry.freeform_block_name, {"content": text}))

    def _add_block(self, block: BlockInstance) -> None:
        frame = self.current_frame
        if frame is not None:
            frame.children.append(block)
            frame.fragments.append(None)
        else:
            self._output.append(block)

    def _mark_invalid(self, frame: _Frame, error: MalformedMarkup) -> None:
        frame.issues.append(str(error))

    def _finish(self, frame: _Frame, end: int, content_end: int) -> BlockInstance:
        """Turn a frame into a block, extracting and validating its attributes."""
        token = frame.token
        issues = frame.issues
        inner_html = "".join(part for part in frame.fragments if part is not None)

        try:
            comment_attributes = parse_attributes_json(token.attrs_json)
        except ValueError as e:
            issues.append(str(MalformedMarkup(f"invalid attribute payload: {e}", token.start)))
            comment_attributes = {}

        block_type = self.registry.lookup(token.name)
        if block_type is None:
            logger.debug("Block '%s' is not registered; keeping payload attributes only", token.name)
            attributes = comment_attributes
        else:
            attributes = extract_attributes(block_type.attributes, inner_html, comment_attributes, self.meta_store)
        if not issues:
            issues.extend(self._check_delimiter(token, block_type, attributes))
        if not issues and block_type is not None:
            issues.extend(self._validate(block_type, attributes, inner_html))

        is_valid = not issues
        if not is_valid:
            logger.warning("Block '%s' at offset %d is invalid: %s", token.name, token.start, "; ".join(issues))

        return BlockInstance(
            token.name,
            attributes,
            frame.children,
            is_valid=is_valid,
            original_content=None if is_valid else self._document[token.end:content_end],
            is_unregistered=block_type is None,
            validation_issues=issues,
            inner_content=frame.fragments,
            source=None if is_valid else self._document[token.start:end],
            is_void=token.type == "void",
        )

    def _check_delimiter(self, token: Token, block_type: "BlockType | None", attributes: dict) -> list[str]:
        """The opening delimiter written back from the extracted attributes must match the source."""
        expected = opener(
            token.name,
            get_comment_attributes(block_type, attributes),
            void=token.type == "void",
            prefix=self.settings.delimiter_prefix,
            default_namespace=self.settings.default_namespace,
        )
        actual = self._document[token.start:token.end]
        if expected == actual:
            return []
        return [f"delimiter {actual!r} would be written as {expected!r}"]

    def _validate(self, block_type: "BlockType", attributes: dict, inner_html: str) -> list[str]:
        if block_type.save is None:
            return []
        try:
            expected = get_saved_content(block_type, attributes)
        except Exception as e:
            logger.warning("save of '%s' failed during validation: %s", block_type.name, e)
            return [f"save failed: {e}"]
        if is_equivalent_markup(expected, inner_html, block_type.api_version):
            return []
        return [f"saved markup {expected!r} does not match parsed markup {inner_html!r}"]


def parse(
    document: str,
    registry: "BlockTypeRegistry",
    settings: EngineSettings | None = None,
    meta_store: MetaStore | None = None,
) -> list[BlockInstance]:
    """Parse a document with a one-off MarkupParser."""
    return MarkupParser(registry, settings, meta_store).parse(document)
