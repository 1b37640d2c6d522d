"""Fenced diagram block discovery and substitution.

A diagram block is a fenced code block whose opening line is exactly the
fence token followed by a language tag and whose closing line is the bare
fence token::

    ```plantuml
    Alice -> Bob: hi
    ```

The payload is every line between the two fence lines (embedded newlines
kept, the newline before the closing fence dropped).  Blocks are matched
non-greedily, left to right, and never nest.

Replacement goes through :meth:`re.Pattern.sub` with a callback, so every
block is substituted at its own position in a single pass over the
original text.  Two byte-identical blocks are therefore each replaced in
place; nothing is located by searching for the block text again.

Usage::

    from plantuml_exporter.fences import PLANTUML_FENCE, replace_blocks

    PLANTUML_FENCE.opening          # '```plantuml'
    PLANTUML_FENCE.wrap("A -> B")   # '```plantuml\\nA -> B\\n```'
    result = replace_blocks(text, lambda block: "![x](...)")
    result.text, result.matched, result.replaced
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from functools import cached_property

from plantuml_exporter.errors import EncodingError

FENCE_TOKEN = "```"
"""Fence delimiter shared by the opening and closing lines."""

DEFAULT_LANGUAGE = "plantuml"


@dataclass(frozen=True)
class FenceDef:
    """Definition of a fenced block tagged with *language*.

    Parameters
    ----------
    language:
        Info string that must follow the fence token on the opening line,
        e.g. ``"plantuml"``.  Matched literally and case-sensitively.
    """

    language: str = DEFAULT_LANGUAGE

    @property
    def opening(self) -> str:
        """Literal opening fence line (without newline)."""
        return f"{FENCE_TOKEN}{self.language}"

    @property
    def closing(self) -> str:
        """Literal closing fence line (without newline)."""
        return FENCE_TOKEN

    def wrap(self, payload: str) -> str:
        """Build a block around *payload*.

        >>> PLANTUML_FENCE.wrap("A -> B")
        '```plantuml\\nA -> B\\n```'
        >>> PLANTUML_FENCE.wrap("")
        '```plantuml\\n```'
        """
        body = f"{payload}\n" if payload else ""
        return f"{self.opening}\n{body}{self.closing}"

    @cached_property
    def re(self) -> re.Pattern[str]:
        """Line-anchored regex for one block; group 1 is the payload.

        Group 1 is ``None`` for an empty block.  The optional payload
        group is lazy (``??``) so an empty block closes at the very next
        fence line instead of reaching for a later one.
        """
        return re.compile(
            rf"^{re.escape(self.opening)}\n"
            r"(?:(.*?)\n)??"
            rf"{re.escape(self.closing)}$",
            re.MULTILINE | re.DOTALL,
        )


PLANTUML_FENCE = FenceDef()
"""The ``plantuml`` fence used by the exporter."""


@dataclass(frozen=True)
class Block:
    """A matched diagram block.  Exists only while a document is scanned."""

    start: int
    """Offset of the first character of the opening fence."""

    end: int
    """Offset just past the last character of the closing fence."""

    text: str
    """Full matched span, fences included."""

    payload: str
    """Interior of the block, fence lines excluded."""

    @classmethod
    def from_match(cls, m: re.Match[str]) -> Block:
        return cls(
            start=m.start(),
            end=m.end(),
            text=m.group(0),
            payload=m.group(1) or "",
        )


@dataclass(frozen=True)
class BlockFailure:
    """A block whose replacement could not be produced."""

    block: Block
    error: EncodingError


@dataclass
class ReplaceResult:
    """Outcome of :func:`replace_blocks`.

    Invariant: ``replaced + len(failures) == matched``.
    """

    text: str
    matched: int = 0
    replaced: int = 0
    failures: list[BlockFailure] = field(default_factory=list)


def iter_blocks(text: str, fence: FenceDef = PLANTUML_FENCE) -> Iterator[Block]:
    """Yield the blocks of *text* in document order."""
    for m in fence.re.finditer(text):
        yield Block.from_match(m)


def find_blocks(text: str, fence: FenceDef = PLANTUML_FENCE) -> list[Block]:
    """Return all blocks of *text* in document order."""
    return list(iter_blocks(text, fence))


def replace_blocks(
    text: str,
    replacer: Callable[[Block], str],
    fence: FenceDef = PLANTUML_FENCE,
    on_failure: Callable[[BlockFailure], None] | None = None,
) -> ReplaceResult:
    """Replace every block of *text* with ``replacer(block)``.

    When *replacer* raises :class:`EncodingError` the block's original
    text is kept byte-for-byte, the failure is recorded (and passed to
    *on_failure*, if given) and scanning continues with the next block.
    Failing blocks still count towards :attr:`ReplaceResult.matched`.

    Args:
        text: Document body to scan.
        replacer: Callback producing the replacement for one block.
        fence: Fence definition to match.
        on_failure: Optional callback invoked once per failing block,
            in document order.

    Returns:
        :class:`ReplaceResult` with the new text and the counts.
    """
    result = ReplaceResult(text=text)

    def _substitute(m: re.Match[str]) -> str:
        block = Block.from_match(m)
        result.matched += 1
        try:
            replacement = replacer(block)
        except EncodingError as exc:
            failure = BlockFailure(block, exc)
            result.failures.append(failure)
            if on_failure is not None:
                on_failure(failure)
            return block.text
        result.replaced += 1
        return replacement

    result.text = fence.re.sub(_substitute, text)
    return result
