"""Content blocks handed to the reading session by an external extractor."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Protocol, Sequence

_HEADING_TYPE_RE = re.compile(r"^h([1-6])$", re.IGNORECASE)
_MARKDOWN_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")

WORDS_PER_MINUTE = 200


@dataclass(frozen=True, slots=True)
class BlockPosition:
    top: float = 0.0
    left: float = 0.0
    bottom: float = 0.0
    is_visible: bool = False


@dataclass(frozen=True, slots=True)
class ContentBlock:
    """One readable unit of a page (paragraph, heading, list item, ...)."""

    text: str
    type: str = "p"
    is_heading: bool = False
    position: BlockPosition = field(default_factory=BlockPosition)
    # Opaque handle for the affordance hooks, e.g. a DOM node id.
    ref: object | None = field(default=None, compare=False)

    @property
    def heading_level(self) -> int | None:
        if not self.is_heading:
            return None
        match = _HEADING_TYPE_RE.match(self.type)
        return int(match.group(1)) if match else None

    def spoken_text(self) -> str:
        if not self.is_heading:
            return self.text
        level = self.heading_level
        prefix = f"Heading {level}." if level is not None else "Heading."
        return f"{prefix} {self.text}"


class ContentSource(Protocol):
    """Rule-based extractor that snapshots the readable blocks of a page."""

    def extract_content(self) -> Sequence[ContentBlock]:
        """Return all eligible blocks in document order."""

    def viewport_offset(self) -> float:
        """Return the current vertical scroll offset in pixels."""


class VisualAffordances(Protocol):
    """Scroll and highlight side effects on the rendered page."""

    def scroll_to_block(self, block: ContentBlock) -> None: ...

    def highlight_block(self, block: ContentBlock) -> None: ...

    def clear_highlights(self) -> None: ...


class NullAffordances:
    """Affordance hooks for sessions without a visual surface."""

    def scroll_to_block(self, block: ContentBlock) -> None:
        return None

    def highlight_block(self, block: ContentBlock) -> None:
        return None

    def clear_highlights(self) -> None:
        return None


def blocks_from_offset(blocks: Sequence[ContentBlock], offset: float, tolerance: float = 100.0) -> list[ContentBlock]:
    """Keep blocks at or below ``offset``, allowing ``tolerance`` pixels of overlap above it."""
    threshold = offset - tolerance
    return [block for block in blocks if block.position.top >= threshold]


def summarize_blocks(blocks: Sequence[ContentBlock]) -> dict:
    total_words = sum(len(block.text.split()) for block in blocks)
    return {
        "total_blocks": len(blocks),
        "paragraphs": sum(1 for block in blocks if block.type == "p"),
        "headings": sum(1 for block in blocks if block.is_heading),
        "total_words": total_words,
        "estimated_reading_seconds": math.ceil(total_words / WORDS_PER_MINUTE * 60),
    }


class StaticContentSource:
    """Content source over plain text or markdown.

    Paragraphs are separated by blank lines and ``#`` lines become headings.
    Positions are synthetic: every source line advances ``line_height`` pixels.
    """

    def __init__(self, text: str, *, line_height: float = 24.0, min_length: int = 1) -> None:
        self.scroll_offset = 0.0
        self._blocks = self._parse(text, line_height=line_height, min_length=min_length)

    def extract_content(self) -> list[ContentBlock]:
        return list(self._blocks)

    def viewport_offset(self) -> float:
        return self.scroll_offset

    @staticmethod
    def _parse(text: str, *, line_height: float, min_length: int) -> list[ContentBlock]:
        blocks: list[ContentBlock] = []
        paragraph: list[str] = []
        paragraph_start = 0

        def flush(end_line: int) -> None:
            joined = " ".join(" ".join(paragraph).split())
            if len(joined) >= min_length:
                blocks.append(
                    ContentBlock(
                        text=joined,
                        type="p",
                        position=BlockPosition(top=paragraph_start * line_height, bottom=end_line * line_height),
                    )
                )
            paragraph.clear()

        for line_no, raw in enumerate(text.splitlines()):
            line = raw.strip()
            heading = _MARKDOWN_HEADING_RE.match(line)
            if not line or heading:
                if paragraph:
                    flush(line_no)
            if heading:
                title = heading.group(2).strip()
                if title:
                    blocks.append(
                        ContentBlock(
                            text=title,
                            type=f"h{len(heading.group(1))}",
                            is_heading=True,
                            position=BlockPosition(top=line_no * line_height, bottom=(line_no + 1) * line_height),
                        )
                    )
                continue
            if line:
                if not paragraph:
                    paragraph_start = line_no
                paragraph.append(line)

        if paragraph:
            flush(len(text.splitlines()))
        return blocks
