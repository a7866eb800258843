"""Read-aloud sessions over extracted page content."""

from .commands import ReadingCommandRouter, ReadingIntent, ReadingIntentParser, ReadingIntentType
from .content import (
    BlockPosition,
    ContentBlock,
    ContentSource,
    NullAffordances,
    StaticContentSource,
    VisualAffordances,
    blocks_from_offset,
    summarize_blocks,
)
from .session import ReadingConfig, ReadingResult, ReadingSession, ReadingSnapshot, ReadingState

__all__ = [
    "BlockPosition",
    "ContentBlock",
    "ContentSource",
    "NullAffordances",
    "ReadingCommandRouter",
    "ReadingConfig",
    "ReadingIntent",
    "ReadingIntentParser",
    "ReadingIntentType",
    "ReadingResult",
    "ReadingSession",
    "ReadingSnapshot",
    "ReadingState",
    "StaticContentSource",
    "VisualAffordances",
    "blocks_from_offset",
    "summarize_blocks",
]
