"""Paginated read-aloud of page content with pause, resume and seek."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

from hoda_voice.clock import AsyncioClock, CancellationToken, Clock
from hoda_voice.voice.speech import SpeechQueueCoordinator, SpeechResult, SpeechStatus, UtterancePriority

from .content import ContentBlock, ContentSource, NullAffordances, VisualAffordances, blocks_from_offset


class ReadingState(str, Enum):
    IDLE = "idle"
    READING = "reading"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass(slots=True)
class ReadingConfig:
    """Pacing and visual behaviour of a reading session."""

    pause_between_blocks_seconds: float = 0.5
    navigation_settle_seconds: float = 0.3
    viewport_tolerance_px: float = 100.0
    scroll_to_block: bool = True
    highlight_block: bool = True


@dataclass(slots=True)
class ReadingResult:
    success: bool
    reason: str | None = None
    error: str | None = None
    blocks_count: int | None = None


@dataclass(slots=True)
class ReadingProgress:
    current: int
    total: int
    percentage: int


@dataclass(slots=True)
class ReadingSnapshot:
    state: ReadingState
    current_index: int
    paused_at: int | None
    has_content: bool
    progress: ReadingProgress


class ReadingSession:
    """Reads a snapshot of content blocks aloud through the shared speech coordinator.

    Every public operation is a coroutine returning a :class:`ReadingResult`.
    ``read_page``, ``read_from_here``, ``resume_reading`` and a seek issued while
    reading only return once the reading loop they started has exited, so
    callers that need to keep handling commands should run them as tasks.
    """

    def __init__(
        self,
        speaker: SpeechQueueCoordinator,
        content_source: ContentSource,
        *,
        affordances: VisualAffordances | None = None,
        config: ReadingConfig | None = None,
        clock: Clock | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._speaker = speaker
        self._content_source = content_source
        self._affordances = affordances or NullAffordances()
        self._config = config or ReadingConfig()
        self._clock = clock or AsyncioClock()
        self._logger = logger or logging.getLogger("hoda_voice.reading.session")

        self._state = ReadingState.IDLE
        self._blocks: tuple[ContentBlock, ...] = ()
        self._current_index = 0
        self._paused_at: int | None = None

        self._stop_token: CancellationToken | None = None
        self._settle_token: CancellationToken | None = None
        self._loop_task: asyncio.Task[None] | None = None

    @property
    def config(self) -> ReadingConfig:
        return self._config

    @property
    def state(self) -> ReadingState:
        return self._state

    @property
    def blocks(self) -> tuple[ContentBlock, ...]:
        return self._blocks

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_block(self) -> ContentBlock | None:
        if 0 <= self._current_index < len(self._blocks):
            return self._blocks[self._current_index]
        return None

    async def read_page(self) -> ReadingResult:
        """Read every extracted block from the top of the page."""
        self._logger.info("reading_page_requested")
        blocks = self._content_source.extract_content()
        return await self._start(blocks, start_message="Reading page", empty_message="No readable content on this page")

    async def read_from_here(self) -> ReadingResult:
        """Read the blocks at or below the current viewport offset."""
        self._logger.info("reading_from_here_requested")
        blocks = blocks_from_offset(
            self._content_source.extract_content(),
            self._content_source.viewport_offset(),
            self._config.viewport_tolerance_px,
        )
        return await self._start(
            blocks,
            start_message="Reading from here",
            empty_message="No readable content from this position",
        )

    async def pause_reading(self) -> ReadingResult:
        if self._state != ReadingState.READING:
            return ReadingResult(success=False, reason="not-reading")

        self._request_stop()
        self._state = ReadingState.PAUSED
        self._paused_at = self._current_index
        self._logger.info("reading_paused", extra={"index": self._current_index})
        await self._announce("Paused")
        return ReadingResult(success=True)

    async def resume_reading(self) -> ReadingResult:
        if self._state != ReadingState.PAUSED:
            return ReadingResult(success=False, reason="not-paused")

        if self._paused_at is not None:
            self._current_index = self._paused_at
        self._paused_at = None
        self._state = ReadingState.READING
        self._logger.info("reading_resumed", extra={"index": self._current_index})
        await self._announce("Resuming")
        await self._run_loop()
        return ReadingResult(success=True)

    async def stop_reading(self) -> ReadingResult:
        self._logger.info("reading_stop_requested", extra={"from_state": self._state.value})
        self._request_stop()
        self._state = ReadingState.STOPPED
        self._safe_hook(self._affordances.clear_highlights)
        await self._wait_for_loop()
        self._to_idle()
        return ReadingResult(success=True)

    async def next_paragraph(self) -> ReadingResult:
        if not self._blocks:
            return await self._navigation_failure("No next paragraph", "no-next-block")
        if self._current_index >= len(self._blocks) - 1:
            return await self._navigation_failure("End of page", "end-of-page")
        return await self._seek(self._current_index + 1)

    async def previous_paragraph(self) -> ReadingResult:
        if not self._blocks:
            return await self._navigation_failure("No previous paragraph", "no-previous-block")
        if self._current_index <= 0:
            return await self._navigation_failure("At beginning", "at-beginning")
        return await self._seek(self._current_index - 1)

    def get_state(self) -> ReadingSnapshot:
        total = len(self._blocks)
        if total:
            progress = ReadingProgress(
                current=self._current_index + 1,
                total=total,
                percentage=round(self._current_index / total * 100),
            )
        else:
            progress = ReadingProgress(current=0, total=0, percentage=0)
        return ReadingSnapshot(
            state=self._state,
            current_index=self._current_index,
            paused_at=self._paused_at,
            has_content=total > 0,
            progress=progress,
        )

    async def reset(self) -> ReadingResult:
        """Abandon everything and return to an empty idle session."""
        self._request_stop()
        if self._settle_token is not None:
            self._settle_token.cancel()
        await self._wait_for_loop()
        self._speaker.stop()
        self._to_idle()
        self._safe_hook(self._affordances.clear_highlights)
        self._logger.info("reading_reset")
        return ReadingResult(success=True)

    async def _start(self, blocks: Sequence[ContentBlock], *, start_message: str, empty_message: str) -> ReadingResult:
        snapshot = tuple(blocks)
        if not snapshot:
            self._logger.warning("reading_no_content")
            await self._announce(empty_message)
            return ReadingResult(success=False, reason="no-content", error=empty_message)

        if self._state != ReadingState.IDLE or self._loop_running():
            self._request_stop()
            await self._wait_for_loop()

        self._blocks = snapshot
        self._current_index = 0
        self._paused_at = None
        self._state = ReadingState.READING
        self._logger.info("reading_started", extra={"blocks_count": len(snapshot)})

        await self._announce(start_message)
        await self._run_loop()
        return ReadingResult(success=True, blocks_count=len(snapshot))

    async def _seek(self, target: int) -> ReadingResult:
        self._logger.info("reading_seek", extra={"from_index": self._current_index, "to_index": target})
        if self._state != ReadingState.READING:
            self._current_index = target
            if self._state == ReadingState.PAUSED:
                self._paused_at = target
            self._focus(self._blocks[target])
            return ReadingResult(success=True)

        # The loop never advances after its token is cancelled, so the index is ours from here.
        self._request_stop()
        self._current_index = target
        settle = CancellationToken()
        self._settle_token = settle
        await settle.sleep(self._clock, self._config.navigation_settle_seconds)
        await self._wait_for_loop()

        if self._state == ReadingState.READING and not settle.cancelled:
            await self._run_loop()
        return ReadingResult(success=True)

    async def _run_loop(self) -> None:
        if self._loop_running():
            if self._stop_token is not None and not self._stop_token.cancelled:
                self._logger.debug("reading_loop_already_running")
                return
            await self._wait_for_loop()
        if self._state != ReadingState.READING:
            return

        token = CancellationToken()
        self._stop_token = token
        self._loop_task = asyncio.create_task(self._reading_loop(token), name="reading-loop")
        await asyncio.wait({self._loop_task})

    async def _reading_loop(self, token: CancellationToken) -> None:
        try:
            while self._state == ReadingState.READING and not token.cancelled:
                block = self.current_block
                if block is None:
                    await self._finish_page(token)
                    break

                self._focus(block)
                self._logger.info("reading_block", extra={"index": self._current_index, "block_type": block.type})
                result = await self._speaker.speak(block.spoken_text())
                if token.cancelled:
                    break
                if result.status == SpeechStatus.FAILED:
                    self._logger.warning("reading_block_failed", extra={"index": self._current_index, "error": result.error})

                if self._current_index + 1 >= len(self._blocks):
                    await self._finish_page(token)
                    break
                self._current_index += 1

                if not await token.sleep(self._clock, self._config.pause_between_blocks_seconds):
                    break
        finally:
            self._safe_hook(self._affordances.clear_highlights)

    async def _finish_page(self, token: CancellationToken) -> None:
        self._logger.info("reading_finished", extra={"blocks_count": len(self._blocks)})
        await self._announce("End of page")
        # A pause, stop or seek issued during the announcement owns the state now.
        if self._state == ReadingState.READING and not token.cancelled:
            self._state = ReadingState.IDLE
            self._paused_at = None

    async def _navigation_failure(self, message: str, reason: str) -> ReadingResult:
        # Announcing over an active read would cut the current block short.
        if self._state != ReadingState.READING:
            await self._announce(message)
        return ReadingResult(success=False, reason=reason, error=message)

    async def _announce(self, message: str) -> SpeechResult:
        return await self._speaker.speak(message, priority=UtterancePriority.HIGH)

    def _request_stop(self) -> None:
        if self._stop_token is not None:
            self._stop_token.cancel()
        self._speaker.stop()

    async def _wait_for_loop(self) -> None:
        task = self._loop_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            await asyncio.wait({task})

    def _loop_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def _focus(self, block: ContentBlock) -> None:
        if self._config.scroll_to_block:
            self._safe_hook(self._affordances.scroll_to_block, block)
        if self._config.highlight_block:
            self._safe_hook(self._affordances.highlight_block, block)

    def _to_idle(self) -> None:
        self._state = ReadingState.IDLE
        self._blocks = ()
        self._current_index = 0
        self._paused_at = None

    def _safe_hook(self, hook: Callable[..., None], *args: object) -> None:
        try:
            hook(*args)
        except Exception:  # noqa: BLE001 - visual side effects must not break reading.
            self._logger.exception("reading_affordance_failed", extra={"hook": getattr(hook, "__name__", repr(hook))})
