"""Serialized speech output that keeps speech recognition muted while talking."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum

from hoda_voice.clock import AsyncioClock, CancellationToken, Clock

from .interfaces import RecognizerLink, SpeechOutputBackend, SpeechSettings


class SpeechConcurrencyPolicy(str, Enum):
    """What ``speak()`` does while another utterance holds the speaker."""

    REPLACE = "replace"
    QUEUE = "queue"
    REJECT = "reject"


class UtterancePriority(str, Enum):
    NORMAL = "normal"
    HIGH = "high"


class SpeechStatus(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    REJECTED = "rejected"
    SKIPPED = "skipped"


@dataclass(slots=True)
class SpeechConfig:
    """Speaker defaults and turn-taking behaviour."""

    enabled: bool = True
    settings: SpeechSettings = field(default_factory=SpeechSettings)
    policy: SpeechConcurrencyPolicy = SpeechConcurrencyPolicy.REPLACE
    settle_delay_seconds: float = 0.5


@dataclass(slots=True)
class SpeechResult:
    """Outcome of one ``speak()`` call; truthy only when playback completed."""

    status: SpeechStatus
    text: str = ""
    error: str | None = None
    reason: str | None = None

    @property
    def success(self) -> bool:
        return self.status == SpeechStatus.COMPLETED

    def __bool__(self) -> bool:
        return self.success


@dataclass(slots=True, eq=False)
class UtteranceRequest:
    text: str
    priority: UtterancePriority
    settings: SpeechSettings
    # Resolves True when the speaker is handed over, False when dismissed.
    turn: asyncio.Future[bool]
    cancelled: bool = False
    playback: asyncio.Future[None] | None = None


class SpeechQueueCoordinator:
    """Sole owner of the active utterance and of the recognizer mute state."""

    def __init__(
        self,
        backend: SpeechOutputBackend,
        *,
        recognizer: RecognizerLink | None = None,
        config: SpeechConfig | None = None,
        clock: Clock | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._backend = backend
        self._recognizer = recognizer
        self._config = config or SpeechConfig()
        self._clock = clock or AsyncioClock()
        self._logger = logger or logging.getLogger("hoda_voice.voice.speech")

        self._holder: UtteranceRequest | None = None
        self._active: UtteranceRequest | None = None
        self._pending: deque[UtteranceRequest] = deque()
        self._recognizer_muted = False
        self._settle_token: CancellationToken | None = None

    @property
    def config(self) -> SpeechConfig:
        return self._config

    @property
    def is_speaking(self) -> bool:
        return self._active is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def attach_recognizer(self, recognizer: RecognizerLink | None) -> None:
        self._recognizer = recognizer

    async def speak(
        self,
        text: str,
        *,
        priority: UtterancePriority = UtterancePriority.NORMAL,
        volume: float | None = None,
        rate: float | None = None,
        pitch: float | None = None,
        voice: str | None = None,
        language: str | None = None,
    ) -> SpeechResult:
        """Speak ``text`` according to the configured concurrency policy."""
        if not self._config.enabled:
            return SpeechResult(status=SpeechStatus.SKIPPED, text=text, reason="disabled")
        if not self._backend.is_supported():
            return SpeechResult(status=SpeechStatus.SKIPPED, text=text, reason="unsupported")
        if not text or not text.strip():
            self._logger.warning("speech_empty_text")
            return SpeechResult(status=SpeechStatus.SKIPPED, text=text, reason="empty")

        settings = replace(
            self._config.settings,
            **{
                key: value
                for key, value in (
                    ("volume", volume),
                    ("rate", rate),
                    ("pitch", pitch),
                    ("voice", voice),
                    ("language", language),
                )
                if value is not None
            },
        )
        request = UtteranceRequest(
            text=text,
            priority=priority,
            settings=settings,
            turn=asyncio.get_running_loop().create_future(),
        )

        if self._holder is not None:
            policy = self._config.policy
            if policy == SpeechConcurrencyPolicy.REJECT:
                self._logger.info("speech_rejected", extra={"text": text[:50]})
                return SpeechResult(status=SpeechStatus.REJECTED, text=text, error="already speaking")
            if policy == SpeechConcurrencyPolicy.REPLACE:
                self._cancel_all(reason="replaced")

            self._enqueue(request)
            try:
                granted = await request.turn
            except asyncio.CancelledError:
                self._abandon(request)
                raise
            if not granted:
                return SpeechResult(status=SpeechStatus.CANCELLED, text=text, reason="cancelled")
        else:
            self._holder = request

        try:
            if request.cancelled:
                return SpeechResult(status=SpeechStatus.CANCELLED, text=text, reason="cancelled")
            result = await self._play(request)
        finally:
            self._advance()

        # A waiter that was just handed the turn keeps the recognizer muted.
        if result.success and self._holder is None:
            await self._settle()
        return result

    def stop(self) -> None:
        """Cancel active and queued speech and unmute the recognizer now."""
        had_work = self._holder is not None or bool(self._pending)
        self._cancel_all(reason="stopped")
        self._backend.cancel()
        self._cancel_settle()
        self._resume_recognizer()
        if had_work:
            self._logger.info("speech_stopped")

    def pause(self) -> None:
        if self._active is not None:
            self._backend.pause()
            self._logger.info("speech_paused")

    def resume(self) -> None:
        self._backend.resume()
        self._logger.info("speech_resumed")

    def set_enabled(self, enabled: bool) -> None:
        self._config.enabled = enabled
        if not enabled and (self._holder is not None or self._pending):
            self.stop()
        self._logger.info("speech_enabled_changed", extra={"enabled": enabled})

    def update_settings(
        self,
        *,
        volume: float | None = None,
        rate: float | None = None,
        pitch: float | None = None,
        voice: str | None = None,
        language: str | None = None,
    ) -> None:
        """Update default speech settings for future utterances."""
        settings = self._config.settings
        if volume is not None:
            settings.volume = max(0.0, min(1.0, volume))
        if rate is not None:
            settings.rate = rate
        if pitch is not None:
            settings.pitch = pitch
        if voice is not None:
            settings.voice = voice
        if language is not None:
            settings.language = language

    def list_voices(self) -> list[str]:
        if not self._backend.is_supported():
            return []
        return self._backend.list_voices()

    def get_status(self) -> dict:
        settings = self._config.settings
        return {
            "enabled": self._config.enabled,
            "supported": self._backend.is_supported(),
            "speaking": self.is_speaking,
            "pending": len(self._pending),
            "policy": self._config.policy.value,
            "volume": settings.volume,
            "rate": settings.rate,
            "pitch": settings.pitch,
        }

    async def _play(self, request: UtteranceRequest) -> SpeechResult:
        self._active = request
        self._cancel_settle()
        self._pause_recognizer()
        self._logger.info("speech_started", extra={"text": request.text[:50], "priority": request.priority.value})

        playback = asyncio.ensure_future(self._backend.speak(request.text, request.settings))
        request.playback = playback
        try:
            await asyncio.wait({playback})
        except asyncio.CancelledError:
            request.cancelled = True
            playback.cancel()
            self._backend.cancel()
            self._active = None
            self._resume_recognizer()
            raise

        self._active = None
        if request.cancelled or playback.cancelled():
            if not self._pending:
                self._resume_recognizer()
            return SpeechResult(status=SpeechStatus.CANCELLED, text=request.text, reason="cancelled")

        error = playback.exception()
        if error is not None:
            self._logger.warning(
                "speech_failed",
                extra={"text": request.text[:50], "error": f"{type(error).__name__}: {error}"},
            )
            if not self._pending:
                self._resume_recognizer()
            return SpeechResult(status=SpeechStatus.FAILED, text=request.text, error=str(error) or type(error).__name__)

        self._logger.info("speech_finished", extra={"text": request.text[:50]})
        return SpeechResult(status=SpeechStatus.COMPLETED, text=request.text)

    async def _settle(self) -> None:
        """Wait out the settle delay, then unmute unless someone else took over."""
        token = CancellationToken()
        self._settle_token = token
        try:
            await token.sleep(self._clock, self._config.settle_delay_seconds)
        finally:
            if self._settle_token is token:
                self._settle_token = None
                if self._holder is None and not self._pending:
                    self._resume_recognizer()

    def _cancel_settle(self) -> None:
        token = self._settle_token
        if token is not None:
            self._settle_token = None
            token.cancel()

    def _enqueue(self, request: UtteranceRequest) -> None:
        if request.priority == UtterancePriority.HIGH:
            position = 0
            for queued in self._pending:
                if queued.priority != UtterancePriority.HIGH:
                    break
                position += 1
            self._pending.insert(position, request)
        else:
            self._pending.append(request)

    def _advance(self) -> None:
        """Hand the speaker to the next waiter, or release it."""
        while self._pending:
            request = self._pending.popleft()
            if not request.turn.done():
                self._holder = request
                request.turn.set_result(True)
                return
        self._holder = None

    def _abandon(self, request: UtteranceRequest) -> None:
        if request in self._pending:
            self._pending.remove(request)
        elif request is self._holder:
            # Turn was granted just before the caller went away.
            self._advance()

    def _cancel_all(self, *, reason: str) -> None:
        holder = self._holder
        if holder is not None and not holder.cancelled:
            holder.cancelled = True
            if holder.playback is not None and not holder.playback.done():
                self._backend.cancel()
                holder.playback.cancel()
                self._logger.info("speech_cancelled", extra={"text": holder.text[:50], "reason": reason})

        while self._pending:
            request = self._pending.popleft()
            request.cancelled = True
            if not request.turn.done():
                request.turn.set_result(False)

    def _pause_recognizer(self) -> None:
        if self._recognizer is None or self._recognizer_muted:
            return
        self._recognizer_muted = True
        try:
            self._recognizer.pause_for_tts()
        except Exception:  # noqa: BLE001 - recognizer hooks are best-effort.
            self._logger.warning("recognizer_pause_failed", exc_info=True)

    def _resume_recognizer(self) -> None:
        if self._recognizer is None or not self._recognizer_muted:
            return
        self._recognizer_muted = False
        try:
            self._recognizer.resume_after_tts()
        except Exception:  # noqa: BLE001 - recognizer hooks are best-effort.
            self._logger.warning("recognizer_resume_failed", exc_info=True)
