"""Wake-word gating of recognized speech with an inactivity timeout."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Sequence

from hoda_voice.clock import AsyncioClock, Clock, TimerHandle

_STRIP_CHARS = " ,:;.-!?"


class WakeState(str, Enum):
    ASLEEP = "asleep"
    AWAKE = "awake"


class WakeResultType(str, Enum):
    """How an utterance was interpreted by the wake gate."""

    WAKE = "wake"
    WAKE_AND_COMMAND = "wake_and_command"
    COMMAND = "command"
    DIRECT_COMMAND = "direct_command"
    IGNORED = "ignored"


@dataclass(slots=True)
class WakeWordConfig:
    """Wake phrases and activation window."""

    wake_words: list[str] = field(default_factory=lambda: ["hoda", "hey hoda"])
    timeout_seconds: float = 5.0
    require_wake_word: bool = False
    case_sensitive: bool = False


@dataclass(slots=True)
class WakeResult:
    type: WakeResultType
    command: str | None
    original: str
    reason: str | None = None

    @property
    def is_wake(self) -> bool:
        return self.type in (WakeResultType.WAKE, WakeResultType.WAKE_AND_COMMAND)


@dataclass(slots=True)
class WakeMatch:
    """A detected wake phrase and whatever followed or surrounded it."""

    phrase: str
    command: str | None


@dataclass(slots=True)
class WakeEvent:
    timestamp: float


@dataclass(slots=True)
class CommandEvent:
    command: str
    original: str
    timestamp: float


def _phrase_pattern(phrase: str, case_sensitive: bool) -> re.Pattern[str]:
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(r"\b" + re.escape(phrase) + r"\b\s*", flags)


def match_wake_phrase(text: str, wake_words: Sequence[str], *, case_sensitive: bool = False) -> WakeMatch | None:
    """Find a wake phrase in ``text`` and split off the command around it.

    A phrase matches when it is the whole text, starts the text followed by a
    space, or appears anywhere as standalone word(s). Longer phrases are tried
    first so "hey hoda" wins over "hoda".
    """
    cleaned = text.strip() if case_sensitive else text.strip().lower()
    if not cleaned:
        return None

    phrases = [p.strip() if case_sensitive else p.strip().lower() for p in wake_words]
    for phrase in sorted((p for p in phrases if p), key=len, reverse=True):
        if cleaned == phrase:
            return WakeMatch(phrase=phrase, command=None)

        if cleaned.startswith(phrase + " "):
            remainder = cleaned[len(phrase) + 1 :]
        else:
            pattern = _phrase_pattern(phrase, case_sensitive)
            if not pattern.search(cleaned):
                continue
            remainder = pattern.sub("", cleaned, count=1)

        command = " ".join(remainder.strip(_STRIP_CHARS).split())
        return WakeMatch(phrase=phrase, command=command or None)
    return None


def classify_utterance(
    text: str,
    *,
    wake_words: Sequence[str],
    is_awake: bool,
    require_wake_word: bool,
    case_sensitive: bool = False,
) -> WakeResult:
    """Classify one recognized utterance without touching any state."""
    cleaned = text.strip() if case_sensitive else text.strip().lower()
    match = match_wake_phrase(cleaned, wake_words, case_sensitive=case_sensitive)

    if match is not None:
        if match.command:
            return WakeResult(type=WakeResultType.WAKE_AND_COMMAND, command=match.command, original=text)
        return WakeResult(type=WakeResultType.WAKE, command=None, original=text)
    if is_awake:
        return WakeResult(type=WakeResultType.COMMAND, command=cleaned, original=text)
    if not require_wake_word:
        return WakeResult(type=WakeResultType.DIRECT_COMMAND, command=cleaned, original=text)
    return WakeResult(type=WakeResultType.IGNORED, command=None, original=text, reason="wake_word_required")


class WakeStateMachine:
    """Tracks the asleep/awake window and routes commands to subscribers."""

    def __init__(
        self,
        config: WakeWordConfig | None = None,
        *,
        clock: Clock | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config or WakeWordConfig()
        self._clock = clock or AsyncioClock()
        self._logger = logger or logging.getLogger("hoda_voice.voice.wake")

        self._state = WakeState.ASLEEP
        self._last_wake_at: float | None = None
        self._timer: TimerHandle | None = None

        self._wake_listeners: list[Callable[[WakeEvent], None]] = []
        self._sleep_listeners: list[Callable[[WakeEvent], None]] = []
        self._command_listeners: list[Callable[[CommandEvent], None]] = []

    @property
    def config(self) -> WakeWordConfig:
        return self._config

    @property
    def state(self) -> WakeState:
        return self._state

    def process(self, text: str) -> WakeResult:
        """Classify ``text`` and apply the resulting state transition."""
        result = classify_utterance(
            text,
            wake_words=self._config.wake_words,
            is_awake=self.is_awake(),
            require_wake_word=self._config.require_wake_word,
            case_sensitive=self._config.case_sensitive,
        )

        if result.is_wake:
            self.wake()
        if result.command:
            self._notify_command(result.command, text)
        if result.type == WakeResultType.COMMAND:
            # Combined "wake + command" utterances keep the window open.
            self.sleep()

        self._logger.debug("wake_processed", extra={"result": result.type.value, "command": result.command})
        return result

    def wake(self) -> None:
        if self._state == WakeState.AWAKE:
            self._last_wake_at = self._clock.now()
            self._arm_timer()
            return

        self._state = WakeState.AWAKE
        self._last_wake_at = self._clock.now()
        self._arm_timer()
        self._logger.info("wake_awake", extra={"timeout_seconds": self._config.timeout_seconds})
        self._notify(self._wake_listeners, WakeEvent(timestamp=self._last_wake_at), "wake")

    def sleep(self) -> None:
        if self._state == WakeState.ASLEEP:
            return

        self._clear_timer()
        self._state = WakeState.ASLEEP
        self._last_wake_at = None
        self._logger.info("wake_asleep")
        self._notify(self._sleep_listeners, WakeEvent(timestamp=self._clock.now()), "sleep")

    def is_awake(self) -> bool:
        return self._state == WakeState.AWAKE

    def get_time_remaining(self) -> float | None:
        """Seconds left in the activation window, or ``None`` while asleep."""
        if self._state != WakeState.AWAKE or self._last_wake_at is None:
            return None
        elapsed = self._clock.now() - self._last_wake_at
        return max(0.0, self._config.timeout_seconds - elapsed)

    def update_options(
        self,
        *,
        wake_words: Sequence[str] | None = None,
        timeout_seconds: float | None = None,
        require_wake_word: bool | None = None,
        case_sensitive: bool | None = None,
    ) -> None:
        """Update wake phrases and activation window at runtime."""
        if wake_words is not None:
            self._config.wake_words = [word.strip() for word in wake_words if word.strip()]
        if timeout_seconds is not None:
            self._config.timeout_seconds = max(0.0, timeout_seconds)
        if case_sensitive is not None:
            self._config.case_sensitive = case_sensitive
        if require_wake_word is not None:
            self.set_wake_word_required(require_wake_word)

    def set_wake_word_required(self, required: bool) -> None:
        self._config.require_wake_word = required
        if not required and self.is_awake():
            self.sleep()

    def get_state(self) -> dict:
        return {
            "state": self._state.value,
            "last_wake_at": self._last_wake_at,
            "time_remaining": self.get_time_remaining(),
            "require_wake_word": self._config.require_wake_word,
        }

    def on_wake(self, callback: Callable[[WakeEvent], None]) -> Callable[[WakeEvent], None]:
        self._wake_listeners.append(callback)
        return callback

    def on_sleep(self, callback: Callable[[WakeEvent], None]) -> Callable[[WakeEvent], None]:
        self._sleep_listeners.append(callback)
        return callback

    def on_command(self, callback: Callable[[CommandEvent], None]) -> Callable[[CommandEvent], None]:
        self._command_listeners.append(callback)
        return callback

    def close(self) -> None:
        """Clear the timer and every subscriber without notifying anyone."""
        self._clear_timer()
        self._state = WakeState.ASLEEP
        self._last_wake_at = None
        self._wake_listeners.clear()
        self._sleep_listeners.clear()
        self._command_listeners.clear()

    def _arm_timer(self) -> None:
        self._clear_timer()
        self._timer = self._clock.call_later(self._config.timeout_seconds, self._on_timeout)

    def _clear_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timeout(self) -> None:
        self._timer = None
        self._logger.info("wake_timeout")
        self.sleep()

    def _notify_command(self, command: str, original: str) -> None:
        event = CommandEvent(command=command, original=original, timestamp=self._clock.now())
        self._notify(self._command_listeners, event, "command")

    def _notify(self, listeners: list, event: object, kind: str) -> None:
        for listener in list(listeners):
            try:
                listener(event)
            except Exception:  # noqa: BLE001 - one subscriber must not starve the others.
                self._logger.exception("wake_listener_failed", extra={"listener_kind": kind})
