"""Contracts for speech output backends and the speech input service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class SpeechBackendError(RuntimeError):
    """Raised by a speech backend when an utterance fails mid-playback."""


class SpeechBackendUnavailableError(RuntimeError):
    """Raised when an optional speech backend library is not installed."""


@dataclass(slots=True)
class SpeechSettings:
    """Per-utterance synthesis parameters."""

    volume: float = 1.0
    rate: float = 1.0
    pitch: float = 1.0
    voice: str | None = None
    language: str = "en-US"


class SpeechOutputBackend(Protocol):
    """Synthesizes and plays one utterance at a time."""

    def is_supported(self) -> bool:
        """Whether speech output can be produced at all."""

    async def speak(self, text: str, settings: SpeechSettings) -> None:
        """Play ``text`` and return once playback has finished.

        Raises :class:`SpeechBackendError` when playback fails.
        """

    def cancel(self) -> None:
        """Abort whatever is currently playing."""

    def pause(self) -> None:
        """Suspend audio playback."""

    def resume(self) -> None:
        """Continue suspended audio playback."""

    def list_voices(self) -> list[str]:
        """Return the identifiers of installed voices."""


class RecognizerLink(Protocol):
    """Speech input hooks used to keep recognition muted while speaking."""

    def pause_for_tts(self) -> None:
        """Stop accepting recognized speech."""

    def resume_after_tts(self) -> None:
        """Start accepting recognized speech again."""
