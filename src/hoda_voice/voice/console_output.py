"""Speech backend that prints utterances instead of producing audio."""

from __future__ import annotations

import asyncio

from rich.console import Console

from .interfaces import SpeechOutputBackend, SpeechSettings


class ConsoleSpeechBackend(SpeechOutputBackend):
    """Writes each utterance to the terminal and waits roughly as long as speaking it would take."""

    def __init__(
        self,
        *,
        console: Console | None = None,
        characters_per_second: float = 15.0,
        max_seconds: float = 10.0,
    ) -> None:
        self._console = console or Console()
        self._characters_per_second = characters_per_second
        self._max_seconds = max_seconds
        self._resumed = asyncio.Event()
        self._resumed.set()

    def is_supported(self) -> bool:
        return True

    async def speak(self, text: str, settings: SpeechSettings) -> None:
        self._console.print(f"[bold cyan]speaking[/bold cyan] ({settings.voice or 'default'}): {text}")
        remaining = self.estimate_duration(text, settings)
        while remaining > 0:
            await self._resumed.wait()
            step = min(0.1, remaining)
            await asyncio.sleep(step)
            remaining -= step

    def estimate_duration(self, text: str, settings: SpeechSettings) -> float:
        rate = settings.rate if settings.rate > 0 else 1.0
        return min(self._max_seconds, len(text) / (self._characters_per_second * rate))

    def cancel(self) -> None:
        # Playback tasks are cancelled by the coordinator; only undo a pause here.
        self._resumed.set()

    def pause(self) -> None:
        self._resumed.clear()

    def resume(self) -> None:
        self._resumed.set()

    def list_voices(self) -> list[str]:
        return ["console"]
