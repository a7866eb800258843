"""Text-to-speech backend powered by ``pyttsx3``."""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
from dataclasses import dataclass

from .interfaces import SpeechBackendError, SpeechBackendUnavailableError, SpeechOutputBackend, SpeechSettings

# pyttsx3 expresses rate in words per minute; 1.0 maps to its usual default.
_BASE_WORDS_PER_MINUTE = 200


@dataclass(slots=True)
class _SpeechJob:
    text: str
    settings: SpeechSettings
    generation: int
    loop: asyncio.AbstractEventLoop
    future: asyncio.Future[None]


class Pyttsx3SpeechBackend(SpeechOutputBackend):
    """Local speech playback through a pyttsx3 engine owned by one worker thread.

    The engine is created, driven and stopped only on that thread. ``cancel()``
    bumps a generation counter; the engine's word callback stops any utterance
    from an older generation and stale queued jobs are dropped unspoken.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        try:
            import pyttsx3
        except ImportError as exc:  # pragma: no cover - import guard
            raise SpeechBackendUnavailableError(
                "Voice TTS backend unavailable. Install extras with: pip install 'hoda-voice[voice]'"
            ) from exc

        self._pyttsx3 = pyttsx3
        self._logger = logger or logging.getLogger("hoda_voice.voice.tts_pyttsx3")
        self._jobs: queue.Queue[_SpeechJob] = queue.Queue()
        self._generation = 0
        self._speaking_generation: int | None = None
        self._voices: list[str] = []
        self._engine = None
        self._init_error: BaseException | None = None
        self._ready = threading.Event()

        self._thread = threading.Thread(target=self._run_engine, name="pyttsx3-engine", daemon=True)
        self._thread.start()
        self._ready.wait()
        if self._init_error is not None:
            raise SpeechBackendUnavailableError(f"pyttsx3 engine failed to start: {self._init_error}") from self._init_error

    def is_supported(self) -> bool:
        return self._thread.is_alive()

    async def speak(self, text: str, settings: SpeechSettings) -> None:
        loop = asyncio.get_running_loop()
        job = _SpeechJob(
            text=text,
            settings=settings,
            generation=self._generation,
            loop=loop,
            future=loop.create_future(),
        )
        self._jobs.put(job)
        await job.future

    def cancel(self) -> None:
        self._generation += 1

    def pause(self) -> None:
        self._logger.debug("pyttsx3_pause_unsupported")

    def resume(self) -> None:
        self._logger.debug("pyttsx3_resume_unsupported")

    def list_voices(self) -> list[str]:
        return list(self._voices)

    def _run_engine(self) -> None:
        try:
            engine = self._pyttsx3.init()
            engine.connect("started-word", self._on_word)
            self._voices = [voice.id for voice in engine.getProperty("voices")]
        except Exception as exc:  # noqa: BLE001 - reported to the constructor.
            self._init_error = exc
            self._ready.set()
            return
        self._engine = engine
        self._ready.set()

        while True:
            job = self._jobs.get()
            if job.generation != self._generation or job.future.cancelled():
                self._finish(job, None)
                continue
            self._speaking_generation = job.generation
            try:
                self._say(engine, job.text, job.settings)
            except RuntimeError as exc:
                self._logger.warning("pyttsx3_playback_failed", extra={"error": str(exc)})
                self._finish(job, SpeechBackendError(f"pyttsx3 playback failed: {exc}"))
            else:
                self._finish(job, None)
            finally:
                self._speaking_generation = None

    def _say(self, engine, text: str, settings: SpeechSettings) -> None:
        if settings.voice:
            engine.setProperty("voice", settings.voice)
        engine.setProperty("rate", int(_BASE_WORDS_PER_MINUTE * settings.rate))
        engine.setProperty("volume", max(0.0, min(1.0, settings.volume)))
        engine.say(text)
        engine.runAndWait()

    def _on_word(self, name, location, length) -> None:
        # Runs on the engine thread, the only place engine.stop() is safe.
        if self._speaking_generation is not None and self._speaking_generation != self._generation:
            self._engine.stop()

    def _finish(self, job: _SpeechJob, error: BaseException | None) -> None:
        def _resolve() -> None:
            if job.future.done():
                return
            if error is None:
                job.future.set_result(None)
            else:
                job.future.set_exception(error)

        try:
            job.loop.call_soon_threadsafe(_resolve)
        except RuntimeError:
            # The caller's event loop is already closed.
            self._logger.debug("pyttsx3_result_dropped", extra={"text": job.text[:50]})
