"""Speech-to-text input powered by ``speech_recognition``."""

from __future__ import annotations

import logging
import threading

from .interfaces import RecognizerLink, SpeechBackendUnavailableError


class MicrophoneTranscriber(RecognizerLink):
    """Capture microphone utterances and transcribe them, muted while the assistant talks."""

    def __init__(
        self,
        *,
        language: str = "en-US",
        phrase_time_limit: float = 5.0,
        timeout: float | None = None,
        sample_rate: int = 16_000,
        chunk_size: int = 1024,
        adjust_noise_seconds: float = 0.2,
        logger: logging.Logger | None = None,
    ) -> None:
        try:
            import speech_recognition as sr
        except ImportError as exc:  # pragma: no cover - import guard
            raise SpeechBackendUnavailableError(
                "Microphone backend unavailable. Install extras with: pip install 'hoda-voice[voice]'"
            ) from exc
        self._sr = sr
        self._recognizer = sr.Recognizer()
        self._microphone = sr.Microphone(sample_rate=sample_rate, chunk_size=chunk_size)
        self._language = language
        self._phrase_time_limit = phrase_time_limit
        self._timeout = timeout
        self._adjust_noise_seconds = max(0.0, adjust_noise_seconds)
        self._muted = threading.Event()
        self._logger = logger or logging.getLogger("hoda_voice.voice.stt")

    @property
    def muted(self) -> bool:
        return self._muted.is_set()

    def pause_for_tts(self) -> None:
        self._muted.set()
        self._logger.debug("recognizer_muted")

    def resume_after_tts(self) -> None:
        self._muted.clear()
        self._logger.debug("recognizer_unmuted")

    def listen_once(self) -> str:
        """Block until one utterance is captured; empty when nothing usable was heard."""
        audio = self._capture()
        if audio is None or self.muted:
            # Anything captured while speaking is our own voice.
            return ""
        try:
            return self._recognizer.recognize_google(audio, language=self._language).strip()
        except self._sr.UnknownValueError:
            return ""
        except self._sr.RequestError as exc:
            raise RuntimeError(
                "Speech recognition service request failed. Check internet access or switch STT backend."
            ) from exc

    def _capture(self):
        try:
            with self._microphone as source:
                if self._adjust_noise_seconds > 0:
                    self._recognizer.adjust_for_ambient_noise(source, duration=self._adjust_noise_seconds)
                return self._recognizer.listen(
                    source,
                    timeout=self._timeout,
                    phrase_time_limit=self._phrase_time_limit,
                )
        except self._sr.WaitTimeoutError:
            return None
