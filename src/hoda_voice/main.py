"""CLI startup entrypoint for the Hoda voice core."""

from __future__ import annotations

import asyncio
from dataclasses import asdict
from pathlib import Path

import typer
from rich import print

from hoda_voice.config import settings
from hoda_voice.reading import (
    ReadingCommandRouter,
    ReadingConfig,
    ReadingIntentType,
    ReadingSession,
    StaticContentSource,
    summarize_blocks,
)
from hoda_voice.telemetry import configure_logging
from hoda_voice.voice import (
    RecognizerLink,
    SpeechBackendUnavailableError,
    SpeechConfig,
    SpeechOutputBackend,
    SpeechQueueCoordinator,
    SpeechSettings,
    WakeResultType,
    WakeStateMachine,
    WakeWordConfig,
)

app = typer.Typer(help="Hoda voice interaction core")


@app.callback()
def main(log_level: str = typer.Option(None, help="Override HODA_VOICE_LOG_LEVEL")) -> None:
    configure_logging(log_level or settings.log_level)


def _build_wake_config(require_wake_word: bool | None = None) -> WakeWordConfig:
    return WakeWordConfig(
        wake_words=list(settings.wake_words),
        timeout_seconds=settings.wake_timeout_seconds,
        require_wake_word=settings.require_wake_word if require_wake_word is None else require_wake_word,
    )


def _build_speech_config() -> SpeechConfig:
    return SpeechConfig(
        enabled=settings.speech_enabled,
        settings=SpeechSettings(
            volume=settings.speech_volume,
            rate=settings.speech_rate,
            pitch=settings.speech_pitch,
            voice=settings.speech_voice,
            language=settings.speech_language,
        ),
        policy=settings.speech_policy,
        settle_delay_seconds=settings.settle_delay_seconds,
    )


def _build_reading_config() -> ReadingConfig:
    return ReadingConfig(
        pause_between_blocks_seconds=settings.pause_between_blocks_seconds,
        navigation_settle_seconds=settings.navigation_settle_seconds,
        viewport_tolerance_px=settings.viewport_tolerance_px,
        scroll_to_block=settings.scroll_to_block,
        highlight_block=settings.highlight_block,
    )


def _build_backend(name: str | None) -> SpeechOutputBackend:
    backend = (name or settings.tts_backend).lower()
    if backend == "pyttsx3":
        from hoda_voice.voice.tts_pyttsx3 import Pyttsx3SpeechBackend

        return Pyttsx3SpeechBackend()
    if backend == "console":
        from hoda_voice.voice.console_output import ConsoleSpeechBackend

        return ConsoleSpeechBackend()
    raise typer.BadParameter(f"Unknown TTS backend: {backend}")


def _build_speaker(backend: SpeechOutputBackend, recognizer: RecognizerLink | None = None) -> SpeechQueueCoordinator:
    return SpeechQueueCoordinator(backend, recognizer=recognizer, config=_build_speech_config())


def _load_source(path: Path) -> StaticContentSource:
    if not path.exists():
        raise typer.BadParameter(f"File not found: {path}")
    return StaticContentSource(path.read_text(encoding="utf-8"))


@app.command()
def status() -> None:
    """Show effective runtime configuration."""
    print(settings.model_dump(mode="json"))


@app.command("wake-test")
def wake_test(
    texts: list[str] = typer.Argument(..., help="Utterances to classify, in order"),
    require_wake_word: bool = typer.Option(None, help="Override HODA_VOICE_REQUIRE_WAKE_WORD"),
) -> None:
    """Run utterances through the wake gate and show each classification."""

    async def _run() -> list[dict]:
        machine = WakeStateMachine(_build_wake_config(require_wake_word))
        rows = []
        for text in texts:
            result = machine.process(text)
            rows.append(
                {
                    "text": text,
                    "type": result.type.value,
                    "command": result.command,
                    "reason": result.reason,
                    "awake": machine.is_awake(),
                }
            )
        machine.close()
        return rows

    for row in asyncio.run(_run()):
        print(row)


@app.command()
def read(
    path: Path = typer.Argument(..., help="Plain text or markdown file to read aloud"),
    from_offset: float = typer.Option(None, help="Start at this vertical offset (pixels) instead of the top"),
    backend: str = typer.Option(None, help="console or pyttsx3 (default: HODA_VOICE_TTS_BACKEND)"),
) -> None:
    """Read a document aloud block by block."""
    source = _load_source(path)
    print({"content_summary": summarize_blocks(source.extract_content())})

    try:
        output = _build_backend(backend)
    except SpeechBackendUnavailableError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)

    async def _run():
        session = ReadingSession(_build_speaker(output), source, config=_build_reading_config())
        if from_offset is not None:
            source.scroll_offset = from_offset
            return await session.read_from_here()
        return await session.read_page()

    result = asyncio.run(_run())
    print({"reading_result": asdict(result)})
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def listen(
    path: Path = typer.Argument(..., help="Document the reading commands apply to"),
    backend: str = typer.Option(None, help="console or pyttsx3 (default: HODA_VOICE_TTS_BACKEND)"),
    phrase_time_limit: float = typer.Option(5.0, help="Per-utterance capture limit in seconds"),
) -> None:
    """Run an interactive voice loop that controls reading by speech."""
    source = _load_source(path)
    try:
        from hoda_voice.voice.stt_speechrecognition import MicrophoneTranscriber

        transcriber = MicrophoneTranscriber(
            language=settings.speech_language,
            phrase_time_limit=phrase_time_limit,
        )
        output = _build_backend(backend)
    except RuntimeError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)

    async def _run() -> None:
        speaker = _build_speaker(output, recognizer=transcriber)
        wake = WakeStateMachine(_build_wake_config())
        session = ReadingSession(speaker, source, config=_build_reading_config())
        router = ReadingCommandRouter(session, speaker=speaker)
        running: set[asyncio.Task] = set()

        print({"listen": "started", "wake_words": wake.config.wake_words, "hint": "Say 'stop listening' to exit."})
        while True:
            transcript = await asyncio.to_thread(transcriber.listen_once)
            if not transcript:
                continue
            if "stop listening" in transcript.lower():
                await session.reset()
                await speaker.speak("Okay, stopping voice control.")
                print({"listen": "stopped"})
                break

            result = wake.process(transcript)
            print({"heard": transcript, "wake": result.type.value, "command": result.command})
            if result.type == WakeResultType.WAKE or not result.command:
                continue

            if router.parse(result.command).type == ReadingIntentType.UNKNOWN:
                await router.report_unrecognized(result.command)
                continue
            task = asyncio.create_task(router.handle(result.command))
            running.add(task)
            task.add_done_callback(running.discard)

        wake.close()

    asyncio.run(_run())


if __name__ == "__main__":
    app()
