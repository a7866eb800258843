from __future__ import annotations

import asyncio

import pytest

from hoda_voice.reading.commands import ReadingCommandRouter, ReadingIntentParser, ReadingIntentType
from hoda_voice.reading.session import ReadingResult, ReadingState
from hoda_voice.voice.speech import SpeechResult, SpeechStatus, UtterancePriority


class StubReadingSession:
    def __init__(self, state: ReadingState = ReadingState.IDLE) -> None:
        self.calls: list[str] = []
        self.state = state

    async def _record(self, name: str) -> ReadingResult:
        self.calls.append(name)
        return ReadingResult(success=True)

    async def read_page(self) -> ReadingResult:
        return await self._record("read_page")

    async def read_from_here(self) -> ReadingResult:
        return await self._record("read_from_here")

    async def pause_reading(self) -> ReadingResult:
        return await self._record("pause_reading")

    async def resume_reading(self) -> ReadingResult:
        return await self._record("resume_reading")

    async def stop_reading(self) -> ReadingResult:
        return await self._record("stop_reading")

    async def next_paragraph(self) -> ReadingResult:
        return await self._record("next_paragraph")

    async def previous_paragraph(self) -> ReadingResult:
        return await self._record("previous_paragraph")


@pytest.mark.parametrize(
    ("utterance", "expected"),
    [
        ("read page", ReadingIntentType.READ_PAGE),
        ("Read this page.", ReadingIntentType.READ_PAGE),
        ("start reading", ReadingIntentType.READ_PAGE),
        ("read from here", ReadingIntentType.READ_FROM_HERE),
        ("read here", ReadingIntentType.READ_FROM_HERE),
        ("pause reading", ReadingIntentType.PAUSE),
        ("hold on", ReadingIntentType.PAUSE),
        ("continue", ReadingIntentType.RESUME),
        ("keep reading", ReadingIntentType.RESUME),
        ("stop reading", ReadingIntentType.STOP),
        ("be quiet", ReadingIntentType.STOP),
        ("next paragraph", ReadingIntentType.NEXT_PARAGRAPH),
        ("skip", ReadingIntentType.NEXT_PARAGRAPH),
        ("go back", ReadingIntentType.PREVIOUS_PARAGRAPH),
        ("previous section", ReadingIntentType.PREVIOUS_PARAGRAPH),
        ("scroll down", ReadingIntentType.UNKNOWN),
        ("   ", ReadingIntentType.UNKNOWN),
    ],
)
def test_parser_maps_utterances_to_reading_intents(utterance: str, expected: ReadingIntentType) -> None:
    assert ReadingIntentParser().parse(utterance).type == expected


def test_router_dispatches_to_session_operations() -> None:
    session = StubReadingSession()
    router = ReadingCommandRouter(session)

    async def _run():
        results = [await router.handle(command) for command in ("read page", "pause", "next", "stop")]
        unknown = await router.handle("open settings")
        return results, unknown

    results, unknown = asyncio.run(_run())

    assert all(result.success for result in results)
    assert session.calls == ["read_page", "pause_reading", "next_paragraph", "stop_reading"]
    assert unknown is None


class RecordingSpeaker:
    def __init__(self) -> None:
        self.spoken: list[tuple[str, UtterancePriority]] = []

    async def speak(self, text: str, *, priority: UtterancePriority = UtterancePriority.NORMAL) -> SpeechResult:
        self.spoken.append((text, priority))
        return SpeechResult(status=SpeechStatus.COMPLETED, text=text)


def test_unrecognized_command_is_announced_when_not_reading() -> None:
    speaker = RecordingSpeaker()
    router = ReadingCommandRouter(StubReadingSession(ReadingState.PAUSED), speaker=speaker)

    result = asyncio.run(router.report_unrecognized("open settings"))

    assert result
    assert speaker.spoken == [("Command not recognized", UtterancePriority.HIGH)]


def test_unrecognized_command_stays_silent_while_reading() -> None:
    speaker = RecordingSpeaker()
    router = ReadingCommandRouter(StubReadingSession(ReadingState.READING), speaker=speaker)

    result = asyncio.run(router.report_unrecognized("open settings"))

    assert result is None
    assert speaker.spoken == []
