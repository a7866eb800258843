"""Spoken-command parsing and dispatch for reading-session controls."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from hoda_voice.voice.speech import SpeechQueueCoordinator, SpeechResult, UtterancePriority

from .session import ReadingResult, ReadingSession, ReadingState


class ReadingIntentType(str, Enum):
    READ_PAGE = "read_page"
    READ_FROM_HERE = "read_from_here"
    PAUSE = "pause_reading"
    RESUME = "resume_reading"
    STOP = "stop_reading"
    NEXT_PARAGRAPH = "next_paragraph"
    PREVIOUS_PARAGRAPH = "previous_paragraph"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class ReadingIntent:
    type: ReadingIntentType
    utterance: str = ""


class ReadingIntentParser:
    # Order matters: "read from here" must win over "read page".
    _PATTERNS: tuple[tuple[ReadingIntentType, re.Pattern[str]], ...] = (
        (ReadingIntentType.READ_FROM_HERE, re.compile(r"\bread\s+(?:from\s+)?(?:here|this\s+point)\b")),
        (ReadingIntentType.READ_PAGE, re.compile(r"\b(?:read|start\s+reading)(?:\s+(?:the|this))?(?:\s+(?:page|article))?$")),
        (ReadingIntentType.PAUSE, re.compile(r"\b(?:pause|hold\s+on|wait)\b")),
        (ReadingIntentType.RESUME, re.compile(r"\b(?:resume|continue|keep\s+reading)\b")),
        (ReadingIntentType.STOP, re.compile(r"\b(?:stop|quiet|be\s+quiet|cancel)(?:\s+reading)?\b")),
        (ReadingIntentType.NEXT_PARAGRAPH, re.compile(r"\b(?:next|skip)(?:\s+(?:paragraph|block|section))?\b")),
        (
            ReadingIntentType.PREVIOUS_PARAGRAPH,
            re.compile(r"\b(?:previous|go\s+back|back)(?:\s+(?:paragraph|block|section))?\b"),
        ),
    )

    def parse(self, utterance: str) -> ReadingIntent:
        text = " ".join(utterance.strip().lower().split()).strip(" .!?")
        if not text:
            return ReadingIntent(type=ReadingIntentType.UNKNOWN, utterance=utterance)

        for intent_type, pattern in self._PATTERNS:
            if pattern.search(text):
                return ReadingIntent(type=intent_type, utterance=utterance)
        return ReadingIntent(type=ReadingIntentType.UNKNOWN, utterance=utterance)


class ReadingCommandRouter:
    """Maps reading intents onto :class:`ReadingSession` operations."""

    def __init__(
        self,
        session: ReadingSession,
        parser: ReadingIntentParser | None = None,
        *,
        speaker: SpeechQueueCoordinator | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._session = session
        self._parser = parser or ReadingIntentParser()
        self._speaker = speaker
        self._logger = logger or logging.getLogger("hoda_voice.reading.commands")
        self._handlers = {
            ReadingIntentType.READ_PAGE: session.read_page,
            ReadingIntentType.READ_FROM_HERE: session.read_from_here,
            ReadingIntentType.PAUSE: session.pause_reading,
            ReadingIntentType.RESUME: session.resume_reading,
            ReadingIntentType.STOP: session.stop_reading,
            ReadingIntentType.NEXT_PARAGRAPH: session.next_paragraph,
            ReadingIntentType.PREVIOUS_PARAGRAPH: session.previous_paragraph,
        }

    def parse(self, command: str) -> ReadingIntent:
        return self._parser.parse(command)

    async def handle(self, command: str) -> ReadingResult | None:
        """Run the session operation for ``command``; ``None`` when it is not a reading command."""
        intent = self._parser.parse(command)
        handler = self._handlers.get(intent.type)
        if handler is None:
            return None
        return await handler()

    async def report_unrecognized(self, command: str) -> SpeechResult | None:
        """Tell the user ``command`` was not understood, unless a page is being read."""
        if self._speaker is None or self._session.state == ReadingState.READING:
            # Speaking now would replace the block being read.
            self._logger.info("reading_command_unrecognized", extra={"command": command, "announced": False})
            return None
        self._logger.info("reading_command_unrecognized", extra={"command": command, "announced": True})
        return await self._speaker.speak("Command not recognized", priority=UtterancePriority.HIGH)
