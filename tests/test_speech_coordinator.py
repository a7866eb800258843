from __future__ import annotations

import asyncio

from hoda_voice.voice.interfaces import SpeechBackendError, SpeechSettings
from hoda_voice.voice.speech import (
    SpeechConcurrencyPolicy,
    SpeechConfig,
    SpeechQueueCoordinator,
    SpeechStatus,
    UtterancePriority,
)


class StubSpeechBackend:
    def __init__(self, *, hold: tuple[str, ...] = (), fail: tuple[str, ...] = ()) -> None:
        self.gates = {text: asyncio.Event() for text in hold}
        self.fail = set(fail)
        self.supported = True
        self.started: list[str] = []
        self.completed: list[str] = []
        self.settings: list[SpeechSettings] = []
        self.cancel_calls = 0

    def is_supported(self) -> bool:
        return self.supported

    async def speak(self, text: str, settings: SpeechSettings) -> None:
        self.started.append(text)
        self.settings.append(settings)
        await asyncio.sleep(0)
        if text in self.fail:
            raise SpeechBackendError("synthesis-failed")
        gate = self.gates.get(text)
        if gate is not None:
            await gate.wait()
        self.completed.append(text)

    def release(self, text: str) -> None:
        self.gates[text].set()

    def cancel(self) -> None:
        self.cancel_calls += 1

    def pause(self) -> None:
        pass

    def resume(self) -> None:
        pass

    def list_voices(self) -> list[str]:
        return ["stub-voice"]


class RecordingRecognizer:
    def __init__(self, fail: bool = False) -> None:
        self.calls: list[str] = []
        self.fail = fail

    def pause_for_tts(self) -> None:
        self.calls.append("pause")
        if self.fail:
            raise RuntimeError("recognizer offline")

    def resume_after_tts(self) -> None:
        self.calls.append("resume")
        if self.fail:
            raise RuntimeError("recognizer offline")


async def _wait_until(predicate, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was not reached")


def _coordinator(backend, recognizer=None, **config) -> SpeechQueueCoordinator:
    config.setdefault("settle_delay_seconds", 0)
    return SpeechQueueCoordinator(backend, recognizer=recognizer, config=SpeechConfig(**config))


def test_replace_policy_only_completes_latest_utterance() -> None:
    async def _run():
        backend = StubSpeechBackend(hold=("first",))
        recognizer = RecordingRecognizer()
        speaker = _coordinator(backend, recognizer)

        first = asyncio.create_task(speaker.speak("first"))
        await _wait_until(lambda: "first" in backend.started)
        second = await speaker.speak("second")
        return await first, second, backend, recognizer, speaker

    first, second, backend, recognizer, speaker = asyncio.run(_run())
    assert first.status == SpeechStatus.CANCELLED
    assert not first
    assert second
    assert backend.completed == ["second"]
    assert recognizer.calls == ["pause", "resume"]
    assert not speaker.is_speaking


def test_queue_policy_is_fifo_and_keeps_recognizer_muted_between_turns() -> None:
    async def _run():
        backend = StubSpeechBackend()
        recognizer = RecordingRecognizer()
        speaker = _coordinator(backend, recognizer, policy=SpeechConcurrencyPolicy.QUEUE)
        results = await asyncio.gather(speaker.speak("a"), speaker.speak("b"), speaker.speak("c"))
        return results, backend, recognizer

    results, backend, recognizer = asyncio.run(_run())
    assert all(results)
    assert backend.completed == ["a", "b", "c"]
    assert recognizer.calls == ["pause", "resume"]


def test_queue_policy_lets_high_priority_jump_ahead() -> None:
    async def _run():
        backend = StubSpeechBackend(hold=("a",))
        speaker = _coordinator(backend, policy=SpeechConcurrencyPolicy.QUEUE)

        first = asyncio.create_task(speaker.speak("a"))
        await _wait_until(lambda: "a" in backend.started)
        normal = asyncio.create_task(speaker.speak("b"))
        urgent = asyncio.create_task(speaker.speak("c", priority=UtterancePriority.HIGH))
        await _wait_until(lambda: speaker.pending_count == 2)
        backend.release("a")
        await asyncio.gather(first, normal, urgent)
        return backend

    backend = asyncio.run(_run())
    assert backend.completed == ["a", "c", "b"]


def test_reject_policy_refuses_while_speaking() -> None:
    async def _run():
        backend = StubSpeechBackend(hold=("first",))
        speaker = _coordinator(backend, policy=SpeechConcurrencyPolicy.REJECT)

        first = asyncio.create_task(speaker.speak("first"))
        await _wait_until(lambda: "first" in backend.started)
        second = await speaker.speak("second")
        speaker.stop()
        return await first, second

    first, second = asyncio.run(_run())
    assert second.status == SpeechStatus.REJECTED
    assert second.error == "already speaking"
    assert first.status == SpeechStatus.CANCELLED


def test_backend_error_resumes_recognizer_without_settle_delay() -> None:
    async def _run():
        backend = StubSpeechBackend(fail=("broken",))
        recognizer = RecordingRecognizer()
        speaker = _coordinator(backend, recognizer, settle_delay_seconds=30)
        result = await asyncio.wait_for(speaker.speak("broken"), timeout=2)
        return result, recognizer, speaker

    result, recognizer, speaker = asyncio.run(_run())
    assert result.status == SpeechStatus.FAILED
    assert result.error == "synthesis-failed"
    assert recognizer.calls == ["pause", "resume"]
    assert not speaker.is_speaking


def test_settle_delay_holds_recognizer_until_elapsed(clock) -> None:
    async def _run():
        backend = StubSpeechBackend()
        recognizer = RecordingRecognizer()
        speaker = SpeechQueueCoordinator(
            backend,
            recognizer=recognizer,
            config=SpeechConfig(settle_delay_seconds=0.5),
            clock=clock,
        )

        task = asyncio.create_task(speaker.speak("hello"))
        await _wait_until(lambda: clock.pending == 1)
        calls_during_settle = list(recognizer.calls)
        speaking_during_settle = speaker.is_speaking
        clock.advance(0.5)
        result = await task
        return result, calls_during_settle, speaking_during_settle, recognizer.calls

    result, during, speaking, after = asyncio.run(_run())
    assert result
    assert during == ["pause"]
    assert speaking is False
    assert after == ["pause", "resume"]


def test_stop_cancels_active_and_unmutes_immediately() -> None:
    async def _run():
        backend = StubSpeechBackend(hold=("long text",))
        recognizer = RecordingRecognizer()
        speaker = _coordinator(backend, recognizer, settle_delay_seconds=30)

        task = asyncio.create_task(speaker.speak("long text"))
        await _wait_until(lambda: "long text" in backend.started)
        speaker.stop()
        calls_after_stop = list(recognizer.calls)
        return await task, calls_after_stop, backend, speaker

    result, calls, backend, speaker = asyncio.run(_run())
    assert result.status == SpeechStatus.CANCELLED
    assert calls == ["pause", "resume"]
    assert backend.cancel_calls >= 1
    assert not speaker.is_speaking


def test_input_errors_are_skipped_without_raising() -> None:
    async def _run():
        backend = StubSpeechBackend()
        speaker = _coordinator(backend)
        empty = await speaker.speak("   ")

        backend.supported = False
        unsupported = await speaker.speak("hello")

        backend.supported = True
        speaker.set_enabled(False)
        disabled = await speaker.speak("hello")
        return empty, unsupported, disabled, backend

    empty, unsupported, disabled, backend = asyncio.run(_run())
    assert (empty.reason, unsupported.reason, disabled.reason) == ("empty", "unsupported", "disabled")
    assert not any((empty, unsupported, disabled))
    assert backend.started == []


def test_recognizer_failures_are_best_effort() -> None:
    async def _run():
        backend = StubSpeechBackend()
        recognizer = RecordingRecognizer(fail=True)
        speaker = _coordinator(backend, recognizer)
        return await speaker.speak("still talking"), recognizer

    result, recognizer = asyncio.run(_run())
    assert result
    assert recognizer.calls == ["pause", "resume"]


def test_settings_defaults_and_per_call_overrides() -> None:
    async def _run():
        backend = StubSpeechBackend()
        speaker = _coordinator(backend)
        speaker.update_settings(volume=2.0, voice="narrator")
        await speaker.speak("one", rate=1.5)
        await speaker.speak("two")
        return backend, speaker

    backend, speaker = asyncio.run(_run())
    first, second = backend.settings
    assert (first.rate, first.volume, first.voice) == (1.5, 1.0, "narrator")
    assert second.rate == 1.0
    assert speaker.get_status()["volume"] == 1.0
    assert speaker.list_voices() == ["stub-voice"]


def test_disabling_speech_stops_current_utterance() -> None:
    async def _run():
        backend = StubSpeechBackend(hold=("long text",))
        speaker = _coordinator(backend)
        task = asyncio.create_task(speaker.speak("long text"))
        await _wait_until(lambda: speaker.is_speaking)
        speaker.set_enabled(False)
        return await task, speaker

    result, speaker = asyncio.run(_run())
    assert result.status == SpeechStatus.CANCELLED
    assert speaker.get_status()["enabled"] is False


def test_cancelled_caller_during_settle_still_unmutes_recognizer(clock) -> None:
    async def _run():
        backend = StubSpeechBackend()
        recognizer = RecordingRecognizer()
        speaker = SpeechQueueCoordinator(
            backend,
            recognizer=recognizer,
            config=SpeechConfig(settle_delay_seconds=0.5),
            clock=clock,
        )

        task = asyncio.create_task(speaker.speak("hello"))
        await _wait_until(lambda: clock.pending == 1)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return recognizer, speaker

    recognizer, speaker = asyncio.run(_run())
    assert recognizer.calls == ["pause", "resume"]
    assert not speaker.is_speaking
    assert speaker.get_status()["pending"] == 0


def test_new_utterance_does_not_wait_for_previous_settle(clock) -> None:
    async def _run():
        backend = StubSpeechBackend()
        recognizer = RecordingRecognizer()
        speaker = SpeechQueueCoordinator(
            backend,
            recognizer=recognizer,
            config=SpeechConfig(settle_delay_seconds=0.5),
            clock=clock,
        )

        first = asyncio.create_task(speaker.speak("first"))
        await _wait_until(lambda: clock.pending == 1)
        assert not speaker.is_speaking

        second = asyncio.create_task(speaker.speak("second"))
        await _wait_until(lambda: "second" in backend.completed and first.done())
        first_result = await first
        calls_before_settle = list(recognizer.calls)

        for _ in range(20):
            if second.done():
                break
            clock.advance(0.5)
            await asyncio.sleep(0)
        second_result = await asyncio.wait_for(second, timeout=2)
        return first_result, second_result, calls_before_settle, recognizer.calls

    first, second, before, after = asyncio.run(_run())
    assert first
    assert second
    # The recognizer stays muted across both utterances.
    assert before == ["pause"]
    assert after == ["pause", "resume"]


def test_stop_cuts_settle_delay_short(clock) -> None:
    async def _run():
        backend = StubSpeechBackend()
        recognizer = RecordingRecognizer()
        speaker = SpeechQueueCoordinator(
            backend,
            recognizer=recognizer,
            config=SpeechConfig(settle_delay_seconds=30),
            clock=clock,
        )

        task = asyncio.create_task(speaker.speak("hello"))
        await _wait_until(lambda: clock.pending == 1)
        speaker.stop()
        calls_after_stop = list(recognizer.calls)
        return await asyncio.wait_for(task, timeout=2), calls_after_stop

    result, calls = asyncio.run(_run())
    assert result
    assert calls == ["pause", "resume"]


def test_stop_under_queue_policy_dismisses_waiters() -> None:
    async def _run():
        backend = StubSpeechBackend(hold=("a",))
        recognizer = RecordingRecognizer()
        speaker = _coordinator(backend, recognizer, policy=SpeechConcurrencyPolicy.QUEUE)

        active = asyncio.create_task(speaker.speak("a"))
        await _wait_until(lambda: "a" in backend.started)
        waiting = [asyncio.create_task(speaker.speak(text)) for text in ("b", "c")]
        await _wait_until(lambda: speaker.pending_count == 2)

        speaker.stop()
        results = await asyncio.gather(active, *waiting)
        return results, backend, recognizer, speaker

    results, backend, recognizer, speaker = asyncio.run(_run())
    assert [result.status for result in results] == [SpeechStatus.CANCELLED] * 3
    assert [result.reason for result in results[1:]] == ["cancelled", "cancelled"]
    assert backend.started == ["a"]
    assert recognizer.calls == ["pause", "resume"]
    assert speaker.pending_count == 0
