"""Voice input and output module boundaries."""

from .interfaces import (
    RecognizerLink,
    SpeechBackendError,
    SpeechBackendUnavailableError,
    SpeechOutputBackend,
    SpeechSettings,
)
from .speech import (
    SpeechConcurrencyPolicy,
    SpeechConfig,
    SpeechQueueCoordinator,
    SpeechResult,
    SpeechStatus,
    UtterancePriority,
)
from .wake import (
    WakeResult,
    WakeResultType,
    WakeState,
    WakeStateMachine,
    WakeWordConfig,
    classify_utterance,
    match_wake_phrase,
)

__all__ = [
    "RecognizerLink",
    "SpeechBackendError",
    "SpeechBackendUnavailableError",
    "SpeechConcurrencyPolicy",
    "SpeechConfig",
    "SpeechOutputBackend",
    "SpeechQueueCoordinator",
    "SpeechResult",
    "SpeechSettings",
    "SpeechStatus",
    "UtterancePriority",
    "WakeResult",
    "WakeResultType",
    "WakeState",
    "WakeStateMachine",
    "WakeWordConfig",
    "classify_utterance",
    "match_wake_phrase",
]
