"""Runtime configuration for the Hoda voice core."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from hoda_voice.voice.speech import SpeechConcurrencyPolicy


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(env_prefix="HODA_VOICE_", env_file=".env", extra="ignore")

    app_name: str = "hoda-voice"
    log_level: str = "INFO"

    wake_words: list[str] = Field(default_factory=lambda: ["hoda", "hey hoda"])
    wake_timeout_seconds: float = Field(default=5.0, ge=0.0)
    require_wake_word: bool = False

    speech_enabled: bool = True
    speech_policy: SpeechConcurrencyPolicy = SpeechConcurrencyPolicy.REPLACE
    speech_rate: float = 1.0
    speech_pitch: float = 1.0
    speech_volume: float = Field(default=1.0, ge=0.0, le=1.0)
    speech_voice: str | None = None
    speech_language: str = "en-US"
    settle_delay_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Delay after speech ends before recognition is re-enabled.",
    )
    tts_backend: str = Field(default="console", description="console or pyttsx3")

    pause_between_blocks_seconds: float = Field(default=0.5, ge=0.0)
    navigation_settle_seconds: float = Field(default=0.3, ge=0.0)
    viewport_tolerance_px: float = 100.0
    scroll_to_block: bool = True
    highlight_block: bool = True


settings = Settings()
