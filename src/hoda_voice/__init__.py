"""Voice interaction core: wake-word gating, serialized speech output and read-aloud sessions."""

__version__ = "0.1.0"
