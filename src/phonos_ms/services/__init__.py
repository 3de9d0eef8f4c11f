"""
phonos-ms Services Layer.

Sits between the API/CLI and the engine layer.

Components:
    - pronunciation.py: PronunciationService (state machine over Engine + JobQueue)
    - validators.py: Input validation functions
"""
from .pronunciation import (
    AudioState,
    PronunciationResult,
    PronunciationService,
    get_service,
    reset_service,
)

__all__ = [
    "AudioState",
    "PronunciationResult",
    "PronunciationService",
    "get_service",
    "reset_service",
]
