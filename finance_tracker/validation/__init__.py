"""Input validation package."""

from finance_tracker.validation.validator import (
    INPUT_MODELS,
    RecordValidator,
    ValidationError,
)

__all__ = ["INPUT_MODELS", "RecordValidator", "ValidationError"]
