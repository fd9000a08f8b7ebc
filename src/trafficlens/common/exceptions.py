"""Custom exceptions for TrafficLens.

Provides a small hierarchy of exceptions with machine-readable error codes
and structured details for diagnostics.
"""

from typing import Any


class TrafficLensError(Exception):
    """Base exception for all TrafficLens errors."""

    error_code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize exception with optional details.

        Args:
            message: Human-readable error message.
            details: Additional error details for debugging.
            cause: Original exception that caused this error.
        """
        self.message = message or self.message
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging or display."""
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class InvalidFlowDataError(TrafficLensError):
    """Flow descriptor carries a value outside its domain."""

    error_code = "INVALID_FLOW_DATA"
    message = "Invalid flow descriptor"


class ModelNotReadyError(TrafficLensError):
    """A model was invoked before it was trained or loaded."""

    error_code = "MODEL_NOT_READY"
    message = "Model not trained"


class TrainingError(TrafficLensError):
    """Fitting a model failed."""

    error_code = "TRAINING_ERROR"
    message = "Model training failed"


class ModelPersistenceError(TrafficLensError):
    """Saving or loading model weights failed."""

    error_code = "MODEL_PERSISTENCE_ERROR"
    message = "Model persistence failed"


class ConfigurationError(TrafficLensError):
    """Invalid configuration."""

    error_code = "CONFIGURATION_ERROR"
    message = "Configuration error"
