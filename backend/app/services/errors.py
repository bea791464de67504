"""Prediction error taxonomy.

Only ``InvalidInput`` reaches the client; the rest are absorbed by the
heuristic fallback.
"""


class PredictionError(Exception):
    """Base class for prediction pipeline errors."""


class ConfigurationMissing(PredictionError):
    """Provider, model or credential is not configured."""


class BackendError(PredictionError):
    """The generative backend failed (network, auth or non-2xx response)."""

    def __init__(self, status: int | None, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status:
            return f"{self.status}: {self.message}"
        return self.message


class InvalidInput(PredictionError):
    """A structurally required request field is missing."""
