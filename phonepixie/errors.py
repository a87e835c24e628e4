"""Exception taxonomy shared by the pipeline and the HTTP boundary."""

from __future__ import annotations

GENERIC_ERROR_MESSAGE = "Something went wrong on our side. Please try again in a moment."
RATE_LIMIT_MESSAGE = "You're sending messages too quickly. Please wait a moment and try again."
INVALID_REQUEST_MESSAGE = "Invalid request: a JSON body with a string 'message' field is required."


class PixieError(Exception):
    """Base class for errors raised inside the assistant pipeline."""
    status_code = 500


class RequestValidationFailed(PixieError):
    """Malformed request shape; recovered locally as a 400."""
    status_code = 400


class GenerationFailure(PixieError):
    """Generation call failed, timed out, or produced unusable text.

    Never surfaced to a caller: every generative step falls back on it.
    """


class CatalogUnavailableError(PixieError):
    """The catalog snapshot could not be loaded or is not ready."""
