"""
Error taxonomy for the batch editor.

Every error carries a ``message`` that is safe to show to the end user.
Diagnostic detail (raw model output, stack traces) goes to the log only.
"""

from typing import Optional


class EditorError(Exception):
    """Base class for all editor errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def error_type(self) -> str:
        return type(self).__name__


class AnalysisFailure(EditorError):
    """Text extraction failed or returned unusable data."""


class MalformedResponse(AnalysisFailure):
    """The OCR response could not be parsed into text regions."""

    DEFAULT_MESSAGE = (
        "The AI could not extract text and location data in the expected format. "
        "Please try another image."
    )

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.DEFAULT_MESSAGE)


class ValidationFailure(EditorError):
    """A request was rejected before any remote call was issued."""


class NoMatchingRegions(EditorError):
    """None of the requested edits matched text on a given image."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or "The text to be changed was not found on this image variant.")


class GenerationBlocked(EditorError):
    """The remote service declined to produce an image."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            f"Image generation was blocked. Reason: {reason}. Please try a different prompt."
        )
        self.reason = reason


class NoImageProduced(EditorError):
    """The remote call succeeded but returned no image."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(
            message
            or "No edited image found in the response. "
            "The model may not have been able to fulfill the request."
        )


class TransportFailure(EditorError):
    """Network or remote-service level failure."""


class SessionNotFound(EditorError):
    """Unknown session id."""


class InvalidImage(EditorError):
    """Uploaded data is not a usable image."""
