"""Errors raised while handling an image description request.

Every error carries the HTTP status and the plain-text message that the API
returns for it.
"""
from typing import Optional


class ImageServiceError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class MissingInputError(ImageServiceError):
    """Raised when the request carries no image file."""

    status_code = 400

    def __init__(self, message: str = "No image uploaded."):
        super().__init__(message)


class DecodeError(ImageServiceError):
    """Raised when the uploaded bytes are not a supported image."""

    status_code = 400


class ClassificationError(ImageServiceError):
    """Raised when the classifier fails to produce predictions."""

    status_code = 500


class ModelUnavailableError(ClassificationError):
    """Raised when the pre-trained model cannot be loaded."""

    status_code = 503


class CleanupError(ImageServiceError):
    """Raised when a staged upload cannot be removed from disk."""
