"""Custom exception hierarchy.

Transport failures, unusable model output and content insufficiency are
kept in separate branches so callers can decide whether to retry, fall
back or abort.
"""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails (network, HTTP status, bad envelope)."""
    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class ModelOutputError(AppError):
    """Raised when the model replied but the reply cannot be used.

    Attributes:
        raw_excerpt: First characters of the offending reply, for logs
    """
    def __init__(
        self,
        message: str,
        raw_excerpt: str = "",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error)
        self.raw_excerpt = raw_excerpt


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class TaskNotFoundError(AppError):
    """Raised when a generation task does not exist."""
    pass


class PipelineError(AppError):
    """Base exception for pipeline stage errors."""
    pass


class PageRenderError(PipelineError):
    """PDF could not be rasterized into page images."""
    pass


class StructureAnalysisError(PipelineError):
    """Stage 3: project structure analysis failed."""
    pass


class RoomExtractionError(PipelineError):
    """Stage 4: room data extraction failed."""
    pass


class RegionExtractionError(PipelineError):
    """A single region could not be cropped from its source image."""
    pass


class ContentInsufficientError(PipelineError):
    """The document does not contain what a stage needs."""
    pass


class NoTablesDetectedError(ContentInsufficientError):
    """No area tables were located on any plan page."""
    pass


class NoRoomsExtractedError(ContentInsufficientError):
    """Structure analysis produced zero rooms."""
    pass


class RoomPagesNotFoundError(ContentInsufficientError):
    """No classified pages carry the requested room name."""
    pass


class ImageProcessingError(AppError):
    """Raised when an image cannot be decoded, resized or encoded."""
    pass
