"""Error definitions for the Quillshift translator."""

from __future__ import annotations

from enum import Enum, auto
from typing import Optional


class ErrorCategory(Enum):
    """Categorises runtime errors to pick a retry schedule and report them."""

    TRANSLATION = auto()
    RATE_LIMIT = auto()
    NETWORK = auto()


class QuillshiftError(Exception):
    """Base exception for all custom errors."""


class DocumentLoadError(QuillshiftError):
    """Raised when the input package cannot be opened or lacks its main part."""


class UnsupportedFileTypeError(QuillshiftError):
    """Raised when a given file extension is not supported."""


class OverwriteRefusedError(QuillshiftError):
    """Raised when attempting to overwrite an output without consent."""


class TranslationProviderConfigurationError(QuillshiftError):
    """Raised when the translation provider is misconfigured."""


class TranslationProviderError(QuillshiftError):
    """Raised when a single translation call fails."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ResponseParseError(TranslationProviderError):
    """Raised when the provider output cannot be turned into translations."""


class BatchTranslationError(QuillshiftError):
    """Raised when a batch still fails after every allowed attempt."""

    def __init__(self, message: str, *, batch_id: int, attempts: int) -> None:
        super().__init__(message)
        self.batch_id = batch_id
        self.attempts = attempts
