"""Custom exception classes for consistent error handling across the application."""

from dataclasses import dataclass, field
from typing import TypeAlias

# Shared type alias for error detail values
ErrorDetails: TypeAlias = dict[str, str | int | float | bool | list[str] | None]


@dataclass
class AppError(Exception):
    """Base exception for all application errors."""

    code: str = "app_error"
    message: str = "An application error occurred"
    details: ErrorDetails = field(default_factory=dict)
    status_code: int = 400

    def __str__(self) -> str:  # pyright: ignore[reportImplicitOverride]
        return self.message


@dataclass
class MethodNotAllowedError(AppError):
    """Raised when the upload endpoint is called with anything but POST."""

    code: str = "method_not_allowed"
    message: str = "Only POST allowed"
    status_code: int = 405


@dataclass
class InvalidContentTypeError(AppError):
    """Raised when the request body is not a multipart encoding with a boundary."""

    code: str = "invalid_content_type"
    message: str = "Invalid Content-Type"


@dataclass
class CaptchaFailedError(AppError):
    """Raised when the Turnstile token could not be verified."""

    code: str = "captcha_failed"
    message: str = "CAPTCHA verification failed"
    status_code: int = 403


@dataclass
class CaptchaVerificationError(AppError):
    """Raised when the siteverify endpoint cannot be reached or answers garbage."""

    code: str = "captcha_unavailable"
    message: str = "CAPTCHA verification service unavailable"
    status_code: int = 403


@dataclass
class StorageError(AppError):
    """Raised by storage backends when a file cannot be persisted."""

    code: str = "storage_error"
    message: str = "Failed to save file"
    status_code: int = 500


@dataclass
class InvalidFilenameError(AppError):
    """Raised when a filename is empty after sanitization."""

    code: str = "invalid_filename"
    message: str = "Invalid filename"


@dataclass
class ConfigError(AppError):
    """Raised at startup when required configuration is missing or invalid."""

    code: str = "config_error"
    message: str = "Invalid configuration"
    status_code: int = 500


@dataclass
class StreamReadError(AppError):
    """Base class for failures while reading the multipart request body."""

    code: str = "stream_read_error"
    message: str = "Failed to read request body"


@dataclass
class UploadInterruptedError(StreamReadError):
    """The body stopped before the closing boundary: dropped or stalled connection.

    Recoverable at the part level; the client may retry the whole request.
    """

    code: str = "upload_interrupted"
    message: str = "unexpected EOF"


@dataclass
class MultipartFramingError(StreamReadError):
    """The body is not valid multipart data. Not recoverable."""

    code: str = "multipart_framing_error"
    message: str = "Malformed multipart body"
