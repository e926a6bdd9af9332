"""
Error taxonomy for block submission and audit.

Every failure the tool surface can report maps to one ErrorClass. Handlers
raise YamoError subclasses; the dispatcher turns them into envelopes so no
tool call crashes the server.
"""

from __future__ import annotations

from enum import Enum


class ErrorClass(str, Enum):
    INVALID_FORMAT = "InvalidFormat"
    PATH_TRAVERSAL = "PathTraversal"
    SYMLINK_NOT_ALLOWED = "SymlinkNotAllowed"
    NOT_FOUND = "NotFound"
    MISSING_DECRYPTION_KEY = "MissingDecryptionKey"
    DECRYPTION_FAILED = "DecryptionFailed"
    EXTERNAL_FAILURE = "ExternalFailure"
    UNKNOWN = "Unknown"


class YamoError(Exception):
    """Base class for classified errors."""

    error_class: ErrorClass = ErrorClass.UNKNOWN

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class InvalidFormat(YamoError):
    error_class = ErrorClass.INVALID_FORMAT


class PathTraversal(YamoError):
    error_class = ErrorClass.PATH_TRAVERSAL


class SymlinkNotAllowed(YamoError):
    error_class = ErrorClass.SYMLINK_NOT_ALLOWED


class NotFound(YamoError):
    error_class = ErrorClass.NOT_FOUND


class MissingDecryptionKey(YamoError):
    error_class = ErrorClass.MISSING_DECRYPTION_KEY


class DecryptionFailed(YamoError):
    error_class = ErrorClass.DECRYPTION_FAILED


class ExternalFailure(YamoError):
    error_class = ErrorClass.EXTERNAL_FAILURE


class ConfigError(Exception):
    """Fatal startup configuration problem (never enveloped)."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))
