"""Custom exception hierarchy for the stowage storage layer."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes carried by every :class:`StorageError`."""

    UNKNOWN = "E_UNKNOWN"
    NATIVE = "E_NATIVE"
    DUPLICATED_ELEMENT = "E_DUPLICATED_ELEMENT"
    NOT_FOUND = "E_NOT_FOUND"
    INVALID_PARAMS = "E_INVALID_PARAMS"
    PERMISSION = "E_PERMISSION"


class StorageError(Exception):
    """Base exception for all stowage errors."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code.value}: {self.message!r})"


class NotFoundError(StorageError):
    """Raised when a provider, bucket, provider type or file does not exist."""

    code = ErrorCode.NOT_FOUND


class DuplicatedElementError(StorageError):
    """Raised when a registry key, bucket alias or file already exists."""

    code = ErrorCode.DUPLICATED_ELEMENT


class InvalidParamsError(StorageError):
    """Raised on malformed names, URIs or illegal cross-bucket operations."""

    code = ErrorCode.INVALID_PARAMS


class PermissionDeniedError(StorageError):
    """Raised when a bucket's mode forbids the requested operation."""

    code = ErrorCode.PERMISSION


class NativeError(StorageError):
    """Raised when the underlying driver fails. The original is ``__cause__``."""

    code = ErrorCode.NATIVE


class UnknownError(StorageError):
    """Raised for failures that fit no other category, e.g. provider init."""

    code = ErrorCode.UNKNOWN


@contextmanager
def native_errors(message: str, **details: Any) -> Iterator[None]:
    """Wrap raw driver exceptions exactly once.

    ``StorageError`` passes through untouched, ``FileNotFoundError``
    becomes :class:`NotFoundError`, anything else becomes :class:`NativeError`.
    """
    try:
        yield
    except StorageError:
        raise
    except FileNotFoundError as e:
        raise NotFoundError(f"{message}: not found", details) from e
    except Exception as e:
        raise NativeError(f"{message}: {e}", details) from e
