"""Stowage: one async API over many storage backends.

Providers, buckets and files addressed as ``provider://bucket/path``.
"""

__version__ = "0.1.0"

from stowage._storage_async import StorageAsync
from stowage.core import (
    Bucket,
    BucketConfig,
    CopyFileOptions,
    CopyManyOptions,
    DeleteManyOptions,
    Directory,
    DuplicatedElementError,
    ErrorCode,
    GetFileOptions,
    InvalidParamsError,
    ListOptions,
    MoveFileOptions,
    MoveManyOptions,
    NativeError,
    NotFoundError,
    PermissionDeniedError,
    Provider,
    ProviderConfig,
    ProviderTypeRegistry,
    PutFileOptions,
    SignedUrlOptions,
    StorageConfig,
    StorageError,
    StorageFile,
    StorageResponse,
    UnknownError,
)
from stowage.events import BucketEvent, EventBus, EventType

__all__ = [
    "Bucket",
    "BucketConfig",
    "BucketEvent",
    "CopyFileOptions",
    "CopyManyOptions",
    "DeleteManyOptions",
    "Directory",
    "DuplicatedElementError",
    "ErrorCode",
    "EventBus",
    "EventType",
    "GetFileOptions",
    "InvalidParamsError",
    "ListOptions",
    "MoveFileOptions",
    "MoveManyOptions",
    "NativeError",
    "NotFoundError",
    "PermissionDeniedError",
    "Provider",
    "ProviderConfig",
    "ProviderTypeRegistry",
    "PutFileOptions",
    "SignedUrlOptions",
    "StorageAsync",
    "StorageConfig",
    "StorageError",
    "StorageFile",
    "StorageResponse",
    "UnknownError",
    "__version__",
]
