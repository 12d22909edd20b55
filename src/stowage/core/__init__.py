"""Storage core: providers, buckets, driver protocols, errors."""

from stowage.core.bucket import Bucket
from stowage.core.config import BucketConfig, ProviderConfig, StorageConfig
from stowage.core.entries import Directory, FileEntry, StorageFile
from stowage.core.exceptions import (
    DuplicatedElementError,
    ErrorCode,
    InvalidParamsError,
    NativeError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    UnknownError,
)
from stowage.core.matcher import GlobMatcher, Matcher
from stowage.core.permissions import Access, can_execute, can_read, can_write, check_permission
from stowage.core.protocol import (
    StorageDriver,
    SupportsContainers,
    SupportsDirectories,
    SupportsNativeCopy,
    SupportsNativePaths,
    SupportsRecursiveListing,
    SupportsSignedUrls,
)
from stowage.core.provider import Provider
from stowage.core.provider_types import ProviderTypeRegistry, default_provider_types
from stowage.core.registry import Registry
from stowage.core.types import (
    CopyFileOptions,
    CopyManyOptions,
    DeleteManyOptions,
    EntryStat,
    EntryType,
    GetFileOptions,
    ListOptions,
    ListPage,
    MoveFileOptions,
    MoveManyOptions,
    PutFileOptions,
    ResolvedUri,
    SignedUrlOptions,
    StorageResponse,
)

__all__ = [
    "Access",
    "Bucket",
    "BucketConfig",
    "CopyFileOptions",
    "CopyManyOptions",
    "DeleteManyOptions",
    "Directory",
    "DuplicatedElementError",
    "EntryStat",
    "EntryType",
    "ErrorCode",
    "FileEntry",
    "GetFileOptions",
    "GlobMatcher",
    "InvalidParamsError",
    "ListOptions",
    "ListPage",
    "Matcher",
    "MoveFileOptions",
    "MoveManyOptions",
    "NativeError",
    "NotFoundError",
    "PermissionDeniedError",
    "Provider",
    "ProviderConfig",
    "ProviderTypeRegistry",
    "PutFileOptions",
    "Registry",
    "ResolvedUri",
    "SignedUrlOptions",
    "StorageConfig",
    "StorageDriver",
    "StorageError",
    "StorageFile",
    "StorageResponse",
    "SupportsContainers",
    "SupportsDirectories",
    "SupportsNativeCopy",
    "SupportsNativePaths",
    "SupportsRecursiveListing",
    "SupportsSignedUrls",
    "UnknownError",
    "can_execute",
    "can_read",
    "can_write",
    "check_permission",
    "default_provider_types",
]
