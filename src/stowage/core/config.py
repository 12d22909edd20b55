"""StorageConfig, ProviderConfig and BucketConfig."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qsl, urlsplit

from .exceptions import InvalidParamsError
from .matcher import GlobMatcher, Matcher
from .permissions import DEFAULT_MODE
from .uri import parse_uri
from .utils import cast_value, guess_mime_type, slug

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from .bucket import Bucket


AliasStrategy = Any
"""``"NAME"``, ``"PROVIDER:NAME"`` or ``Callable[[str, Provider], str]``."""


@dataclass
class StorageConfig:
    """Session-wide defaults. Providers and buckets override per field."""

    default_bucket_mode: str = DEFAULT_MODE
    bucket_alias_strategy: AliasStrategy = "NAME"
    auto_init_providers: bool = True
    auto_cleanup: bool = True
    default_bucket_name: str | None = None
    returning_by_default: bool = False
    default_signed_url_expiration: int = 3600
    """Seconds."""

    slug_fn: Callable[[str], str] = slug
    mime_fn: Callable[[str], str] = guess_mime_type
    matcher: Matcher = field(default_factory=GlobMatcher)

    url_generator: Callable[[Bucket, str], Awaitable[str]] | None = None
    """Overrides provider public URLs when set: ``(bucket, path) -> url``."""

    signed_url_generator: Callable[[Bucket, str, int], Awaitable[str]] | None = None
    """Overrides provider signed URLs: ``(bucket, path, expiration) -> url``."""

    def __post_init__(self) -> None:
        if self.bucket_alias_strategy not in ("NAME", "PROVIDER:NAME") and not callable(
            self.bucket_alias_strategy
        ):
            raise InvalidParamsError(
                f"Invalid bucket alias strategy: {self.bucket_alias_strategy!r}"
            )


# Query-string keys and the field/type they populate.
_PROVIDER_QUERY: dict[str, tuple[str, type]] = {
    "name": ("name", str),
    "mode": ("mode", str),
    "autoInit": ("auto_init", bool),
    "autoCleanup": ("auto_cleanup", bool),
    "returning": ("returning", bool),
    "defaultBucket": ("default_bucket", str),
    "signedUrlExpiration": ("default_signed_url_expiration", int),
}

_BUCKET_QUERY: dict[str, tuple[str, type]] = {
    "name": ("name", str),
    "mode": ("mode", str),
    "autoCleanup": ("auto_cleanup", bool),
    "returning": ("returning", bool),
    "signedUrlExpiration": ("default_signed_url_expiration", int),
}


def _overlay_query(
    values: dict[str, Any], query: Mapping[str, str], known: dict[str, tuple[str, type]]
) -> None:
    options = values.setdefault("options", {})
    for key, raw in query.items():
        if key in known:
            attr, kind = known[key]
            values[attr] = cast_value(raw, kind)
        else:
            options[key] = raw


@dataclass
class BucketConfig:
    """Configuration for one bucket. Unset fields inherit from the provider."""

    name: str = ""
    uri: str | None = None
    provider_name: str | None = None
    mode: str | None = None
    auto_cleanup: bool | None = None
    returning: bool | None = None
    default_signed_url_expiration: int | None = None
    options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def parse(cls, config: str | Mapping[str, Any] | BucketConfig) -> BucketConfig:
        """Build from ``provider://name?mode=0444``, a mapping or a config.

        Query parameters overlay the object fields.
        """
        if isinstance(config, BucketConfig):
            values = {f.name: getattr(config, f.name) for f in fields(cls)}
        elif isinstance(config, str):
            values = {"uri": config} if "://" in config else {"name": config}
        else:
            values = _known_fields(cls, config)
        values["options"] = dict(values.get("options") or {})
        uri = values.get("uri")
        if uri:
            parsed = parse_uri(uri)
            if parsed is None:
                raise InvalidParamsError(f"Invalid bucket uri: {uri!r}", {"uri": uri})
            values.setdefault("provider_name", None)
            values["provider_name"] = values["provider_name"] or parsed.protocol
            if not values.get("name") and "name" not in parsed.query:
                values["name"] = parsed.bucket
            _overlay_query(values, parsed.query, _BUCKET_QUERY)
        if not values.get("name"):
            raise InvalidParamsError("Invalid bucket configuration: missing name")
        return cls(**values)


@dataclass
class ProviderConfig:
    """Configuration for one provider instance."""

    name: str = ""
    type: str = ""
    uri: str | None = None
    mode: str | None = None
    auto_init: bool | None = None
    auto_cleanup: bool | None = None
    returning: bool | None = None
    default_bucket: str | None = None
    default_signed_url_expiration: int | None = None
    buckets: list[str | dict[str, Any] | BucketConfig] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)
    """Driver-specific settings, e.g. ``page_size`` or ``url``."""

    @classmethod
    def parse(cls, config: str | Mapping[str, Any] | ProviderConfig) -> ProviderConfig:
        """Build from ``type://anything?name=p1&autoInit=false``, a mapping or a config.

        The URI scheme gives the driver type. Query parameters overlay the
        object fields; unknown keys land in ``options``.
        """
        if isinstance(config, ProviderConfig):
            values = {f.name: getattr(config, f.name) for f in fields(cls)}
        elif isinstance(config, str):
            values = {"uri": config}
        else:
            values = _known_fields(cls, config)
        values["options"] = dict(values.get("options") or {})
        values["buckets"] = list(values.get("buckets") or [])
        uri = values.get("uri")
        if uri:
            parts = urlsplit(uri)
            if not parts.scheme:
                raise InvalidParamsError(f"Invalid provider uri: {uri!r}", {"uri": uri})
            values["type"] = values.get("type") or parts.scheme
            query = dict(parse_qsl(parts.query, keep_blank_values=True))
            _overlay_query(values, query, _PROVIDER_QUERY)
        return cls(**values)


def _known_fields(cls: type, mapping: Mapping[str, Any]) -> dict[str, Any]:
    names = {f.name for f in fields(cls)}
    values: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in mapping.items():
        if key in names:
            values[key] = value
        else:
            extra[key] = value
    values["options"] = {**extra, **dict(values.get("options") or {})}
    return values

