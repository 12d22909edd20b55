"""Octal-mode permission checks for buckets."""

from __future__ import annotations

from enum import IntEnum


class Access(IntEnum):
    """Permission bits tested against a bucket mode."""

    READ = 4
    WRITE = 2
    EXECUTE = 1


DEFAULT_MODE = "0777"


def string_to_octal(mode: str | int) -> int:
    """Parse ``"0755"`` / ``"755"`` / ``0o755`` into an int."""
    if isinstance(mode, int):
        return mode
    text = mode.strip().lower().removeprefix("0o") or "0"
    try:
        return int(text, 8)
    except ValueError as e:
        raise ValueError(f"Invalid octal mode: {mode!r}") from e


def octal_to_string(mode: int) -> str:
    """Render a mode the way configs write it, e.g. ``0o755`` -> ``"0755"``."""
    return f"0{mode & 0o777:o}"


def check_permission(required: int, mode: str | int) -> bool:
    """Return True if *required* bits are granted by *mode*.

    Only the most significant digit of ``mode & 0o777`` is consulted,
    so ``"0755"`` grants read, write and execute while ``"0444"`` grants
    read only.
    """
    masked = string_to_octal(mode) & 0o777
    digit = int(f"{masked:o}"[0])
    return bool(required & digit)


def can_read(mode: str | int) -> bool:
    return check_permission(Access.READ, mode)


def can_write(mode: str | int) -> bool:
    return check_permission(Access.WRITE, mode)


def can_execute(mode: str | int) -> bool:
    return check_permission(Access.EXECUTE, mode)
