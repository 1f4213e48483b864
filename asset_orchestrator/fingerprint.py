"""Short deterministic fingerprint of a build configuration.

The fingerprint only varies output filenames for cache-busting. It is not a
content hash and carries no integrity guarantee.
"""

from __future__ import annotations

import enum
import os
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import BuildConfiguration

SALT = 275329


class FieldKind(enum.Enum):
    STRINGS = "strings"
    STRING = "string"
    FLAG = "flag"


def _to_int32(value: int) -> int:
    return (value + 0x80000000) % 0x100000000 - 0x80000000


def fold(value: int, text: str) -> int:
    for char in text:
        value = _to_int32((value << 5) - value + ord(char))
    return value


def _as_text(value: object) -> str:
    if isinstance(value, os.PathLike):
        return os.fspath(value)
    return str(value)


def fingerprint(config: BuildConfiguration) -> int:
    value = SALT
    for name, kind in config.FINGERPRINT_FIELDS:
        field_value = getattr(config, name)
        if kind is FieldKind.STRINGS:
            for item in field_value:
                value = fold(value, _as_text(item))
        elif kind is FieldKind.STRING:
            value = fold(value, _as_text(field_value))
        elif kind is FieldKind.FLAG:
            value = fold(value, "Y" if field_value else "n")
    return value
