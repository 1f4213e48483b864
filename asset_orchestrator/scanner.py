"""Recursive discovery of source files under configured roots."""

from __future__ import annotations

import enum
import logging
import os
import re
import stat
from collections.abc import Iterable, Iterator
from pathlib import Path

logger = logging.getLogger(__name__)

# Editors and archive tools leave "._name" resource-fork copies next to sources.
BACKUP_PREFIX = "._"


class PipelineKind(enum.Enum):
    """The two independently tracked compilation pipelines."""

    SCRIPT = "script"
    STYLE = "style"


def extension_pattern(*extensions: str) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(ext) for ext in extensions)
    return re.compile(rf"^.*\.({alternatives})$")


SCRIPT_PATTERN = extension_pattern("js")
TEMPLATE_PATTERN = extension_pattern("soy")
SCRIPT_KIND_PATTERN = extension_pattern("js", "soy")
STYLE_PATTERN = extension_pattern("css", "less")
WATCH_PATTERN = extension_pattern("js", "soy", "css", "less")


def classify(path: str | os.PathLike[str]) -> PipelineKind | None:
    name = os.fspath(path)
    if SCRIPT_KIND_PATTERN.match(name):
        return PipelineKind.SCRIPT
    if STYLE_PATTERN.match(name):
        return PipelineKind.STYLE
    return None


def is_backup_name(name: str) -> bool:
    return name.startswith(BACKUP_PREFIX)


def iter_files(root: str | os.PathLike[str], pattern: re.Pattern[str]) -> Iterator[Path]:
    """Yield matching files under ``root`` in sorted, depth-first order.

    A root that cannot be stat-ed is logged and yields nothing.
    """
    root = Path(root).absolute()
    try:
        is_dir = stat.S_ISDIR(root.stat().st_mode)
    except OSError as exc:
        logger.error("Error retrieving stats for path: %s (%s)", root, exc)
        return
    if not is_dir:
        if pattern.match(root.name):
            yield root
        return
    yield from _walk(root, pattern)


def _walk(directory: Path, pattern: re.Pattern[str]) -> Iterator[Path]:
    try:
        names = sorted(os.listdir(directory))
    except OSError as exc:
        logger.error("Error listing directory: %s (%s)", directory, exc)
        return
    for name in names:
        if is_backup_name(name):
            continue
        yield from iter_files(directory / name, pattern)


class SourceScan:
    """Restartable view over the files of several roots.

    Every iteration rescans the filesystem; results of each root are
    concatenated in the order the roots were given.
    """

    def __init__(self, roots: Iterable[str | os.PathLike[str]], pattern: re.Pattern[str]) -> None:
        self.roots = tuple(Path(root) for root in roots)
        self.pattern = pattern

    def __iter__(self) -> Iterator[Path]:
        for root in self.roots:
            yield from iter_files(root, self.pattern)

    def __repr__(self) -> str:
        return f"SourceScan(roots={list(map(str, self.roots))!r}, pattern={self.pattern.pattern!r})"


def find_files(roots: Iterable[str | os.PathLike[str]], pattern: re.Pattern[str]) -> list[Path]:
    return list(SourceScan(roots, pattern))
