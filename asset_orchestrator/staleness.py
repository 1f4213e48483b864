"""Modification-time based decision of whether an artifact must be rebuilt."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable
from pathlib import Path

from .scanner import SourceScan

logger = logging.getLogger(__name__)


def artifact_mtime(path: str | os.PathLike[str]) -> float | None:
    try:
        mtime = os.stat(path).st_mtime
    except OSError:
        return None
    return mtime or None


def needs_compile(
    roots: Iterable[str | os.PathLike[str]],
    pattern: re.Pattern[str],
    artifact: str | os.PathLike[str],
) -> bool:
    """Return True when ``artifact`` is older than any source under ``roots``.

    No roots means nothing to build. A missing artifact is always stale.
    Inputs that disappear while scanning are treated as not newer.
    """
    roots = list(roots)
    if not roots:
        return False

    output_time = artifact_mtime(artifact)
    if output_time is None:
        logger.debug("Artifact %s is missing", artifact)
        return True

    for source in SourceScan(roots, pattern):
        try:
            source_time = source.stat().st_mtime
        except OSError:
            continue
        if source_time > output_time:
            logger.debug("%s is newer than %s", source, Path(artifact).name)
            return True
    return False
