"""Polling watcher that turns settled source edits into recompile requests.

Every discovered source file is stat-ed at a fixed interval. Accepted
modification-time changes are classified by extension and feed one debounce
timer per pipeline kind, so a burst of saves produces a single rebuild.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .debounce import Debouncer
from .scanner import WATCH_PATTERN, PipelineKind, SourceScan, classify

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.5
DEBOUNCE_DELAY = 0.5


@dataclass
class WatchState:
    """Last observed and last handled modification times per file."""

    observed: dict[Path, float] = field(default_factory=dict)
    committed: dict[Path, float] = field(default_factory=dict)

    def baseline(self, path: Path, mtime: float) -> None:
        self.observed[path] = mtime

    def accept(self, path: Path, mtime: float) -> bool:
        """Record ``mtime`` and report whether it is a new, unhandled change."""
        previous = self.observed.get(path)
        self.observed[path] = mtime
        if previous is not None and mtime <= previous:
            return False
        last = self.committed.get(path)
        if last is not None and mtime <= last:
            return False
        self.committed[path] = mtime
        return True

    def clear(self) -> None:
        self.observed.clear()
        self.committed.clear()


def _mtime(path: Path) -> float | None:
    try:
        return os.stat(path).st_mtime
    except OSError:
        return None


class ChangeWatcher:
    def __init__(
        self,
        roots: Iterable[str | os.PathLike[str]],
        on_change: Callable[[PipelineKind], None],
        *,
        interval: float = POLL_INTERVAL,
        debounce: float = DEBOUNCE_DELAY,
    ) -> None:
        self.roots = tuple(Path(root) for root in roots)
        self.interval = interval
        self.state = WatchState()
        self._on_change = on_change
        self._files: list[Path] = []
        self._task: asyncio.Task[None] | None = None
        self._debounce = debounce
        self._debouncers = self._make_debouncers()

    @property
    def files(self) -> list[Path]:
        return list(self._files)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def discover(self) -> list[Path]:
        """Collect every watchable file and record its current mtime."""
        seen = set(self._files)
        for path in SourceScan(self.roots, WATCH_PATTERN):
            if path in seen:
                continue
            seen.add(path)
            self._files.append(path)
            mtime = _mtime(path)
            if mtime is not None:
                self.state.baseline(path, mtime)
        logger.debug("Watching %d files", len(self._files))
        return self.files

    def start(self) -> None:
        """Discover files and start polling on the running event loop."""
        if self.running:
            return
        if any(debouncer.closed for debouncer in self._debouncers.values()):
            self._debouncers = self._make_debouncers()
        self.discover()
        self._task = asyncio.get_running_loop().create_task(self._poll_forever())

    def poll(self) -> list[Path]:
        """Run one polling pass and return the files whose change was accepted."""
        accepted = []
        for path in self._files:
            mtime = _mtime(path)
            if mtime is None:
                logger.debug("Skipping unreadable file: %s", path)
                continue
            if mtime == self.state.observed.get(path):
                continue
            if self.state.accept(path, mtime):
                accepted.append(path)
                self._on_file_change(path)
        return accepted

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        for debouncer in self._debouncers.values():
            debouncer.close()
        self._files = []
        self.state.clear()

    def pending(self, kind: PipelineKind) -> bool:
        return self._debouncers[kind].pending

    def _make_debouncers(self) -> dict[PipelineKind, Debouncer]:
        return {
            kind: Debouncer(self._debounce, lambda kind=kind: self._fire(kind))
            for kind in PipelineKind
        }

    async def _poll_forever(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.poll()

    def _on_file_change(self, path: Path) -> None:
        logger.info("Detected file change: %s", path)
        kind = classify(path)
        if kind is None:
            return
        self._debouncers[kind].trigger()

    def _fire(self, kind: PipelineKind) -> None:
        logger.debug("Changes to %s sources settled", kind.value)
        self._on_change(kind)
