from __future__ import annotations

import asyncio
import os
from pathlib import Path

from asset_orchestrator.collaborators import StageResult


class RecordingTools:
    """Stands in for all three collaborators and records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, list[Path]]] = []
        self.externs: list[list[Path]] = []
        self.source_maps: list[Path | None] = []
        self.fail: set[str] = set()
        self.delay = 0.0

    @property
    def stages(self) -> list[str]:
        return [stage for stage, _ in self.calls]

    def sources(self, stage: str) -> list[list[Path]]:
        return [sources for name, sources in self.calls if name == stage]

    async def transpile(self, sources, output):
        self.calls.append(("transpile", list(sources)))
        await asyncio.sleep(self.delay)
        if "transpile" in self.fail:
            return StageResult.failure("template error")
        output.write_text("// templates\n")
        return StageResult.success(output)

    async def compile(self, sources, externs, output, *, compile_mode, warning_level, pretty_print):
        self.calls.append(("compile", list(sources)))
        self.externs.append(list(externs))
        await asyncio.sleep(self.delay)
        if "compile" in self.fail:
            return StageResult.failure("JSC_PARSE_ERROR: Parse error")
        output.write_text("compiled\n")
        return StageResult.success(output)

    async def process(self, sources, output, *, source_map=None):
        self.calls.append(("process", list(sources)))
        self.source_maps.append(source_map)
        await asyncio.sleep(self.delay)
        if "process" in self.fail:
            return StageResult.failure("ParseError: missing closing `}`\n  3 .a {")
        output.write_text("a{}")
        if source_map is not None:
            source_map.write_text("{}")
            return StageResult.success(output, source_map)
        return StageResult.success(output)


def touch(path: Path, mtime: float | None = None, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        path.write_text(text)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path
