"""External tools that turn discovered sources into artifacts.

Each stage is awaited by the coordinator and reports a ``StageResult``
instead of raising. The bundled implementations shell out to the Soy
template compiler, the Closure Compiler and ``lessc``; any object with the
same coroutine method can stand in for them.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from .config import Toolchain

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageResult:
    ok: bool
    outputs: tuple[Path, ...] = ()
    diagnostic: str = ""

    @classmethod
    def success(cls, *outputs: Path) -> StageResult:
        return cls(ok=True, outputs=tuple(outputs))

    @classmethod
    def failure(cls, diagnostic: str) -> StageResult:
        return cls(ok=False, diagnostic=diagnostic)


class TemplateTranspiler(Protocol):
    async def transpile(self, sources: Sequence[Path], output: Path) -> StageResult:
        """Translate templates into one script; outputs are the scripts to compile."""


class ScriptCompiler(Protocol):
    async def compile(
        self,
        sources: Sequence[Path],
        externs: Sequence[Path],
        output: Path,
        *,
        compile_mode: str,
        warning_level: str,
        pretty_print: bool,
    ) -> StageResult: ...


class StyleProcessor(Protocol):
    async def process(
        self,
        sources: Sequence[Path],
        output: Path,
        *,
        source_map: Path | None = None,
    ) -> StageResult: ...


@dataclass
class CommandOutput:
    returncode: int
    stdout: bytes = b""
    stderr: str = ""
    argv: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.returncode != 0 or bool(self.stderr)

    def diagnostic(self) -> str:
        if self.stderr:
            return self.stderr
        return f"{self.argv[0]} exited with code {self.returncode}"


async def run_command(argv: Sequence[str], *, stdin: bytes | None = None) -> CommandOutput:
    """Run ``argv`` without a shell and collect its output.

    A process that cannot be started is reported like one that failed.
    """
    argv = [os.fspath(arg) for arg in argv]
    logger.debug("Command: %s", " ".join(argv))
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        return CommandOutput(returncode=-1, stderr=f"Could not run {argv[0]}: {exc}", argv=argv)
    stdout, stderr = await proc.communicate(stdin)
    return CommandOutput(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout or b"",
        stderr=(stderr or b"").decode("utf-8", errors="replace").strip(),
        argv=argv,
    )


def _staging_path(output: Path) -> Path:
    return output.with_name(f".{output.name}.tmp")


def _discard(*paths: Path) -> None:
    for path in paths:
        try:
            path.unlink()
        except FileNotFoundError:
            pass


class SoyTranspiler:
    """Closure Templates (Soy) to JavaScript via ``SoyToJsSrcCompiler.jar``."""

    def __init__(self, toolchain: Toolchain | None = None) -> None:
        self.toolchain = toolchain or Toolchain()

    def command(self, sources: Sequence[Path], output: Path) -> list[str]:
        tc = self.toolchain
        return [tc.java, "-jar", str(tc.soy_compiler_jar), "--outputPathFormat", str(output)] + [
            str(source) for source in sources
        ]

    async def transpile(self, sources: Sequence[Path], output: Path) -> StageResult:
        soyutils = self.toolchain.soyutils
        if soyutils is not None and not soyutils.is_file():
            return StageResult.failure(f"soyutils runtime not found: {soyutils}")
        staging = _staging_path(output)
        result = await run_command(self.command(sources, staging))
        if result.failed:
            _discard(staging)
            return StageResult.failure(result.diagnostic())
        os.replace(staging, output)
        # Generated templates call into the soyutils runtime.
        runtime = [soyutils] if soyutils is not None else []
        return StageResult.success(*runtime, output)


class ClosureCompiler:
    """JavaScript compilation through the Closure Compiler jar."""

    def __init__(self, toolchain: Toolchain | None = None) -> None:
        self.toolchain = toolchain or Toolchain()

    def command(
        self,
        sources: Sequence[Path],
        externs: Sequence[Path],
        output: Path,
        *,
        compile_mode: str,
        warning_level: str,
        pretty_print: bool,
    ) -> list[str]:
        tc = self.toolchain
        argv = [
            tc.java,
            "-jar",
            str(tc.closure_compiler_jar),
            "--compilation_level",
            compile_mode,
            "--warning_level",
            warning_level,
        ]
        if pretty_print:
            argv += ["--formatting", "pretty_print"]
        for extern in externs:
            argv += ["--externs", str(extern)]
        for source in sources:
            argv += ["--js", str(source)]
        argv += ["--js_output_file", str(output)]
        return argv

    async def compile(
        self,
        sources: Sequence[Path],
        externs: Sequence[Path],
        output: Path,
        *,
        compile_mode: str,
        warning_level: str,
        pretty_print: bool,
    ) -> StageResult:
        staging = _staging_path(output)
        argv = self.command(
            sources,
            externs,
            staging,
            compile_mode=compile_mode,
            warning_level=warning_level,
            pretty_print=pretty_print,
        )
        result = await run_command(argv)
        if result.failed:
            _discard(staging)
            return StageResult.failure(result.diagnostic())
        os.replace(staging, output)
        return StageResult.success(output)


class LessProcessor:
    """Concatenates stylesheets in order and compresses them with ``lessc``."""

    def __init__(self, toolchain: Toolchain | None = None) -> None:
        self.toolchain = toolchain or Toolchain()

    def command(self, output: Path, source_map: Path | None = None, map_url: str | None = None) -> list[str]:
        argv = [self.toolchain.lessc, "--compress"]
        if source_map is not None:
            argv.append(f"--source-map={source_map}")
            if map_url:
                argv.append(f"--source-map-url={map_url}")
        argv += ["-", str(output)]
        return argv

    @staticmethod
    def concatenate(sources: Sequence[Path]) -> bytes:
        return b"".join(source.read_bytes() for source in sources)

    async def process(
        self,
        sources: Sequence[Path],
        output: Path,
        *,
        source_map: Path | None = None,
    ) -> StageResult:
        try:
            data = self.concatenate(sources)
        except OSError as exc:
            return StageResult.failure(f"Cannot read stylesheet: {exc}")

        staging = _staging_path(output)
        staging_map = _staging_path(source_map) if source_map is not None else None
        argv = self.command(staging, staging_map, source_map.name if source_map is not None else None)
        result = await run_command(argv, stdin=data)
        if result.failed:
            _discard(staging, *([staging_map] if staging_map else []))
            return StageResult.failure(result.diagnostic())

        os.replace(staging, output)
        if staging_map is not None and staging_map.exists():
            os.replace(staging_map, source_map)
            return StageResult.success(output, source_map)
        return StageResult.success(output)
