"""Top-level driver for the script and style pipelines.

Each pipeline kind is either idle or running. ``run()`` starts the kinds
whose artifacts are stale, the watcher restarts a kind whenever its sources
change, and the end callback fires whenever both kinds settle after work
was started.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .collaborators import (
    ClosureCompiler,
    LessProcessor,
    ScriptCompiler,
    SoyTranspiler,
    StageResult,
    StyleProcessor,
    TemplateTranspiler,
)
from .config import BuildConfiguration, Toolchain
from .fingerprint import fingerprint
from .scanner import (
    SCRIPT_KIND_PATTERN,
    SCRIPT_PATTERN,
    STYLE_PATTERN,
    TEMPLATE_PATTERN,
    PipelineKind,
    find_files,
)
from .staleness import needs_compile
from .watcher import DEBOUNCE_DELAY, POLL_INTERVAL, ChangeWatcher

logger = logging.getLogger(__name__)

TEMPLATE_SCRIPT_NAME = "soy.js"


@dataclass
class PipelineState:
    busy: dict[PipelineKind, bool] = field(
        default_factory=lambda: {kind: False for kind in PipelineKind}
    )
    # Kinds that changed again while running; each gets one more pass.
    rerun: set[PipelineKind] = field(default_factory=set)
    # Work was started since the end callback last fired.
    started: bool = False

    @property
    def idle(self) -> bool:
        return not any(self.busy.values())


class Orchestrator:
    """Keeps compiled script and style artifacts up to date with their sources."""

    def __init__(
        self,
        config: BuildConfiguration,
        *,
        toolchain: Toolchain | None = None,
        transpiler: TemplateTranspiler | None = None,
        compiler: ScriptCompiler | None = None,
        style_processor: StyleProcessor | None = None,
        end_callback: Callable[[], Any] | None = None,
        watch_interval: float = POLL_INTERVAL,
        debounce: float = DEBOUNCE_DELAY,
    ) -> None:
        self.config = config
        self.toolchain = toolchain or Toolchain()
        self.transpiler = transpiler or SoyTranspiler(self.toolchain)
        self.compiler = compiler or ClosureCompiler(self.toolchain)
        self.style_processor = style_processor or LessProcessor(self.toolchain)
        self.end_callback = end_callback
        self.watch_interval = watch_interval
        self.debounce = debounce

        self.fingerprint: int | None = fingerprint(config) if config.use_hash else None
        self.state = PipelineState()
        self.failures = 0
        self.watcher: ChangeWatcher | None = None
        self._closed = False
        self._tasks: set[asyncio.Task[None]] = set()

    def __repr__(self) -> str:
        return f"Orchestrator(output_dir={str(self.config.output_dir)!r}, fingerprint={self.fingerprint!r})"

    @property
    def closed(self) -> bool:
        return self._closed

    def _artifact_name(self, extension: str) -> str:
        suffix = "" if self.fingerprint is None else str(self.fingerprint)
        return f"{self.config.output_name}{suffix}{extension}"

    def script_artifact_name(self) -> str:
        return self._artifact_name(".js")

    def style_artifact_name(self) -> str:
        return self._artifact_name(".css")

    def style_map_artifact_name(self) -> str:
        return self._artifact_name(".css.map")

    def artifact_path(self, name: str) -> Path:
        return self.config.output_dir / name

    async def run(self, *, watch: bool | None = None) -> None:
        """Start watching, then build every kind whose artifact is stale.

        ``watch`` overrides ``dont_watch_files`` for this run without touching
        the configuration, so artifact names stay the same. Returns once the
        startup decisions are made; use ``wait_idle()`` to wait for the
        started pipelines.
        """
        if self._closed:
            raise RuntimeError("Orchestrator is closed")

        if watch is None:
            watch = not self.config.dont_watch_files
        if watch:
            self._start_watcher()

        # A run opens a settle window even if nothing turns out to be stale.
        self.state.started = True
        if needs_compile(
            self.config.script_paths,
            SCRIPT_KIND_PATTERN,
            self.artifact_path(self.script_artifact_name()),
        ):
            self._start(PipelineKind.SCRIPT)
        if needs_compile(
            self.config.style_paths,
            STYLE_PATTERN,
            self.artifact_path(self.style_artifact_name()),
        ):
            self._start(PipelineKind.STYLE)
        self._check_end()

    def recompile(self, kind: PipelineKind) -> None:
        """Rebuild ``kind`` now, without consulting modification times."""
        if self._closed:
            return
        self._start(kind)

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def close(self) -> None:
        """Stop watching. Builds already in flight finish but report nothing."""
        self._closed = True
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None

    def _start_watcher(self) -> None:
        if self.watcher is not None:
            return
        roots = self.config.extern_paths + self.config.script_paths + self.config.style_paths
        self.watcher = ChangeWatcher(
            roots,
            self.recompile,
            interval=self.watch_interval,
            debounce=self.debounce,
        )
        self.watcher.start()

    def _start(self, kind: PipelineKind) -> None:
        if self.state.busy[kind]:
            logger.debug("%s pipeline busy, queueing another pass", kind.value)
            self.state.rerun.add(kind)
            return
        self.state.busy[kind] = True
        self.state.started = True
        task = asyncio.get_running_loop().create_task(self._run_pipeline(kind))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_pipeline(self, kind: PipelineKind) -> None:
        stage = self._compile_scripts if kind is PipelineKind.SCRIPT else self._process_styles
        try:
            while True:
                try:
                    result = await stage()
                except Exception:
                    logger.exception("%s pipeline crashed", kind.value)
                    result = StageResult.failure("internal error")
                if not result.ok:
                    self.failures += 1
                if kind in self.state.rerun and not self._closed:
                    self.state.rerun.discard(kind)
                    continue
                break
        finally:
            self.state.busy[kind] = False
            self.state.rerun.discard(kind)
            self._check_end()

    def _check_end(self) -> None:
        if self._closed or not self.state.idle or not self.state.started:
            return
        self.state.started = False
        if self.end_callback is not None:
            try:
                self.end_callback()
            except Exception:
                logger.exception("End callback failed")

    async def _compile_scripts(self) -> StageResult:
        logger.info("Compiling script files")
        config = self.config
        config.output_dir.mkdir(parents=True, exist_ok=True)

        generated: tuple[Path, ...] = ()
        templates = find_files(config.script_paths, TEMPLATE_PATTERN)
        if templates:
            intermediate = self.artifact_path(TEMPLATE_SCRIPT_NAME)
            result = await self.transpiler.transpile(templates, intermediate)
            if not result.ok:
                logger.error("Template compilation failed:\n%s", result.diagnostic)
                return result
            generated = result.outputs

        sources = find_files(config.script_paths, SCRIPT_PATTERN)
        sources = [source for source in sources if source not in generated] + list(generated)
        externs = find_files(config.extern_paths, SCRIPT_PATTERN)
        result = await self.compiler.compile(
            sources,
            externs,
            self.artifact_path(self.script_artifact_name()),
            compile_mode=config.compile_mode,
            warning_level=config.warning_level,
            pretty_print=config.pretty_print,
        )
        if result.ok:
            logger.info("Successfully compiled script files")
        else:
            logger.error("Script compilation failed:\n%s", result.diagnostic)
        return result

    async def _process_styles(self) -> StageResult:
        config = self.config
        config.output_dir.mkdir(parents=True, exist_ok=True)
        sources = find_files(config.style_paths, STYLE_PATTERN)
        logger.info("Compressing %d stylesheet files", len(sources))

        source_map = (
            self.artifact_path(self.style_map_artifact_name())
            if self.toolchain.style_source_map
            else None
        )
        result = await self.style_processor.process(
            sources,
            self.artifact_path(self.style_artifact_name()),
            source_map=source_map,
        )
        if result.ok:
            logger.info("Successfully compressed stylesheet files")
        else:
            logger.error("Stylesheet processing failed:\n%s", result.diagnostic)
        return result


def create_orchestrator(
    config: BuildConfiguration | Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> Orchestrator:
    """Build an orchestrator from a configuration or a mapping of options.

    A mapping may carry ``end_callback`` next to the build options.
    """
    if config is None:
        config = {}
    if not isinstance(config, BuildConfiguration):
        options = dict(config)
        end_callback = options.pop("end_callback", None)
        if end_callback is not None:
            kwargs.setdefault("end_callback", end_callback)
        config = BuildConfiguration.from_options(**options)
    return Orchestrator(config, **kwargs)
