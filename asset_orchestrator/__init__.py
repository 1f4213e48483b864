"""
Incremental build orchestration for front-end assets.

Provides:
- Staleness checks of compiled scripts and stylesheets against their sources
- Template transpile + script compile and stylesheet pipelines
- Polling change watcher with per-kind debounce
- Fingerprinted, cache-busting artifact names
"""

from .collaborators import ClosureCompiler, LessProcessor, SoyTranspiler, StageResult
from .config import BuildConfiguration, Toolchain, load_config
from .coordinator import Orchestrator, create_orchestrator
from .errors import ConfigError, OrchestratorError
from .fingerprint import fingerprint
from .scanner import PipelineKind, SourceScan, find_files
from .staleness import needs_compile
from .watcher import ChangeWatcher

__all__ = [
    "BuildConfiguration",
    "ChangeWatcher",
    "ClosureCompiler",
    "ConfigError",
    "LessProcessor",
    "Orchestrator",
    "OrchestratorError",
    "PipelineKind",
    "SoyTranspiler",
    "SourceScan",
    "StageResult",
    "Toolchain",
    "create_orchestrator",
    "find_files",
    "fingerprint",
    "load_config",
    "needs_compile",
]
