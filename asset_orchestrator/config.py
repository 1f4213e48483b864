"""Build configuration and collaborator toolchain settings.

Configuration files are YAML mappings, for example::

    script_paths: [js/]
    extern_paths: [externs/]
    style_paths: [css/]
    output_dir: build/
    use_hash: true
    toolchain:
      closure_compiler_jar: third-party/compiler.jar
      style_source_map: true

Relative paths are resolved against the directory holding the file.
"""

from __future__ import annotations

import dataclasses
import os
import tempfile
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar

import yaml

from .errors import ConfigError
from .fingerprint import FieldKind

DEBUG_COMPILE_MODE = "WHITESPACE_ONLY"
RELEASE_COMPILE_MODE = "SIMPLE_OPTIMIZATIONS"
DEFAULT_WARNING_LEVEL = "QUIET"
DEFAULT_OUTPUT_NAME = "cached"

_PATH_LIST_OPTIONS = ("script_paths", "extern_paths", "style_paths")
_OPTIONS = frozenset(
    _PATH_LIST_OPTIONS
    + (
        "output_dir",
        "output_name",
        "debug",
        "compile_mode",
        "warning_level",
        "pretty_print",
        "use_hash",
        "dont_watch_files",
    )
)


def _path(value: Any, name: str) -> Path:
    if not isinstance(value, (str, os.PathLike)):
        raise ConfigError(f"{name} must be a path, got {value!r}")
    return Path(value).expanduser()


def _paths(values: Iterable[Any] | None, name: str) -> tuple[Path, ...]:
    if values is None:
        return ()
    if not isinstance(values, (list, tuple)):
        raise ConfigError(f"{name} must be a list of paths, got {values!r}")
    return tuple(_path(value, name).absolute() for value in values)


@dataclass(frozen=True)
class BuildConfiguration:
    """Read-only orchestrator options.

    Field values feed the fingerprint in the order of ``FINGERPRINT_FIELDS``;
    source order within each path list is preserved into compiled output.
    """

    script_paths: tuple[Path, ...] = ()
    extern_paths: tuple[Path, ...] = ()
    style_paths: tuple[Path, ...] = ()
    output_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    use_hash: bool = False
    dont_watch_files: bool = False
    compile_mode: str = RELEASE_COMPILE_MODE
    pretty_print: bool = False
    warning_level: str = DEFAULT_WARNING_LEVEL
    output_name: str = DEFAULT_OUTPUT_NAME

    FINGERPRINT_FIELDS: ClassVar[tuple[tuple[str, FieldKind], ...]] = (
        ("script_paths", FieldKind.STRINGS),
        ("extern_paths", FieldKind.STRINGS),
        ("style_paths", FieldKind.STRINGS),
        ("output_dir", FieldKind.STRING),
        ("use_hash", FieldKind.FLAG),
        ("dont_watch_files", FieldKind.FLAG),
        ("compile_mode", FieldKind.STRING),
        ("pretty_print", FieldKind.FLAG),
        ("warning_level", FieldKind.STRING),
        ("output_name", FieldKind.STRING),
    )

    @classmethod
    def from_options(cls, **options: Any) -> BuildConfiguration:
        """Build a configuration, deriving compile defaults from ``debug``.

        ``debug`` selects a cheap compile mode with pretty-printing; explicit
        ``compile_mode``/``pretty_print`` values always win.
        """
        unknown = set(options) - _OPTIONS
        if unknown:
            raise ConfigError(f"Unknown option(s): {', '.join(sorted(unknown))}")

        debug = bool(options.get("debug", False))
        compile_mode = options.get("compile_mode")
        pretty_print = options.get("pretty_print")
        output_dir = options.get("output_dir")

        return cls(
            script_paths=_paths(options.get("script_paths"), "script_paths"),
            extern_paths=_paths(options.get("extern_paths"), "extern_paths"),
            style_paths=_paths(options.get("style_paths"), "style_paths"),
            output_dir=(
                _path(output_dir, "output_dir").absolute()
                if output_dir not in (None, "")
                else Path(tempfile.gettempdir())
            ),
            use_hash=bool(options.get("use_hash", False)),
            dont_watch_files=bool(options.get("dont_watch_files", False)),
            compile_mode=(
                compile_mode
                if compile_mode is not None
                else (DEBUG_COMPILE_MODE if debug else RELEASE_COMPILE_MODE)
            ),
            pretty_print=debug if pretty_print is None else bool(pretty_print),
            warning_level=options.get("warning_level") or DEFAULT_WARNING_LEVEL,
            output_name=options.get("output_name") or DEFAULT_OUTPUT_NAME,
        )

    def replace(self, **changes: Any) -> BuildConfiguration:
        return dataclasses.replace(self, **changes)


_TOOLCHAIN_PATHS = ("closure_compiler_jar", "soy_compiler_jar", "soyutils")


@dataclass(frozen=True)
class Toolchain:
    """How the external collaborators are launched. Not fingerprinted.

    The jar defaults are relative; ``from_mapping`` resolves them against
    the config file's directory. The soyutils runtime is only compiled in
    when it is configured.
    """

    java: str = "java"
    closure_compiler_jar: Path = Path("third-party/compiler.jar")
    soy_compiler_jar: Path = Path("third-party/SoyToJsSrcCompiler.jar")
    soyutils: Path | None = None
    lessc: str = "lessc"
    style_source_map: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base_dir: Path | None = None) -> Toolchain:
        fields = {f.name: f for f in dataclasses.fields(cls)}
        unknown = set(data) - set(fields)
        if unknown:
            raise ConfigError(f"Unknown toolchain option(s): {', '.join(sorted(unknown))}")

        values = dict(data)
        for key in ("java", "lessc"):
            if key in values and not isinstance(values[key], str):
                raise ConfigError(f"toolchain {key} must be a command name, got {values[key]!r}")
        for key in _TOOLCHAIN_PATHS:
            value = values.get(key, fields[key].default)
            if value is not None:
                values[key] = _resolve(value, base_dir, f"toolchain {key}")
        if "style_source_map" in values:
            values["style_source_map"] = bool(values["style_source_map"])
        return cls(**values)


def _resolve(value: Any, base_dir: Path | None, name: str) -> Path:
    path = _path(value, name)
    if base_dir is not None and not path.is_absolute():
        path = base_dir / path
    return path


def load_config(path: str | Path) -> tuple[BuildConfiguration, Toolchain]:
    """Read a YAML build file into a configuration and its toolchain."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Malformed config file {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping")

    base_dir = path.parent.absolute()
    options = dict(data)
    toolchain_data = options.pop("toolchain", None) or {}
    if not isinstance(toolchain_data, Mapping):
        raise ConfigError("toolchain must be a mapping")

    for key in _PATH_LIST_OPTIONS:
        values = options.get(key)
        # Anything else is rejected by from_options.
        if isinstance(values, list):
            options[key] = [_resolve(value, base_dir, key) for value in values]
    if options.get("output_dir") not in (None, ""):
        options["output_dir"] = _resolve(options["output_dir"], base_dir, "output_dir")

    return BuildConfiguration.from_options(**options), Toolchain.from_mapping(toolchain_data, base_dir)
