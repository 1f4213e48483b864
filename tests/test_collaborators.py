from __future__ import annotations

import asyncio
import os
import stat
import sys
from pathlib import Path

import pytest

from asset_orchestrator.collaborators import (
    ClosureCompiler,
    LessProcessor,
    SoyTranspiler,
    StageResult,
    run_command,
)
from asset_orchestrator.config import Toolchain
from helpers import touch

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses /bin/sh stubs")


def write_stub(path: Path, body: str) -> str:
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


def test_closure_command_orders_externs_before_sources() -> None:
    toolchain = Toolchain(java="java", closure_compiler_jar=Path("/opt/compiler.jar"))
    argv = ClosureCompiler(toolchain).command(
        [Path("/src/a.js"), Path("/src/b.js")],
        [Path("/externs/jquery.js")],
        Path("/out/cached.js"),
        compile_mode="WHITESPACE_ONLY",
        warning_level="QUIET",
        pretty_print=True,
    )
    assert argv == [
        "java", "-jar", "/opt/compiler.jar",
        "--compilation_level", "WHITESPACE_ONLY",
        "--warning_level", "QUIET",
        "--formatting", "pretty_print",
        "--externs", "/externs/jquery.js",
        "--js", "/src/a.js",
        "--js", "/src/b.js",
        "--js_output_file", "/out/cached.js",
    ]  # fmt: skip


def test_closure_command_without_pretty_print() -> None:
    argv = ClosureCompiler().command(
        [Path("/src/a.js")],
        [],
        Path("/out/cached.js"),
        compile_mode="SIMPLE_OPTIMIZATIONS",
        warning_level="DEFAULT",
        pretty_print=False,
    )
    assert "--formatting" not in argv
    assert "--externs" not in argv


def test_soy_command() -> None:
    toolchain = Toolchain(soy_compiler_jar=Path("/opt/soy.jar"))
    argv = SoyTranspiler(toolchain).command([Path("/t/a.soy"), Path("/t/b.soy")], Path("/out/soy.js"))
    assert argv == ["java", "-jar", "/opt/soy.jar", "--outputPathFormat", "/out/soy.js", "/t/a.soy", "/t/b.soy"]


def test_less_command_with_source_map() -> None:
    argv = LessProcessor().command(Path("/out/cached.css"), Path("/out/cached.css.map"), "cached.css.map")
    assert argv == [
        "lessc",
        "--compress",
        "--source-map=/out/cached.css.map",
        "--source-map-url=cached.css.map",
        "-",
        "/out/cached.css",
    ]


def test_less_concatenates_in_order(tmp_path: Path) -> None:
    a = touch(tmp_path / "a.css", text=".a{}\n")
    b = touch(tmp_path / "b.less", text=".b{}\n")
    assert LessProcessor.concatenate([b, a]) == b".b{}\n.a{}\n"


def test_missing_executable_is_a_failure(tmp_path: Path) -> None:
    result = asyncio.run(run_command([str(tmp_path / "no-such-tool")]))
    assert result.failed
    assert "Could not run" in result.diagnostic()


@posix_only
def test_less_success_writes_artifact(tmp_path: Path) -> None:
    lessc = write_stub(tmp_path / "lessc", 'for last; do :; done\ncat > "$last"\n')
    sheet = touch(tmp_path / "css" / "site.less", text=".a { color: red }")
    output = tmp_path / "cached.css"

    result = asyncio.run(LessProcessor(Toolchain(lessc=lessc)).process([sheet], output))

    assert result == StageResult.success(output)
    assert output.read_text() == ".a { color: red }"
    assert not (tmp_path / ".cached.css.tmp").exists()


@posix_only
def test_less_failure_keeps_previous_artifact(tmp_path: Path) -> None:
    lessc = write_stub(tmp_path / "lessc", 'echo "ParseError: Unrecognised input" >&2\nexit 1\n')
    sheet = touch(tmp_path / "site.less", text=".a {")
    output = touch(tmp_path / "cached.css", text="old")

    result = asyncio.run(LessProcessor(Toolchain(lessc=lessc)).process([sheet], output))

    assert not result.ok
    assert "Unrecognised input" in result.diagnostic
    assert output.read_text() == "old"


@posix_only
def test_stderr_output_counts_as_failure(tmp_path: Path) -> None:
    tool = write_stub(tmp_path / "noisy", 'echo "warning: something" >&2\nexit 0\n')
    result = asyncio.run(run_command([tool]))
    assert result.returncode == 0
    assert result.failed
    assert result.diagnostic() == "warning: something"


@posix_only
def test_closure_success_replaces_artifact(tmp_path: Path) -> None:
    java = write_stub(
        tmp_path / "java",
        'out=""\n'
        "while [ $# -gt 0 ]; do\n"
        '  if [ "$1" = "--js_output_file" ]; then out="$2"; fi\n'
        "  shift\n"
        "done\n"
        'echo "compiled" > "$out"\n',
    )
    script = touch(tmp_path / "a.js", text="var a = 1;")
    output = touch(tmp_path / "cached.js", text="old")

    result = asyncio.run(
        ClosureCompiler(Toolchain(java=java)).compile(
            [script],
            [],
            output,
            compile_mode="SIMPLE_OPTIMIZATIONS",
            warning_level="QUIET",
            pretty_print=False,
        )
    )

    assert result.ok
    assert output.read_text().strip() == "compiled"


@posix_only
def test_soy_transpile_reports_runtime_and_intermediate(tmp_path: Path) -> None:
    java = write_stub(
        tmp_path / "java",
        'out=""\n'
        "while [ $# -gt 0 ]; do\n"
        '  if [ "$1" = "--outputPathFormat" ]; then out="$2"; fi\n'
        "  shift\n"
        "done\n"
        'echo "// soy" > "$out"\n',
    )
    runtime = touch(tmp_path / "soyutils.js")
    template = touch(tmp_path / "x.soy")
    output = tmp_path / "soy.js"

    result = asyncio.run(
        SoyTranspiler(Toolchain(java=java, soyutils=runtime)).transpile([template], output)
    )

    assert result.outputs == (runtime, output)
    assert os.path.exists(output)


@posix_only
def test_soy_transpile_without_runtime_reports_only_intermediate(tmp_path: Path) -> None:
    java = write_stub(
        tmp_path / "java",
        'out=""\n'
        "while [ $# -gt 0 ]; do\n"
        '  if [ "$1" = "--outputPathFormat" ]; then out="$2"; fi\n'
        "  shift\n"
        "done\n"
        'echo "// soy" > "$out"\n',
    )
    template = touch(tmp_path / "x.soy")
    output = tmp_path / "soy.js"

    result = asyncio.run(SoyTranspiler(Toolchain(java=java)).transpile([template], output))

    assert result == StageResult.success(output)


def test_soy_transpile_fails_when_configured_runtime_is_missing(tmp_path: Path) -> None:
    runtime = tmp_path / "third-party" / "soyutils.js"
    toolchain = Toolchain(java=str(tmp_path / "no-such-java"), soyutils=runtime)

    result = asyncio.run(SoyTranspiler(toolchain).transpile([touch(tmp_path / "x.soy")], tmp_path / "soy.js"))

    assert not result.ok
    assert result.diagnostic == f"soyutils runtime not found: {runtime}"
    assert not (tmp_path / "soy.js").exists()


@posix_only
def test_less_writes_source_map_next_to_artifact(tmp_path: Path) -> None:
    lessc = write_stub(
        tmp_path / "lessc",
        'map=""\n'
        'for arg; do\n'
        '  case "$arg" in --source-map=*) map="${arg#--source-map=}" ;; esac\n'
        '  last="$arg"\n'
        "done\n"
        'cat > "$last"\n'
        'echo \'{"version":3}\' > "$map"\n',
    )
    sheet = touch(tmp_path / "css" / "site.less", text=".a{}")
    output = tmp_path / "cached.css"
    source_map = tmp_path / "cached.css.map"

    result = asyncio.run(
        LessProcessor(Toolchain(lessc=lessc)).process([sheet], output, source_map=source_map)
    )

    assert result == StageResult.success(output, source_map)
    assert output.read_text() == ".a{}"
    assert source_map.read_text().strip() == '{"version":3}'
    assert sorted(p.name for p in tmp_path.iterdir()) == ["cached.css", "cached.css.map", "css", "lessc"]


@posix_only
def test_less_failure_discards_staged_source_map(tmp_path: Path) -> None:
    lessc = write_stub(
        tmp_path / "lessc",
        'for arg; do\n'
        '  case "$arg" in --source-map=*) echo "{}" > "${arg#--source-map=}" ;; esac\n'
        "done\n"
        'echo "ParseError: Unrecognised input" >&2\n'
        "exit 1\n",
    )
    sheet = touch(tmp_path / "site.less", text=".a {")
    output = touch(tmp_path / "cached.css", text="old")
    source_map = touch(tmp_path / "cached.css.map", text="old map")

    result = asyncio.run(
        LessProcessor(Toolchain(lessc=lessc)).process([sheet], output, source_map=source_map)
    )

    assert not result.ok
    assert not (tmp_path / ".cached.css.map.tmp").exists()
    assert output.read_text() == "old"
    assert source_map.read_text() == "old map"
