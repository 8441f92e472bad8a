#!/usr/bin/env python3
"""
Tests for the toolchain driver, with the compiler and archiver mocked out.
"""

import asyncio
import os
import shutil
import sys
import time
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from lz4_build.builders.toolchain import (
    CommandResult,
    Toolchain,
    locate_lib_dir,
    run_all,
    verify_upstream,
)
from lz4_build.core.assembler import assemble_artifact, plan_build
from lz4_build.core.errors import ToolchainError, UpstreamLayoutError
from lz4_build.core.models import ArtifactKind, HeaderId, TranslationUnit
from lz4_build.core.resolver import resolve_configuration


@pytest.fixture
def upstream(tmp_path):
    """A fake LZ4 checkout with every unit and header in lib/."""
    root = tmp_path / "lz4"
    lib = root / "lib"
    lib.mkdir(parents=True)
    for name in [*TranslationUnit, *HeaderId]:
        (lib / name.value).write_text("/* stub */\n")
    return root


@pytest.fixture
def calls():
    return []


@pytest.fixture
def runner(calls):
    """Succeeds on every command and touches the file named after -o or rcs."""

    async def run(cmd, cwd):
        calls.append((tuple(cmd), Path(cwd)))
        if "-o" in cmd:
            Path(cmd[cmd.index("-o") + 1]).touch()
        elif len(cmd) > 2 and cmd[1] == "rcs":
            Path(cmd[2]).touch()
        return CommandResult(success=True, command=tuple(cmd))

    return AsyncMock(side_effect=run)


@pytest.fixture
def toolchain(runner):
    return Toolchain(cc="mock-cc", ar="mock-ar", command_runner=runner)


def test_locate_lib_dir(upstream):
    assert locate_lib_dir(upstream) == upstream / "lib"
    assert locate_lib_dir(upstream / "lib") == upstream / "lib"


def test_verify_upstream_reports_missing_unit(upstream):
    (upstream / "lib" / "lz4frame.c").unlink()
    hosted = assemble_artifact(resolve_configuration(), ArtifactKind.STATIC)
    with pytest.raises(UpstreamLayoutError) as excinfo:
        verify_upstream(upstream, hosted)
    assert excinfo.value.missing_file == "lz4frame.c"

    freestanding = assemble_artifact(resolve_configuration(freestanding=True), ArtifactKind.STATIC)
    assert verify_upstream(upstream, freestanding) == upstream / "lib"


def test_verify_upstream_reports_missing_header(upstream):
    (upstream / "lib" / "lz4frame_static.h").unlink()
    dynamic = assemble_artifact(resolve_configuration(), ArtifactKind.DYNAMIC)
    verify_upstream(upstream, dynamic)
    static = assemble_artifact(resolve_configuration(), ArtifactKind.STATIC)
    with pytest.raises(UpstreamLayoutError):
        verify_upstream(upstream, static)


def test_verify_upstream_missing_directory(tmp_path):
    descriptor = assemble_artifact(resolve_configuration(), ArtifactKind.STATIC)
    with pytest.raises(UpstreamLayoutError):
        verify_upstream(tmp_path / "nowhere", descriptor)


def test_default_tools_come_from_environment(monkeypatch):
    monkeypatch.setenv("CC", "clang")
    monkeypatch.setenv("AR", "llvm-ar")
    toolchain = Toolchain()
    assert toolchain.cc == "clang"
    assert toolchain.ar == "llvm-ar"


@pytest.mark.asyncio
async def test_build_static_artifact(toolchain, upstream, tmp_path, calls):
    descriptor = assemble_artifact(resolve_configuration(), ArtifactKind.STATIC)
    output = await toolchain.build_artifact(descriptor, upstream, tmp_path / "out")

    assert output.kind is ArtifactKind.STATIC
    assert output.path == (tmp_path / "out" / "liblz4.a").resolve()
    assert output.path.is_file()
    assert output.objects == 5

    compile_calls = [cmd for cmd, _ in calls if cmd[0] == "mock-cc"]
    assert len(compile_calls) == 5
    for cmd in compile_calls:
        assert cmd[1:1 + len(descriptor.compile_flags())] == descriptor.compile_flags()
        assert "-c" in cmd
    link_cmd = calls[-1][0]
    assert link_cmd[:3] == ("mock-ar", "rcs", str(output.path))
    assert len(link_cmd) == 3 + 5


@pytest.mark.asyncio
async def test_build_dynamic_freestanding_artifact(toolchain, upstream, tmp_path, calls):
    config = resolve_configuration(freestanding=True, strip=True)
    descriptor = assemble_artifact(config, ArtifactKind.DYNAMIC)
    output = await toolchain.build_artifact(descriptor, upstream, tmp_path / "out")

    assert output.path.name == "liblz4.so"
    assert output.objects == 3
    compiled = sorted(Path(cmd[cmd.index("-c") + 1]).name for cmd, _ in calls[:-1])
    assert compiled == ["lz4.c", "lz4hc.c", "xxhash.c"]
    link_cmd = calls[-1][0]
    assert link_cmd[0] == "mock-cc"
    assert "-shared" in link_cmd
    assert "-nostdlib" in link_cmd
    assert "-s" in link_cmd


@pytest.mark.asyncio
async def test_scratch_directory_removed_after_success(toolchain, upstream, tmp_path, calls):
    descriptor = assemble_artifact(resolve_configuration(), ArtifactKind.STATIC)
    await toolchain.build_artifact(descriptor, upstream, tmp_path / "out")
    scratch_dirs = {cwd for _, cwd in calls}
    assert len(scratch_dirs) == 1
    assert not scratch_dirs.pop().exists()


@pytest.mark.asyncio
async def test_compiler_failure_raises_with_stderr(upstream, tmp_path):
    seen = []

    async def run(cmd, cwd):
        seen.append(Path(cwd))
        if cmd[-3].endswith("lz4hc.c"):
            return CommandResult(
                success=False, stderr="lz4hc.c:1: error: boom", return_code=1, command=tuple(cmd)
            )
        return CommandResult(success=True, command=tuple(cmd))

    toolchain = Toolchain(cc="mock-cc", ar="mock-ar", command_runner=run)
    descriptor = assemble_artifact(resolve_configuration(), ArtifactKind.STATIC)

    with pytest.raises(ToolchainError) as excinfo:
        await toolchain.build_artifact(descriptor, upstream, tmp_path / "out")

    error = excinfo.value
    assert error.artifact == "liblz4.a"
    assert error.context.stderr == "lz4hc.c:1: error: boom"
    assert error.context.exit_code == 1
    assert "boom" in str(error)
    assert all(not cwd.exists() for cwd in seen)
    assert not (tmp_path / "out" / "liblz4.a").exists()


@pytest.mark.asyncio
async def test_missing_upstream_file_fails_before_compiling(toolchain, upstream, tmp_path, calls):
    (upstream / "lib" / "xxhash.c").unlink()
    descriptor = assemble_artifact(resolve_configuration(), ArtifactKind.DYNAMIC)
    with pytest.raises(UpstreamLayoutError):
        await toolchain.build_artifact(descriptor, upstream, tmp_path / "out")
    assert calls == []


@pytest.mark.asyncio
async def test_build_plan_builds_every_artifact(toolchain, upstream, tmp_path):
    plan = plan_build(resolve_configuration())
    outputs = await toolchain.build_plan(plan, upstream, tmp_path / "out")
    assert [output.kind for output in outputs] == [ArtifactKind.DYNAMIC, ArtifactKind.STATIC]
    assert all(output.path.is_file() for output in outputs)


@pytest.mark.asyncio
async def test_empty_plan_builds_nothing(toolchain, runner, upstream, tmp_path):
    plan = plan_build(resolve_configuration(static=False, shared=False))
    assert await toolchain.build_plan(plan, upstream, tmp_path / "out") == ()
    runner.assert_not_called()


@pytest.mark.asyncio
async def test_missing_executable_becomes_toolchain_error(tmp_path):
    toolchain = Toolchain(cc="lz4-build-no-such-compiler")
    with pytest.raises(ToolchainError, match="not found"):
        await toolchain.run_command(["lz4-build-no-such-compiler", "--version"], tmp_path)


def test_sync_build_wrapper(toolchain, upstream, tmp_path):
    plan = plan_build(resolve_configuration(shared=False))
    (output,) = toolchain.build(plan, upstream, tmp_path / "out")
    assert output.path.name == "liblz4.a"


def slow_sibling_runner(fails_on, finished, cancelled, delay=1.0):
    """Fails at once on the unit ``fails_on``; every other compile takes ``delay`` seconds."""

    async def run(cmd, cwd):
        if cmd[-3].endswith(fails_on):
            return CommandResult(success=False, stderr="error: boom", return_code=1, command=tuple(cmd))
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            cancelled.append(Path(cmd[-3]).name)
            raise
        finished.append(Path(cmd[-3]).name)
        return CommandResult(success=True, command=tuple(cmd))

    return run


@pytest.mark.asyncio
async def test_failure_cancels_sibling_compiles(upstream, tmp_path):
    finished, cancelled = [], []
    toolchain = Toolchain(
        cc="mock-cc", ar="mock-ar",
        command_runner=slow_sibling_runner("lz4hc.c", finished, cancelled),
    )
    descriptor = assemble_artifact(resolve_configuration(), ArtifactKind.STATIC)

    start = time.monotonic()
    with pytest.raises(ToolchainError) as excinfo:
        await toolchain.build_artifact(descriptor, upstream, tmp_path / "out")
    assert time.monotonic() - start < 0.9
    assert excinfo.value.context.stderr == "error: boom"

    assert sorted(cancelled) == ["lz4.c", "lz4file.c", "lz4frame.c", "xxhash.c"]
    await asyncio.sleep(1.2)
    assert finished == []


@pytest.mark.asyncio
async def test_failure_in_one_artifact_cancels_the_other(upstream, tmp_path):
    finished, cancelled = [], []

    async def run(cmd, cwd):
        if "-fPIC" in cmd:
            return CommandResult(success=False, stderr="pic failure", return_code=1, command=tuple(cmd))
        try:
            await asyncio.sleep(1.0)
        except asyncio.CancelledError:
            cancelled.append(cmd)
            raise
        finished.append(cmd)
        return CommandResult(success=True, command=tuple(cmd))

    toolchain = Toolchain(cc="mock-cc", ar="mock-ar", command_runner=run)
    plan = plan_build(resolve_configuration())

    with pytest.raises(ToolchainError) as excinfo:
        await toolchain.build_plan(plan, upstream, tmp_path / "out")
    assert excinfo.value.artifact == "liblz4.so"
    assert len(cancelled) == 5
    assert finished == []


@pytest.mark.asyncio
async def test_run_all_returns_results_in_order():
    async def value(v, delay):
        await asyncio.sleep(delay)
        return v

    assert await run_all([value("a", 0.02), value("b", 0), value("c", 0.01)]) == ["a", "b", "c"]


FAKE_CC = """#!/bin/sh
src=""
prev=""
for arg in "$@"; do
    if [ "$prev" = "-c" ]; then src="$arg"; fi
    prev="$arg"
done
case "$src" in
    *lz4hc.c) echo "lz4hc.c:1: error: boom" >&2; exit 1 ;;
esac
sleep 1
touch "{markers}/$(basename "$src")"
"""


@pytest.mark.skipif(
    sys.platform == "win32" or shutil.which("sh") is None, reason="needs a POSIX shell"
)
def test_failed_build_leaves_no_compiler_running(upstream, tmp_path):
    markers = tmp_path / "markers"
    markers.mkdir()
    fake_cc = tmp_path / "fake-cc"
    fake_cc.write_text(FAKE_CC.replace("{markers}", str(markers)))
    fake_cc.chmod(0o755)

    toolchain = Toolchain(cc=str(fake_cc), ar="ar")
    plan = plan_build(resolve_configuration(shared=False))

    with pytest.raises(ToolchainError) as excinfo:
        toolchain.build(plan, upstream, tmp_path / "out")
    assert "boom" in excinfo.value.context.stderr

    time.sleep(1.5)
    assert os.listdir(markers) == []
    assert not (tmp_path / "out" / "liblz4.a").exists()
