#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Drives a GCC-compatible C toolchain to turn ArtifactDescriptors into libraries.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    Any,
    Awaitable,
    Callable,
    Coroutine,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
    Union,
)

from loguru import logger

from ..core.errors import (
    ErrorContext,
    ToolchainError,
    UpstreamLayoutError,
    handle_toolchain_error,
)
from ..core.models import ArtifactDescriptor, ArtifactKind, BuildPlan


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Immutable result of one toolchain invocation."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    return_code: int = 0
    command: Tuple[str, ...] = ()
    execution_time: float = 0.0

    @property
    def command_str(self) -> str:
        return " ".join(self.command)


@dataclass(frozen=True, slots=True)
class ArtifactOutput:
    """A library written by the toolchain."""

    kind: ArtifactKind
    path: Path
    objects: int
    execution_time: float = 0.0
    commands: Tuple[Tuple[str, ...], ...] = field(default=())


CommandRunner = Callable[[Sequence[str], Path], Awaitable[CommandResult]]

T = TypeVar("T")


async def run_all(aws: Iterable[Coroutine[Any, Any, T]]) -> List[T]:
    """
    Run coroutines concurrently and return their results in order.

    The first failure cancels the rest and is re-raised as itself; sibling
    tasks have finished before this returns.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(aw) for aw in aws]
    except ExceptionGroup as failures:
        raise failures.exceptions[0]
    return [task.result() for task in tasks]


def locate_lib_dir(upstream: Union[Path, str]) -> Path:
    """The directory holding the C sources: ``<upstream>/lib`` or upstream itself."""
    root = Path(upstream)
    lib_dir = root / "lib"
    return lib_dir if lib_dir.is_dir() else root


def verify_upstream(upstream: Union[Path, str], descriptor: ArtifactDescriptor) -> Path:
    """
    Check that the upstream tree has every unit and header the descriptor names.

    Returns:
        The directory holding the sources.

    Raises:
        UpstreamLayoutError: On the first missing file.
    """
    lib_dir = locate_lib_dir(upstream)
    if not lib_dir.is_dir():
        raise UpstreamLayoutError(
            f"Upstream source directory not found: {upstream}", upstream=upstream
        )

    required = [unit.value for unit in descriptor.sources]
    required += sorted(header.value for header in descriptor.exported_headers)
    for name in required:
        if not (lib_dir / name).is_file():
            raise UpstreamLayoutError(
                f"Upstream tree is missing {name} (looked in {lib_dir})",
                upstream=upstream,
                missing_file=name,
            )
    return lib_dir


class Toolchain:
    """
    Compiles and links one artifact at a time from its descriptor.

    Object files go to a scratch directory owned by the build of a single
    artifact; it is removed whether the build succeeds or fails. Toolchain
    failures are raised as ToolchainError carrying stderr verbatim and are
    never retried.

    Attributes:
        cc: C compiler driver (gcc/clang compatible).
        ar: Archiver used for static libraries.
        run_command: The asynchronous command runner.
    """

    def __init__(
        self,
        cc: Optional[str] = None,
        ar: Optional[str] = None,
        command_runner: Optional[CommandRunner] = None,
    ) -> None:
        self.cc = cc or os.environ.get("CC", "cc")
        self.ar = ar or os.environ.get("AR", "ar")
        self.run_command = command_runner or self._default_run_command_async
        logger.debug(f"Initialized Toolchain: cc={self.cc}, ar={self.ar}")

    async def _default_run_command_async(self, cmd: Sequence[str], cwd: Path) -> CommandResult:
        cmd_str = " ".join(cmd)
        logger.debug(f"Running: {cmd_str}")
        start_time = time.time()

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
            )
        except OSError as e:
            raise handle_toolchain_error(
                "_default_run_command_async",
                e,
                context=ErrorContext(command=cmd_str, working_directory=cwd),
            ) from e

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
            await process.wait()
            logger.debug(f"Killed cancelled command: {cmd_str}")
            raise

        exit_code = process.returncode or 0
        return CommandResult(
            success=exit_code == 0,
            stdout=stdout.decode("utf-8", errors="replace").strip(),
            stderr=stderr.decode("utf-8", errors="replace").strip(),
            return_code=exit_code,
            command=tuple(cmd),
            execution_time=time.time() - start_time,
        )

    async def _run_checked(
        self, cmd: Sequence[str], cwd: Path, descriptor: ArtifactDescriptor
    ) -> CommandResult:
        result = await self.run_command(cmd, cwd)
        if not result.success:
            raise ToolchainError(
                f"{Path(cmd[0]).name} failed while building {descriptor.file_name}",
                artifact=descriptor.file_name,
                context=ErrorContext(
                    command=" ".join(cmd),
                    exit_code=result.return_code,
                    working_directory=cwd,
                    stdout=result.stdout or None,
                    stderr=result.stderr or None,
                ),
            )
        if result.stderr:
            logger.warning(f"{Path(cmd[0]).name}: {result.stderr}")
        return result

    def compile_command(
        self, lib_dir: Path, source: str, obj: Path, arguments: Sequence[str]
    ) -> List[str]:
        return [self.cc, *arguments, "-I", str(lib_dir), "-c", str(lib_dir / source), "-o", str(obj)]

    def link_command(
        self, descriptor: ArtifactDescriptor, objects: Sequence[Path], output: Path
    ) -> List[str]:
        if descriptor.kind is ArtifactKind.STATIC:
            return [self.ar, "rcs", str(output), *map(str, objects)]
        return [self.cc, *descriptor.link_flags(), "-o", str(output), *map(str, objects)]

    async def build_artifact(
        self,
        descriptor: ArtifactDescriptor,
        upstream: Union[Path, str],
        output_dir: Union[Path, str],
    ) -> ArtifactOutput:
        """Compile every unit of ``descriptor`` and link or archive the result."""
        lib_dir = verify_upstream(upstream, descriptor).resolve()
        output_dir = Path(output_dir).resolve()
        output_dir.mkdir(parents=True, exist_ok=True)
        output = output_dir / descriptor.file_name

        start_time = time.time()
        logger.info(f"Building {descriptor.file_name} ({descriptor.kind.value})")

        with tempfile.TemporaryDirectory(prefix=f"lz4-{descriptor.kind.value}-") as scratch:
            scratch_dir = Path(scratch)
            units = descriptor.compile_units()
            objects = [scratch_dir / f"{Path(unit.source.value).stem}.o" for unit in units]
            compile_cmds = [
                self.compile_command(lib_dir, unit.source.value, obj, unit.arguments)
                for unit, obj in zip(units, objects)
            ]

            await run_all(
                self._run_checked(cmd, scratch_dir, descriptor) for cmd in compile_cmds
            )

            # ar appends to an existing archive
            output.unlink(missing_ok=True)
            link_cmd = self.link_command(descriptor, objects, output)
            await self._run_checked(link_cmd, scratch_dir, descriptor)

        elapsed = time.time() - start_time
        logger.success(f"Built {output} in {elapsed:.2f}s")
        return ArtifactOutput(
            kind=descriptor.kind,
            path=output,
            objects=len(objects),
            execution_time=elapsed,
            commands=tuple(tuple(cmd) for cmd in [*compile_cmds, link_cmd]),
        )

    async def build_plan(
        self,
        plan: BuildPlan,
        upstream: Union[Path, str],
        output_dir: Union[Path, str],
    ) -> Tuple[ArtifactOutput, ...]:
        """Build every artifact of ``plan`` concurrently."""
        if plan.empty:
            logger.warning("Build plan has no artifacts; nothing to do")
            return ()

        outputs = await run_all(
            self.build_artifact(artifact, upstream, output_dir) for artifact in plan.artifacts
        )
        return tuple(outputs)

    def build(
        self,
        plan: BuildPlan,
        upstream: Union[Path, str],
        output_dir: Union[Path, str],
    ) -> Tuple[ArtifactOutput, ...]:
        """Synchronous wrapper around build_plan."""
        return asyncio.run(self.build_plan(plan, upstream, output_dir))
