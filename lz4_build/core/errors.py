#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Exception hierarchy for the LZ4 build orchestrator with structured error context.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union
from dataclasses import dataclass, field

from loguru import logger


@dataclass(frozen=True)
class ErrorContext:
    """Context information for build orchestration errors."""

    command: Optional[str] = None
    exit_code: Optional[int] = None
    working_directory: Optional[Path] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    additional_info: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary for structured logging."""
        return {
            "command": self.command,
            "exit_code": self.exit_code,
            "working_directory": (
                str(self.working_directory) if self.working_directory else None
            ),
            "stdout": self.stdout,
            "stderr": self.stderr,
            "additional_info": self.additional_info,
        }


class Lz4BuildError(Exception):
    """
    Base exception class for the build orchestrator.

    Carries an immutable ErrorContext and logs itself on construction:
    recoverable errors at WARNING, everything else at ERROR.
    """

    def __init__(
        self,
        message: str,
        *,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.cause = cause
        self.recoverable = recoverable

        logger.bind(
            error_context=self.context.to_dict(),
            recoverable=self.recoverable,
            original_cause=str(cause) if cause else None,
        ).log(
            "WARNING" if recoverable else "ERROR",
            f"{type(self).__name__}: {message}",
        )

    def __str__(self) -> str:
        """String representation including command and stderr when known."""
        base_msg = super().__str__()

        if self.context.command:
            base_msg += f"\nCommand: {self.context.command}"

        if self.context.exit_code is not None:
            base_msg += f"\nExit Code: {self.context.exit_code}"

        if self.context.stderr:
            base_msg += f"\nStderr: {self.context.stderr}"

        if self.cause:
            base_msg += f"\nCaused by: {self.cause}"

        return base_msg

    def with_context(self, **kwargs: Any) -> Lz4BuildError:
        """Create a new generic error carrying this one's message and extra context."""
        new_context = ErrorContext(
            command=kwargs.get("command", self.context.command),
            exit_code=kwargs.get("exit_code", self.context.exit_code),
            working_directory=kwargs.get(
                "working_directory", self.context.working_directory
            ),
            stdout=kwargs.get("stdout", self.context.stdout),
            stderr=kwargs.get("stderr", self.context.stderr),
            additional_info={
                **self.context.additional_info,
                **kwargs.get("additional_info", {}),
            },
        )

        return Lz4BuildError(
            super().__str__(),
            context=new_context,
            cause=self.cause,
            recoverable=self.recoverable,
        )


def _merge_info(context: Optional[ErrorContext], info: Dict[str, Any]) -> ErrorContext:
    context = context or ErrorContext()
    return ErrorContext(
        command=context.command,
        exit_code=context.exit_code,
        working_directory=context.working_directory,
        stdout=context.stdout,
        stderr=context.stderr,
        additional_info={**context.additional_info, **info},
    )


class ConfigurationError(Lz4BuildError):
    """Raised when build options cannot be read or resolved."""

    def __init__(
        self,
        message: str,
        *,
        config_file: Optional[Union[str, Path]] = None,
        invalid_option: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        info: Dict[str, Any] = {}
        if config_file:
            info["config_file"] = str(config_file)
        if invalid_option:
            info["invalid_option"] = invalid_option
        kwargs["context"] = _merge_info(kwargs.get("context"), info)
        self.config_file = config_file
        self.invalid_option = invalid_option

        super().__init__(message, **kwargs)


class InvalidOptionValue(ConfigurationError):
    """An option received a value outside its declared set."""

    def __init__(self, name: str, value: Any, *, allowed: Any = None, **kwargs: Any) -> None:
        self.name = name
        self.value = value
        self.allowed = tuple(allowed) if allowed is not None else ()
        message = f"Invalid value for option '{name}': {value!r}"
        if self.allowed:
            message += f" (expected one of: {', '.join(map(str, self.allowed))})"
        super().__init__(message, invalid_option=name, **kwargs)


class UnknownOptionError(ConfigurationError):
    """An option name that is not part of the configuration surface."""

    def __init__(self, name: str, **kwargs: Any) -> None:
        self.name = name
        super().__init__(f"Unknown build option: '{name}'", invalid_option=name, **kwargs)


class InconsistentArtifactRequest(Lz4BuildError):
    """Both static and shared builds were disabled, so nothing would be produced."""

    def __init__(self, message: Optional[str] = None, **kwargs: Any) -> None:
        kwargs.setdefault("recoverable", True)
        super().__init__(
            message or "Neither a static nor a shared library was requested; nothing to build",
            **kwargs,
        )


class UpstreamLayoutError(Lz4BuildError):
    """The upstream source tree is missing a file this build requires."""

    def __init__(
        self,
        message: str,
        *,
        upstream: Optional[Union[str, Path]] = None,
        missing_file: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        info: Dict[str, Any] = {}
        if upstream:
            info["upstream"] = str(upstream)
        if missing_file:
            info["missing_file"] = missing_file
        kwargs["context"] = _merge_info(kwargs.get("context"), info)
        self.missing_file = missing_file

        super().__init__(message, **kwargs)


class ToolchainError(Lz4BuildError):
    """The external compiler or archiver failed; its stderr is kept verbatim."""

    def __init__(
        self,
        message: str,
        *,
        artifact: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        info: Dict[str, Any] = {}
        if artifact:
            info["artifact"] = artifact
        kwargs["context"] = _merge_info(kwargs.get("context"), info)
        self.artifact = artifact

        super().__init__(message, **kwargs)


def handle_toolchain_error(
    func_name: str,
    error: Exception,
    *,
    context: Optional[ErrorContext] = None,
) -> Lz4BuildError:
    """
    Convert exceptions raised while driving the toolchain into Lz4BuildError.

    Args:
        func_name: Name of the function where error occurred
        error: The original exception
        context: Error context information

    Returns:
        Lz4BuildError with the original exception attached as its cause
    """
    if isinstance(error, Lz4BuildError):
        return error

    message = f"Error in {func_name}: {error}"
    if isinstance(error, FileNotFoundError):
        return ToolchainError(
            f"Toolchain executable not found: {error.filename or error}",
            context=context,
            cause=error,
        )
    return ToolchainError(message, context=context, cause=error)
