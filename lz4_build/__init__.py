#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
LZ4 Build Orchestrator

Resolves LZ4 build options (linkage, stripping, sanitizers, freestanding,
heap mode, unaligned memory access) into immutable artifact descriptors and,
optionally, drives the host C toolchain to produce the libraries.
"""

import sys

from loguru import logger

# Package metadata
__version__ = "1.0.0"
__author__ = "Max Qian"
__license__ = "GPL-3.0-or-later"

# Configure loguru with defaults
logger.remove()  # Remove default handler
logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level="INFO",
    colorize=True,
)

from .core import (  # noqa: E402
    ArtifactDescriptor,
    ArtifactKind,
    BuildConfiguration,
    BuildPlan,
    ConfigurationError,
    HeaderId,
    HeapMode,
    InconsistentArtifactRequest,
    InvalidOptionValue,
    Lz4BuildError,
    MacroSet,
    MemoryAccess,
    OptimizeMode,
    SourceSet,
    ToolchainError,
    UnknownOptionError,
    UpstreamLayoutError,
    assemble_artifact,
    plan_build,
    render_header,
    resolve_configuration,
    select_sources,
    synthesize_memory_routines,
)
from .builders import ArtifactOutput, Toolchain  # noqa: E402
from .utils import OptionsFile  # noqa: E402


def get_tool_info() -> dict:
    """
    Get metadata about the lz4_build module.

    Returns:
        dict: Module metadata including name, version, description, functions,
              requirements and classes.
    """
    return {
        "name": "lz4_build",
        "version": __version__,
        "description": "Configuration-driven build orchestrator for the LZ4 compression library",
        "author": __author__,
        "license": __license__,
        "supported": True,
        "platform": ["linux", "macos"],
        "functions": [
            "resolve_configuration",
            "select_sources",
            "synthesize_memory_routines",
            "render_header",
            "assemble_artifact",
            "plan_build",
            "get_tool_info",
        ],
        "requirements": ["python>=3.11", "loguru", "pydantic>=2", "pyyaml"],
        "capabilities": [
            "static-and-shared-libraries",
            "freestanding-builds",
            "sanitizer-instrumentation",
            "symbol-namespacing",
            "parallel-artifact-builds",
        ],
        "classes": {
            "BuildConfiguration": "Immutable resolved build options",
            "SourceSet": "Translation units and base compiler flags",
            "MacroSet": "Freestanding memcpy/memset/memmove replacements",
            "ArtifactDescriptor": "Everything needed to build one library",
            "BuildPlan": "Configuration plus the derived artifact descriptors",
            "Toolchain": "Drives cc/ar to produce libraries from descriptors",
            "OptionsFile": "Loads build options from JSON, YAML, TOML or INI",
        },
    }


__all__ = [
    "ArtifactDescriptor",
    "ArtifactKind",
    "ArtifactOutput",
    "BuildConfiguration",
    "BuildPlan",
    "ConfigurationError",
    "HeaderId",
    "HeapMode",
    "InconsistentArtifactRequest",
    "InvalidOptionValue",
    "Lz4BuildError",
    "MacroSet",
    "MemoryAccess",
    "OptimizeMode",
    "OptionsFile",
    "SourceSet",
    "Toolchain",
    "ToolchainError",
    "UnknownOptionError",
    "UpstreamLayoutError",
    "assemble_artifact",
    "plan_build",
    "render_header",
    "resolve_configuration",
    "select_sources",
    "synthesize_memory_routines",
    "get_tool_info",
    "__version__",
    "__author__",
    "__license__",
]
