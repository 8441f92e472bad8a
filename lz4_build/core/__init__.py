#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Core components: option model, source selection, macro synthesis and artifact
assembly.
"""

from .models import (
    ArtifactDescriptor,
    ArtifactKind,
    BuildConfiguration,
    BuildPlan,
    CompileUnit,
    HeaderId,
    HeapMode,
    MacroDefinition,
    MacroSet,
    MemoryAccess,
    MemoryPrimitive,
    OptimizeMode,
    Sanitizers,
    SourceSet,
    TranslationUnit,
)
from .errors import (
    ConfigurationError,
    ErrorContext,
    InconsistentArtifactRequest,
    InvalidOptionValue,
    Lz4BuildError,
    ToolchainError,
    UnknownOptionError,
    UpstreamLayoutError,
)
from .resolver import resolve_configuration
from .sources import select_sources
from .memory_routines import render_header, synthesize_memory_routines
from .assembler import assemble_artifact, plan_build

__all__ = [
    "ArtifactDescriptor",
    "ArtifactKind",
    "BuildConfiguration",
    "BuildPlan",
    "CompileUnit",
    "HeaderId",
    "HeapMode",
    "MacroDefinition",
    "MacroSet",
    "MemoryAccess",
    "MemoryPrimitive",
    "OptimizeMode",
    "Sanitizers",
    "SourceSet",
    "TranslationUnit",
    "ConfigurationError",
    "ErrorContext",
    "InconsistentArtifactRequest",
    "InvalidOptionValue",
    "Lz4BuildError",
    "ToolchainError",
    "UnknownOptionError",
    "UpstreamLayoutError",
    "resolve_configuration",
    "select_sources",
    "render_header",
    "synthesize_memory_routines",
    "assemble_artifact",
    "plan_build",
]
