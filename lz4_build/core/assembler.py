#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Artifact assembler: derives one ArtifactDescriptor per requested library kind
from a resolved BuildConfiguration. Pure functions, no I/O.
"""

from __future__ import annotations

from typing import FrozenSet, List, Tuple

from loguru import logger

from .errors import InconsistentArtifactRequest, Lz4BuildError
from .memory_routines import FREESTANDING_MACRO, synthesize_memory_routines
from .models import (
    ArtifactDescriptor,
    ArtifactKind,
    BuildConfiguration,
    BuildPlan,
    Define,
    HeaderId,
    MacroSet,
    Sanitizers,
)
from .sources import select_sources

LIBRARY_NAME = "lz4"

# xxHash symbols are renamed LZ4_XXH32 etc. so a static liblz4 can be linked
# next to another copy of xxHash.
XXH_NAMESPACE = ("XXH_NAMESPACE", "LZ4_")

CORE_HEADERS: FrozenSet[HeaderId] = frozenset({HeaderId.LZ4, HeaderId.LZ4HC})
LIBC_HEADERS: FrozenSet[HeaderId] = frozenset({HeaderId.LZ4FRAME, HeaderId.LZ4FILE})
# Exposes frame internals whose layout may change between releases
STATIC_ONLY_HEADERS: FrozenSet[HeaderId] = frozenset({HeaderId.LZ4FRAME_STATIC})


def exported_headers(configuration: BuildConfiguration, kind: ArtifactKind) -> FrozenSet[HeaderId]:
    """Public headers installed alongside a library of the given kind."""
    headers = set(CORE_HEADERS)
    if not configuration.freestanding:
        headers |= LIBC_HEADERS
        if kind is ArtifactKind.STATIC:
            headers |= STATIC_ONLY_HEADERS
    return frozenset(headers)


def library_defines(configuration: BuildConfiguration) -> Tuple[Define, ...]:
    """Preprocessor definitions applied to every translation unit."""
    defines: List[Define] = []
    if configuration.freestanding:
        defines.append(FREESTANDING_MACRO)
    if configuration.memory_access is not None:
        defines.append(("LZ4_FORCE_MEMORY_ACCESS", configuration.memory_access.macro_value))
    defines.append(("LZ4_HEAPMODE", configuration.heap_mode.macro_value))
    defines.append(XXH_NAMESPACE)
    return tuple(defines)


def assemble_artifact(configuration: BuildConfiguration, kind: ArtifactKind) -> ArtifactDescriptor:
    """Derive the descriptor for one library kind."""
    sources = select_sources(configuration.freestanding)
    macros = synthesize_memory_routines() if configuration.freestanding else MacroSet()

    descriptor = ArtifactDescriptor(
        kind=kind,
        sources=sources,
        macros=macros,
        defines=library_defines(configuration),
        exported_headers=exported_headers(configuration, kind),
        sanitizers=Sanitizers(ubsan=configuration.ubsan, tsan=configuration.tsan),
        strip=configuration.strip,
        optimize=configuration.optimize,
        target=configuration.target,
        name=LIBRARY_NAME,
    )

    logger.debug(
        f"Assembled {kind.value} artifact {descriptor.file_name}: "
        f"{len(sources)} units, {len(descriptor.exported_headers)} headers, "
        f"libc={'yes' if descriptor.links_libc else 'no'}"
    )
    return descriptor


def plan_build(configuration: BuildConfiguration) -> BuildPlan:
    """
    Derive every requested artifact.

    When neither kind is requested the plan is empty and carries an
    InconsistentArtifactRequest instead of raising.
    """
    issues: List[Lz4BuildError] = []
    kinds = configuration.artifact_kinds
    if not kinds:
        issues.append(InconsistentArtifactRequest())

    artifacts = tuple(assemble_artifact(configuration, kind) for kind in kinds)
    if artifacts:
        logger.info(
            f"Planned {len(artifacts)} artifact(s): "
            f"{', '.join(artifact.file_name for artifact in artifacts)}"
        )
    return BuildPlan(configuration=configuration, artifacts=artifacts, issues=tuple(issues))
