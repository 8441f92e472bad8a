#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Data models for the LZ4 build orchestrator.

The option model is a frozen Pydantic v2 model; everything derived from it
(source sets, macro sets, artifact descriptors) is a frozen dataclass, so a
single configuration can be shared between independent artifact builds.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .errors import Lz4BuildError

Define = Tuple[str, str]


class HeapMode(StrEnum):
    """Where the library places its internal scratch buffers."""

    STACK = "stack"
    HEAP = "heap"

    @property
    def macro_value(self) -> str:
        """Value passed to LZ4_HEAPMODE."""
        return "1" if self is HeapMode.HEAP else "0"


class MemoryAccess(StrEnum):
    """How the library reads and writes values that may be misaligned."""

    BYTE_COPY = "byte_copy"  # memcpy based, always safe
    PACKED_STRUCT = "packed_struct"  # __packed__ unions
    DIRECT_CAST = "direct_cast"  # plain pointer casts

    @property
    def macro_value(self) -> str:
        """Value passed to LZ4_FORCE_MEMORY_ACCESS."""
        return {
            MemoryAccess.BYTE_COPY: "0",
            MemoryAccess.PACKED_STRUCT: "1",
            MemoryAccess.DIRECT_CAST: "2",
        }[self]


class OptimizeMode(StrEnum):
    """Optimization level, passed through to the toolchain."""

    DEBUG = "Debug"
    RELEASE_SAFE = "ReleaseSafe"
    RELEASE_FAST = "ReleaseFast"
    RELEASE_SMALL = "ReleaseSmall"

    @property
    def flags(self) -> Tuple[str, ...]:
        return {
            OptimizeMode.DEBUG: ("-O0",),
            OptimizeMode.RELEASE_SAFE: ("-O2",),
            OptimizeMode.RELEASE_FAST: ("-O3",),
            OptimizeMode.RELEASE_SMALL: ("-Os",),
        }[self]


class ArtifactKind(StrEnum):
    """Linkage of a produced library."""

    STATIC = "static"
    DYNAMIC = "dynamic"

    def file_name(self, name: str, target: Optional[str] = None) -> str:
        """
        Library file name for the given base name and target triple.

        ELF targets (and the host) get liblz4.a / liblz4.so, Darwin targets
        liblz4.dylib and Windows targets lz4.lib / lz4.dll.
        """
        os_tag = (target or "").lower()
        if "windows" in os_tag:
            return f"{name}.lib" if self is ArtifactKind.STATIC else f"{name}.dll"
        if self is ArtifactKind.STATIC:
            return f"lib{name}.a"
        if any(tag in os_tag for tag in ("macos", "darwin", "ios")):
            return f"lib{name}.dylib"
        return f"lib{name}.so"


class TranslationUnit(StrEnum):
    """The C files of the upstream lib/ directory."""

    BLOCK = "lz4.c"
    HIGH_COMPRESSION = "lz4hc.c"
    XXHASH = "xxhash.c"
    FRAME = "lz4frame.c"
    FILE = "lz4file.c"


class HeaderId(StrEnum):
    """Public headers of the upstream lib/ directory."""

    LZ4 = "lz4.h"
    LZ4HC = "lz4hc.h"
    LZ4FRAME = "lz4frame.h"
    LZ4FILE = "lz4file.h"
    LZ4FRAME_STATIC = "lz4frame_static.h"


class MemoryPrimitive(StrEnum):
    """libc memory routines replaced in freestanding builds."""

    COPY = "copy"
    SET = "set"
    MOVE = "move"


class BuildConfiguration(BaseModel):
    """
    Fully resolved build options.

    Constructed once per invocation by the configuration resolver and never
    mutated afterwards. ``memory_access`` only selects a code path inside the
    library; ``None`` leaves the choice to the library.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    target: Optional[str] = Field(
        default=None, description="Target triple, None for the host"
    )
    optimize: OptimizeMode = Field(
        default=OptimizeMode.DEBUG, description="Optimization mode"
    )
    build_static: bool = Field(default=True, description="Build the static library")
    build_shared: bool = Field(default=True, description="Build the shared library")
    strip: bool = Field(default=False, description="Strip debug symbols")
    ubsan: bool = Field(default=False, description="Instrument with UBSanitizer")
    tsan: bool = Field(default=False, description="Instrument with ThreadSanitizer")
    freestanding: bool = Field(default=False, description="Build without libc")
    heap_mode: HeapMode = Field(
        default=HeapMode.STACK, description="Where to allocate internal buffers"
    )
    memory_access: Optional[MemoryAccess] = Field(
        default=None, description="How to access unaligned memory"
    )

    @property
    def artifact_kinds(self) -> Tuple[ArtifactKind, ...]:
        """Requested artifact kinds, shared library first."""
        kinds: List[ArtifactKind] = []
        if self.build_shared:
            kinds.append(ArtifactKind.DYNAMIC)
        if self.build_static:
            kinds.append(ArtifactKind.STATIC)
        return tuple(kinds)


@dataclass(frozen=True, slots=True)
class SourceSet:
    """Ordered translation units and the base compiler flags that go with them."""

    units: Tuple[TranslationUnit, ...]
    flags: Tuple[str, ...]
    links_libc: bool

    def __iter__(self) -> Iterator[TranslationUnit]:
        return iter(self.units)

    def __len__(self) -> int:
        return len(self.units)

    def is_prefix_of(self, other: SourceSet) -> bool:
        """True when these units are exactly the leading units of ``other``."""
        return other.units[: len(self.units)] == self.units

    @property
    def file_names(self) -> Tuple[str, ...]:
        return tuple(unit.value for unit in self.units)


@dataclass(frozen=True, slots=True)
class MacroDefinition:
    """A function-like C macro."""

    name: str
    parameters: Tuple[str, ...]
    body: str

    @property
    def signature(self) -> str:
        return f"{self.name}({', '.join(self.parameters)})"

    def as_define(self) -> str:
        """Compiler argument form, e.g. ``-DLZ4_memcpy(a, b, n)=...``."""
        return f"-D{self.signature}={self.body}"

    def render(self) -> str:
        """Preprocessor directive form."""
        return f"#define {self.signature} {self.body}"


@dataclass(frozen=True)
class MacroSet(Mapping):
    """Replacement definitions keyed by the primitive they stand in for."""

    entries: Tuple[Tuple[MemoryPrimitive, MacroDefinition], ...] = ()

    def __getitem__(self, key: MemoryPrimitive) -> MacroDefinition:
        for primitive, definition in self.entries:
            if primitive == key:
                return definition
        raise KeyError(key)

    def __iter__(self) -> Iterator[MemoryPrimitive]:
        return (primitive for primitive, _ in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def as_defines(self) -> Tuple[str, ...]:
        return tuple(definition.as_define() for _, definition in self.entries)


@dataclass(frozen=True, slots=True)
class Sanitizers:
    """Sanitizer instrumentation, applied to a whole artifact at once."""

    ubsan: bool = False
    tsan: bool = False

    @property
    def flags(self) -> Tuple[str, ...]:
        flags: List[str] = []
        if self.ubsan:
            flags.append("-fsanitize=undefined")
        if self.tsan:
            flags.append("-fsanitize=thread")
        return tuple(flags)

    @property
    def enabled(self) -> bool:
        return self.ubsan or self.tsan


@dataclass(frozen=True, slots=True)
class CompileUnit:
    """One compiler invocation: a translation unit and its argument vector."""

    source: TranslationUnit
    arguments: Tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ArtifactDescriptor:
    """
    Everything the toolchain needs to produce one library.

    Created by the artifact assembler, never mutated, consumed once by the
    compile/link step.
    """

    kind: ArtifactKind
    sources: SourceSet
    macros: MacroSet
    defines: Tuple[Define, ...]
    exported_headers: frozenset[HeaderId]
    sanitizers: Sanitizers
    strip: bool = False
    optimize: OptimizeMode = OptimizeMode.DEBUG
    target: Optional[str] = None
    name: str = "lz4"

    @property
    def file_name(self) -> str:
        return self.kind.file_name(self.name, self.target)

    @property
    def links_libc(self) -> bool:
        return self.sources.links_libc

    def compile_flags(self) -> Tuple[str, ...]:
        """Flags shared by every translation unit of this artifact."""
        flags: List[str] = list(self.optimize.flags)
        if not self.strip:
            flags.append("-g")
        flags.extend(self.sources.flags)
        flags.extend(self.sanitizers.flags)
        if self.target:
            flags.append(f"--target={self.target}")
        if self.kind is ArtifactKind.DYNAMIC:
            flags.append("-fPIC")
        flags.extend(f"-D{name}={value}" for name, value in self.defines)
        flags.extend(self.macros.as_defines())
        return tuple(flags)

    def link_flags(self) -> Tuple[str, ...]:
        """Flags for the shared-library link; static archives take none."""
        if self.kind is ArtifactKind.STATIC:
            return ()
        flags: List[str] = ["-shared"]
        flags.extend(self.sanitizers.flags)
        if self.target:
            flags.append(f"--target={self.target}")
        if self.strip:
            flags.append("-s")
        if not self.links_libc:
            flags.append("-nostdlib")
        return tuple(flags)

    def compile_units(self) -> Tuple[CompileUnit, ...]:
        flags = self.compile_flags()
        return tuple(CompileUnit(source=unit, arguments=flags) for unit in self.sources)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready manifest of this artifact."""
        return {
            "kind": self.kind.value,
            "file_name": self.file_name,
            "sources": list(self.sources.file_names),
            "flags": list(self.sources.flags),
            "links_libc": self.links_libc,
            "defines": {name: value for name, value in self.defines},
            "macros": {
                primitive.value: definition.signature
                for primitive, definition in self.macros.entries
            },
            "exported_headers": sorted(header.value for header in self.exported_headers),
            "sanitizers": {"ubsan": self.sanitizers.ubsan, "tsan": self.sanitizers.tsan},
            "strip": self.strip,
            "optimize": self.optimize.value,
            "target": self.target,
        }


@dataclass(frozen=True)
class BuildPlan:
    """The resolved configuration and the artifacts derived from it."""

    configuration: BuildConfiguration
    artifacts: Tuple[ArtifactDescriptor, ...] = ()
    issues: Tuple[Lz4BuildError, ...] = field(default=())

    @property
    def empty(self) -> bool:
        return not self.artifacts

    def get(self, kind: ArtifactKind) -> Optional[ArtifactDescriptor]:
        for artifact in self.artifacts:
            if artifact.kind is kind:
                return artifact
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "configuration": self.configuration.model_dump(mode="json"),
            "artifacts": [artifact.to_dict() for artifact in self.artifacts],
            "issues": [
                {"type": type(issue).__name__, "message": str(issue)}
                for issue in self.issues
            ],
        }
