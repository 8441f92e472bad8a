#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration resolver: raw, possibly-absent option values in, an immutable
BuildConfiguration out.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Type, TypeVar

from loguru import logger

from .errors import ConfigurationError, InvalidOptionValue, UnknownOptionError
from .models import BuildConfiguration, HeapMode, MemoryAccess, OptimizeMode

E = TypeVar("E", bound=Enum)

_TRUE_WORDS = {"true", "yes", "on", "1"}
_FALSE_WORDS = {"false", "no", "off", "0"}

# Spellings used by the upstream build script's -Dmemory_access option
_MEMORY_ACCESS_ALIASES = {
    "memcpy": MemoryAccess.BYTE_COPY,
    "packedstmt": MemoryAccess.PACKED_STRUCT,
    "direct": MemoryAccess.DIRECT_CAST,
}

_ABSENT_WORDS = {"", "none", "default"}


def _canonical(text: str) -> str:
    return re.sub(r"[-_\s]", "", text).lower()


def parse_bool(name: str, value: Any) -> bool:
    """Parse a boolean option from a bool, 0/1, or a yes/no style word."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise InvalidOptionValue(name, value, allowed=("true", "false"))


def parse_enum(
    name: str,
    value: Any,
    enum_cls: Type[E],
    aliases: Optional[Mapping[str, E]] = None,
) -> E:
    """
    Parse an enumerated option.

    Accepts a member, its value or its name; matching ignores case, dashes and
    underscores, so ``ByteCopy``, ``byte-copy`` and ``BYTE_COPY`` are the same.
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = _canonical(value)
        for member in enum_cls:
            if key in (_canonical(str(member.value)), _canonical(member.name)):
                return member
        if aliases and key in aliases:
            return aliases[key]
    raise InvalidOptionValue(name, value, allowed=[member.value for member in enum_cls])


def parse_memory_access(name: str, value: Any) -> Optional[MemoryAccess]:
    if isinstance(value, str) and _canonical(value) in _ABSENT_WORDS:
        return None
    return parse_enum(name, value, MemoryAccess, _MEMORY_ACCESS_ALIASES)


def parse_target(name: str, value: Any) -> Optional[str]:
    if not isinstance(value, str):
        raise InvalidOptionValue(name, value)
    triple = value.strip()
    if not triple or triple == "native":
        return None
    return triple


# option name -> (BuildConfiguration field, parser)
OPTIONS: Dict[str, tuple[str, Callable[[str, Any], Any]]] = {
    "target": ("target", parse_target),
    "optimize": ("optimize", lambda n, v: parse_enum(n, v, OptimizeMode)),
    "static": ("build_static", parse_bool),
    "shared": ("build_shared", parse_bool),
    "strip": ("strip", parse_bool),
    "ubsan": ("ubsan", parse_bool),
    "tsan": ("tsan", parse_bool),
    "freestanding": ("freestanding", parse_bool),
    "heap_mode": ("heap_mode", lambda n, v: parse_enum(n, v, HeapMode)),
    "memory_access": ("memory_access", parse_memory_access),
}

_FIELD_ALIASES = {"build_static": "static", "build_shared": "shared"}


def normalize_option_name(name: str) -> str:
    """Map ``heap-mode``, ``Heap_Mode`` or ``build_static`` onto the option surface."""
    key = name.strip().lower().replace("-", "_")
    key = _FIELD_ALIASES.get(key, key)
    if key not in OPTIONS:
        raise UnknownOptionError(name)
    return key


def resolve_configuration(
    raw: Optional[Mapping[str, Any]] = None, **overrides: Any
) -> BuildConfiguration:
    """
    Resolve raw option values into a BuildConfiguration.

    Absent options (missing or ``None``) take their defaults. Keyword overrides
    win over ``raw``.

    Raises:
        InvalidOptionValue: An option value is outside its declared set.
        UnknownOptionError: An option name is not part of the surface.
    """
    merged: Dict[str, Any] = {}
    for source in (raw or {}, overrides):
        for name, value in source.items():
            merged[normalize_option_name(name)] = value

    fields: Dict[str, Any] = {}
    for name, value in merged.items():
        if value is None:
            continue
        field_name, parser = OPTIONS[name]
        fields[field_name] = parser(name, value)

    configuration = BuildConfiguration(**fields)
    logger.debug(f"Resolved build configuration: {configuration.model_dump(mode='json')}")
    return configuration


def parse_assignments(assignments: Iterable[str]) -> Dict[str, Any]:
    """
    Parse ``name=value`` items as given to ``-D`` on the command line.

    A bare ``name`` means ``name=true``, matching how boolean build options are
    usually switched on.
    """
    options: Dict[str, Any] = {}
    for item in assignments:
        name, sep, value = item.partition("=")
        if not name.strip():
            raise ConfigurationError(
                f"Invalid option assignment: {item!r} (expected name=value)",
                invalid_option=item,
            )
        options[normalize_option_name(name)] = value if sep else "true"
    return options
