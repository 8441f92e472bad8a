#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Byte-wise replacements for memcpy, memset and memmove in freestanding builds.

LZ4 routes its memory primitives through the LZ4_memcpy, LZ4_memset and
LZ4_memmove macros. Without libc nothing provides the real routines, so each
macro is defined here as a plain loop over ``char``.

The module also carries a Python model of the same three loops, operating on a
``bytearray`` where offsets play the role of addresses. It follows the emitted
C line for line and is what the test-suite checks the direction rule against.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable

from loguru import logger

from .models import MacroDefinition, MacroSet, MemoryPrimitive

HEADER_NAME = "lz4_freestanding.h"
FREESTANDING_MACRO = ("LZ4_FREESTANDING", "1")


def _statement(lines: Iterable[str]) -> str:
    """Wrap C statements in ``do { ... } while (0)`` on a single line."""
    return "do { " + " ".join(lines) + " } while (0)"


def copy_macro() -> MacroDefinition:
    """Forward copy; ranges must not overlap."""
    return MacroDefinition(
        name="LZ4_memcpy",
        parameters=("__dest", "__src", "__n"),
        body=_statement(
            [
                "for (size_t __i = 0; __i < (__n); __i++)",
                "((char *)(__dest))[__i] = ((const char *)(__src))[__i];",
            ]
        ),
    )


def set_macro() -> MacroDefinition:
    return MacroDefinition(
        name="LZ4_memset",
        parameters=("__s", "__c", "__n"),
        body=_statement(
            [
                "for (size_t __i = 0; __i < (__n); __i++)",
                "((char *)(__s))[__i] = (__c);",
            ]
        ),
    )


def move_macro() -> MacroDefinition:
    """
    Overlap-safe move.

    When the destination starts above the source, a forward loop would read
    bytes it has already overwritten, so the copy runs from the last byte down.
    Every other case, including ``dest == src``, runs forward.
    """
    return MacroDefinition(
        name="LZ4_memmove",
        parameters=("__dest", "__src", "__n"),
        body=_statement(
            [
                "const char *__s = (const void *)(__src);",
                "char *__d = (void *)(__dest);",
                "uintptr_t __si = (uintptr_t)(__src);",
                "uintptr_t __di = (uintptr_t)(__dest);",
                "if (__di > __si) {",
                "size_t __i = (__n);",
                "while (__i != 0) {",
                "__i -= 1;",
                "__d[__i] = __s[__i];",
                "}",
                "} else {",
                "for (size_t __i = 0; __i < (__n); __i++)",
                "__d[__i] = __s[__i];",
                "}",
            ]
        ),
    )


@lru_cache(maxsize=1)
def synthesize_memory_routines() -> MacroSet:
    """Build the MacroSet handed to every translation unit of a freestanding build."""
    macro_set = MacroSet(
        entries=(
            (MemoryPrimitive.COPY, copy_macro()),
            (MemoryPrimitive.SET, set_macro()),
            (MemoryPrimitive.MOVE, move_macro()),
        )
    )
    logger.debug(
        f"Synthesized freestanding memory routines: "
        f"{', '.join(definition.name for _, definition in macro_set.entries)}"
    )
    return macro_set


def render_header(macro_set: MacroSet | None = None) -> str:
    """Render the macros as a self-contained header, suitable for ``-include``."""
    macro_set = macro_set if macro_set is not None else synthesize_memory_routines()
    guard = HEADER_NAME.upper().replace(".", "_")
    lines = [
        f"/* {HEADER_NAME}: generated, do not edit */",
        f"#ifndef {guard}",
        f"#define {guard}",
        "",
        "#include <stddef.h>",
        "#include <stdint.h>",
        "",
        f"#define {FREESTANDING_MACRO[0]} {FREESTANDING_MACRO[1]}",
    ]
    lines.extend(definition.render() for _, definition in macro_set.entries)
    lines.extend(["", f"#endif /* {guard} */", ""])
    return "\n".join(lines)


# Python model of the emitted loops


def _check_range(memory: bytearray, name: str, offset: int, n: int) -> None:
    if n < 0:
        raise ValueError(f"length must not be negative, got {n}")
    if offset < 0 or offset + n > len(memory):
        raise ValueError(
            f"{name} range [{offset}, {offset + n}) is outside a buffer of {len(memory)} bytes"
        )


def copy_bytes(memory: bytearray, dest: int, src: int, n: int) -> None:
    """Model of LZ4_memcpy: ``memory[dest + i] = memory[src + i]`` for ascending i."""
    _check_range(memory, "dest", dest, n)
    _check_range(memory, "src", src, n)
    for i in range(n):
        memory[dest + i] = memory[src + i]


def set_bytes(memory: bytearray, dest: int, value: int, n: int) -> None:
    """Model of LZ4_memset; ``value`` is truncated to a byte as a char store would."""
    _check_range(memory, "dest", dest, n)
    for i in range(n):
        memory[dest + i] = value & 0xFF


def move_bytes(memory: bytearray, dest: int, src: int, n: int) -> None:
    """Model of LZ4_memmove, with offsets standing in for addresses."""
    _check_range(memory, "dest", dest, n)
    _check_range(memory, "src", src, n)
    if dest > src:
        i = n
        while i != 0:
            i -= 1
            memory[dest + i] = memory[src + i]
    else:
        for i in range(n):
            memory[dest + i] = memory[src + i]


def move_direction(dest: int, src: int) -> str:
    """Which way the move loop runs for the given addresses."""
    return "backward" if dest > src else "forward"


__all__ = [
    "HEADER_NAME",
    "FREESTANDING_MACRO",
    "copy_macro",
    "set_macro",
    "move_macro",
    "synthesize_memory_routines",
    "render_header",
    "copy_bytes",
    "set_bytes",
    "move_bytes",
    "move_direction",
]
