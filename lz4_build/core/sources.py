#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Translation-unit and base compiler flag selection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Tuple

from loguru import logger

from .models import SourceSet, TranslationUnit

# Units that only need a C compiler come first; anything needing host I/O or
# malloc goes at the end. New high-level units are appended, never inserted.
LIBC_UNITS: Tuple[TranslationUnit, ...] = (
    TranslationUnit.BLOCK,
    TranslationUnit.HIGH_COMPRESSION,
    TranslationUnit.XXHASH,
    TranslationUnit.FRAME,
    TranslationUnit.FILE,
)

FREESTANDING_UNIT_COUNT = 3

WARNING_FLAGS: Tuple[str, ...] = (
    "-std=c99",
    "-Wall",
    "-Wextra",
    "-Wcast-qual",
    "-Wcast-align",
    "-Wshadow",
    "-Wswitch-enum",
    "-Wdeclaration-after-statement",
    "-Wstrict-prototypes",
    "-Wundef",
    "-Wpointer-arith",
    "-Wstrict-aliasing=1",
)

FREESTANDING_FLAG = "-ffreestanding"


@lru_cache(maxsize=2)
def select_sources(freestanding: bool) -> SourceSet:
    """
    Return the translation units and base flags for a build.

    Without libc, the frame format layer and the FILE* wrapper are dropped:
    both depend on buffered host I/O and heap allocation.
    """
    if freestanding:
        source_set = SourceSet(
            units=LIBC_UNITS[:FREESTANDING_UNIT_COUNT],
            flags=WARNING_FLAGS + (FREESTANDING_FLAG,),
            links_libc=False,
        )
    else:
        source_set = SourceSet(units=LIBC_UNITS, flags=WARNING_FLAGS, links_libc=True)

    logger.debug(
        f"Selected {len(source_set)} translation units "
        f"({'freestanding' if freestanding else 'libc'}): "
        f"{', '.join(source_set.file_names)}"
    )
    return source_set
