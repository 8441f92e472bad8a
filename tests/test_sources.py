#!/usr/bin/env python3
"""
Tests for translation-unit and flag selection.
"""

import pytest

from lz4_build.core.models import TranslationUnit
from lz4_build.core.sources import FREESTANDING_FLAG, WARNING_FLAGS, select_sources


@pytest.fixture
def full_set():
    return select_sources(False)


@pytest.fixture
def freestanding_set():
    return select_sources(True)


def test_full_set_has_all_five_units_in_order(full_set):
    assert full_set.file_names == ("lz4.c", "lz4hc.c", "xxhash.c", "lz4frame.c", "lz4file.c")
    assert full_set.links_libc is True


def test_freestanding_set_drops_frame_and_file_layers(freestanding_set):
    assert freestanding_set.units == (
        TranslationUnit.BLOCK,
        TranslationUnit.HIGH_COMPRESSION,
        TranslationUnit.XXHASH,
    )
    assert TranslationUnit.FRAME not in freestanding_set
    assert TranslationUnit.FILE not in freestanding_set
    assert freestanding_set.links_libc is False


def test_freestanding_set_is_strict_prefix_of_full_set(full_set, freestanding_set):
    assert freestanding_set.is_prefix_of(full_set)
    assert len(freestanding_set) < len(full_set)
    assert set(freestanding_set.units) < set(full_set.units)
    assert full_set.units[: len(freestanding_set)] == freestanding_set.units


def test_full_set_is_not_prefix_of_freestanding_set(full_set, freestanding_set):
    assert not full_set.is_prefix_of(freestanding_set)


def test_warning_flags(full_set):
    for flag in (
        "-Wcast-qual",
        "-Wcast-align",
        "-Wshadow",
        "-Wswitch-enum",
        "-Wstrict-prototypes",
        "-Wpointer-arith",
        "-Wstrict-aliasing=1",
    ):
        assert flag in full_set.flags
    assert full_set.flags[0] == "-std=c99"


def test_freestanding_flags_extend_libc_flags(full_set, freestanding_set):
    assert full_set.flags == WARNING_FLAGS
    assert FREESTANDING_FLAG not in full_set.flags
    assert freestanding_set.flags == full_set.flags + ("-ffreestanding",)


def test_selection_is_deterministic():
    assert select_sources(True) == select_sources(True)
    assert select_sources(False) == select_sources(False)
