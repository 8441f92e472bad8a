#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Utility modules for the LZ4 build orchestrator.
"""

from __future__ import annotations

from .config import OptionsFile

__all__ = [
    "OptionsFile",
]
