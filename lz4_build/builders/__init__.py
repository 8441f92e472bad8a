#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Toolchain drivers that turn artifact descriptors into libraries.
"""

from .toolchain import ArtifactOutput, CommandResult, Toolchain, verify_upstream

__all__ = ["ArtifactOutput", "CommandResult", "Toolchain", "verify_upstream"]
