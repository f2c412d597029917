# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Layered configuration for cargo-gpu."""

from __future__ import annotations

from .merger import ConfigMerger, cli_args_to_tree, params_to_tree
from .models import BuildArgs, BuildCommand, ConfigTree, InstallArgs, SpirvMetadata

__all__ = [
    "BuildArgs",
    "BuildCommand",
    "ConfigMerger",
    "ConfigTree",
    "InstallArgs",
    "SpirvMetadata",
    "cli_args_to_tree",
    "params_to_tree",
]
