# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared option declarations for the cargo-gpu commands.

Each option's Python name matches a field of
:class:`~cargo_gpu.config.models.InstallArgs` or
:class:`~cargo_gpu.config.models.BuildArgs`, which is how parsed parameters
become configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from ..config.models import SpirvMetadata

EMOJI_OPTION = Annotated[
    bool,
    typer.Option("--emoji/--no-emoji", help="Toggle emoji in CLI output."),
]
VERBOSE_OPTION = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Stream diagnostic logging to stderr."),
]

# install
DYLIB_PATH_OPTION = Annotated[
    str,
    typer.Option("--dylib-path", hidden=True, help="Location of the backend plugin, set internally."),
]
SHADER_CRATE_OPTION = Annotated[
    str,
    typer.Option("--shader-crate", help="Directory containing the shader crate to compile."),
]
SPIRV_BUILDER_SOURCE_OPTION = Annotated[
    str | None,
    typer.Option("--spirv-builder-source", help="Git repository of `spirv-builder`; defaults to the shader's."),
]
SPIRV_BUILDER_VERSION_OPTION = Annotated[
    str | None,
    typer.Option(
        "--spirv-builder-version",
        help="Version of `spirv-builder`: a crates.io version, or a git commit-ish with --spirv-builder-source.",
    ),
]
RUST_TOOLCHAIN_OPTION = Annotated[
    str | None,
    typer.Option("--rust-toolchain", help="Rust toolchain channel; defaults to the one rust-gpu declares."),
]
FORCE_REBUILD_OPTION = Annotated[
    bool,
    typer.Option("--force-spirv-cli-rebuild", help="Rebuild `spirv-builder-cli` even when it is cached."),
]
AUTO_INSTALL_OPTION = Annotated[
    bool,
    typer.Option(
        "--auto-install-rust-toolchain",
        help="Install missing toolchains and components without asking.",
    ),
]
FORCE_LOCKFILE_OPTION = Annotated[
    bool,
    typer.Option(
        "--force-overwrite-lockfiles-v4-to-v3",
        help="Temporarily rewrite v4 Cargo.lock files to v3 for toolchains older than cargo 1.83.",
    ),
]
REFRESH_SOURCE_OPTION = Annotated[
    bool,
    typer.Option("--refresh-spirv-source", help="Fetch new commits into the cached rust-gpu checkout."),
]

# build
OUTPUT_DIR_OPTION = Annotated[
    str,
    typer.Option("--output-dir", "-o", help="Directory receiving the compiled shaders and the manifest."),
]
WATCH_OPTION = Annotated[
    bool,
    typer.Option("--watch", "-w", help="Recompile whenever the shader crate changes."),
]
NO_DEFAULT_FEATURES_OPTION = Annotated[
    bool,
    typer.Option("--no-default-features", help="Disable the shader crate's default features."),
]
FEATURES_OPTION = Annotated[
    list[str] | None,
    typer.Option("--features", help="Shader crate feature to enable (repeatable)."),
]
SHADER_TARGET_OPTION = Annotated[
    str,
    typer.Option("--shader-target", help="SPIR-V target environment."),
]
DENY_WARNINGS_OPTION = Annotated[
    bool,
    typer.Option("--deny-warnings", help="Treat compiler warnings as errors."),
]
DEBUG_OPTION = Annotated[
    bool,
    typer.Option("--debug", help="Compile in debug mode instead of release."),
]
CAPABILITY_OPTION = Annotated[
    list[str] | None,
    typer.Option("--capability", help="SPIR-V capability to enable (repeatable)."),
]
EXTENSION_OPTION = Annotated[
    list[str] | None,
    typer.Option("--extension", help="SPIR-V extension to enable (repeatable)."),
]
MULTIMODULE_OPTION = Annotated[
    bool,
    typer.Option("--multimodule", help="Emit one SPIR-V module per entry point."),
]
SPIRV_METADATA_OPTION = Annotated[
    SpirvMetadata,
    typer.Option("--spirv-metadata", case_sensitive=False, help="Debug metadata to include in the SPIR-V."),
]
RELAX_STRUCT_STORE_OPTION = Annotated[
    bool,
    typer.Option("--relax-struct-store", help="Allow store from one struct type to a different type."),
]
RELAX_LOGICAL_POINTER_OPTION = Annotated[
    bool,
    typer.Option("--relax-logical-pointer", help="Allow allocating an object of a pointer type."),
]
RELAX_BLOCK_LAYOUT_OPTION = Annotated[
    bool,
    typer.Option("--relax-block-layout", help="Enable VK_KHR_relaxed_block_layout when checking layouts."),
]
UNIFORM_BUFFER_STANDARD_LAYOUT_OPTION = Annotated[
    bool,
    typer.Option(
        "--uniform-buffer-standard-layout",
        help="Enable VK_KHR_uniform_buffer_standard_layout when checking layouts.",
    ),
]
SCALAR_BLOCK_LAYOUT_OPTION = Annotated[
    bool,
    typer.Option("--scalar-block-layout", help="Enable VK_EXT_scalar_block_layout when checking layouts."),
]
SKIP_BLOCK_LAYOUT_OPTION = Annotated[
    bool,
    typer.Option("--skip-block-layout", help="Skip checking standard uniform/storage buffer layout rules."),
]
PRESERVE_BINDINGS_OPTION = Annotated[
    bool,
    typer.Option("--preserve-bindings", help="Preserve unused descriptor bindings."),
]
MANIFEST_FILE_OPTION = Annotated[
    str,
    typer.Option("--manifest-file", "-m", help="File name of the shader manifest in the output directory."),
]

TOML_PATH_ARGUMENT = Annotated[
    Path,
    typer.Argument(help="Cargo.toml with a [workspace|package.metadata.rust-gpu.build] table, or its directory."),
]
