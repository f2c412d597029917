# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Typer application wiring the cargo-gpu commands."""

from __future__ import annotations

import sys
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path

import click
import typer

from ..config import ConfigMerger, ConfigTree, cli_args_to_tree, params_to_tree
from ..config.models import DEFAULT_MANIFEST_FILE, DEFAULT_SHADER_TARGET, DYLIB_PLACEHOLDER, SpirvMetadata
from ..config.sources import load_manifest_table, table_to_arguments
from ..errors import CargoGpuError, UserDeclined
from ..logging import configure_diagnostics, fail, info, ok, warn
from ..orchestrator import BuildOrchestrator
from ._options import (
    AUTO_INSTALL_OPTION,
    CAPABILITY_OPTION,
    DEBUG_OPTION,
    DENY_WARNINGS_OPTION,
    DYLIB_PATH_OPTION,
    EMOJI_OPTION,
    EXTENSION_OPTION,
    FEATURES_OPTION,
    FORCE_LOCKFILE_OPTION,
    FORCE_REBUILD_OPTION,
    MANIFEST_FILE_OPTION,
    MULTIMODULE_OPTION,
    NO_DEFAULT_FEATURES_OPTION,
    OUTPUT_DIR_OPTION,
    PRESERVE_BINDINGS_OPTION,
    REFRESH_SOURCE_OPTION,
    RELAX_BLOCK_LAYOUT_OPTION,
    RELAX_LOGICAL_POINTER_OPTION,
    RELAX_STRUCT_STORE_OPTION,
    RUST_TOOLCHAIN_OPTION,
    SCALAR_BLOCK_LAYOUT_OPTION,
    SHADER_CRATE_OPTION,
    SHADER_TARGET_OPTION,
    SKIP_BLOCK_LAYOUT_OPTION,
    SPIRV_BUILDER_SOURCE_OPTION,
    SPIRV_BUILDER_VERSION_OPTION,
    SPIRV_METADATA_OPTION,
    TOML_PATH_ARGUMENT,
    UNIFORM_BUFFER_STANDARD_LAYOUT_OPTION,
    VERBOSE_OPTION,
    WATCH_OPTION,
)
from .show import show_app

CARGO_SUBCOMMAND = "gpu"

app = typer.Typer(
    name="cargo-gpu",
    help="Compile rust-gpu shader crates to SPIR-V.",
    no_args_is_help=True,
    add_completion=False,
)
app.add_typer(show_app, name="show")


@app.callback()
def main_callback(verbose: VERBOSE_OPTION = False) -> None:
    """Compile rust-gpu shader crates to SPIR-V."""

    configure_diagnostics(verbose=verbose)


@contextmanager
def report_errors(*, use_emoji: bool) -> Iterator[None]:
    """Translate pipeline errors into exit codes.

    Declining the consent prompt exits with status 0; every other
    :class:`CargoGpuError` is reported with its stage and exits with status 1.
    """

    try:
        yield
    except UserDeclined as exc:
        warn(f"{exc}", use_emoji=use_emoji)
        raise typer.Exit(code=0) from exc
    except CargoGpuError as exc:
        fail(exc.describe(), use_emoji=use_emoji)
        raise typer.Exit(code=1) from exc


def _shader_crate_path(tree: Mapping[str, object], working_directory: Path) -> Path:
    install = tree.get("install")
    raw = install.get("shader_crate", "./") if isinstance(install, Mapping) else "./"
    path = Path(str(raw)).expanduser()
    return path if path.is_absolute() else working_directory / path


def run_pipeline(
    cli_tree: ConfigTree,
    *,
    use_emoji: bool,
    install_only: bool = False,
    working_directory: Path | None = None,
) -> None:
    """Merge configuration layers and run the orchestrator.

    Args:
        cli_tree: Configuration parsed from the command line.
        use_emoji: Whether user-facing messages carry emoji.
        install_only: Stop once the backend is built.
        working_directory: Base for relative paths; the current directory by default.
    """

    base = working_directory or Path.cwd()
    with report_errors(use_emoji=use_emoji):
        merger = ConfigMerger()
        tree = merger.resolve(_shader_crate_path(cli_tree, base), cli_tree)
        command = merger.to_command(tree)
        orchestrator = BuildOrchestrator(
            command,
            working_directory=base,
            use_emoji=use_emoji,
        )
        if install_only:
            artifacts = orchestrator.install()
            ok(f"spirv-builder-cli is installed at {artifacts.driver}", use_emoji=use_emoji)
        else:
            orchestrator.run()


def _current_params() -> dict[str, object]:
    return dict(click.get_current_context().params)


@app.command("build")
def build_command(
    dylib_path: DYLIB_PATH_OPTION = DYLIB_PLACEHOLDER,
    shader_crate: SHADER_CRATE_OPTION = "./",
    spirv_builder_source: SPIRV_BUILDER_SOURCE_OPTION = None,
    spirv_builder_version: SPIRV_BUILDER_VERSION_OPTION = None,
    rust_toolchain: RUST_TOOLCHAIN_OPTION = None,
    force_spirv_cli_rebuild: FORCE_REBUILD_OPTION = False,
    auto_install_rust_toolchain: AUTO_INSTALL_OPTION = False,
    force_overwrite_lockfiles_v4_to_v3: FORCE_LOCKFILE_OPTION = False,
    refresh_spirv_source: REFRESH_SOURCE_OPTION = False,
    output_dir: OUTPUT_DIR_OPTION = "./",
    watch: WATCH_OPTION = False,
    no_default_features: NO_DEFAULT_FEATURES_OPTION = False,
    features: FEATURES_OPTION = None,
    shader_target: SHADER_TARGET_OPTION = DEFAULT_SHADER_TARGET,
    deny_warnings: DENY_WARNINGS_OPTION = False,
    debug: DEBUG_OPTION = False,
    capability: CAPABILITY_OPTION = None,
    extension: EXTENSION_OPTION = None,
    multimodule: MULTIMODULE_OPTION = False,
    spirv_metadata: SPIRV_METADATA_OPTION = SpirvMetadata.NONE,
    relax_struct_store: RELAX_STRUCT_STORE_OPTION = False,
    relax_logical_pointer: RELAX_LOGICAL_POINTER_OPTION = False,
    relax_block_layout: RELAX_BLOCK_LAYOUT_OPTION = False,
    uniform_buffer_standard_layout: UNIFORM_BUFFER_STANDARD_LAYOUT_OPTION = False,
    scalar_block_layout: SCALAR_BLOCK_LAYOUT_OPTION = False,
    skip_block_layout: SKIP_BLOCK_LAYOUT_OPTION = False,
    preserve_bindings: PRESERVE_BINDINGS_OPTION = False,
    manifest_file: MANIFEST_FILE_OPTION = DEFAULT_MANIFEST_FILE,
    emoji: EMOJI_OPTION = True,
) -> None:
    """Compile a shader crate to SPIR-V and write its manifest."""

    with report_errors(use_emoji=emoji):
        cli_tree = params_to_tree(_current_params())
    run_pipeline(cli_tree, use_emoji=emoji)


@app.command("install")
def install_command(
    dylib_path: DYLIB_PATH_OPTION = DYLIB_PLACEHOLDER,
    shader_crate: SHADER_CRATE_OPTION = "./",
    spirv_builder_source: SPIRV_BUILDER_SOURCE_OPTION = None,
    spirv_builder_version: SPIRV_BUILDER_VERSION_OPTION = None,
    rust_toolchain: RUST_TOOLCHAIN_OPTION = None,
    force_spirv_cli_rebuild: FORCE_REBUILD_OPTION = False,
    auto_install_rust_toolchain: AUTO_INSTALL_OPTION = False,
    force_overwrite_lockfiles_v4_to_v3: FORCE_LOCKFILE_OPTION = False,
    refresh_spirv_source: REFRESH_SOURCE_OPTION = False,
    emoji: EMOJI_OPTION = True,
) -> None:
    """Build the shader crate's `spirv-builder-cli` without compiling shaders."""

    with report_errors(use_emoji=emoji):
        cli_tree = params_to_tree(_current_params())
    run_pipeline(cli_tree, use_emoji=emoji, install_only=True)


@app.command("toml")
def toml_command(
    path: TOML_PATH_ARGUMENT = Path("./Cargo.toml"),
    emoji: EMOJI_OPTION = True,
) -> None:
    """Build with the `rust-gpu` metadata table of a Cargo.toml."""

    with report_errors(use_emoji=emoji):
        table = load_manifest_table(path)
        info(
            f"Building with [{table.kind}.metadata.rust-gpu.build] of '{table.path}'",
            use_emoji=emoji,
        )
        cli_tree = cli_args_to_tree(table_to_arguments(table))
    run_pipeline(cli_tree, use_emoji=emoji, working_directory=table.working_directory.resolve())


def main(argv: Sequence[str] | None = None) -> None:
    """Console entry point; accepts the extra ``gpu`` word cargo passes to subcommands."""

    args = list(sys.argv[1:] if argv is None else argv)
    if args[:1] == [CARGO_SUBCOMMAND]:
        args = args[1:]
    app(args=args, prog_name="cargo-gpu")


__all__ = ["app", "build_command", "install_command", "main", "report_errors", "run_pipeline", "toml_command"]
