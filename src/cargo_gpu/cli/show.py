# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""`cargo-gpu show` commands.

Output is printed without decoration so that scripts can consume it.
"""

from __future__ import annotations

from pathlib import Path

import typer

from .. import __version__
from ..errors import CargoGpuError
from ..logging import fail
from ..paths import CacheLayout
from ..resolver import DependencyResolver
from ..source import render
from ._options import EMOJI_OPTION, SHADER_CRATE_OPTION

show_app = typer.Typer(name="show", help="Show information about cargo-gpu.", no_args_is_help=True)


@show_app.command("cache-directory")
def show_cache_directory() -> None:
    """Print the cache directory."""

    typer.echo(str(CacheLayout.discover().root))


@show_app.command("spirv-source")
def show_spirv_source(
    shader_crate: SHADER_CRATE_OPTION = "./",
    emoji: EMOJI_OPTION = True,
) -> None:
    """Print the rust-gpu source the shader crate depends on."""

    resolver = DependencyResolver(CacheLayout.discover())
    try:
        source = resolver.discover_source(Path(shader_crate))
    except CargoGpuError as exc:
        fail(exc.describe(), use_emoji=emoji)
        raise typer.Exit(code=1) from exc
    typer.echo(render(source))


@show_app.command("version")
def show_version() -> None:
    """Print the cargo-gpu version."""

    typer.echo(__version__)


__all__ = ["show_app"]
