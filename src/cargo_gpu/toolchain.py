# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Make sure the rustup toolchain and components the backend needs are installed."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Final

import typer

from .errors import ToolchainInstallError, UserDeclined
from .process import CommandOptions, SubprocessExecutionError, run_command

LOGGER = logging.getLogger(__name__)

REQUIRED_COMPONENTS: Final[tuple[str, ...]] = ("rust-src", "rustc-dev", "llvm-tools")
INSTALLED_MARKER: Final[str] = "(installed)"

ConsentPrompt = Callable[[str], bool]


def prompt_for_consent(message: str) -> bool:
    """Ask the user on the terminal, defaulting to "no"."""

    return typer.confirm(message, default=False)


def toolchain_installed(listing: str, channel: str) -> bool:
    """Return ``True`` when ``rustup toolchain list`` output contains ``channel``."""

    return any(entry.startswith(channel) for entry in listing.split())


def components_installed(listing: str, components: Sequence[str] = REQUIRED_COMPONENTS) -> bool:
    """Return ``True`` when every component is marked installed in ``rustup component list`` output."""

    lines = listing.splitlines()
    return all(
        any(line.startswith(component) and line.rstrip().endswith(INSTALLED_MARKER) for line in lines)
        for component in components
    )


class ToolchainInstaller:
    """Install a rustup channel and the backend's components on demand.

    Args:
        auto_install: Install without asking.
        prompt: Consent callable receiving the question; defaults to a
            terminal confirmation.
    """

    def __init__(self, *, auto_install: bool, prompt: ConsentPrompt | None = None) -> None:
        self._auto_install = auto_install
        self._prompt = prompt or prompt_for_consent

    def _consent(self, message: str) -> None:
        if self._auto_install:
            return
        if not self._prompt(message):
            raise UserDeclined("toolchain installation declined, exiting")

    @staticmethod
    def _capture(args: list[str], message: str) -> str:
        try:
            return run_command(args, options=CommandOptions(capture_output=True)).stdout
        except (OSError, SubprocessExecutionError) as exc:
            raise ToolchainInstallError(f"{message}: {exc}") from exc

    @staticmethod
    def _install(args: list[str], message: str) -> None:
        try:
            run_command(args)
        except (OSError, SubprocessExecutionError) as exc:
            raise ToolchainInstallError(f"{message}: {exc}") from exc

    def ensure(self, channel: str) -> None:
        """Install ``channel`` and :data:`REQUIRED_COMPONENTS` when missing.

        Args:
            channel: rustup channel such as ``nightly-2024-04-24``.

        Raises:
            UserDeclined: If the user refuses an installation.
            ToolchainInstallError: If rustup fails.
        """

        toolchains = self._capture(["rustup", "toolchain", "list"], "could not list installed toolchains")
        if toolchain_installed(toolchains, channel):
            LOGGER.debug("toolchain %s is already installed", channel)
        else:
            self._consent(f"Install Rust {channel} with `rustup`?")
            self._install(["rustup", "toolchain", "add", channel], "could not install required toolchain")

        listing = self._capture(
            ["rustup", "component", "list", "--toolchain", channel],
            "could not list installed components",
        )
        if components_installed(listing):
            LOGGER.debug("all required components are installed")
            return
        self._consent(f"Install toolchain components ({', '.join(REQUIRED_COMPONENTS)}) with `rustup`?")
        self._install(
            ["rustup", "component", "add", "--toolchain", channel, *REQUIRED_COMPONENTS],
            "could not install required components",
        )


__all__ = ["ToolchainInstaller", "components_installed", "prompt_for_consent", "toolchain_installed"]
