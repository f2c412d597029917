# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Shell-free wrapper around ``subprocess`` for cargo, rustup, git and the driver."""

from __future__ import annotations

import logging
import os
import shutil

# Bandit: subprocess usage is intentional, every command is an argument list and
# ``shell=True`` is never used.
import subprocess  # nosec B404
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from subprocess import CompletedProcess

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CommandOptions:
    """Execution options for :func:`run_command`.

    Attributes:
        cwd: Working directory for the child process.
        env_overrides: Variables layered over the parent environment for the
            child only. The parent ``os.environ`` is never modified.
        check: Raise :class:`SubprocessExecutionError` on a non-zero exit.
        capture_output: Capture stdout/stderr instead of streaming them through.
    """

    cwd: Path | None = None
    env_overrides: Mapping[str, str] | None = None
    check: bool = True
    capture_output: bool = False

    def child_env(self) -> dict[str, str] | None:
        """Return the explicit child environment, or ``None`` to inherit unchanged.

        Returns:
            dict[str, str] | None: Parent environment merged with overrides.
        """

        if not self.env_overrides:
            return None
        env = dict(os.environ)
        env.update(self.env_overrides)
        return env


class SubprocessExecutionError(RuntimeError):
    """Raised when a subprocess exits with a non-zero status while ``check`` is true."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        stdout: str | None,
        stderr: str | None,
    ) -> None:
        """Initialise the error with the subprocess metadata.

        Args:
            command: Normalised command sequence that was executed.
            returncode: Exit status reported by the subprocess.
            stdout: Captured standard output, ``None`` when streamed.
            stderr: Captured standard error, ``None`` when streamed.
        """

        detail = f" stderr: {stderr.strip()}" if stderr else ""
        super().__init__(f"Command '{' '.join(command)}' exited with status {returncode}.{detail}")
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def _normalize_args(args: Sequence[str]) -> list[str]:
    """Resolve the executable of ``args`` against ``PATH``.

    Args:
        args: Raw command arguments supplied by the caller.

    Returns:
        list[str]: Argument list whose first entry is an absolute executable path.

    Raises:
        ValueError: If no arguments are provided.
        FileNotFoundError: If the executable cannot be found.
    """

    if not args:
        raise ValueError("subprocess command requires at least one argument")

    head, *rest = args
    head_path = Path(head)
    if head_path.is_absolute():
        return [str(head_path), *rest]

    resolved = shutil.which(head)
    if resolved is None:
        raise FileNotFoundError(f"Executable '{head}' was not found on PATH")
    return [resolved, *rest]


def run_command(
    args: Sequence[str],
    *,
    options: CommandOptions | None = None,
) -> CompletedProcess[str]:
    """Execute ``args`` after normalising the executable path.

    Standard streams are inherited unless ``capture_output`` is set, so the
    output of long-running builds stays visible to the user.

    Args:
        args: Command and argument sequence to execute.
        options: Execution options, defaults to :class:`CommandOptions`.

    Returns:
        CompletedProcess: Subprocess execution metadata.

    Raises:
        FileNotFoundError: If the executable cannot be resolved on ``PATH``.
        SubprocessExecutionError: When ``check`` is true and the process exits
            with a non-zero status.
    """

    resolved = options or CommandOptions()
    normalized = _normalize_args(args)
    LOGGER.debug("running `%s` in %s", " ".join(normalized), resolved.cwd or Path.cwd())

    # Bandit: argument lists only, no shell expansion.
    completed: CompletedProcess[str] = subprocess.run(  # nosec B603
        normalized,
        cwd=str(resolved.cwd) if resolved.cwd is not None else None,
        env=resolved.child_env(),
        check=False,
        capture_output=resolved.capture_output,
        text=True,
    )

    if resolved.check and completed.returncode != 0:
        raise SubprocessExecutionError(
            normalized,
            completed.returncode,
            completed.stdout if isinstance(completed.stdout, str) else None,
            completed.stderr if isinstance(completed.stderr, str) else None,
        )

    return completed


__all__ = ["CommandOptions", "SubprocessExecutionError", "run_command"]
