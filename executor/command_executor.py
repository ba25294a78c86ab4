"""Command execution wrapper."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path


def run_command(
    command: list[str] | str,
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
    capture_output: bool = True,
) -> tuple[int, str, str]:
    """Run command and return (exit_code, stdout, stderr).

    A string is run as a bash script that stops at the first failing line,
    a list is run as argv without a shell.
    """
    argv = ["bash", "-e", "-c", command] if isinstance(command, str) else command
    merged_env = {**os.environ, **env} if env else None
    proc = subprocess.run(
        argv,
        cwd=cwd,
        env=merged_env,
        capture_output=capture_output,
        text=True,
    )
    return proc.returncode, proc.stdout or "", proc.stderr or ""
