"""Shared helpers for running external tools."""

import shlex
import shutil
import subprocess
from typing import Dict, List, Optional, Sequence

from .exceptions import CommandError
from .logger import log


def command_exists(name: str) -> bool:
    """Return True when ``name`` resolves on PATH."""
    return shutil.which(name) is not None


def run_command(cmd: Sequence[str],
                check: bool = True,
                capture: bool = True,
                cwd: Optional[str] = None,
                env: Optional[Dict[str, str]] = None,
                timeout: Optional[int] = None) -> subprocess.CompletedProcess:
    """Run ``cmd`` and return the completed process.

    Output is captured as text with stderr merged into stdout when
    ``capture`` is set; otherwise it streams to the terminal.

    Raises:
        CommandError: Non-zero exit with ``check``, missing executable, or timeout
    """
    cmd = [str(c) for c in cmd]
    log.debug(f"+ {shlex.join(cmd)}")

    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            env=env,
            timeout=timeout,
            text=True,
            stdout=subprocess.PIPE if capture else None,
            stderr=subprocess.STDOUT if capture else None,
        )
    except FileNotFoundError:
        raise CommandError(cmd, 127, f"{cmd[0]}: command not found")
    except subprocess.TimeoutExpired as e:
        output = e.output if isinstance(e.output, str) else ""
        raise CommandError(cmd, -1, f"Reached Timeout after {timeout}s\n{output}")

    if check and result.returncode != 0:
        raise CommandError(cmd, result.returncode, result.stdout)

    return result


def sudo(cmd: List[str]) -> List[str]:
    """Prefix ``cmd`` with sudo."""
    return ["sudo"] + list(cmd)
