"""Minimal apt/dpkg wrapper for installing host tools."""

import re
from typing import List

from ..logger import log
from ..utils import run_command, sudo


class AptPackageManager:
    """Installs Debian packages with apt-get and queries dpkg state."""

    def __init__(self):
        self._updated = False

    def update(self, force: bool = False):
        """Refresh the package index once per session unless ``force``."""
        if self._updated and not force:
            return
        log.info("Updating apt package index...")
        run_command(sudo(["apt-get", "update"]), capture=False)
        self._updated = True

    def is_installed(self, package: str) -> bool:
        """True when dpkg reports ``package`` as installed (``ii``)."""
        result = run_command(["dpkg", "-l", package], check=False)
        return result.returncode == 0 and bool(
            re.search(rf"^ii\s+{re.escape(package)}(:\S+)?\s", result.stdout, re.MULTILINE)
        )

    def install(self, packages: List[str]) -> List[str]:
        """Install missing packages; returns the packages that were installed.

        Raises:
            CommandError: apt-get failed
        """
        missing = [pkg for pkg in packages if not self.is_installed(pkg)]
        if not missing:
            log.debug(f"Already installed: {', '.join(packages)}")
            return []

        self.update()
        log.info(f"Installing {', '.join(missing)}...")
        run_command(sudo(["apt-get", "install", "-y"] + missing), capture=False)
        log.info(f"Installed {', '.join(missing)} successfully")
        return missing
