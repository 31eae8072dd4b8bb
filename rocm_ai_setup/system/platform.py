"""Platform detection for distribution, release, kernel, and hostname."""

import logging
import platform
import re
import socket
import subprocess
from dataclasses import dataclass
from typing import Dict


OS_RELEASE_PATH = "/etc/os-release"


@dataclass
class PlatformInfo:
    """Platform information dataclass with distribution and kernel details."""
    os_id: str = "unknown"
    os_name: str = "Unknown"
    os_version: str = "Unknown"
    codename: str = "Unknown"
    kernel: str = "Unknown"
    hostname: str = "Unknown"
    architecture: str = "Unknown"

    @property
    def is_ubuntu(self) -> bool:
        return self.os_id == "ubuntu"

    def __str__(self):
        return f"{self.os_name} {self.os_version} (Kernel: {self.kernel})"


def parse_os_release(content: str) -> Dict[str, str]:
    """Parse os-release ``KEY=value`` lines into a dict with quotes stripped."""
    fields = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        fields[key.strip()] = value.strip().strip('"').strip("'")
    return fields


class PlatformDetector:
    """Platform detector for distribution, kernel, and network information."""

    @staticmethod
    def _lsb_release(flag: str) -> str:
        """Query lsb_release (``-rs`` release, ``-cs`` codename, ``-is`` id)."""
        logger = logging.getLogger(__name__)
        try:
            result = subprocess.run(
                ['lsb_release', flag],
                capture_output=True,
                text=True,
                timeout=5
            )
            if result.returncode == 0 and result.stdout.strip():
                return result.stdout.strip()
            logger.debug(f"lsb_release {flag} failed: returncode={result.returncode}")
        except FileNotFoundError:
            logger.debug("lsb_release command not found")
        except subprocess.TimeoutExpired as e:
            logger.debug(f"lsb_release error: {e}")
        return ""

    @staticmethod
    def detect(os_release_path: str = OS_RELEASE_PATH) -> PlatformInfo:
        """Detect complete platform information.

        Reads os-release first and falls back to lsb_release, then to the
        ``platform`` module.

        Returns:
            PlatformInfo: Platform details
        """
        logger = logging.getLogger(__name__)
        info = PlatformInfo(
            os_name=platform.system() or "Unknown",
            kernel=platform.release() or "Unknown",
            architecture=platform.machine() or "Unknown",
        )

        try:
            info.hostname = socket.gethostname()
        except OSError as e:
            logger.debug(f"Hostname not available: {e}")

        if info.os_name != "Linux":
            info.os_version = platform.release() or "Unknown"
            return info

        try:
            with open(os_release_path, 'r') as f:
                fields = parse_os_release(f.read())
            info.os_id = fields.get("ID", "unknown").lower()
            info.os_name = fields.get("NAME", info.os_name)
            info.os_version = fields.get("VERSION_ID", "Unknown")
            info.codename = fields.get("VERSION_CODENAME", "") or fields.get("UBUNTU_CODENAME", "Unknown")
        except OSError as e:
            logger.debug(f"{os_release_path} not readable: {e}")

        if info.os_version == "Unknown":
            info.os_version = PlatformDetector._lsb_release('-rs') or platform.release()
        if info.codename in ("", "Unknown"):
            info.codename = PlatformDetector._lsb_release('-cs') or "Unknown"
        if info.os_id == "unknown":
            info.os_id = (PlatformDetector._lsb_release('-is') or "unknown").lower()

        logger.debug(f"Platform: {info}")
        return info

    @staticmethod
    def is_ubuntu_release(info: PlatformInfo, release: str) -> bool:
        """Check that the platform is Ubuntu at exactly ``release`` (e.g. "22.04")."""
        return info.is_ubuntu and info.os_version == release
