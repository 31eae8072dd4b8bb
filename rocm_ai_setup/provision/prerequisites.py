"""Host prerequisite checks run before any provisioning step."""

from typing import Dict, Any, Optional

import requests

from ..constants import Constants
from ..exceptions import PrerequisiteError, CommandError, raise_with_solution
from ..logger import log
from ..system.platform import PlatformDetector, PlatformInfo
from ..utils import command_exists, run_command
from .apt import AptPackageManager


def check_ubuntu_release(required: str = Constants.DEFAULT_UBUNTU_RELEASE,
                         platform_info: Optional[PlatformInfo] = None) -> PlatformInfo:
    """Require Ubuntu at exactly ``required``.

    Raises:
        PrerequisiteError: Other distribution or release
    """
    info = platform_info or PlatformDetector.detect()
    if not PlatformDetector.is_ubuntu_release(info, required):
        raise_with_solution(
            PrerequisiteError,
            f"This tool requires Ubuntu {required} LTS. Current system: {info.os_name} {info.os_version}",
            [
                f"Install Ubuntu {required} LTS on this workstation",
                "Set Setup.UbuntuRelease in the configuration if another release has been validated",
            ],
        )
    log.debug(f"Ubuntu release check passed: {info.os_version}")
    return info


def check_internet(url: str = Constants.DEFAULT_CONNECTIVITY_URL,
                   timeout: int = Constants.TIMEOUT_SHORT) -> None:
    """Require a successful HTTP response from ``url``.

    Raises:
        PrerequisiteError: Request failed or timed out
    """
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise PrerequisiteError(f"Internet connectivity required (could not reach {url}: {e})")
    log.debug(f"Connectivity check passed: {url}")


def check_sudo() -> None:
    """Require working sudo (may prompt for a password).

    Raises:
        PrerequisiteError: sudo missing or denied
    """
    try:
        run_command(["sudo", "true"], capture=False)
    except CommandError:
        raise PrerequisiteError("This tool requires sudo privileges")


def has_passwordless_sudo() -> bool:
    """True when sudo works without prompting."""
    return run_command(["sudo", "-n", "true"], check=False).returncode == 0


def ensure_command(name: str, package: Optional[str] = None,
                   apt: Optional[AptPackageManager] = None) -> bool:
    """Install ``package`` (default ``name``) when ``name`` is not on PATH.

    Returns:
        bool: True when something was installed
    """
    if command_exists(name):
        return False
    log.info(f"Installing {package or name}...")
    (apt or AptPackageManager()).install([package or name])
    return True


def run_all(setup_config: Dict[str, Any], apt: Optional[AptPackageManager] = None) -> PlatformInfo:
    """Run every prerequisite check in order and make sure git is available."""
    log.info("Checking prerequisites...")
    info = check_ubuntu_release(setup_config['ubuntu_release'])
    check_internet(setup_config['connectivity_url'])
    check_sudo()
    ensure_command("git", apt=apt)
    log.info("Prerequisites check passed")
    return info
