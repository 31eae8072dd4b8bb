"""ROCm detection for version, install type, and compatibility checking."""

import subprocess
import re
import os
import logging
from typing import Dict, Optional, Tuple

from packaging import version

from ..exceptions import ROCmVersionError


def _get_rocm_path() -> str:
    """Get ROCm base path from $ROCM_PATH or fall back to /opt/rocm."""
    return os.getenv('ROCM_PATH', '/opt/rocm')


def _get_rocm_tool_path(tool_name: str) -> str:
    """Get full path to a ROCm tool under the ROCm base path, or just its name."""
    candidate = os.path.join(_get_rocm_path(), 'bin', tool_name)
    if os.path.exists(candidate):
        return candidate
    return tool_name


def normalize_version(rocm_version: str) -> str:
    """Strip a build suffix ("6.4.4-120" -> "6.4.4")."""
    return rocm_version.split('-', 1)[0].strip()


class ROCmDetector:
    """ROCm detector for version, package manager, and compatibility validation."""

    @staticmethod
    def detect_rocm_info() -> Dict[str, str]:
        """Detect ROCm installation information.

        Returns:
            Dictionary with rocm_version, rocm_path, package_manager,
            package_manager_version and install_type ("Unknown" when undetected)
        """
        logger = logging.getLogger(__name__)

        info = {
            "rocm_version": "Unknown",
            "rocm_path": _get_rocm_path(),
            "package_manager": "Unknown",
            "package_manager_version": "Unknown",
            "install_type": "Unknown",
        }

        rocm_version = ROCmDetector._detect_rocm_version()
        if rocm_version:
            info["rocm_version"] = rocm_version
            logger.debug(f"ROCm version: {rocm_version}")

        pkg_manager, pkg_version = ROCmDetector._detect_package_manager()
        info["package_manager"] = pkg_manager
        info["package_manager_version"] = pkg_version

        info["install_type"] = ROCmDetector._detect_install_type()
        logger.debug(f"Install type: {info['install_type']}")

        return info

    @staticmethod
    def _detect_rocm_version() -> Optional[str]:
        """Detect ROCm version using multiple methods.

        Returns:
            str: Version string (e.g. "6.4.4" or "6.4.4-120") or None
        """
        logger = logging.getLogger(__name__)
        rocm_path = _get_rocm_path()

        for name in ('version-rocm', 'version'):
            version_file = os.path.join(rocm_path, '.info', name)
            logger.debug(f"Trying {version_file} file...")
            try:
                with open(version_file, 'r') as f:
                    rocm_ver = f.read().strip()
                if rocm_ver:
                    logger.debug(f"ROCm version from {name} file: {rocm_ver}")
                    return rocm_ver
            except FileNotFoundError:
                logger.debug(f"{version_file} not found")
            except OSError as e:
                logger.debug(f"Error reading {version_file}: {e}")

        probes = [
            (['amd-smi', 'version'], r'ROCm version:\s*(\S+)'),
            # "6.4.4.60404-120~22.04" -> "6.4.4"
            (['dpkg-query', '-W', '-f=${Version}', 'rocm-core'], r'^(\d+\.\d+\.\d+)'),
        ]
        for cmd, pattern in probes:
            tool = _get_rocm_tool_path(cmd[0]) if cmd[0] == 'amd-smi' else cmd[0]
            logger.debug(f"Trying {tool} for ROCm detection...")
            try:
                result = subprocess.run(
                    [tool] + cmd[1:],
                    capture_output=True,
                    text=True,
                    timeout=10
                )
            except FileNotFoundError:
                logger.debug(f"{cmd[0]} command not found")
                continue
            except subprocess.TimeoutExpired as e:
                logger.debug(f"{cmd[0]} error: {e}")
                continue

            if result.returncode != 0:
                logger.debug(f"{cmd[0]} failed with exit code {result.returncode}")
                continue

            match = re.search(pattern, result.stdout, re.IGNORECASE)
            if match:
                rocm_ver = match.group(1).rstrip(',')
                logger.debug(f"ROCm version from {cmd[0]}: {rocm_ver}")
                return rocm_ver

        logger.debug("All ROCm version detection methods failed")
        return None

    @staticmethod
    def _detect_package_manager() -> Tuple[str, str]:
        """Detect dpkg and its version.

        Returns:
            tuple: (package_manager_name, version) or ("Unknown", "Unknown")
        """
        try:
            result = subprocess.run(
                ['dpkg', '--version'],
                capture_output=True,
                text=True,
                timeout=5
            )
        except (FileNotFoundError, subprocess.TimeoutExpired):
            return ("Unknown", "Unknown")

        if result.returncode == 0:
            match = re.search(r'version\s+(\S+)', result.stdout)
            return ("dpkg", match.group(1) if match else "Unknown")
        return ("Unknown", "Unknown")

    @staticmethod
    def _detect_install_type() -> str:
        """Detect ROCm installation type ("package", "directory" or "Unknown")."""
        try:
            result = subprocess.run(
                ['dpkg', '-l', 'rocm'],
                capture_output=True,
                text=True,
                timeout=5
            )
            if result.returncode == 0 and re.search(r'^ii\s+rocm\s', result.stdout, re.MULTILINE):
                return "package"
        except (FileNotFoundError, subprocess.TimeoutExpired):
            pass

        if os.path.exists(_get_rocm_path()):
            return "directory"

        return "Unknown"

    @staticmethod
    def check_version_compatibility(required_version: str, detected_version: str) -> Tuple[bool, str]:
        """Check if detected ROCm version meets minimum requirement.

        Args:
            required_version: Minimum required version (e.g., "6.0.0")
            detected_version: Detected ROCm version

        Returns:
            tuple: (is_compatible: bool, message: str)
        """
        if not detected_version or detected_version == "Unknown":
            return False, "ROCm version could not be detected"

        if not required_version or required_version == "Unknown":
            return True, f"ROCm {detected_version} detected (no minimum version specified)"

        try:
            required = version.parse(normalize_version(required_version))
            detected = version.parse(normalize_version(detected_version))
        except version.InvalidVersion as e:
            return False, f"Invalid version format: {e}"

        if detected >= required:
            return True, f"ROCm {detected_version} meets requirement (>= {required_version})"
        return False, f"ROCm {detected_version} is too old (requires >= {required_version})"

    @staticmethod
    def validate_rocm_version(required_version: str, detected_version: str) -> None:
        """Validate ROCm version compatibility and raise exception if incompatible.

        Raises:
            ROCmVersionError: If detected version is older than required
        """
        is_compatible, message = ROCmDetector.check_version_compatibility(
            required_version,
            detected_version
        )

        if not is_compatible:
            from ..logger import log
            log.error("✗ ROCm Version Incompatible")
            log.error(f"  Detected: ROCm {detected_version}")
            log.error(f"  Required: ROCm {required_version}+")
            log.error("  Solutions:")
            log.error("    1. Re-run 'rocm-ai-setup install' with the desired Setup.ROCmVersion")
            log.error("    2. Visit: https://rocm.docs.amd.com/")
            log.error("    3. Adjust Setup.MinROCmVersion in config if appropriate")
            raise ROCmVersionError(message)
