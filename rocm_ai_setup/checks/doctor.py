"""Host readiness checks that run without Ansible."""

import os
from typing import Any, Dict, List, Optional

from ..compat.profile import profile_from_context
from ..constants import Constants
from ..containers.docker_client import DockerClient
from ..exceptions import CompatibilityError
from ..logger import log
from ..provision.layout import Layout, verify_layout
from ..system.platform import PlatformInfo, PlatformDetector
from ..system.rocm_detector import ROCmDetector
from .report import CheckResult

PASS = Constants.CHECK_STATUS_PASS
FAIL = Constants.CHECK_STATUS_FAIL
WARN = Constants.CHECK_STATUS_WARN
SKIP = Constants.CHECK_STATUS_SKIP


def check_os_release(context, required: str) -> CheckResult:
    info = PlatformInfo(os_id=context.os_id, os_name=context.os_name, os_version=context.os_version)
    if PlatformDetector.is_ubuntu_release(info, required):
        return CheckResult("ubuntu_release", PASS, detail=f"Ubuntu {context.os_version}")
    return CheckResult("ubuntu_release", FAIL,
                       detail=f"Requires Ubuntu {required}, found {context.os_name} {context.os_version}")


def check_device_nodes(context) -> CheckResult:
    missing = [node for node in Constants.GPU_DEVICES if not context.device_nodes.get(node, False)]
    if missing:
        return CheckResult("gpu_device_nodes", FAIL,
                           detail=f"Missing {', '.join(missing)} (amdgpu driver not loaded?)")
    return CheckResult("gpu_device_nodes", PASS, detail=" ".join(Constants.GPU_DEVICES))


def check_group_membership(user: str) -> CheckResult:
    groups = Constants.GPU_GROUPS + [Constants.DOCKER_GROUP]
    missing = [group for group in groups if not DockerClient.user_in_group(user, group)]
    if missing:
        return CheckResult("user_groups", FAIL,
                           detail=f"{user} not in: {', '.join(missing)} (log out and back in after setup)")
    return CheckResult("user_groups", PASS, detail=f"{user} in {', '.join(groups)}")


def check_docker(docker: DockerClient) -> CheckResult:
    if not docker.is_installed():
        return CheckResult("docker_daemon", FAIL, detail="docker is not installed")
    if not docker.is_daemon_running():
        return CheckResult("docker_daemon", FAIL, detail="Docker daemon not reachable")
    return CheckResult("docker_daemon", PASS, detail="docker info succeeded")


def check_rocm_version(context, minimum: str) -> CheckResult:
    if context.rocm_version == "Unknown":
        return CheckResult("rocm_version", FAIL, detail=f"ROCm not found at {context.rocm_path}")
    compatible, message = ROCmDetector.check_version_compatibility(minimum, context.rocm_version)
    return CheckResult("rocm_version", PASS if compatible else FAIL, detail=message)


def check_layout(layout: Layout) -> CheckResult:
    missing = verify_layout(layout)
    if missing:
        return CheckResult("projects_layout", WARN,
                           detail=f"{len(missing)} missing (run 'rocm-ai-setup layout')")
    return CheckResult("projects_layout", PASS, detail=str(layout.root))


def check_profile(context, rocm_version: str, framework: str,
                  gfx_target: Optional[str] = None) -> CheckResult:
    if context.primary_gpu is None and not gfx_target:
        return CheckResult("compatibility_profile", FAIL, detail="No AMD GPU detected")
    try:
        profile = profile_from_context(context, rocm_version, framework, gfx_target=gfx_target)
    except CompatibilityError as e:
        return CheckResult("compatibility_profile", FAIL, detail=str(e))
    detail = f"{profile.gfx_target} -> {profile.image}"
    if profile.hsa_override:
        detail += f" (HSA_OVERRIDE_GFX_VERSION={profile.hsa_override})"
    return CheckResult("compatibility_profile", PASS, detail=detail)


def run_doctor(context,
               layout: Layout,
               setup_config: Dict[str, Any],
               docker_config: Optional[Dict[str, Any]] = None,
               user: Optional[str] = None,
               docker: Optional[DockerClient] = None) -> List[CheckResult]:
    """Run every readiness check against a detected SystemContext.

    Args:
        context: SystemContext from SystemDetector
        layout: Projects layout to verify
        setup_config: ConfigHelper.get_setup_config() output
        docker_config: ConfigHelper.get_docker_config() output
        user: Account whose group membership is checked (default: current user)

    Returns:
        One CheckResult per check, in order
    """
    docker_config = docker_config or {}
    user = user or os.environ.get("SUDO_USER") or os.environ.get("USER") or "root"
    docker = docker or DockerClient()

    log.info("Running readiness checks...")
    results = [
        check_os_release(context, setup_config['ubuntu_release']),
        check_device_nodes(context),
        check_group_membership(user),
        check_docker(docker),
        check_rocm_version(context, setup_config['min_rocm_version']),
        check_layout(layout),
        check_profile(context,
                      setup_config['rocm_version'],
                      docker_config.get('framework', Constants.DEFAULT_FRAMEWORK),
                      docker_config.get('gfx_target') or None),
    ]
    for result in results:
        log.debug(f"{result.name}: {result.status} {result.detail}")
    return results
