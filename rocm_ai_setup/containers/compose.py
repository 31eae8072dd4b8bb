"""Docker Compose rendering for ROCm AI framework containers.

Services carry the container fixes found on consumer Radeon hosts:

* GPU access through ``/dev/kfd`` and ``/dev/dri`` plus the host's numeric
  ``video``/``render`` GIDs in ``group_add``; group names are not resolvable
  inside the images.
* No host ROCm or driver library directories are mounted; the image's own
  user-space stack must not be shadowed.
* pip is restricted to binary wheels through the profile environment.
"""

import grp
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional

import yaml

from ..compat.profile import CompatibilityProfile
from ..constants import Constants
from ..exceptions import DockerError, LibraryMountConflictError
from ..logger import log
from ..provision.layout import Layout


# Host or container paths that hold the ROCm/driver user-space libraries.
LIBRARY_PATH_PREFIXES = [
    "/opt/rocm",
    "/usr/lib/x86_64-linux-gnu",
    "/usr/lib64",
    "/usr/lib",
    "/lib",
    "/lib64",
    "/usr/local/lib",
]


def service_name(framework: str) -> str:
    return f"{framework}-rocm"


def get_group_id(name: str) -> int:
    """Numeric GID of a host group.

    Raises:
        DockerError: Group does not exist on the host
    """
    try:
        return grp.getgrnam(name).gr_gid
    except KeyError:
        raise DockerError(
            f"Host group '{name}' not found; install the amdgpu/ROCm driver packages first"
        )


def get_gpu_group_ids(groups: Iterable[str] = Constants.GPU_GROUPS) -> Dict[str, int]:
    """Numeric GIDs for the GPU device groups."""
    return {name: get_group_id(name) for name in groups}


def _is_library_path(path: str) -> bool:
    posix = str(PurePosixPath(path))
    # Versioned installs: /opt/rocm-6.4.4
    if posix.startswith("/opt/rocm-"):
        return True
    return any(posix == prefix or posix.startswith(prefix + "/") for prefix in LIBRARY_PATH_PREFIXES)


def check_library_mounts(volumes: Iterable[str]) -> None:
    """Reject bind mounts of ROCm/driver library directories (either side).

    Named volumes (no path on the host side) are ignored.

    Raises:
        LibraryMountConflictError: A mount would shadow or leak library directories
    """
    for volume in volumes:
        parts = volume.split(":")
        if len(parts) < 2:
            continue
        host, container = parts[0], parts[1]
        if not host.startswith(("/", "~", ".")):
            continue
        host_path = str(Path(host).expanduser()) if host.startswith("~") else host
        for side, path in (("host", host_path), ("container", container)):
            if _is_library_path(path):
                raise LibraryMountConflictError(
                    f"Volume '{volume}' mounts a library directory ({side} side: {path}). "
                    "ROCm images ship their own runtime; mounting host libraries causes version conflicts."
                )


def build_service(profile: CompatibilityProfile,
                  layout: Layout,
                  group_ids: Dict[str, int],
                  shm_size: str = Constants.DEFAULT_SHM_SIZE,
                  extra_env: Optional[Dict[str, str]] = None,
                  extra_volumes: Optional[List[str]] = None) -> Dict:
    """Compose service definition for one framework profile.

    ``extra_env`` is applied over the profile environment.

    Raises:
        LibraryMountConflictError: An extra volume mounts library directories
    """
    volumes = [f"{host}:{container}" for host, container in layout.mounts().items()]
    volumes += list(extra_volumes or [])
    check_library_mounts(volumes)
    environment = dict(profile.environment)
    environment.update({key: str(value) for key, value in (extra_env or {}).items()})

    return {
        "image": profile.image,
        "devices": list(Constants.GPU_DEVICES),
        "group_add": [str(gid) for gid in group_ids.values()],
        "security_opt": ["seccomp=unconfined"],
        "cap_add": ["SYS_PTRACE"],
        "ipc": "host",
        "shm_size": shm_size,
        "environment": environment,
        "volumes": volumes,
        "working_dir": Constants.CONTAINER_WORKSPACE,
        "stdin_open": True,
        "tty": True,
    }


def render_compose(services: Dict[str, Dict], profiles: Optional[List[CompatibilityProfile]] = None) -> str:
    """Render services as a Compose YAML document, keeping key order."""
    header = ["# Generated by rocm-ai-setup."]
    for profile in profiles or []:
        header.append(f"# {service_name(profile.framework)}: {profile.gfx_target} on ROCm {profile.rocm_version}")
        header.extend(f"#   {note}" for note in profile.notes)
    if profiles:
        header.append(f"# Start with: docker compose up -d {service_name(profiles[0].framework)}")
    body = yaml.safe_dump({"services": services}, sort_keys=False, default_flow_style=False)
    return "\n".join(header) + "\n" + body


def build_compose(profiles: List[CompatibilityProfile],
                  layout: Layout,
                  group_ids: Optional[Dict[str, int]] = None,
                  shm_size: str = Constants.DEFAULT_SHM_SIZE,
                  extra_env: Optional[Dict[str, str]] = None,
                  extra_volumes: Optional[List[str]] = None) -> str:
    """Render a Compose file with one service per profile."""
    if group_ids is None:
        group_ids = get_gpu_group_ids()
    services = {
        service_name(profile.framework): build_service(profile, layout, group_ids, shm_size,
                                                        extra_env, extra_volumes)
        for profile in profiles
    }
    return render_compose(services, profiles)


def write_compose(path: str, text: str, force: bool = False) -> Path:
    """Write the Compose file.

    Raises:
        FileExistsError: File exists and force is not set
    """
    target = Path(path).expanduser()
    if target.exists() and not force:
        raise FileExistsError(f"{target} already exists (use --force to overwrite)")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text)
    log.info(f"Wrote {target}")
    return target
