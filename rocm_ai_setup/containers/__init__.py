"""Docker Compose rendering and docker CLI access."""

from .compose import (
    build_compose,
    build_service,
    check_library_mounts,
    get_group_id,
    get_gpu_group_ids,
    render_compose,
    service_name,
    write_compose,
)
from .docker_client import DockerClient

__all__ = [
    'build_compose',
    'build_service',
    'check_library_mounts',
    'get_group_id',
    'get_gpu_group_ids',
    'render_compose',
    'service_name',
    'write_compose',
    'DockerClient',
]
