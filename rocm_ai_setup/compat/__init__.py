"""GPU/ROCm compatibility matrix and profile resolution."""

from .gpu_matrix import (
    GPU_FAMILY_MATRIX,
    ROCM_RELEASES,
    FRAMEWORKS,
    BASE_ENVIRONMENT,
    STABILITY_ENVIRONMENT,
    family_for_device_id,
    amdgpu_install_url,
)
from .profile import (
    CompatibilityProfile,
    lookup_family,
    lookup_release,
    resolve_profile,
    profile_from_context,
)

__all__ = [
    'GPU_FAMILY_MATRIX',
    'ROCM_RELEASES',
    'FRAMEWORKS',
    'BASE_ENVIRONMENT',
    'STABILITY_ENVIRONMENT',
    'family_for_device_id',
    'amdgpu_install_url',
    'CompatibilityProfile',
    'lookup_family',
    'lookup_release',
    'resolve_profile',
    'profile_from_context',
]
