"""Resolve container image and environment for a GPU/ROCm/framework pairing."""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Any

from ..exceptions import CompatibilityError
from ..logger import log
from .gpu_matrix import (
    BASE_ENVIRONMENT,
    DEFAULT_ROCM_RELEASE,
    FRAMEWORKS,
    GPU_FAMILY_MATRIX,
    ROCM_RELEASES,
    STABILITY_ARCHITECTURES,
    STABILITY_ENVIRONMENT,
    family_for_device_id,
)


@dataclass
class CompatibilityProfile:
    """Container settings selected for one GPU and ROCm release."""
    gfx_target: str
    rocm_version: str
    framework: str
    image: str
    hsa_override: Optional[str] = None
    stability: bool = False
    environment: Dict[str, str] = field(default_factory=dict)
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def override_target(hsa_override: str) -> str:
    """ISA selected by an HSA override ("10.3.0" -> "gfx1030")."""
    major, minor, stepping = hsa_override.split(".")
    return f"gfx{major}{minor}{stepping}"


def lookup_family(gfx_target: Optional[str] = None, device_id: Optional[str] = None) -> Dict[str, Any]:
    """Find the matrix entry for a gfx target or PCI device id.

    Raises:
        CompatibilityError: Neither identifies a known GPU family
    """
    if not gfx_target and device_id:
        gfx_target = family_for_device_id(device_id)

    if gfx_target:
        family = GPU_FAMILY_MATRIX.get(gfx_target.lower())
        if family:
            return dict(family, gfx_target=gfx_target.lower())

    known = ", ".join(sorted(GPU_FAMILY_MATRIX))
    raise CompatibilityError(
        f"Unknown GPU (gfx target={gfx_target or '?'}, device id={device_id or '?'}). "
        f"Known targets: {known}"
    )


def lookup_release(rocm_version: str) -> Dict[str, Any]:
    """Find the ROCm release entry, ignoring a build suffix ("6.4.4-120").

    Raises:
        CompatibilityError: Release is not in the matrix
    """
    key = (rocm_version or DEFAULT_ROCM_RELEASE).split("-", 1)[0]
    if key not in ROCM_RELEASES:
        known = ", ".join(sorted(ROCM_RELEASES))
        raise CompatibilityError(f"ROCm {rocm_version} is not in the compatibility matrix (known: {known})")
    return dict(ROCM_RELEASES[key], rocm_version=key)


def resolve_profile(gfx_target: str,
                    rocm_version: str = DEFAULT_ROCM_RELEASE,
                    framework: str = "pytorch",
                    stability: Optional[bool] = None,
                    image: Optional[str] = None,
                    extra_environment: Optional[Dict[str, str]] = None) -> CompatibilityProfile:
    """Select image and environment variables for a GPU/ROCm/framework pairing.

    Args:
        gfx_target: GPU ISA (e.g. "gfx1031")
        rocm_version: ROCm release the container targets
        framework: "pytorch" or "tensorflow"
        stability: Force the stability variables on/off; None decides by GPU family
        image: Image override; the matrix image is used when empty
        extra_environment: Variables merged last, overriding matrix values

    Raises:
        CompatibilityError: Unknown GPU, release or framework, or a GPU the
            release cannot run even with an override
    """
    if framework not in FRAMEWORKS:
        raise CompatibilityError(f"Unsupported framework '{framework}' (choose from: {', '.join(FRAMEWORKS)})")

    family = lookup_family(gfx_target)
    release = lookup_release(rocm_version)
    gfx_target = family["gfx_target"]
    notes = []

    hsa_override = None
    if gfx_target not in release["supported_targets"]:
        if family["hsa_override"] and override_target(family["hsa_override"]) in release["supported_targets"]:
            hsa_override = family["hsa_override"]
            notes.append(
                f"{gfx_target} is not built by ROCm {release['rocm_version']}; "
                f"running as {override_target(hsa_override)} via HSA_OVERRIDE_GFX_VERSION={hsa_override}"
            )
        else:
            raise CompatibilityError(
                f"{gfx_target} ({family['chip']}) is not supported by ROCm {release['rocm_version']} "
                f"and has no usable HSA override"
            )

    if stability is None:
        stability = family["consumer"] and family["architecture"] in STABILITY_ARCHITECTURES

    environment = dict(BASE_ENVIRONMENT)
    if hsa_override:
        environment["HSA_OVERRIDE_GFX_VERSION"] = hsa_override
    if stability:
        environment.update(STABILITY_ENVIRONMENT)
        notes.append("Stability variables enabled (serialized kernels, fine-grain PCIe)")
    if extra_environment:
        environment.update({k: str(v) for k, v in extra_environment.items()})

    profile = CompatibilityProfile(
        gfx_target=gfx_target,
        rocm_version=release["rocm_version"],
        framework=framework,
        image=image or release["images"][framework],
        hsa_override=hsa_override,
        stability=stability,
        environment=environment,
        notes=notes,
    )
    log.debug(f"Resolved profile: {gfx_target} / ROCm {profile.rocm_version} / {framework} -> {profile.image}")
    return profile


def profile_from_context(context,
                         rocm_version: str = DEFAULT_ROCM_RELEASE,
                         framework: str = "pytorch",
                         gfx_target: Optional[str] = None,
                         **kwargs) -> CompatibilityProfile:
    """Resolve the profile for the first detected GPU in a SystemContext.

    ``gfx_target`` overrides detection.

    Raises:
        CompatibilityError: No GPU detected and no override given
    """
    if not gfx_target:
        gpu = context.primary_gpu
        if gpu is None:
            raise CompatibilityError("No AMD GPU detected; pass a gfx target explicitly")
        if not gpu.gfx_target:
            return resolve_profile(lookup_family(device_id=gpu.device_id)["gfx_target"],
                                   rocm_version, framework, **kwargs)
        gfx_target = gpu.gfx_target
    return resolve_profile(gfx_target, rocm_version, framework, **kwargs)
