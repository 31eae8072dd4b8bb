"""
This GPU/ROCm compatibility matrix is the "source of truth" for container
environment and image selection.

* Each GPU family entry records how a gfx target is exposed to ROCm: natively,
  or through an ``HSA_OVERRIDE_GFX_VERSION`` that maps it onto a supported
  sibling ISA.
* Each ROCm release entry lists the gfx targets it ships kernels for, the
  container images per framework, and the amdgpu-install package used to add
  its apt repository.

Values were established empirically on consumer Radeon workstations; update
the tables, not the code, when a new release or card is validated.
"""

from typing import Optional

# gfx target -> family properties.
#   hsa_override: value for HSA_OVERRIDE_GFX_VERSION, None when kernels exist
#   consumer: Radeon desktop/mobile part (stability variables apply to RDNA2)
GPU_FAMILY_MATRIX = {
    "gfx1030": {
        "architecture": "RDNA2",
        "chip": "Navi 21",
        "marketing_names": ["Radeon RX 6800", "Radeon RX 6800 XT", "Radeon RX 6900 XT",
                            "Radeon RX 6950 XT", "Radeon PRO W6800"],
        "device_ids": ["73a2", "73a3", "73a5", "73ab", "73af", "73bf"],
        "hsa_override": None,
        "consumer": True,
    },
    "gfx1031": {
        "architecture": "RDNA2",
        "chip": "Navi 22",
        "marketing_names": ["Radeon RX 6700", "Radeon RX 6700 XT", "Radeon RX 6750 XT"],
        "device_ids": ["73c3", "73df"],
        "hsa_override": "10.3.0",
        "consumer": True,
    },
    "gfx1032": {
        "architecture": "RDNA2",
        "chip": "Navi 23",
        "marketing_names": ["Radeon RX 6600", "Radeon RX 6600 XT", "Radeon RX 6650 XT"],
        "device_ids": ["73e3", "73ef", "73ff"],
        "hsa_override": "10.3.0",
        "consumer": True,
    },
    "gfx1034": {
        "architecture": "RDNA2",
        "chip": "Navi 24",
        "marketing_names": ["Radeon RX 6400", "Radeon RX 6500 XT"],
        "device_ids": ["743f"],
        "hsa_override": "10.3.0",
        "consumer": True,
    },
    "gfx1035": {
        "architecture": "RDNA2",
        "chip": "Rembrandt",
        "marketing_names": ["Radeon 680M", "Radeon 660M"],
        "device_ids": ["1681"],
        "hsa_override": "10.3.0",
        "consumer": True,
    },
    "gfx1100": {
        "architecture": "RDNA3",
        "chip": "Navi 31",
        "marketing_names": ["Radeon RX 7900 XT", "Radeon RX 7900 XTX", "Radeon PRO W7900"],
        "device_ids": ["744c", "7448"],
        "hsa_override": None,
        "consumer": True,
    },
    "gfx1101": {
        "architecture": "RDNA3",
        "chip": "Navi 32",
        "marketing_names": ["Radeon RX 7700 XT", "Radeon RX 7800 XT", "Radeon PRO W7800"],
        "device_ids": ["747e"],
        "hsa_override": "11.0.0",
        "consumer": True,
    },
    "gfx1102": {
        "architecture": "RDNA3",
        "chip": "Navi 33",
        "marketing_names": ["Radeon RX 7600", "Radeon RX 7600 XT"],
        "device_ids": ["7480"],
        "hsa_override": "11.0.0",
        "consumer": True,
    },
    "gfx90a": {
        "architecture": "CDNA2",
        "chip": "Aldebaran",
        "marketing_names": ["Instinct MI210", "Instinct MI250", "Instinct MI250X"],
        "device_ids": ["7408", "740c", "740f"],
        "hsa_override": None,
        "consumer": False,
    },
    "gfx942": {
        "architecture": "CDNA3",
        "chip": "Aqua Vanjaram",
        "marketing_names": ["Instinct MI300X", "Instinct MI300A", "Instinct MI325X"],
        "device_ids": ["74a0", "74a1", "74a5"],
        "hsa_override": None,
        "consumer": False,
    },
}

# ROCm release -> kernels shipped, container images, apt repository package.
ROCM_RELEASES = {
    "6.4.4": {
        "supported_targets": ["gfx90a", "gfx942", "gfx1030", "gfx1100", "gfx1101"],
        "images": {
            "pytorch": "rocm/pytorch:rocm6.4.4_ubuntu24.04_py3.12_pytorch_release_2.7.1",
            "tensorflow": "rocm/tensorflow:rocm6.4.4-py3.12-tf2.18-dev",
        },
        "amdgpu_install_deb": "amdgpu-install_6.4.60404-1_all.deb",
        "ubuntu_codenames": ["jammy", "noble"],
    },
    "6.2.4": {
        "supported_targets": ["gfx90a", "gfx942", "gfx1030", "gfx1100"],
        "images": {
            "pytorch": "rocm/pytorch:rocm6.2.4_ubuntu22.04_py3.10_pytorch_release_2.3.0",
            "tensorflow": "rocm/tensorflow:rocm6.2.4-py3.10-tf2.16-dev",
        },
        "amdgpu_install_deb": "amdgpu-install_6.2.60204-1_all.deb",
        "ubuntu_codenames": ["focal", "jammy", "noble"],
    },
}

DEFAULT_ROCM_RELEASE = "6.4.4"

FRAMEWORKS = ["pytorch", "tensorflow"]

# Applied to every container.
BASE_ENVIRONMENT = {
    # Large single allocations fragment VRAM on 12 GB cards
    "PYTORCH_HIP_ALLOC_CONF": "max_split_size_mb:128",
    # Never compile wheels inside the image
    "PIP_ONLY_BINARY": ":all:",
}

# Stability ("Phase 1") variables for consumer RDNA2 cards.
STABILITY_ENVIRONMENT = {
    "AMD_SERIALIZE_KERNEL": "1",
    "HSA_FORCE_FINE_GRAIN_PCIE": "1",
    "ROCBLAS_LAYER": "0",
    "TORCH_USE_HIP_DSA": "1",
}

STABILITY_ARCHITECTURES = ["RDNA2"]


def family_for_device_id(device_id: str) -> Optional[str]:
    """Map a PCI device id (e.g. "73df") to its gfx target, or None."""
    if not device_id:
        return None
    device_id = device_id.lower()
    for gfx_target, family in GPU_FAMILY_MATRIX.items():
        if device_id in family["device_ids"]:
            return gfx_target
    return None


def amdgpu_install_url(rocm_version: str, codename: str) -> str:
    """URL of the amdgpu-install package that configures ``rocm_version`` repos."""
    release = ROCM_RELEASES[rocm_version]
    return (
        f"https://repo.radeon.com/amdgpu-install/{rocm_version}/ubuntu/"
        f"{codename}/{release['amdgpu_install_deb']}"
    )
