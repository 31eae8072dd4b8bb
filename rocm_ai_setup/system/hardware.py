"""GPU detection using lspci and ROCm tools."""

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from ..compat.gpu_matrix import family_for_device_id


AMD_PCI_VENDOR = "1002"


@dataclass
class GpuInfo:
    """GPU information."""
    pci_address: str = ""
    device_id: str = ""
    revision_id: str = ""
    product_name: str = "Unknown"
    vendor: str = "AMD"
    gfx_target: str = ""
    marketing_name: str = ""
    vram_size_gb: int = 0

    def __str__(self):
        target = self.gfx_target or "unknown target"
        return f"{self.product_name} ({target}, Device ID: {self.device_id}, VRAM: {self.vram_size_gb}GB)"


def _get_rocm_tool_path(tool_name: str) -> str:
    """Get full path to a ROCm tool, honouring $ROCM_PATH/bin when it exists."""
    rocm_path = os.getenv('ROCM_PATH', '/opt/rocm')
    candidate = os.path.join(rocm_path, 'bin', tool_name)
    if os.path.exists(candidate):
        return candidate
    return tool_name


def parse_lspci(output: str) -> List[GpuInfo]:
    """Parse ``lspci -d 1002: -nn`` output into GpuInfo entries.

    Only VGA/Display/3D controllers are kept; audio functions on the same
    card are skipped.
    """
    gpus = []
    for line in output.splitlines():
        if not any(kind in line for kind in ('VGA compatible controller', 'Display controller', '3D controller')):
            continue

        pci_match = re.match(r'^((?:[0-9a-fA-F]{4}:)?[0-9a-fA-F]{2}:[0-9a-fA-F]{2}\.[0-9a-fA-F])', line)
        device_id_match = re.search(r'\[1002:([0-9a-fA-F]{4})\]', line)
        rev_match = re.search(r'\(rev\s+([0-9a-fA-F]{2})\)', line, re.IGNORECASE)

        # "... [0300]: Advanced Micro Devices, Inc. [AMD/ATI] Navi 22 [Radeon RX 6700/6700 XT / 6800M] [1002:73df] (rev c1)"
        parts = line.split(']: ', 1)
        if len(parts) == 2:
            product_name = re.sub(r'\s*\(rev\s+[0-9a-fA-F]{2}\)\s*$', '', parts[1].strip())
            product_name = re.sub(r'\s*\[1002:[0-9a-fA-F]{4}\]\s*$', '', product_name)
        else:
            product_name = "AMD GPU"

        gpus.append(GpuInfo(
            pci_address=pci_match.group(1) if pci_match else "",
            device_id=device_id_match.group(1).lower() if device_id_match else "",
            revision_id=rev_match.group(1).lower() if rev_match else "",
            product_name=product_name.strip(),
        ))
    return gpus


def parse_rocminfo_agents(output: str) -> List[dict]:
    """Extract GPU agents (gfx name and marketing name) from rocminfo output."""
    agents = []
    for block in re.split(r'\*{5,}\s*\n\s*Agent \d+', output)[1:]:
        name_match = re.search(r'^\s*Name:\s+(gfx[0-9a-fA-F]+)', block, re.MULTILINE)
        if not name_match:
            continue
        marketing_match = re.search(r'^\s*Marketing Name:\s+(.+)$', block, re.MULTILINE)
        agents.append({
            'gfx_target': name_match.group(1).lower(),
            'marketing_name': marketing_match.group(1).strip() if marketing_match else '',
        })
    return agents


class HardwareDetector:
    """Simple GPU detector."""

    def __init__(self):
        """Initialize hardware detector."""
        self.gpu_list: List[GpuInfo] = []

    def detect_all(self) -> List[GpuInfo]:
        """Detect all GPUs."""
        return self.detect_gpus()

    def detect_gpus(self) -> List[GpuInfo]:
        """Detect AMD GPUs with lspci and resolve their gfx targets.

        Returns:
            List of GpuInfo objects (empty when no AMD GPU or lspci is missing)
        """
        logger = logging.getLogger(__name__)
        self.gpu_list = []

        try:
            logger.debug("Running lspci to detect AMD GPUs...")
            result = subprocess.run(
                ['lspci', '-d', f'{AMD_PCI_VENDOR}:', '-nn'],
                capture_output=True,
                text=True,
                timeout=10
            )
        except FileNotFoundError:
            logger.debug("lspci command not found")
            return self.gpu_list
        except subprocess.TimeoutExpired as e:
            logger.debug(f"lspci error: {e}")
            return self.gpu_list

        if result.returncode != 0:
            logger.debug(f"lspci failed with return code {result.returncode}")
            return self.gpu_list

        logger.debug(f"lspci output:\n{result.stdout}")
        self.gpu_list = parse_lspci(result.stdout)

        for gpu in self.gpu_list:
            gpu.vram_size_gb = self._detect_vram(gpu.pci_address)

        self._enhance_with_rocminfo()
        self._fill_targets_from_matrix()
        return self.gpu_list

    def _detect_vram(self, pci_address: str) -> int:
        """Largest prefetchable BAR size as a VRAM estimate, in GB."""
        logger = logging.getLogger(__name__)
        if not pci_address:
            return 0
        try:
            result = subprocess.run(
                ['lspci', '-s', pci_address, '-v'],
                capture_output=True,
                text=True,
                timeout=5
            )
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            logger.debug(f"Error getting GPU details for {pci_address}: {e}")
            return 0

        max_size = 0.0
        for size_str, unit in re.findall(r'Memory at [0-9a-f]+ \(.*?\) \[size=(\d+)([MGT])\]',
                                         result.stdout, re.IGNORECASE):
            size = int(size_str)
            unit = unit.upper()
            size_gb = size / 1024 if unit == 'M' else size * 1024 if unit == 'T' else size
            max_size = max(max_size, size_gb)
        logger.debug(f"GPU {pci_address}: vram_size_gb={int(max_size)}")
        return int(max_size)

    def _enhance_with_rocminfo(self):
        """Attach gfx targets and marketing names reported by rocminfo."""
        logger = logging.getLogger(__name__)
        rocminfo_cmd = _get_rocm_tool_path('rocminfo')
        try:
            result = subprocess.run(
                [rocminfo_cmd],
                capture_output=True,
                text=True,
                timeout=10
            )
        except FileNotFoundError:
            logger.debug("rocminfo command not found")
            return
        except subprocess.TimeoutExpired as e:
            logger.debug(f"rocminfo error: {e}")
            return

        if result.returncode != 0:
            logger.debug(f"rocminfo failed with exit code {result.returncode}")
            return

        agents = parse_rocminfo_agents(result.stdout)
        for gpu, agent in zip(self.gpu_list, agents):
            gpu.gfx_target = agent['gfx_target']
            gpu.marketing_name = agent['marketing_name']
            logger.debug(f"GPU {gpu.pci_address}: gfx_target={gpu.gfx_target} (rocminfo)")

    def _fill_targets_from_matrix(self):
        """Fall back to the device-id table for GPUs rocminfo did not report."""
        logger = logging.getLogger(__name__)
        for gpu in self.gpu_list:
            if gpu.gfx_target:
                continue
            family = family_for_device_id(gpu.device_id)
            if family:
                gpu.gfx_target = family
                logger.debug(f"GPU {gpu.pci_address}: gfx_target={family} (device id table)")

    def get_gpus(self) -> List[GpuInfo]:
        """Get detected GPU list."""
        return self.gpu_list

    def has_gpu(self) -> bool:
        """Check if any GPU is detected."""
        return len(self.gpu_list) > 0

    def primary_gpu(self) -> Optional[GpuInfo]:
        """First detected GPU, or None."""
        return self.gpu_list[0] if self.gpu_list else None
