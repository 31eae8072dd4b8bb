"""System detector combining platform, GPU, and ROCm detection into unified context."""

import os
from dataclasses import dataclass, asdict, field
from typing import Dict, List, Any

from ..constants import Constants
from ..logger import log
from .hardware import HardwareDetector, GpuInfo
from .platform import PlatformDetector
from .rocm_detector import ROCmDetector


def format_memory_size(size_gb: int) -> str:
    """Format memory size with appropriate units (GB or TB).

    Args:
        size_gb: Memory size in GB

    Returns:
        str: Formatted string (e.g., "12 GB", "1.5 TB")
    """
    if size_gb == 0:
        return "0 GB"
    elif size_gb >= 1024:
        return f"{size_gb / 1024:.1f} TB"
    return f"{size_gb} GB"


@dataclass
class SystemContext:
    """System context dataclass containing platform, GPU, and ROCm information."""

    # Platform info
    os_id: str
    os_name: str
    os_version: str
    codename: str
    kernel: str
    hostname: str
    architecture: str

    # GPU info
    gpus: List[GpuInfo] = field(default_factory=list)

    # ROCm info
    rocm_version: str = "Unknown"
    rocm_path: str = "/opt/rocm"
    rocm_install_type: str = "Unknown"
    rocm_package_manager: str = "Unknown"

    # Device nodes present on the host
    device_nodes: Dict[str, bool] = field(default_factory=dict)

    @property
    def gpu_count(self) -> int:
        return len(self.gpus)

    @property
    def primary_gpu(self):
        return self.gpus[0] if self.gpus else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert system context to dictionary representation."""
        data = asdict(self)
        data['gpu_count'] = self.gpu_count
        return data


class SystemDetector:
    """System detector for platform, GPU, and ROCm detection.

    Example:
        >>> detector = SystemDetector()
        >>> context = detector.detect_all()
        >>> print(f"OS: {context.os_name}, GPUs: {context.gpu_count}")
    """

    def __init__(self):
        """Initialize system detector with empty state."""
        self.platform_info = None
        self.hardware = None
        self.rocm_info = None

    def detect_all(self, verbose: bool = True) -> SystemContext:
        """Detect complete system information (platform, GPUs, ROCm).

        Args:
            verbose: Log detection progress (default: True)

        Returns:
            SystemContext: Complete system information
        """
        if verbose:
            log.info("Detecting system information...")

        self.platform_info = PlatformDetector.detect()
        if verbose:
            log.debug(f"Platform: {self.platform_info}")

        self.hardware = HardwareDetector()
        self.hardware.detect_all()
        if verbose:
            log.debug(f"GPUs detected: {len(self.hardware.get_gpus())}")

        self.rocm_info = ROCmDetector.detect_rocm_info()
        if verbose:
            log.debug(f"ROCm: {self.rocm_info['rocm_version']}")

        context = self.build_system_context()

        if verbose:
            log.info("✓ System detection complete")

        return context

    def build_system_context(self) -> SystemContext:
        """Build SystemContext from detected platform, GPUs, and ROCm info.

        Raises:
            RuntimeError: If detect_all() hasn't been called
        """
        if self.platform_info is None or self.hardware is None or self.rocm_info is None:
            raise RuntimeError(
                "System detection not complete. Call detect_all() first."
            )

        return SystemContext(
            os_id=self.platform_info.os_id,
            os_name=self.platform_info.os_name,
            os_version=self.platform_info.os_version,
            codename=self.platform_info.codename,
            kernel=self.platform_info.kernel,
            hostname=self.platform_info.hostname,
            architecture=self.platform_info.architecture,
            gpus=list(self.hardware.get_gpus()),
            rocm_version=self.rocm_info['rocm_version'],
            rocm_path=self.rocm_info['rocm_path'],
            rocm_install_type=self.rocm_info['install_type'],
            rocm_package_manager=self.rocm_info['package_manager'],
            device_nodes={node: os.path.exists(node) for node in Constants.GPU_DEVICES},
        )

    @staticmethod
    def print_system_summary(context: SystemContext):
        """Print formatted system information summary to console."""
        print("\n" + Constants.SEPARATOR_LINE)
        print("SYSTEM INFORMATION")
        print(Constants.SEPARATOR_LINE)
        print(f"OS:           {context.os_name} {context.os_version} ({context.codename})")
        print(f"Kernel:       {context.kernel}")
        print(f"Hostname:     {context.hostname}")
        print(f"Architecture: {context.architecture}")
        print()
        if context.gpus:
            for i, gpu in enumerate(context.gpus):
                print(f"GPU {i}:        {gpu.marketing_name or gpu.product_name}")
                print(f"  PCI:        {gpu.pci_address} [1002:{gpu.device_id}] rev {gpu.revision_id or '?'}")
                print(f"  Target:     {gpu.gfx_target or 'Unknown'}")
                print(f"  VRAM:       {format_memory_size(gpu.vram_size_gb)}")
        else:
            print("GPU:          No AMD GPU detected")
        print()
        print(f"ROCm:         {context.rocm_version}")
        print(f"  Path:       {context.rocm_path}")
        print(f"  Install:    {context.rocm_install_type}")
        for node, present in context.device_nodes.items():
            print(f"  {node + ':':<11} {'present' if present else 'missing'}")
        print(Constants.SEPARATOR_LINE + "\n")

    @staticmethod
    def log_system_info(context: SystemContext):
        """Log system information using logger with formatted output."""
        log.info(f"✓ Platform detected: {context.os_name} {context.os_version}")
        log.info(f"  Kernel: {context.kernel}")

        if context.gpu_count > 0:
            log.info(f"✓ GPU detected: {context.gpu_count} GPU(s)")
            gpu = context.primary_gpu
            log.info(f"  GPU 0: {gpu.product_name} ({gpu.gfx_target or 'unknown target'})")
        else:
            log.warning("⚠ No AMD GPU detected")

        if context.rocm_version != "Unknown":
            log.info(f"✓ ROCm detected: {context.rocm_version} ({context.rocm_install_type})")
        else:
            log.warning("⚠ ROCm not detected")
