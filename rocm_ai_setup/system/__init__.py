"""System detection module for platform, GPU, and ROCm information."""

from .system_detector import SystemDetector, SystemContext, format_memory_size
from .hardware import HardwareDetector, GpuInfo
from .platform import PlatformDetector, PlatformInfo
from .rocm_detector import ROCmDetector

__all__ = [
    'SystemDetector',
    'SystemContext',
    'format_memory_size',
    'HardwareDetector',
    'GpuInfo',
    'PlatformDetector',
    'PlatformInfo',
    'ROCmDetector',
]
