"""Provisioning and validation tooling for ROCm AI containers on AMD GPU workstations."""

__version__ = "0.3.0"
