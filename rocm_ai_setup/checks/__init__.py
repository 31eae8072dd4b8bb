"""Container integration checks, readiness checks, and result reporting."""

from .doctor import run_doctor
from .integration import ContainerCheck, IntegrationSuite, default_checks
from .report import CheckResult, Report

__all__ = [
    'run_doctor',
    'ContainerCheck',
    'IntegrationSuite',
    'default_checks',
    'CheckResult',
    'Report',
]
