"""
Custom exceptions for workstation provisioning and container checks.
"""

from typing import Type, List, Dict, Optional, Sequence


class SetupError(Exception):
    """Base exception for all rocm-ai-setup errors."""
    pass


class ConfigurationError(SetupError):
    """Configuration file errors (missing, invalid YAML, validation failures)."""
    pass


class PrerequisiteError(SetupError):
    """Host requirements not met (OS release, network, sudo)."""
    pass


class HardwareDetectionError(SetupError):
    """GPU detection failures."""
    pass


class ROCmNotFoundError(SetupError):
    """ROCm not found or version cannot be determined."""
    pass


class ROCmVersionError(SetupError):
    """ROCm version incompatibility or requirement not met."""
    pass


class CompatibilityError(SetupError):
    """No known GPU/ROCm/framework combination matches the request."""
    pass


class CommandError(SetupError):
    """External command failed."""

    def __init__(self, cmd: Sequence[str], returncode: int, output: Optional[str] = None):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.output = output or ""
        message = f"Command failed with exit code {returncode}: {' '.join(self.cmd)}"
        if self.output.strip():
            message += f"\n{self.output.strip()[-2000:]}"
        super().__init__(message)


class RepositoryError(SetupError):
    """Git clone or update of the setup repository failed."""
    pass


class AnsibleError(SetupError):
    """Ansible is unavailable, a playbook is missing, or a run failed."""
    pass


class DockerError(SetupError):
    """Docker is unavailable or a container configuration is invalid."""
    pass


class LibraryMountConflictError(DockerError):
    """A host ROCm/driver library directory would be mounted into a container."""
    pass


class ValidationError(SetupError):
    """Data or input validation failures."""
    pass


# Exception helper functions
def raise_with_solution(exception_class: Type, message: str, solutions: List) -> None:
    """Raise exception with formatted error message and suggested solutions.

    Args:
        exception_class: Exception class to raise
        message: Error message
        solutions: List of suggested solution strings
    """
    solution_text = "\n".join(f"  {i+1}. {sol}" for i, sol in enumerate(solutions))
    full_message = f"{message}\n\nSuggested solutions:\n{solution_text}"
    raise exception_class(full_message)


def format_error_with_context(error: Exception, context: Dict) -> str:
    """Format error message with additional context information.

    Args:
        error: Original exception
        context: Context dict (e.g., command, target_user)

    Returns:
        str: Formatted error message with context
    """
    context_str = "\n".join(f"  {k}: {v}" for k, v in context.items())
    return f"{str(error)}\n\nContext:\n{context_str}"
