"""ROCm container integration checks.

Runs throwaway containers against the host GPU to confirm that ROCm sees the
device, PyTorch can allocate on it, pip stays on binary wheels, and the
stability environment reaches the container.
"""

import re
import textwrap
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..compat.gpu_matrix import STABILITY_ENVIRONMENT
from ..constants import Constants
from ..logger import log
from .report import CheckResult

PASS = Constants.CHECK_STATUS_PASS
FAIL = Constants.CHECK_STATUS_FAIL
WARN = Constants.CHECK_STATUS_WARN
SKIP = Constants.CHECK_STATUS_SKIP

Evaluator = Callable[[int, str], Tuple[str, str]]


@dataclass
class ContainerCheck:
    """One containerized check: command, extra environment, and verdict."""
    name: str
    description: str
    command: List[str]
    evaluate: Evaluator
    env: Dict[str, str] = field(default_factory=dict)
    requires_torch: bool = False


def _last_line(output: str) -> str:
    lines = [line for line in output.strip().splitlines() if line.strip()]
    return lines[-1].strip() if lines else ""


def _evaluate_rocm_detection(returncode: int, output: str) -> Tuple[str, str]:
    if returncode != 0:
        return FAIL, f"rocminfo exited with {returncode}: {_last_line(output)}"
    targets = re.findall(r'Name:\s+(gfx[0-9a-f]+)', output)
    if not targets:
        return FAIL, "rocminfo did not list a GPU agent"
    return PASS, f"GPU agent(s): {', '.join(sorted(set(targets)))}"


def _evaluate_pytorch_gpu(returncode: int, output: str) -> Tuple[str, str]:
    if returncode != 0:
        return FAIL, f"python exited with {returncode}: {_last_line(output)}"
    if "ROCm available: True" not in output:
        return FAIL, "torch.cuda.is_available() returned False"
    name = re.search(r'GPU name: (.+)', output)
    return PASS, name.group(1).strip() if name else "GPU available"


def _evaluate_wheels(returncode: int, output: str) -> Tuple[str, str]:
    if returncode != 0:
        return FAIL, f"pip exited with {returncode}: {_last_line(output)}"
    if "Building wheel" in output:
        return WARN, "May have built from source"
    return PASS, "Successfully used pre-compiled wheels only"


def _evaluate_memory(returncode: int, output: str) -> Tuple[str, str]:
    if returncode != 0:
        return FAIL, f"python exited with {returncode}: {_last_line(output)}"
    if "GPU configuration successful" not in output:
        return FAIL, "GPU not available with allocator configuration"
    allocated = re.search(r'Memory allocated: (.+)', output)
    return PASS, f"Allocated {allocated.group(1).strip()}" if allocated else "Allocator configured"


def _evaluate_stability_env(returncode: int, output: str) -> Tuple[str, str]:
    if returncode != 0:
        return FAIL, f"env exited with {returncode}"
    missing = [key for key, value in STABILITY_ENVIRONMENT.items() if f"{key}={value}" not in output]
    if missing:
        return FAIL, f"Missing in container: {', '.join(missing)}"
    return PASS, "Stability environment configured"


PYTORCH_GPU_SCRIPT = textwrap.dedent("""\
    import torch
    print(f'PyTorch version: {torch.__version__}')
    print(f'ROCm available: {torch.cuda.is_available()}')
    print(f'GPU count: {torch.cuda.device_count()}')
    if torch.cuda.is_available():
        print(f'GPU name: {torch.cuda.get_device_name(0)}')
        print(f'GPU capability: {torch.cuda.get_device_capability(0)}')
""")

GPU_MEMORY_SCRIPT = textwrap.dedent("""\
    import torch
    print(f'GPU available: {torch.cuda.is_available()}')
    if torch.cuda.is_available():
        x = torch.ones((1024, 1024), device='cuda')
        print(f'Memory allocated: {torch.cuda.memory_allocated() / 1024**2:.2f} MB')
        print('GPU configuration successful')
""")


def default_checks() -> List[ContainerCheck]:
    """The five container checks in execution order."""
    stability_pattern = "|".join(STABILITY_ENVIRONMENT)
    return [
        ContainerCheck(
            name="rocm_detection",
            description="ROCm Detection",
            command=["bash", "-c", "rocminfo | grep -E 'Name:|Marketing Name:'"],
            evaluate=_evaluate_rocm_detection,
        ),
        ContainerCheck(
            name="pytorch_gpu",
            description="PyTorch GPU Support",
            command=["python3", "-c", PYTORCH_GPU_SCRIPT],
            evaluate=_evaluate_pytorch_gpu,
            requires_torch=True,
        ),
        ContainerCheck(
            name="precompiled_wheels",
            description="Pre-compiled Wheels Installation",
            command=["pip", "install", "--no-cache-dir", "--only-binary=:all:", "diffusers", "transformers"],
            evaluate=_evaluate_wheels,
            env={"PIP_ONLY_BINARY": ":all:"},
        ),
        ContainerCheck(
            name="gpu_memory",
            description="GPU Memory Configuration",
            command=["python3", "-c", GPU_MEMORY_SCRIPT],
            evaluate=_evaluate_memory,
            env={"PYTORCH_HIP_ALLOC_CONF": "max_split_size_mb:128"},
            requires_torch=True,
        ),
        ContainerCheck(
            name="stability_env",
            description="Stability Environment Variables",
            command=["bash", "-c", f"env | grep -E '{stability_pattern}'"],
            evaluate=_evaluate_stability_env,
            env=dict(STABILITY_ENVIRONMENT),
        ),
    ]


class IntegrationSuite:
    """Runs container checks against one image.

    Args:
        docker: Object with ``run(image, command, env, group_ids) -> (rc, output)``
        image: Image under test
        environment: Base environment (usually the compatibility profile's)
        framework: Frameworks other than pytorch skip the torch checks
    """

    def __init__(self, docker, image: str,
                 environment: Optional[Dict[str, str]] = None,
                 framework: str = "pytorch",
                 group_ids: Optional[List[int]] = None,
                 checks: Optional[List[ContainerCheck]] = None):
        self.docker = docker
        self.image = image
        self.environment = dict(environment or {})
        self.framework = framework
        self.group_ids = group_ids
        self.checks = checks if checks is not None else default_checks()

    def select(self, names: Optional[List[str]] = None) -> List[ContainerCheck]:
        """Checks by name or 1-based position; all when ``names`` is empty.

        Raises:
            ValueError: Unknown check
        """
        if not names:
            return list(self.checks)
        by_name = {check.name: check for check in self.checks}
        selected = []
        for name in names:
            if name.isdigit() and 1 <= int(name) <= len(self.checks):
                selected.append(self.checks[int(name) - 1])
            elif name in by_name:
                selected.append(by_name[name])
            else:
                raise ValueError(f"Unknown check '{name}' (choose from: {', '.join(by_name)})")
        return selected

    def run_check(self, index: int, check: ContainerCheck) -> CheckResult:
        log.info(f"Test {index}: {check.description}")
        if check.requires_torch and self.framework != "pytorch":
            log.info(f"  skipped for {self.framework} image")
            return CheckResult(check.name, SKIP, 0.0, f"Requires PyTorch image ({self.framework} selected)")

        env = dict(self.environment)
        env.update(check.env)
        start = time.time()
        returncode, output = self.docker.run(self.image, check.command, env=env, group_ids=self.group_ids)
        duration = time.time() - start
        log.debug(output)

        status, detail = check.evaluate(returncode, output)
        marker = {PASS: "✅", WARN: "⚠️ ", FAIL: "❌"}.get(status, "")
        log.info(f"{marker} {check.description}: {detail}")
        return CheckResult(check.name, status, duration, detail)

    def run(self, selected: Optional[List[str]] = None, stop_on_failure: bool = False) -> List[CheckResult]:
        """Run selected checks in order and return their results."""
        log.info(Constants.SEPARATOR_LINE)
        log.info("ROCm Docker Integration Test")
        log.info(f"Image: {self.image}")
        log.info(Constants.SEPARATOR_LINE)

        results = []
        for index, check in enumerate(self.select(selected), start=1):
            result = self.run_check(index, check)
            results.append(result)
            if stop_on_failure and not result.passed:
                log.error("Stopping after first failure")
                break
        return results
