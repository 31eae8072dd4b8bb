"""Thin wrapper around the docker CLI for GPU containers."""

import grp
import pwd
from typing import Dict, List, Optional, Tuple

from ..constants import Constants
from ..exceptions import DockerError, CommandError
from ..logger import log
from ..utils import command_exists, run_command


class DockerClient:
    """Runs ROCm containers with GPU device access through the docker CLI."""

    def __init__(self, docker_cmd: str = "docker", timeout: int = Constants.TIMEOUT_CONTAINER_CHECK):
        self.docker_cmd = docker_cmd
        self.timeout = timeout

    def is_installed(self) -> bool:
        return command_exists(self.docker_cmd)

    def is_daemon_running(self) -> bool:
        """True when ``docker info`` succeeds for the current user."""
        if not self.is_installed():
            return False
        return run_command([self.docker_cmd, "info"], check=False, timeout=Constants.TIMEOUT_MEDIUM).returncode == 0

    @staticmethod
    def user_in_group(user: str, group: str) -> bool:
        """Membership from the group database, including the primary group."""
        try:
            group_entry = grp.getgrnam(group)
        except KeyError:
            return False
        if user in group_entry.gr_mem:
            return True
        try:
            return pwd.getpwnam(user).pw_gid == group_entry.gr_gid
        except KeyError:
            return False

    def user_in_docker_group(self, user: str) -> bool:
        return self.user_in_group(user, Constants.DOCKER_GROUP)

    def ensure_available(self) -> None:
        """Raises DockerError when docker is missing or the daemon is unreachable."""
        if not self.is_installed():
            raise DockerError("docker is not installed; run 'rocm-ai-setup install' first")
        if not self.is_daemon_running():
            raise DockerError(
                "Cannot talk to the Docker daemon. Is it running, and is your user in the "
                "'docker' group (log out and back in after setup)?"
            )

    def build_run_command(self,
                          image: str,
                          command: List[str],
                          env: Optional[Dict[str, str]] = None,
                          devices: Optional[List[str]] = None,
                          group_ids: Optional[List[int]] = None,
                          shell: Optional[str] = None) -> List[str]:
        """``docker run --rm`` argument list with GPU devices and environment.

        ``shell`` runs a command line through ``bash -c`` instead of ``command``.
        """
        cmd = [self.docker_cmd, "run", "--rm"]
        for device in devices if devices is not None else Constants.GPU_DEVICES:
            cmd.append(f"--device={device}")
        for gid in group_ids or []:
            cmd += ["--group-add", str(gid)]
        for key, value in (env or {}).items():
            cmd += ["-e", f"{key}={value}"]
        cmd.append(image)
        cmd += ["bash", "-c", shell] if shell else list(command)
        return cmd

    def run(self, image: str, command: List[str], env: Optional[Dict[str, str]] = None,
            group_ids: Optional[List[int]] = None) -> Tuple[int, str]:
        """Run a throwaway container; returns (exit code, combined output)."""
        cmd = self.build_run_command(image, command, env=env, group_ids=group_ids)
        try:
            result = run_command(cmd, check=False, timeout=self.timeout)
        except CommandError as e:
            return e.returncode, e.output
        return result.returncode, result.stdout

    def pull(self, image: str) -> None:
        log.info(f"Pulling {image} (this can take a while)...")
        try:
            run_command([self.docker_cmd, "pull", image], capture=False, timeout=self.timeout)
        except CommandError as e:
            raise DockerError(f"Failed to pull {image}: {e}")

    def compose_up(self, service: str, compose_file: str) -> None:
        """``docker compose -f FILE up -d SERVICE``."""
        try:
            run_command([self.docker_cmd, "compose", "-f", compose_file, "up", "-d", service], capture=False)
        except CommandError as e:
            raise DockerError(f"Failed to start {service}: {e}")
