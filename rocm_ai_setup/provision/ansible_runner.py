"""Install Ansible and run the bundled setup and verification playbooks."""

import json
import os
import pwd
from pathlib import Path
from typing import Dict, Mapping, Optional, Any

from ..constants import Constants
from ..exceptions import AnsibleError, CommandError
from ..logger import log
from ..utils import command_exists, run_command
from .apt import AptPackageManager
from .prerequisites import has_passwordless_sudo


def detect_real_user(environ: Mapping[str, str] = os.environ, home_root: str = "/home") -> str:
    """Detect the workstation user, not root, even when running under sudo.

    Order: $SUDO_USER, $USER, and as a last resort for root the first
    directory under /home.
    """
    user = environ.get("SUDO_USER") or environ.get("USER") or ""
    if user and user != "root":
        return user

    try:
        homes = sorted(p.name for p in Path(home_root).iterdir() if p.is_dir())
    except OSError:
        homes = []
    if homes:
        log.debug(f"Falling back to first home directory user: {homes[0]}")
        return homes[0]
    return user or "root"


def user_home(user: str, home_root: str = "/home") -> str:
    """Home directory of ``user`` from the password database, else <home_root>/<user>."""
    try:
        return pwd.getpwnam(user).pw_dir
    except KeyError:
        log.debug(f"User {user} not in password database; assuming {home_root}/{user}")
        return os.path.join(home_root, user)


class AnsibleRunner:
    """Runs ansible-playbook against the local machine."""

    def __init__(self, playbook_dir: Optional[str] = None,
                 apt: Optional[AptPackageManager] = None,
                 verbosity: int = 1):
        self.playbook_dir = Path(playbook_dir or Constants.PLAYBOOK_DIR).expanduser()
        self.apt = apt or AptPackageManager()
        self.verbosity = verbosity

    def playbook_path(self, name: str) -> Path:
        """Absolute path of a playbook.

        Raises:
            AnsibleError: Directory or playbook missing
        """
        if not self.playbook_dir.is_dir():
            raise AnsibleError(
                f"Ansible directory not found at {self.playbook_dir}\n"
                "Please ensure the playbook files are present"
            )
        path = self.playbook_dir / name
        if not path.is_file():
            raise AnsibleError(f"{name} not found in {self.playbook_dir}")
        return path

    def ensure_installed(self) -> str:
        """Install Ansible with apt when missing; returns its version line."""
        if not command_exists("ansible-playbook"):
            log.info("Installing Ansible...")
            self.apt.install(["ansible"])

        try:
            version = run_command(["ansible", "--version"]).stdout.splitlines()[0]
        except CommandError as e:
            raise AnsibleError(f"Ansible is not usable after installation: {e}")
        log.info(f"Ansible available: {version}")
        return version

    def _verbosity_flag(self):
        return ["-" + "v" * self.verbosity] if self.verbosity > 0 else []

    def run_setup(self, target_user: str, extra_vars: Optional[Dict[str, Any]] = None) -> None:
        """Run setup-ai-system.yml for ``target_user``.

        Raises:
            AnsibleError: The playbook run failed
        """
        playbook = self.playbook_path(Constants.SETUP_PLAYBOOK)
        log.info("Running AI system setup playbook...")
        log.info(f"Detected real user: {target_user}")

        if has_passwordless_sudo():
            log.info("Passwordless sudo detected. Running playbook...")
            become = []
        else:
            log.info("Sudo password will be requested by the playbook when needed.")
            become = ["--ask-become-pass"]

        cmd = ["ansible-playbook", str(playbook)] + self._verbosity_flag() + become
        cmd += ["--extra-vars", f"target_user={target_user}"]
        if extra_vars:
            cmd += ["--extra-vars", json.dumps(extra_vars, sort_keys=True)]

        try:
            run_command(cmd, capture=False, cwd=str(self.playbook_dir))
        except CommandError as e:
            raise AnsibleError(f"Setup playbook failed with exit code {e.returncode}")
        log.info("Playbook execution completed")

    def run_verify(self, user: str, home: str) -> int:
        """Run verify-setup.yml locally with explicit user context.

        Returns:
            The ansible-playbook exit code
        """
        playbook = self.playbook_path(Constants.VERIFY_PLAYBOOK)
        log.info(f"Running verification checks for user: {user}")
        log.info(f"Home directory: {home}")

        cmd = [
            "ansible-playbook", str(playbook),
            "--connection=local",
            "--inventory=localhost,",
            "--extra-vars", f"ansible_user={user}",
            "--extra-vars", f"ansible_user_dir={home}",
        ] + self._verbosity_flag()

        result = run_command(cmd, check=False, capture=False, cwd=str(self.playbook_dir))
        if result.returncode == 0:
            log.info("=== Verification completed successfully! ===")
        else:
            log.error(f"=== Verification failed with exit code {result.returncode} ===")
            log.warning("This may be expected if directories haven't been created yet.")
        return result.returncode
