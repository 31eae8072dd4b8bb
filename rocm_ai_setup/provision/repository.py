"""Clone or update the setup scripts repository and guide GitHub authentication."""

import shutil
from pathlib import Path
from typing import Callable, Optional

from ..exceptions import RepositoryError, CommandError
from ..logger import log
from ..utils import run_command, command_exists
from .apt import AptPackageManager


AUTH_METHODS = {
    "1": "ssh",
    "2": "token",
    "3": "gh",
}

AUTH_INSTRUCTIONS = {
    "ssh": [
        'Generate SSH key: ssh-keygen -t ed25519 -C "your-email@example.com"',
        "Add to ssh-agent: ssh-add ~/.ssh/id_ed25519",
        "Copy public key: cat ~/.ssh/id_ed25519.pub",
        "Add to GitHub: Settings -> SSH and GPG keys -> New SSH key",
    ],
    "token": [
        "Go to GitHub -> Settings -> Developer settings -> Personal access tokens",
        "Generate new token with 'repo' scope",
        "Use token as password when prompted",
    ],
    "gh": [
        "The GitHub CLI is installed if missing",
        "Follow the prompts of 'gh auth login'",
    ],
}


def confirm(question: str, prompt: Optional[Callable[[str], str]] = None) -> bool:
    """Ask a yes/no question defaulting to no."""
    prompt = prompt or input
    try:
        answer = prompt(f"{question} (y/N): ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


class Repository:
    """A git checkout of the setup scripts repository."""

    def __init__(self, url: str, target_dir: str):
        self.url = url
        self.target_dir = Path(target_dir).expanduser()

    def exists(self) -> bool:
        return self.target_dir.is_dir()

    def clone(self) -> Path:
        """Clone into the target directory.

        Raises:
            RepositoryError: git clone failed (typically missing authentication)
        """
        log.info(f"Cloning {self.url}...")
        try:
            run_command(["git", "clone", self.url, str(self.target_dir)])
        except CommandError as e:
            raise RepositoryError(f"Failed to clone repository. Check your GitHub access.\n{e}")
        log.info(f"Repository ready at {self.target_dir}")
        return self.target_dir

    def update(self) -> Path:
        """Pull the latest changes into an existing checkout.

        Raises:
            RepositoryError: git pull failed
        """
        log.info(f"Updating {self.target_dir}...")
        try:
            run_command(["git", "pull"], cwd=str(self.target_dir))
        except CommandError as e:
            raise RepositoryError(f"Failed to update repository at {self.target_dir}\n{e}")
        return self.target_dir

    def clone_or_update(self, reclone: Optional[bool] = None,
                        prompt: Optional[Callable[[str], str]] = None) -> Path:
        """Clone, or when the directory exists re-clone or pull.

        Args:
            reclone: Remove and clone again (True) or pull (False); None asks
            prompt: Input function used when asking (default: input)
        """
        if not self.exists():
            return self.clone()

        log.warning(f"Directory {self.target_dir} already exists")
        if reclone is None:
            reclone = confirm("Remove and re-clone?", prompt)

        if reclone:
            shutil.rmtree(self.target_dir)
            return self.clone()

        log.info("Using existing directory")
        return self.update()


def print_auth_instructions(method: str) -> None:
    """Print the numbered setup steps for an authentication method."""
    print(f"\nSetup Instructions ({method}):")
    for i, step in enumerate(AUTH_INSTRUCTIONS[method], start=1):
        print(f"{i}. {step}")
    print()


def setup_github_auth(choice: Optional[str] = None,
                      prompt: Optional[Callable[[str], str]] = None,
                      apt: Optional[AptPackageManager] = None) -> Optional[str]:
    """Guide the user through GitHub authentication for a private repository.

    Args:
        choice: "1"/"2"/"3" or a method name; None asks
        prompt: Input function used when asking

    Returns:
        The selected method, or None for an invalid choice
    """
    prompt = prompt or input
    log.info("For private repositories, you'll need GitHub authentication.")
    if choice is None:
        print("\nChoose your authentication method:")
        print("1. SSH Key (recommended)")
        print("2. Personal Access Token")
        print("3. GitHub CLI")
        try:
            choice = prompt("Enter choice (1-3): ").strip()
        except EOFError:
            choice = ""

    method = AUTH_METHODS.get(choice, choice if choice in AUTH_INSTRUCTIONS else None)
    if method is None:
        log.warning("Invalid choice. Proceeding with default git authentication.")
        return None

    log.info(f"{method} authentication selected")
    print_auth_instructions(method)

    if method == "ssh":
        prompt("Press Enter when SSH key is configured...")
    elif method == "gh":
        if not command_exists("gh"):
            log.info("Installing GitHub CLI...")
            (apt or AptPackageManager()).install(["gh"])
        log.info("Authenticating with GitHub CLI...")
        run_command(["gh", "auth", "login"], capture=False)

    return method
