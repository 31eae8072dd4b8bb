"""Host provisioning: prerequisites, repository, Ansible, and directory layout."""

from .apt import AptPackageManager
from .ansible_runner import AnsibleRunner, detect_real_user, user_home
from .layout import Layout, create_layout, verify_layout
from .repository import Repository, setup_github_auth

__all__ = [
    'AptPackageManager',
    'AnsibleRunner',
    'detect_real_user',
    'user_home',
    'Layout',
    'create_layout',
    'verify_layout',
    'Repository',
    'setup_github_auth',
]
