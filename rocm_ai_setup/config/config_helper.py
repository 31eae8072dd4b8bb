"""Configuration helper for discovery, loading, logging setup, and section defaults."""

import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any

from ..logger import log, set_log_level
from ..constants import Constants
from ..exceptions import ConfigurationError
from .config_parser import ConfigParser


class ConfigHelper:
    """Configuration helper for file discovery, loading, validation, and logging setup."""

    @staticmethod
    def find_config_file(config_file: Optional[str] = None) -> str:
        """Find configuration file in standard locations.

        Search order:
        1. Provided config_file path (if given)
        2. $ROCM_AI_SETUP_CONFIG
        3. ./rocm-ai-setup.yml
        4. ~/.config/rocm-ai-setup/config.yml
        5. Bundled default configuration

        Args:
            config_file: Explicit config file path (optional)

        Returns:
            Path to configuration file
        """
        if config_file:
            return config_file

        env_config = os.environ.get(Constants.CONFIG_ENV_VAR)
        if env_config:
            return env_config

        config_path = Path.cwd() / Constants.LOCAL_CONFIG_NAME
        if config_path.exists():
            return str(config_path)

        config_path = Constants.USER_CONFIG_FILE.expanduser()
        if config_path.exists():
            return str(config_path)

        return str(Constants.DEFAULT_CONFIG_FILE)

    @staticmethod
    def load_config(config_file: str,
                    validate: bool = True,
                    required: bool = False) -> Optional[ConfigParser]:
        """Load configuration file with error handling.

        Args:
            config_file: Path to configuration file
            validate: Validate configuration against schema
            required: Raise exception if config file not found or invalid

        Returns:
            ConfigParser instance or None if file not usable and not required

        Raises:
            FileNotFoundError: If config file not found and required=True
            ConfigurationError: If config file is invalid and required=True
        """
        if not Path(config_file).exists():
            if required:
                raise FileNotFoundError(f"Config file not found: {config_file}")
            log.warning(f"Config file not found: {config_file}")
            log.warning("Using default configuration")
            return None

        try:
            config = ConfigParser(config_file, validate=validate)
            log.debug(f"Loaded config: {config_file}")
            return config
        except ConfigurationError as e:
            if required:
                raise
            log.warning(f"Failed to load config: {e}")
            log.warning("Using default configuration")
            return None

    @staticmethod
    def configure_logging(config: Optional[ConfigParser],
                          default_level: str = Constants.DEFAULT_LOG_LEVEL):
        """Configure logging from configuration.

        Sets log level and optionally enables file logging with rotation.

        Args:
            config: ConfigParser instance (None = use defaults)
            default_level: Default log level if config not available
        """
        if not config:
            set_log_level(default_level)
            return

        core_config = config.get_section('Core')

        log_level = core_config.get('LogLevel', default_level)
        set_log_level(log_level)
        log.debug(f"Log level set to: {log_level}")

        if core_config.get('LogToFile', False):
            log_dir = Path(core_config.get('LogDirectory', Constants.DEFAULT_LOG_DIR)).expanduser()
            max_size_mb = core_config.get('LogMaxSizeMB', Constants.DEFAULT_LOG_MAX_SIZE_MB)
            backup_count = core_config.get('LogBackupCount', Constants.DEFAULT_LOG_BACKUP_COUNT)

            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            log_file = log_dir / f'rocm_ai_setup_{timestamp}.log'

            log.enable_file_logging(
                str(log_file),
                max_bytes=max_size_mb * 1024 * 1024,
                backup_count=backup_count
            )

    @staticmethod
    def get_setup_config(config: Optional[ConfigParser]) -> Dict[str, Any]:
        """Get provisioning settings.

        Returns:
            Dictionary with repo_url, target_dir, target_user, ubuntu_release,
            connectivity_url, rocm_version, min_rocm_version and playbook_dir
        """
        section = config.get_section('Setup') if config else {}
        return {
            'repo_url': section.get('RepoURL', Constants.DEFAULT_REPO_URL),
            'target_dir': section.get('TargetDir', Constants.DEFAULT_TARGET_DIR),
            'target_user': section.get('TargetUser', ''),
            'ubuntu_release': section.get('UbuntuRelease', Constants.DEFAULT_UBUNTU_RELEASE),
            'connectivity_url': section.get('ConnectivityURL', Constants.DEFAULT_CONNECTIVITY_URL),
            'rocm_version': section.get('ROCmVersion', Constants.DEFAULT_ROCM_VERSION),
            'min_rocm_version': section.get('MinROCmVersion', Constants.DEFAULT_MIN_ROCM_VERSION),
            'playbook_dir': section.get('PlaybookDirectory', '') or str(Constants.PLAYBOOK_DIR),
        }

    @staticmethod
    def get_layout_config(config: Optional[ConfigParser]) -> Dict[str, Any]:
        """Get directory layout settings."""
        section = config.get_section('Layout') if config else {}
        return {
            'projects_dir': section.get('ProjectsDirectory', Constants.DEFAULT_PROJECTS_DIR),
            'subdirectories': list(section.get('Subdirectories', Constants.DEFAULT_LAYOUT_SUBDIRS)),
        }

    @staticmethod
    def get_docker_config(config: Optional[ConfigParser]) -> Dict[str, Any]:
        """Get container settings."""
        section = config.get_section('Docker') if config else {}
        return {
            'framework': section.get('Framework', Constants.DEFAULT_FRAMEWORK),
            'image': section.get('Image', ''),
            'shm_size': section.get('ShmSize', Constants.DEFAULT_SHM_SIZE),
            'stability': section.get('StabilityProfile', None),
            'gfx_target': section.get('GFXTarget', ''),
            'environment': {k: str(v) for k, v in (section.get('Environment') or {}).items()},
            'volumes': list(section.get('Volumes') or []),
        }

    @staticmethod
    def get_results_config(config: Optional[ConfigParser]) -> Dict[str, Any]:
        """Get check result output settings."""
        section = config.get_section('Results') if config else {}
        return {
            'output_dir': section.get('OutputDirectory', Constants.DEFAULT_RESULTS_DIR),
            'save_json': section.get('SaveJSON', True),
        }
