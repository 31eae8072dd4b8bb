"""Centralized constants for provisioning, container checks, and configuration."""

from pathlib import Path


class Constants:
    """Application-wide constants for paths, timeouts, status codes, and config values."""

    # File Paths
    PACKAGE_DIR = Path(__file__).resolve().parent
    DEFAULT_CONFIG_FILE = PACKAGE_DIR / "configs" / "config.yml"
    PLAYBOOK_DIR = PACKAGE_DIR / "playbooks"
    USER_CONFIG_FILE = Path("~/.config/rocm-ai-setup/config.yml")
    LOCAL_CONFIG_NAME = "rocm-ai-setup.yml"
    CONFIG_ENV_VAR = "ROCM_AI_SETUP_CONFIG"
    DEFAULT_LOG_DIR = "./logs"
    DEFAULT_RESULTS_DIR = "./results"

    # Playbooks
    SETUP_PLAYBOOK = "setup-ai-system.yml"
    VERIFY_PLAYBOOK = "verify-setup.yml"

    # Log Levels
    LOG_LEVEL_DEBUG = "DEBUG"
    LOG_LEVEL_INFO = "INFO"
    LOG_LEVEL_WARNING = "WARNING"
    LOG_LEVEL_ERROR = "ERROR"
    LOG_LEVEL_CRITICAL = "CRITICAL"

    # Default Values
    DEFAULT_LOG_LEVEL = LOG_LEVEL_INFO
    DEFAULT_LOG_MAX_SIZE_MB = 10
    DEFAULT_LOG_BACKUP_COUNT = 5
    DEFAULT_REPO_URL = "https://github.com/Zmotive/rx6700-ai-setup-scripts.git"
    DEFAULT_TARGET_DIR = "~/ai-setup-scripts"
    DEFAULT_UBUNTU_RELEASE = "22.04"
    DEFAULT_CONNECTIVITY_URL = "https://google.com"
    DEFAULT_ROCM_VERSION = "6.4.4"
    DEFAULT_MIN_ROCM_VERSION = "6.0.0"
    DEFAULT_FRAMEWORK = "pytorch"
    DEFAULT_PROJECTS_DIR = "~/Projects"
    DEFAULT_LAYOUT_SUBDIRS = [
        "models",
        "datasets",
        "outputs",
        "notebooks",
        "cache/huggingface",
        "cache/pip",
        "cache/torch",
    ]
    DEFAULT_COMPOSE_FILE = "docker-compose.yml"
    DEFAULT_SHM_SIZE = "8g"
    CONTAINER_WORKSPACE = "/workspace"

    # GPU device nodes and groups
    GPU_DEVICES = ["/dev/kfd", "/dev/dri"]
    GPU_GROUPS = ["video", "render"]
    DOCKER_GROUP = "docker"

    # Check Status
    CHECK_STATUS_PASS = "PASS"
    CHECK_STATUS_FAIL = "FAIL"
    CHECK_STATUS_WARN = "WARN"
    CHECK_STATUS_SKIP = "SKIP"

    # Exit Codes
    EXIT_SUCCESS = 0
    EXIT_FAILURE = 1
    EXIT_CONFIG_ERROR = 2
    EXIT_REQUIREMENT_ERROR = 3
    EXIT_TEST_FAILURE = 4

    # Timeouts (seconds)
    TIMEOUT_SHORT = 5
    TIMEOUT_MEDIUM = 30
    TIMEOUT_LONG = 60
    TIMEOUT_VERY_LONG = 300
    TIMEOUT_CONTAINER_CHECK = 1800

    # Display Separators
    SEPARATOR_WIDTH = 70
    SEPARATOR_CHAR = "="
    SEPARATOR_LINE = SEPARATOR_CHAR * SEPARATOR_WIDTH


SEPARATOR_LINE = Constants.SEPARATOR_LINE
