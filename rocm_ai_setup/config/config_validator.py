"""Configuration validation using JSON Schema for early error detection."""

from jsonschema import validate, ValidationError, Draft7Validator
from typing import Dict, Any, Tuple, List


LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Configuration schema definition
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "Config": {
            "type": "object",
            "properties": {
                "Core": {
                    "type": "object",
                    "properties": {
                        "LogLevel": {
                            "type": "string",
                            "enum": LOG_LEVELS,
                            "description": "Logging level"
                        },
                        "LogToFile": {
                            "type": "boolean",
                            "description": "Enable file logging"
                        },
                        "LogDirectory": {
                            "type": "string",
                            "minLength": 1,
                            "description": "Directory for log files"
                        },
                        "LogMaxSizeMB": {
                            "type": "integer",
                            "minimum": 1,
                            "description": "Maximum log file size in MB before rotation"
                        },
                        "LogBackupCount": {
                            "type": "integer",
                            "minimum": 0,
                            "description": "Number of backup log files to keep"
                        }
                    },
                    "required": ["LogLevel"]
                },
                "Setup": {
                    "type": "object",
                    "properties": {
                        "RepoURL": {
                            "type": "string",
                            "minLength": 1,
                            "description": "Git URL of the setup scripts repository"
                        },
                        "TargetDir": {
                            "type": "string",
                            "minLength": 1,
                            "description": "Where the setup repository is cloned"
                        },
                        "TargetUser": {
                            "type": "string",
                            "description": "Workstation user (empty = detect)"
                        },
                        "UbuntuRelease": {
                            "type": "string",
                            "pattern": "^[0-9]{2}\\.[0-9]{2}$",
                            "description": "Required Ubuntu release"
                        },
                        "ConnectivityURL": {
                            "type": "string",
                            "format": "uri",
                            "description": "URL probed for internet connectivity"
                        },
                        "ROCmVersion": {
                            "type": "string",
                            "pattern": "^[0-9]+\\.[0-9]+(\\.[0-9]+)?$",
                            "description": "ROCm release to install and target"
                        },
                        "MinROCmVersion": {
                            "type": "string",
                            "description": "Minimum host ROCm version accepted by doctor"
                        },
                        "PlaybookDirectory": {
                            "type": "string",
                            "description": "Directory holding the Ansible playbooks (empty = bundled)"
                        }
                    }
                },
                "Layout": {
                    "type": "object",
                    "properties": {
                        "ProjectsDirectory": {
                            "type": "string",
                            "minLength": 1,
                            "description": "Root of the AI projects layout"
                        },
                        "Subdirectories": {
                            "type": "array",
                            "items": {"type": "string", "minLength": 1},
                            "uniqueItems": True,
                            "description": "Sub-directories created under the projects root"
                        }
                    }
                },
                "Docker": {
                    "type": "object",
                    "properties": {
                        "Framework": {
                            "type": "string",
                            "enum": ["pytorch", "tensorflow"],
                            "description": "Default AI framework image"
                        },
                        "Image": {
                            "type": "string",
                            "description": "Image override (empty = from compatibility matrix)"
                        },
                        "ShmSize": {
                            "type": "string",
                            "pattern": "^[0-9]+[bkmg]?$",
                            "description": "Container shared memory size"
                        },
                        "StabilityProfile": {
                            "type": ["boolean", "null"],
                            "description": "Force stability variables on/off (null = by GPU)"
                        },
                        "GFXTarget": {
                            "type": "string",
                            "description": "GPU gfx target override (empty = detect)"
                        },
                        "Environment": {
                            "type": "object",
                            "additionalProperties": {"type": ["string", "number", "boolean"]},
                            "description": "Extra container environment variables"
                        },
                        "Volumes": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Extra host:container volume mounts"
                        }
                    }
                },
                "Results": {
                    "type": "object",
                    "properties": {
                        "OutputDirectory": {
                            "type": "string",
                            "minLength": 1,
                            "description": "Directory for check result files"
                        },
                        "SaveJSON": {
                            "type": "boolean",
                            "description": "Save check results in JSON format"
                        }
                    },
                    "required": ["OutputDirectory"]
                }
            },
            "required": ["Core"]
        }
    },
    "required": ["Config"]
}


class ConfigValidator:
    """Configuration validator with schema validation and detailed error reporting."""

    @staticmethod
    def validate_config(config: Dict[str, Any]) -> None:
        """Validate configuration against schema.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If configuration is invalid
        """
        try:
            validate(instance=config, schema=CONFIG_SCHEMA)
        except ValidationError as e:
            path = '.'.join(str(p) for p in e.path) if e.path else 'root'
            raise ValueError(
                f"Configuration validation failed:\n"
                f"  Location: {path}\n"
                f"  Error: {e.message}\n"
                f"  Schema: {e.schema.get('description', 'N/A')}"
            )

    @staticmethod
    def validate_and_report(config: Dict[str, Any]) -> Tuple[bool, List[str]]:
        """Validate configuration and return detailed errors.

        Args:
            config: Configuration dictionary to validate

        Returns:
            Tuple of (is_valid, error_messages)
        """
        validator = Draft7Validator(CONFIG_SCHEMA)
        errors = sorted(validator.iter_errors(config), key=lambda e: list(e.path))

        if not errors:
            return True, []

        error_messages = []
        for error in errors:
            path = '.'.join(str(p) for p in error.path) if error.path else 'root'
            description = error.schema.get('description', '')
            desc_str = f" ({description})" if description else ""
            error_messages.append(f"{path}: {error.message}{desc_str}")

        return False, error_messages

    @staticmethod
    def get_schema() -> Dict[str, Any]:
        """Get configuration schema dictionary."""
        return CONFIG_SCHEMA
