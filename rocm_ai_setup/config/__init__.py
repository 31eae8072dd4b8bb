"""Configuration module for loading, parsing, and validation."""

from .config_helper import ConfigHelper
from .config_parser import ConfigParser
from .config_validator import ConfigValidator, CONFIG_SCHEMA

__all__ = [
    'ConfigHelper',
    'ConfigParser',
    'ConfigValidator',
    'CONFIG_SCHEMA',
]
