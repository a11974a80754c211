"""Configuration loading, validation and logging setup."""

from .config_parser import ServerConfig, ViewConfig, build_config, load_config
from .config_schema import validate_config
from .logging_config import init_logging

__all__ = [
    "ServerConfig",
    "ViewConfig",
    "build_config",
    "init_logging",
    "load_config",
    "validate_config",
]
