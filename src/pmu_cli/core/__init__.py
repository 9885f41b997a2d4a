"""Core utilities: configuration and git helpers."""

from .config import (
    Config,
    ConfigError,
    FieldMapping,
    ProjectSettings,
    find_config_file,
    load_config,
    load_project_config,
)
from .git_ops import GitError, create_annotated_tag, create_branch, run_command

__all__ = [
    "Config",
    "ConfigError",
    "FieldMapping",
    "GitError",
    "ProjectSettings",
    "create_annotated_tag",
    "create_branch",
    "find_config_file",
    "load_config",
    "load_project_config",
    "run_command",
]
