"""Project configuration (``.gh-pmu.yml``) loading and field alias resolution."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

CONFIG_FILENAME = ".gh-pmu.yml"
CONFIG_FILENAME_JSON = ".gh-pmu.json"


class ConfigError(Exception):
    """Configuration is missing or invalid."""


# ============================================================================
# Data Classes
# ============================================================================


@dataclass
class ProjectSettings:
    """Which GitHub Project the tool operates on."""

    owner: str = ""
    number: int = 0
    name: str = ""


@dataclass
class FieldMapping:
    """Maps a logical field key (``status``) to its project field and value aliases.

    ``values`` translates aliases used on the command line (``in_progress``)
    into the option names the project actually uses (``In progress``).
    """

    field: str
    values: dict[str, str] = field(default_factory=dict)


@dataclass
class Config:
    """Parsed ``.gh-pmu.yml``."""

    project: ProjectSettings = field(default_factory=ProjectSettings)
    repositories: list[str] = field(default_factory=list)
    fields: dict[str, FieldMapping] = field(default_factory=dict)
    path: Optional[Path] = None

    @property
    def primary_repository(self) -> str:
        return self.repositories[0] if self.repositories else ""

    def validate(self) -> None:
        """Check required settings.

        Raises:
            ConfigError: On the first missing or malformed setting
        """
        if not self.project.owner:
            raise ConfigError("project.owner is required")
        if self.project.number <= 0:
            raise ConfigError("project.number is required")
        if not self.repositories:
            raise ConfigError("at least one repository is required")
        for repo in self.repositories:
            parts = repo.split("/")
            if len(parts) != 2 or not all(parts):
                raise ConfigError(f"invalid repository format {repo!r} (expected owner/repo)")

    def has_field(self, key: str) -> bool:
        return key in self.fields

    def get_field_name(self, key: str) -> str:
        """Return the project field name for ``key``.

        Unmapped keys fall back to the key itself with its first letter
        capitalized, so ``status`` becomes ``Status``.
        """
        mapping = self.fields.get(key)
        if mapping is not None and mapping.field:
            return mapping.field
        return key[:1].upper() + key[1:]

    def resolve_field_value(self, key: str, alias: str, default: Optional[str] = None) -> str:
        """Translate a value alias into the project's option name.

        Returns ``default`` (or the alias itself when no default is given) if
        the field or alias is unmapped.
        """
        mapping = self.fields.get(key)
        if mapping is not None and alias in mapping.values:
            return mapping.values[alias]
        return alias if default is None else default

    def apply_env_overrides(self, env: Optional[Mapping[str, str]] = None) -> None:
        """Apply ``GH_PM_PROJECT_OWNER`` / ``GH_PM_PROJECT_NUMBER`` overrides."""
        environ = os.environ if env is None else env
        owner = environ.get("GH_PM_PROJECT_OWNER", "").strip()
        if owner:
            self.project.owner = owner
        number = environ.get("GH_PM_PROJECT_NUMBER", "").strip()
        if number:
            try:
                self.project.number = int(number)
            except ValueError as exc:
                raise ConfigError(f"GH_PM_PROJECT_NUMBER must be an integer, got {number!r}") from exc


# ============================================================================
# Loading
# ============================================================================


def find_config_file(start: Optional[Path] = None) -> Path:
    """Walk up from ``start`` looking for ``.gh-pmu.yml`` (then ``.gh-pmu.json``).

    Raises:
        ConfigError: If no configuration file exists in any parent directory
    """
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME_JSON
        if candidate.is_file():
            return candidate
    raise ConfigError(f"no {CONFIG_FILENAME} found in {current} or any parent directory")


def _parse_fields(raw: Any) -> dict[str, FieldMapping]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("fields must be a mapping")

    fields: dict[str, FieldMapping] = {}
    for key, value in raw.items():
        if not isinstance(value, dict):
            raise ConfigError(f"fields.{key} must be a mapping")
        values = value.get("values") or {}
        if not isinstance(values, dict):
            raise ConfigError(f"fields.{key}.values must be a mapping")
        fields[str(key)] = FieldMapping(
            field=str(value.get("field") or ""),
            values={str(k): str(v) for k, v in values.items()},
        )
    return fields


def parse_config(data: Any, path: Optional[Path] = None) -> Config:
    """Build a :class:`Config` from already-decoded YAML/JSON data."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("configuration root must be a mapping")

    project_raw = data.get("project") or {}
    if not isinstance(project_raw, dict):
        raise ConfigError("project must be a mapping")
    try:
        number = int(project_raw.get("number") or 0)
    except (TypeError, ValueError) as exc:
        raise ConfigError("project.number must be an integer") from exc

    repositories = data.get("repositories") or []
    if not isinstance(repositories, list):
        raise ConfigError("repositories must be a list")

    return Config(
        project=ProjectSettings(
            owner=str(project_raw.get("owner") or ""),
            number=number,
            name=str(project_raw.get("name") or ""),
        ),
        repositories=[str(repo) for repo in repositories],
        fields=_parse_fields(data.get("fields")),
        path=path,
    )


def load_config(path: Path) -> Config:
    """Read and parse a configuration file (YAML or JSON)."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"failed to read {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse {path}: {exc}") from exc
    return parse_config(data, path)


def load_project_config(
    start: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Config:
    """Find, load, apply env overrides to, and validate the project config."""
    config = load_config(find_config_file(start))
    config.apply_env_overrides(env)
    config.validate()
    return config


__all__ = [
    "CONFIG_FILENAME",
    "CONFIG_FILENAME_JSON",
    "Config",
    "ConfigError",
    "FieldMapping",
    "ProjectSettings",
    "find_config_file",
    "load_config",
    "load_project_config",
    "parse_config",
]
