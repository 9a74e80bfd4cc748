"""Configuration loading and validation.

Settings come from an optional ``.drupal-updater.yml`` file (a ``.toml``
file is read with tomlkit instead) and are then overridden by command-line
options. Values are type-checked strictly: a wrong type aborts the run
before any external command is executed.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

DEFAULT_COMMIT_AUTHOR = "Drupal <drupal@update-helper>"
DEFAULT_CONFIG_FILE = ".drupal-updater.yml"


class ConfigValidationError(ValueError):
    """A recognized configuration key holds a value of the wrong type."""


class UpdaterConfig(BaseModel):
    """Settings for one update run.

    Attributes:
        author: Git author attached to every commit.
        environments: Drush aliases to consolidate and post-process, in order.
        only_securities: Only update packages with security advisories.
        no_dev: Skip dev requirements.
        consolidate_configuration: Commit exported configuration per
                                   environment before updating.
        packages: Explicit packages to update. When set, outdated/insecure
                  detection is skipped and this list is the plan.
        why_recursive_timeout: Seconds allowed for the recursive
                               ``composer why`` query.
    """

    model_config = ConfigDict(strict=True, populate_by_name=True, extra="ignore")

    author: str = DEFAULT_COMMIT_AUTHOR
    environments: list[str] = Field(default_factory=lambda: ["@self"])
    only_securities: bool = Field(default=False, alias="onlySecurities")
    no_dev: bool = Field(default=False, alias="noDev")
    consolidate_configuration: bool = Field(
        default=True, alias="consolidateConfiguration"
    )
    packages: list[str] = Field(default_factory=list)
    why_recursive_timeout: float = Field(default=2, alias="whyRecursiveTimeout", gt=0)

    @model_validator(mode="before")
    @classmethod
    def _drop_empty(cls, data: Any) -> Any:
        # Null or empty values keep the defaults; wrong types still fail below.
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None and v != "" and v != []}
        return data


def validate_config(data: dict[str, Any]) -> UpdaterConfig:
    """Build a config from raw mapping data.

    Raises:
        ConfigValidationError: If a recognized key has the wrong type.
    """
    try:
        return UpdaterConfig.model_validate(data)
    except ValidationError as exc:
        err = exc.errors()[0]
        key = ".".join(str(part) for part in err["loc"]) or "<root>"
        raise ConfigValidationError(
            f'"{key}" configuration key is invalid: {err["msg"]}'
        ) from exc


def load_config(path: Path) -> UpdaterConfig:
    """Load configuration from a YAML (or TOML) file.

    A missing file is not an error: defaults are used and command-line
    options fill in the rest.
    """
    print(f"Selected configuration file: {path}")
    if not path.exists():
        print(f"No configuration file found at {path}. Using command line parameters.")
        return UpdaterConfig()

    print(f"Configuration file found at {path}")
    text = path.read_text()
    if path.suffix == ".toml":
        data: Any = tomlkit.parse(text).unwrap()
    else:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigValidationError(
            f"{path} must contain a mapping, {type(data).__name__} given"
        )
    return validate_config(data)


def apply_overrides(
    config: UpdaterConfig,
    *,
    environments: list[str] | None = None,
    author: str | None = None,
    only_securities: bool = False,
    no_dev: bool = False,
    packages: list[str] | None = None,
) -> UpdaterConfig:
    """Return a copy of the config with command-line values applied.

    Flags can only switch options on; empty values leave the file's
    settings untouched.
    """
    update: dict[str, Any] = {}
    if environments:
        update["environments"] = environments
    if author:
        update["author"] = author
    if only_securities:
        update["only_securities"] = True
    if no_dev:
        update["no_dev"] = True
    if packages:
        update["packages"] = packages
    return config.model_copy(update=update)


def split_option(value: str | None) -> list[str]:
    """Split a comma separated option value, dropping blanks."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]
