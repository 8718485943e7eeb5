"""Load rally2trello settings from config.yml, the environment and CLI overrides."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, ClassVar

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rally2trello.exceptions import ConfigurationError
from rally2trello.rally_client import DEFAULT_RALLY_URL

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.yml"
DEFAULT_LIST = "To Do"


class _ConfigLoader(yaml.SafeLoader):
    """SafeLoader that reads numeric-looking scalars as strings

    Iteration, board and list names such as ``2024.10`` must keep their text.
    """


_ConfigLoader.yaml_implicit_resolvers = {
    first: [
        (tag, regexp)
        for tag, regexp in resolvers
        if tag not in ("tag:yaml.org,2002:int", "tag:yaml.org,2002:float")
    ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


class _Section(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    section: ClassVar[str]

    @model_validator(mode="before")
    @classmethod
    def warn_unknown_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            for key in sorted(set(data) - set(cls.model_fields)):
                logger.warning(f"⚠️  Ignoring unknown setting '{cls.section}.{key}'")
        return data


class RallyConfig(_Section):
    section: ClassVar[str] = "rally"

    workspace: str | None = None
    project: str | None = None
    iteration: str | None = None
    defects: bool = False
    api_key: str | None = None
    base_url: str = DEFAULT_RALLY_URL


class TrelloConfig(_Section):
    section: ClassVar[str] = "trello"

    developer_key: str | None = None
    user_token: str | None = None
    board: str | None = None
    list: str | None = DEFAULT_LIST


class EnvironmentCredentials(BaseSettings):
    """Credentials that may be supplied through environment variables"""

    model_config = SettingsConfigDict(case_sensitive=True, extra="ignore")

    rally_api_key: str | None = Field(default=None, validation_alias="RALLY_API_KEY")
    trello_api_key: str | None = Field(default=None, validation_alias="TRELLO_API_KEY")
    trello_token: str | None = Field(default=None, validation_alias="TRELLO_TOKEN")

    def fill(self, sections: dict[str, dict[str, Any]]) -> None:
        """Copy credentials into sections that leave them empty"""
        for section, key, value in (
            ("rally", "api_key", self.rally_api_key),
            ("trello", "developer_key", self.trello_api_key),
            ("trello", "user_token", self.trello_token),
        ):
            if value and not sections[section].get(key):
                sections[section][key] = value


# (section, field, message) for every value an import needs; {source} is the config path
REQUIRED_SETTINGS = [
    ("rally", "iteration", "Rally iteration must be specified on command line (-i)"),
    (
        "rally",
        "workspace",
        "Rally workspace must be specified in either {source} or on command line (-w)",
    ),
    (
        "rally",
        "project",
        "Rally project must be specified in either {source} or on command line (-p)",
    ),
    ("rally", "api_key", "Rally API key must be specified in {source} or RALLY_API_KEY"),
    ("trello", "developer_key", "Trello API key must be specified in {source} or TRELLO_API_KEY"),
    ("trello", "user_token", "Trello user token must be specified in {source} or TRELLO_TOKEN"),
    (
        "trello",
        "board",
        "Trello board must be specified in either {source} or on command line (-b)",
    ),
    (
        "trello",
        "list",
        "Trello list must be specified in either {source} or on command line (-l)",
    ),
]


class Config(BaseModel):
    rally: RallyConfig = Field(default_factory=RallyConfig)
    trello: TrelloConfig = Field(default_factory=TrelloConfig)
    source: str = CONFIG_FILE

    def ensure_complete(self) -> None:
        """Check every required value and report all problems together

        Raises:
            ConfigurationError: Listing each missing value
        """
        errors = [
            message.format(source=self.source)
            for section, name, message in REQUIRED_SETTINGS
            if not getattr(getattr(self, section), name)
        ]
        if errors:
            raise ConfigurationError(errors)


def load_env_file(path: str | Path) -> None:
    """Load KEY=VALUE lines from a .env file into os.environ

    Existing environment variables are never overridden. Blank lines and
    lines starting with # are ignored. A missing file is not an error.
    """
    env_path = Path(path)
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, value = line.split("=", 1)
                key = key.strip()
                if key not in os.environ:
                    os.environ[key] = value.strip().strip("\"'")


def _read_yaml(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        logger.debug(f"Config file {config_path} not found, using environment and options only")
        return {}
    try:
        with open(config_path) as f:
            loaded = yaml.load(f, Loader=_ConfigLoader)
    except yaml.YAMLError as e:
        raise ConfigurationError([f"Cannot parse {config_path}: {e}"]) from e
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError([f"{config_path} must contain a mapping of settings"])
    return loaded


def load_config(
    path: str | Path = CONFIG_FILE,
    overrides: Mapping[str, Mapping[str, Any]] | None = None,
) -> Config:
    """Merge config.yml, credential environment variables and CLI overrides

    Precedence, lowest first: the YAML file, environment variables (credentials
    only, and only when the file leaves them empty), then overrides. Values of
    None in overrides are ignored so unset command line options do not erase
    file settings.

    Args:
        path: YAML file with ``rally`` and ``trello`` sections; may be absent
        overrides: ``{"rally": {...}, "trello": {...}}`` from the command line

    Returns:
        Config that may still be incomplete; call ensure_complete() before use

    Raises:
        ConfigurationError: If the file is unreadable or a value has the wrong type
    """
    config_path = Path(path)
    data = _read_yaml(config_path)

    sections: dict[str, dict[str, Any]] = {}
    for section in ("rally", "trello"):
        values = data.get(section) or {}
        if not isinstance(values, dict):
            raise ConfigurationError([f"'{section}' in {config_path} must be a mapping"])
        sections[section] = dict(values)

    EnvironmentCredentials().fill(sections)

    for section, values in (overrides or {}).items():
        if section not in sections:
            raise ValueError(f"Unknown configuration section: {section}")
        for key, value in values.items():
            if value is not None:
                sections[section][key] = value

    if not sections["trello"].get("list"):
        sections["trello"]["list"] = DEFAULT_LIST

    errors: list[str] = []
    validated: dict[str, Any] = {}
    for section, model in (("rally", RallyConfig), ("trello", TrelloConfig)):
        try:
            validated[section] = model.model_validate(sections[section])
        except ValidationError as e:
            errors.extend(
                f"Invalid setting '{section}.{'.'.join(str(part) for part in error['loc'])}' "
                f"in {config_path}: {error['msg']}"
                for error in e.errors()
            )
    if errors:
        raise ConfigurationError(errors)

    return Config(**validated, source=str(config_path))
