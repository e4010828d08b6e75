"""Settings for a notebook session.

Values are merged in this order, later sources winning:

1. built-in defaults
2. a YAML file (keys at top level, or nested under ``studynotes:``)
3. environment variables (``STUDYNOTES_*``)
4. keyword overrides passed to :func:`load_settings`

Example file::

    studynotes:
      db_path: ~/.studynotes/notes.duckdb
      owner: alice
      repo: alice.github.io
      branch: gh-pages
      path: data/notes.json
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from studynotes.collection import DEFAULT_BRANCH, DEFAULT_PATH, RemoteConfig
from studynotes.exceptions import ConfigError
from studynotes.sync.github import DEFAULT_API_URL

_ENV_VARS = {
    "db_path": "STUDYNOTES_DB",
    "owner": "STUDYNOTES_GITHUB_OWNER",
    "repo": "STUDYNOTES_GITHUB_REPO",
    "branch": "STUDYNOTES_GITHUB_BRANCH",
    "path": "STUDYNOTES_GITHUB_PATH",
    "token": "STUDYNOTES_GITHUB_TOKEN",
    "api_url": "STUDYNOTES_GITHUB_API",
}


@dataclass
class Settings:
    db_path: str = ":memory:"
    owner: str = ""
    repo: str = ""
    branch: str = DEFAULT_BRANCH
    path: str = DEFAULT_PATH
    token: str = ""
    api_url: str = DEFAULT_API_URL
    timeout: float = 10.0
    pull_on_start: bool = False

    def remote_config(self) -> RemoteConfig:
        return RemoteConfig(
            owner=self.owner,
            repo=self.repo,
            branch=self.branch,
            path=self.path,
            credential=self.token,
        )


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read settings file: {exc}", path=str(path)) from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid settings file: {exc}", path=str(path)) from exc
    if not isinstance(data, dict):
        raise ConfigError("Settings file must contain a mapping", path=str(path))
    nested = data.get("studynotes")
    return nested if isinstance(nested, dict) else data


def load_settings(path: Path | str | None = None, **overrides: Any) -> Settings:
    """Build :class:`Settings` from defaults, *path*, the environment and *overrides*."""
    known = {f.name for f in fields(Settings)}
    values: dict[str, Any] = {}

    if path is not None:
        file_values = _read_yaml(Path(path).expanduser())
        values.update({k: v for k, v in file_values.items() if k in known})

    for key, var in _ENV_VARS.items():
        env = os.getenv(var)
        if env:
            values[key] = env

    values.update({k: v for k, v in overrides.items() if k in known and v is not None})

    if "db_path" in values and values["db_path"] != ":memory:":
        values["db_path"] = str(Path(str(values["db_path"])).expanduser())
    if "timeout" in values:
        values["timeout"] = float(values["timeout"])
    if "pull_on_start" in values:
        values["pull_on_start"] = bool(values["pull_on_start"])
    return Settings(**values)
