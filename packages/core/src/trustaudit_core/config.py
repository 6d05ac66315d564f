import os
from pathlib import Path
from typing import Optional

import yaml

from trustaudit_core.errors import ConfigError
from trustaudit_core.models import Username

DEFAULT_CONFIG: dict = {
    "tags": {},
    "github": {},
    "store": "noop",
    "store_path": ".trustaudit",
    "dedupe_pull_requests": False,
}


def load_config(config_path: str = ".trustaudit.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .trustaudit.yml in the current directory
      3. CLI argument overrides

    A missing file is not an error here: commands validate the sections they
    need through the get_* accessors below.
    """
    config = {**DEFAULT_CONFIG, "tags": {}, "github": {}}

    path = Path(config_path)
    if path.exists():
        try:
            with open(path) as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"failed to parse config file {config_path}") from e
        if not isinstance(file_config, dict):
            raise ConfigError(f"config file {config_path} must contain a mapping at the top level")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    config["github_token"] = os.environ.get("GITHUB_TOKEN")

    return config


def _section(config: dict, name: str) -> dict:
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"`{name}` must be a mapping")
    return section


def get_tags(config: dict) -> tuple[str, str]:
    """Return the (from, to) tag names of the audited range."""
    tags = _section(config, "tags")
    missing = [key for key in ("from", "to") if not tags.get(key)]
    if missing:
        raise ConfigError(f"missing required setting(s): {', '.join(f'tags.{k}' for k in missing)}")
    return str(tags["from"]), str(tags["to"])


def get_repo_path(config: dict) -> tuple[str, str]:
    """Return (org, repo), accepting either separate keys or ``repo: org/name``."""
    github = _section(config, "github")
    org, repo = github.get("org"), github.get("repo")
    if repo and "/" in str(repo) and not org:
        org, _, repo = str(repo).partition("/")
    if not org or not repo:
        raise ConfigError("missing required setting(s): github.org and github.repo (or github.repo: org/name)")
    return str(org), str(repo)


def get_trusted_reviewers(config: dict) -> frozenset[Username]:
    github = _section(config, "github")
    reviewers = github.get("trusted_reviewers")
    if reviewers is None:
        raise ConfigError("missing required setting: github.trusted_reviewers")
    if not isinstance(reviewers, list):
        raise ConfigError("github.trusted_reviewers must be a list of GitHub logins")
    return frozenset(Username(str(r).lstrip("@")) for r in reviewers)


def get_base_url(config: dict) -> Optional[str]:
    return _section(config, "github").get("base_url")
