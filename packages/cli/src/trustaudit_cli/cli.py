"""CLI entry point for trustaudit.

Commands:
  analyze    — audit the configured commit range (from scratch, or resumed from a snapshot)
  snapshots  — list the extraction stages persisted for the configured repository
  compat     — one-shot helpers: print the commit range, or its commit → PR mapping
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from trustaudit_cli.commands.analyze import analyze_cmd
from trustaudit_cli.commands.compat import compat_cmd
from trustaudit_cli.commands.snapshots import snapshots_cmd
from trustaudit_cli.render import format_error_chain

console = Console()

_PACKAGE_LOGGERS = ("trustaudit_core", "trustaudit_store", "trustaudit_cli")


def _configure_logging(verbose: bool) -> None:
    """Route trustaudit's own loggers through rich on stderr.

    Only our packages are raised to INFO/DEBUG; third-party loggers (PyGithub,
    urllib3) stay at the root's WARNING level.
    """
    root = logging.getLogger()
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(console=Console(stderr=True), show_path=False, show_time=False))
    level = logging.DEBUG if verbose else logging.INFO
    for name in _PACKAGE_LOGGERS:
        logging.getLogger(name).setLevel(level)


def _build_store(config: dict):
    """Instantiate the configured store from .trustaudit.yml settings.

    Store selection:
      store: json   → JsonStore   (directory from store_path, default .trustaudit/)
      store: sqlite → SQLiteStore (file from store_path, default .trustaudit.db)
      (default)     → NoOpStore   (no persistence, resume unavailable)

    This factory lives in cli.py so neither trustaudit_core nor
    trustaudit_store know about the CLI config format.
    """
    from trustaudit_store.noop import NoOpStore

    store_type = config.get("store", "noop")

    if store_type == "json":
        from trustaudit_store.jsonfile import JsonStore

        return JsonStore(dir_path=config.get("store_path") or ".trustaudit")

    if store_type == "sqlite":
        from trustaudit_store.sqlite import SQLiteStore

        store_path = config.get("store_path")
        if not store_path or store_path == ".trustaudit":
            store_path = ".trustaudit.db"
        return SQLiteStore(db_path=store_path)

    if store_type not in (None, "noop"):
        console.print(f"[yellow]Unknown store {store_type!r}. Falling back to no store.[/yellow]")
    return NoOpStore()


@click.group()
@click.version_option(
    version=importlib.metadata.version("trustaudit"),
    prog_name="trustaudit",
)
@click.option(
    "--config",
    "config_path",
    default=".trustaudit.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="TRUSTAUDIT_CONFIG",
)
@click.option("--gh-auth-token", default=None, help="GitHub token. Defaults to GITHUB_TOKEN or the gh CLI session.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, gh_auth_token: str | None, verbose: bool):
    """User-guided analysis of the review trust behind a commit range."""
    from trustaudit_core.config import load_config
    from trustaudit_core.errors import ConfigError
    from trustaudit_cli.auth import resolve_github_token

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(format_error_chain(e))

    # Resolve the token once so every subcommand shares the same resolution.
    config["github_token"] = resolve_github_token(gh_auth_token)

    store = _build_store(config)
    ctx.obj["store"] = store
    ctx.obj["config"] = config
    ctx.call_on_close(store.close)


main.add_command(analyze_cmd)
main.add_command(snapshots_cmd)
main.add_command(compat_cmd)
