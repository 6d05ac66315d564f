"""compat commands — one-shot helpers matching the older audit shell scripts."""

from __future__ import annotations

import sys

import click

from trustaudit_cli.commands.analyze import build_github_source, save_stage
from trustaudit_cli.render import format_error_chain
from trustaudit_core.analysis import ExtractionStage, ExtractionStageName
from trustaudit_core.config import get_tags, get_trusted_reviewers
from trustaudit_core.errors import TrustAuditError
from trustaudit_core.vcs.git import Repository


@click.group("compat")
def compat_cmd():
    """Commands with a 1:1 match to the scripts this tool replaces."""


@compat_cmd.command("rev-list")
@click.option("--local-checkout", "local_checkout_path", required=True, type=click.Path(file_okay=False))
@click.pass_context
def rev_list_cmd(ctx, local_checkout_path: str):
    """Print the SHA of every commit in the configured tag range, newest first."""
    config = ctx.obj["config"]
    try:
        from_tag, to_tag = get_tags(config)
        Repository.discover(local_checkout_path).print_rev_list(from_tag, to_tag, sys.stdout)
    except TrustAuditError as e:
        raise click.ClickException(format_error_chain(e))


@compat_cmd.command("fetch-commits")
@click.option("--local-checkout", "local_checkout_path", required=True, type=click.Path(file_okay=False))
@click.pass_context
def fetch_commits_cmd(ctx, local_checkout_path: str):
    """Print each commit in the range followed by its associated pull request numbers.

    The fetched stage is saved to the configured store, so a following
    `analyze resume commit-pull-requests` does not fetch it again.
    """
    config = ctx.obj["config"]
    try:
        from_tag, to_tag = get_tags(config)
        data_source = build_github_source(config)
        commits = Repository.discover(local_checkout_path).rev_list(from_tag, to_tag)
        extraction = ExtractionStage.start(commits, get_trusted_reviewers(config))
        extraction.advance(ExtractionStageName.COMMIT_PULL_REQUESTS, data_source)
    except TrustAuditError as e:
        raise click.ClickException(format_error_chain(e))

    for commit, prs in extraction.stage.prs_by_commit:
        click.echo(" ".join([commit.sha, *(str(pr_id) for pr_id in sorted(prs))]))

    save_error = save_stage(ctx.obj["store"], data_source.full_name, extraction)
    if save_error is not None:
        raise click.ClickException(f"failed to save extracted data: {save_error}")
