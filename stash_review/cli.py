"""Typer CLI for the Stash review integration."""

from __future__ import annotations

import sys
from typing import Annotated

import typer
from loguru import logger

from stash_review.client import (
    StashClient,
    StashClientError,
    StashConfigError,
    build_stash_client,
    load_stash_settings,
)
from stash_review.output import render_comment_report, render_diff_report

app = typer.Typer(help="Stash pull request review integration.")


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option(help="Print Stash request debug logs.")] = False,
) -> None:
    """Configure logging for all commands."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


def _client_or_exit() -> StashClient:
    """Build a client from the environment or exit with a readable error."""
    try:
        return build_stash_client(load_stash_settings())
    except StashConfigError as error:
        typer.echo(f"Stash configuration error: {error}")
        raise typer.Exit(code=1) from error


def _fail(prefix: str, error: StashClientError) -> typer.Exit:
    if error.status_code is not None:
        typer.echo(
            f"{prefix}: status={error.status_code} ({error.status_text}) "
            f"endpoint={error.endpoint}."
        )
    else:
        typer.echo(f"{prefix}: {error}")
    return typer.Exit(code=1)


@app.command("auth-check")
def auth_check_command(
    user: Annotated[
        str | None,
        typer.Option(help="User slug to look up; defaults to the configured login."),
    ] = None,
    project: Annotated[
        str | None, typer.Option(help="Optional project key for a pull request access check.")
    ] = None,
    repo: Annotated[
        str | None, typer.Option(help="Optional repository slug used with --project.")
    ] = None,
    pr: Annotated[
        str | None, typer.Option(help="Optional pull request id used with --project/--repo.")
    ] = None,
) -> None:
    """Validate Stash settings and optional pull request read access."""
    pr_options = (project, repo, pr)
    if any(value is not None for value in pr_options) and None in pr_options:
        raise typer.BadParameter("Provide --project, --repo and --pr together, or none of them.")

    try:
        settings = load_stash_settings()
    except StashConfigError as error:
        typer.echo(f"Stash auth check failed: {error}")
        raise typer.Exit(code=1) from error

    client = build_stash_client(settings)
    user_slug = user or settings.credentials.login
    try:
        stash_user = client.get_user(user_slug)
        typer.echo(f"Authenticated against {client.base_url} as '{stash_user.name}'.")

        if project is not None and repo is not None and pr is not None:
            pull_request = client.get_pull_request(project, repo, pr)
            diffs = client.get_pull_request_diffs(project, repo, pr)
            typer.echo(
                f"Pull request access check passed for {project}/{repo}#{pr} "
                f"(version {pull_request.version}, {len(diffs)} diff line(s))."
            )
    except StashClientError as error:
        raise _fail("Stash auth check failed", error) from error

    typer.echo("Stash setup is valid.")


@app.command("comments")
def comments_command(
    project: Annotated[str, typer.Option(help="Project key.")],
    repo: Annotated[str, typer.Option(help="Repository slug.")],
    pr: Annotated[str, typer.Option(help="Pull request id.")],
    path: Annotated[str, typer.Option(help="File path the comments are attached to.")],
) -> None:
    """List every comment attached to a file of a pull request."""
    client = _client_or_exit()
    try:
        report = client.get_pull_request_comments(project, repo, pr, path)
    except StashClientError as error:
        raise _fail("Unable to list comments", error) from error
    typer.echo(render_comment_report(report))


@app.command("diffs")
def diffs_command(
    project: Annotated[str, typer.Option(help="Project key.")],
    repo: Annotated[str, typer.Option(help="Repository slug.")],
    pr: Annotated[str, typer.Option(help="Pull request id.")],
    commented_only: Annotated[
        bool, typer.Option(help="Only show diff lines that carry comments.")
    ] = False,
) -> None:
    """Show the diff lines of a pull request with their comments."""
    client = _client_or_exit()
    try:
        report = client.get_pull_request_diffs(project, repo, pr)
    except StashClientError as error:
        raise _fail("Unable to fetch diffs", error) from error
    typer.echo(render_diff_report(report, commented_only=commented_only))
