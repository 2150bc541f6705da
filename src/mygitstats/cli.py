"""Command-line interface for mygitstats."""

import asyncio
import json
import os
from pathlib import Path

import click
import polars as pl
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mygitstats.app_tokens import mint_tokens
from mygitstats.auth import resolve_auth
from mygitstats.collector import run_collection
from mygitstats.config import ConfigurationError, get_settings
from mygitstats.dates import parse_date
from mygitstats.dataset import PrivacyFilter, build_dataset, daily_frame, load_daily_files
from mygitstats.github_client import GitHubAPIError
from mygitstats.storage import DataStore
from mygitstats.verify import verify_data

console = Console()
err_console = Console(stderr=True)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """GitHub statistics collector for your repositories."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@main.command()
@click.option("--today", help="Override the current UTC date (YYYY-MM-DD)")
@click.pass_context
def collect(ctx: click.Context, today: str | None) -> None:
    """Collect traffic, snapshots and contributions into the data directory.

    Examples:
        mygitstats collect                      # Normal scheduled run
        mygitstats collect --today 2024-01-02   # Backfill label for a date
    """
    if today:
        try:
            parse_date(today)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--today") from e

    settings = get_settings()
    try:
        config = settings.load_config()
        auth = resolve_auth(settings)
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error: {e}[/red]")
        ctx.exit(1)
        return

    last_run = asyncio.run(run_collection(settings, config, auth, today=today))

    if ctx.obj.get("verbose"):
        for error in last_run.errors:
            console.print(f"  [red]- {error}[/red]")


@main.command()
@click.option("--repo", "-r", help="Filter by repository full name (owner/name)")
@click.option("--days", "-d", default=14, help="Number of collected days to show")
@click.pass_context
def show(ctx: click.Context, repo: str | None, days: int) -> None:
    """Display recent totals in the terminal.

    Examples:
        mygitstats show                       # Last 14 days, all repos
        mygitstats show -r octo/widgets       # Single repo
        mygitstats show -d 7                  # Last 7 days
    """
    settings = get_settings()
    store = DataStore(settings.data_dir)
    daily_files = load_daily_files(store)[-days:]

    df = daily_frame(daily_files, PrivacyFilter([], []))
    if repo:
        df = df.filter(pl.col("full_name") == repo)

    if df.is_empty():
        console.print("[yellow]No data found. Run 'mygitstats collect' first.[/yellow]")
        return

    table = Table(title=f"Statistics (last {len(daily_files)} collected days)")
    table.add_column("Repository", style="cyan")
    table.add_column("Views", justify="right")
    table.add_column("Unique Views", justify="right")
    table.add_column("Clones", justify="right")
    table.add_column("Unique Clones", justify="right")
    table.add_column("Stars", justify="right")
    table.add_column("Forks", justify="right")

    summary = (
        df.sort("date")
        .group_by("repo_id")
        .agg(
            pl.col("full_name").last(),
            pl.col("views").sum(),
            pl.col("views_unique").sum(),
            pl.col("clones").sum(),
            pl.col("clones_unique").sum(),
            pl.col("stars").last(),
            pl.col("forks").last(),
        )
        .sort("full_name")
    )

    for row in summary.iter_rows(named=True):
        table.add_row(
            row["full_name"],
            str(row["views"]),
            str(row["views_unique"]),
            str(row["clones"]),
            str(row["clones_unique"]),
            str(row["stars"]),
            str(row["forks"]),
        )

    console.print(table)


@main.command()
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Output directory")
@click.pass_context
def build(ctx: click.Context, output: Path | None) -> None:
    """Build the dashboard dataset from the data directory.

    Examples:
        mygitstats build                       # Writes to MYGITSTATS_DATASET_DIR
        mygitstats build -o site/data          # Custom output directory
    """
    settings = get_settings()
    try:
        config = settings.load_config()
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error: {e}[/red]")
        ctx.exit(1)
        return

    build_dataset(
        settings.data_dir,
        output or settings.dataset_dir,
        publish_private_repos=config.publish_private_repos,
    )


@main.command()
@click.pass_context
def verify(ctx: click.Context) -> None:
    """Validate every file in the data directory against its schema."""
    settings = get_settings()
    report = verify_data(settings.data_dir)

    for path in report.ok:
        console.print(f"  [green]OK[/green]: {path}")
    for path, reason in report.failures:
        console.print(f"[red]FAIL[/red]: {path}\n{escape(reason)}")

    if report.checked == 0:
        console.print("No data files found to verify.")
        return

    status = "All valid." if report.passed else f"{len(report.failures)} error(s) found."
    console.print(f"\nChecked {report.checked} file(s). {status}")
    if not report.passed:
        ctx.exit(1)


@main.command("mint-tokens")
@click.pass_context
def mint_tokens_command(ctx: click.Context) -> None:
    """Mint GitHub App installation tokens for every configured app owner.

    Prints the owner -> token JSON expected in MYGITSTATS_APP_TOKENS. Inside
    GitHub Actions (GITHUB_OUTPUT set) the tokens are masked and written to
    the step output ``tokens_json`` instead.

    Examples:
        export MYGITSTATS_APP_TOKENS="$(mygitstats mint-tokens)"
    """
    settings = get_settings()
    try:
        config = settings.load_config()
        if not settings.app_id or not settings.app_private_key:
            raise ConfigurationError("MYGITSTATS_APP_ID and MYGITSTATS_APP_PRIVATE_KEY are required")
        owners = [owner.strip() for owner in config.app_owners if owner.strip()]
        if not owners:
            raise ConfigurationError("App mode enabled, but the config file has no appOwners")
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error: {e}[/red]")
        ctx.exit(1)
        return

    try:
        tokens = asyncio.run(mint_tokens(settings.app_id, settings.app_private_key, owners))
    except GitHubAPIError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        ctx.exit(1)
        return

    tokens_json = json.dumps(tokens)
    github_output = os.environ.get("GITHUB_OUTPUT")
    if not github_output:
        click.echo(tokens_json)
        return

    for token in tokens.values():
        click.echo(f"::add-mask::{token}")
    with open(github_output, "a", encoding="utf-8") as f:
        f.write(f"tokens_json={tokens_json}\n")
    err_console.print(f"[green]Wrote tokens_json for {len(tokens)} owner(s)[/green]")


@main.command("list")
@click.pass_context
def list_repos(ctx: click.Context) -> None:
    """List repositories recorded by the last collection."""
    settings = get_settings()
    meta = DataStore(settings.data_dir).read_repo_meta()

    if meta is None or not meta.repos:
        console.print("[yellow]No repositories recorded. Run 'mygitstats collect' first.[/yellow]")
        return

    table = Table(title=f"Repositories (collected {meta.collected_at})")
    table.add_column("Repository", style="cyan")
    table.add_column("Private")
    table.add_column("Language", style="green")

    for repo in meta.repos:
        table.add_row(repo.full_name, "yes" if repo.is_private else "", repo.language or "")

    console.print(table)


if __name__ == "__main__":
    main()
