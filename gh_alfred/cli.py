"""Command line interface for gh-alfred."""

import sys
from datetime import timedelta
from typing import Optional

import click
from rich.console import Console

from . import __version__
from .cache import CacheManager, EntityKind
from .clients import CratesClient, GitHubClient
from .config import Config, ConfigManager
from .output import print_results
from .sync import (
    QueryResolver,
    SyncProgressEvent,
    SyncSummary,
    mark_refresh_reset,
    run_refresh_if_due,
    should_refresh,
    update_cache,
)
from .utils.error_handling import ErrorHandler
from .utils.log import configure_logging


def get_spinner_name() -> str:
    """Get spinner name compatible with current platform.

    Returns ASCII-only spinner on Windows to avoid encoding issues.
    """
    if sys.platform == "win32":
        return "line"
    return "dots"


def _github_client(config: Config) -> GitHubClient:
    return GitHubClient(
        token=config.github.token,
        graphql_url=config.github.graphql_url,
        api_url=config.github.api_url,
        page_size=config.github.page_size,
        timeout=config.github.timeout_seconds,
    )


def _crates_client(config: Config) -> CratesClient:
    return CratesClient(
        api_url=config.crates.api_url,
        timeout=config.crates.timeout_seconds,
    )


def _run_update(config: Config, db_path: str, on_progress=None) -> SyncSummary:
    """Refresh the repository cache from GitHub."""
    with CacheManager(db_path) as cache:
        return update_cache(
            _github_client(config),
            cache,
            kind=EntityKind.REPOSITORIES,
            on_progress=on_progress,
        )


def _background_refresh(config: Config, db_path: str) -> None:
    """Body of the detached refresh process."""
    configure_logging(
        verbose=False,
        log_file=config.logging.log_file,
        console=False,
        level=config.logging.level,
    )
    _run_update(config, db_path)


def _refresh_if_due(ctx: click.Context) -> None:
    """Detach a cache refresh if the last one is older than the staleness window."""
    config: Config = ctx.obj["config"]
    db_path: str = ctx.obj["db_path"]
    store = ctx.obj["state_store"]

    run_refresh_if_due(
        store.load(),
        store,
        refresh=lambda: _background_refresh(config, db_path),
        threshold=timedelta(minutes=config.cache.stale_threshold_minutes),
    )


def _search(ctx: click.Context, kind: EntityKind, filter_text: str, client_factory) -> None:
    """Shared body of the search commands."""
    config: Config = ctx.obj["config"]

    _refresh_if_due(ctx)

    with CacheManager(ctx.obj["db_path"]) as cache:
        resolver = QueryResolver(
            cache,
            kind,
            live_search=lambda query: client_factory(config).search(query),
            limit=config.cache.result_limit,
        )
        names = resolver.resolve(filter_text)

    print_results(names, pretty=config.debug)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Path to configuration file"
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool):
    """gh-alfred - find GitHub repositories and Rust crates by name.

    Searches a local cache of your GitHub repositories first and falls back
    to a live search. The cache refreshes itself in the background.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = Console()
    error_handler = ErrorHandler(verbose=verbose)
    ctx.obj["error_handler"] = error_handler

    configure_logging(verbose)

    try:
        config_manager = ConfigManager(config)
        ctx.obj["config"] = config_manager.config
        ctx.obj["db_path"] = config_manager.require_db_path()
        config_manager.require_github_token()
        ctx.obj["state_store"] = config_manager.state_store()

    except Exception as e:
        error_handler.report("initializing gh-alfred", e, ctx)


@cli.command("search-repo")
@click.argument("filter_text", metavar="FILTER")
@click.pass_context
def search_repo(ctx: click.Context, filter_text: str):
    """Search for a GitHub repository.

    FILTER: Part of the repository name, e.g. "octocat/Hello"
    """
    try:
        _search(ctx, EntityKind.REPOSITORIES, filter_text, _github_client)
    except Exception as e:
        ctx.obj["error_handler"].report("searching repositories", e, ctx)


@cli.command("search-package")
@click.argument("filter_text", metavar="FILTER")
@click.pass_context
def search_package(ctx: click.Context, filter_text: str):
    """Search for a Rust crate.

    FILTER: Part of the crate name, e.g. "serde"
    """
    try:
        _search(ctx, EntityKind.PACKAGES, filter_text, _crates_client)
    except Exception as e:
        ctx.obj["error_handler"].report("searching packages", e, ctx)


@cli.command("update-cache")
@click.pass_context
def update_cache_command(ctx: click.Context):
    """Refresh the repository cache now, in the foreground.

    The cache is refreshed automatically in a background process when it gets
    stale; this command is mainly useful for testing.
    """
    from rich.progress import Progress, SpinnerColumn, TextColumn

    console = ctx.obj["console"]
    logging_config = ctx.obj["config"].logging

    try:
        configure_logging(
            ctx.obj["verbose"],
            log_file=logging_config.log_file,
            level=logging_config.level,
        )

        with Progress(
            SpinnerColumn(spinner_name=get_spinner_name()),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Fetching repositories...", total=None)
            committed = [0]

            def on_progress(event: SyncProgressEvent):
                committed[0] += event.count
                progress.update(
                    task, description=f"Fetching repositories... {committed[0]:,} saved"
                )

            summary = _run_update(ctx.obj["config"], ctx.obj["db_path"], on_progress)
            progress.update(task, completed=True)

        console.print(
            f"[green]Update complete![/green] {summary.entities:,} repositories "
            f"in {summary.batches} batch(es), {summary.duration_seconds:.1f}s."
        )

    except Exception as e:
        ctx.obj["error_handler"].report("updating cache", e, ctx)


@cli.command("clear-cache")
@click.pass_context
def clear_cache(ctx: click.Context):
    """Delete all cached entries and reset the refresh timestamp."""
    try:
        store = ctx.obj["state_store"]
        mark_refresh_reset(store.load(), store)

        with CacheManager(ctx.obj["db_path"]) as cache:
            cache.clear()

        click.echo("Cache cleared successfully.")

    except Exception as e:
        ctx.obj["error_handler"].report("clearing cache", e, ctx)


@cli.command("cache-status")
@click.pass_context
def cache_status(ctx: click.Context):
    """Show cache status and statistics."""
    from rich.table import Table

    console = ctx.obj["console"]
    config: Config = ctx.obj["config"]

    try:
        state = ctx.obj["state_store"].load()
        threshold = timedelta(minutes=config.cache.stale_threshold_minutes)

        with CacheManager(ctx.obj["db_path"]) as cache:
            stats = cache.get_stats()

        console.print("[bold cyan]Cache Status[/bold cyan]")
        console.print()
        console.print(f"[dim]Database:[/dim] {stats['db_path']}")

        if stats["db_size_bytes"] > 0:
            size_kb = stats["db_size_bytes"] / 1024
            console.print(f"[dim]Size:[/dim] {size_kb:.1f} KB")
        else:
            console.print("[dim]Size:[/dim] Empty (not initialized)")

        console.print()

        table = Table(show_header=True, header_style="bold blue")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")

        table.add_row("Repositories", f"{stats[EntityKind.REPOSITORIES.value]:,}")
        table.add_row("Packages", f"{stats[EntityKind.PACKAGES.value]:,}")
        table.add_row(
            "Last refresh started",
            str(state.last_update_start_time or "never"),
        )
        table.add_row(
            "Refresh due",
            "yes" if should_refresh(state, threshold=threshold) else "no",
        )

        console.print(table)

    except Exception as e:
        ctx.obj["error_handler"].report("getting cache status", e, ctx)


def main():
    """Entry point for the CLI application."""
    cli()
