"""CLI entry point for playlist migrations.

Commands:

    migrate   copy a playlist from one provider to another
    import    export a provider playlist to a PIF JSON file
    validate  check a PIF JSON file
    export    render a PIF JSON file as M3U, CSV or XSPF
"""

import asyncio
import json
import sys
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Callable, Dict, List, Optional

import click
import httpx
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from tunebridge.fetcher.circuit_breaker import CircuitBreakerError, CircuitBreakerRegistry
from tunebridge.fetcher.response_cache import ResponseCache
from tunebridge.models.config import AppConfig, ConfigManager
from tunebridge.models.data_models import CacheMetrics, Candidate, CircuitBreakerMetrics, MigrationResult
from tunebridge.models.pif import PIF, PIFValidationResult, validate_pif
from tunebridge.monitoring.logger import StructuredLogger
from tunebridge.pipeline.exporters import EXPORT_FORMATS, FILE_SUFFIXES, render
from tunebridge.pipeline.orchestrator import MigrationOrchestrator
from tunebridge.pipeline.output import JSONOutputFormatter
from tunebridge.providers.base import (
    ProviderDisabledError,
    ProviderError,
    ReadOptions,
    UnsupportedProviderError,
)
from tunebridge.providers.factory import create_provider, create_response_cache


console = Console()

EXIT_ERROR = 1
EXIT_RETRYABLE = 75
EXIT_INTERRUPTED = 130

RETRYABLE_CODES = ("rate_limited", "network", "internal")


# Maps a provider name to an httpx transport (None for the real network).
# Supplied through the click context object as "transport_factory".
TransportFactory = Callable[[str], Optional[httpx.AsyncBaseTransport]]


def exit_code_for(error: BaseException) -> int:
    """Map an exception onto the process exit code."""
    if isinstance(error, KeyboardInterrupt):
        return EXIT_INTERRUPTED
    if isinstance(error, (CircuitBreakerError, asyncio.TimeoutError)):
        return EXIT_RETRYABLE
    if isinstance(error, ProviderError) and error.code in RETRYABLE_CODES:
        return EXIT_RETRYABLE
    return EXIT_ERROR


def _load_catalog(path: Optional[Path]) -> List[Candidate]:
    if path is None:
        return []
    with open(path, "r", encoding="utf-8") as f:
        entries = json.load(f)
    return [
        Candidate(
            mbid=entry["mbid"],
            title=entry["title"],
            primary_artist=entry["primary_artist"],
            duration_ms=entry.get("duration_ms"),
            isrc=entry.get("isrc"),
        )
        for entry in entries
    ]


def _load_isrc_map(path: Optional[Path]) -> Optional[Dict[str, str]]:
    if path is None:
        return None
    with open(path, "r", encoding="utf-8") as f:
        return {str(k): str(v) for k, v in json.load(f).items()}


def _load_config(config_path: Optional[Path], overrides: Dict) -> AppConfig:
    return ConfigManager(config_path).load_config(overrides)


def _fail(error: BaseException) -> None:
    console.print(f"\n[red]Error:[/red] {error}", style="bold red")
    sys.exit(exit_code_for(error))


@click.group()
@click.version_option(version="0.1.0", prog_name="tunebridge")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """tunebridge - move playlists between music streaming services."""
    ctx.ensure_object(dict)


def _transport_factory(obj: Dict) -> TransportFactory:
    return obj.get("transport_factory") or (lambda provider: None)


config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    default="config/config.yaml",
    help="Path to configuration YAML file",
)
log_level_option = click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (overrides config)",
)


@cli.command()
@click.option("--from", "source", required=True, help="Source provider (e.g. youtube)")
@click.option("--playlist", "playlist_id", required=True, help="Source playlist id")
@click.option("--to", "dest", required=True, help="Destination provider (e.g. spotify)")
@click.option("--name", "dest_name", help="Name of the created playlist (defaults to the source name)")
@click.option("--catalog", type=click.Path(exists=True, path_type=Path), help="JSON list of catalog candidates")
@click.option("--isrc-map", type=click.Path(exists=True, path_type=Path), help="JSON object mapping ISRC to MBID")
@click.option("--timeout", "-t", type=float, help="Total migration timeout in seconds (overrides config)")
@click.option("--batch-size", type=int, help="Export batch size (overrides config)")
@click.option("--page-size", type=int, help="Import page size (overrides config)")
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Output JSON file path (overrides config)")
@config_option
@log_level_option
@click.option("--no-progress", is_flag=True, help="Disable progress output (useful for CI/CD)")
@click.pass_obj
def migrate(
    obj: Dict,
    source: str,
    playlist_id: str,
    dest: str,
    dest_name: Optional[str],
    catalog: Optional[Path],
    isrc_map: Optional[Path],
    timeout: Optional[float],
    batch_size: Optional[int],
    page_size: Optional[int],
    output: Optional[Path],
    config_path: Path,
    log_level: Optional[str],
    no_progress: bool,
) -> None:
    """
    Migrate a playlist between providers.

    Examples:

        $ tunebridge migrate --from youtube --playlist PL123 --to spotify

        $ tunebridge migrate --from spotify --playlist 37i9 --to youtube --catalog catalog.json
    """
    try:
        app_config = _load_config(config_path, {
            "total_timeout": timeout,
            "batch_size": batch_size,
            "page_size": page_size,
            "log_level": log_level.upper() if log_level else None,
        })
        output_path = output if output else app_config.output_path

        result = asyncio.run(_run_migration(
            app_config,
            source,
            playlist_id,
            dest,
            dest_name,
            _load_catalog(catalog),
            _load_isrc_map(isrc_map),
            no_progress,
            _transport_factory(obj),
        ))

        JSONOutputFormatter().save(result, output_path)
        _display_results(result, output_path, no_progress)
        sys.exit(0)

    except KeyboardInterrupt:
        console.print("\n[yellow]Migration interrupted by user[/yellow]")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        _fail(e)


def _build_caches(config: AppConfig, names: List[str]) -> Dict[str, ResponseCache]:
    """One response cache per provider name; empty when caching is disabled."""
    caches: Dict[str, ResponseCache] = {}
    for name in names:
        key = name.strip().lower()
        if key in caches:
            continue
        cache = create_response_cache(config)
        if cache is not None:
            caches[key] = cache
    return caches


async def _run_migration(
    config: AppConfig,
    source_name: str,
    playlist_id: str,
    dest_name_provider: str,
    dest_name: Optional[str],
    catalog: List[Candidate],
    isrc_map: Optional[Dict[str, str]],
    no_progress: bool,
    transport_factory: TransportFactory,
) -> MigrationResult:
    logger = StructuredLogger(level=config.log_level)
    registry = CircuitBreakerRegistry(
        failure_threshold=config.circuit_breaker_failure_threshold,
        cooldown_ms=config.circuit_breaker_cooldown_ms,
        logger=logger,
    )

    caches = _build_caches(config, [source_name, dest_name_provider])

    async with AsyncExitStack() as stack:
        source = create_provider(
            source_name, config.token_for(source_name), registry, config,
            logger=logger, transport=transport_factory(source_name),
            cache=caches.get(source_name.strip().lower()),
        )
        dest = create_provider(
            dest_name_provider, config.token_for(dest_name_provider), registry, config,
            logger=logger, transport=transport_factory(dest_name_provider),
            cache=caches.get(dest_name_provider.strip().lower()),
        )
        await stack.enter_async_context(source.client.http_client)
        await stack.enter_async_context(dest.client.http_client)

        orchestrator = MigrationOrchestrator(
            registry,
            logger=logger,
            total_timeout=config.total_timeout,
            fuzzy_threshold=config.fuzzy_threshold,
            isrc_map=isrc_map,
            page_size=config.page_size,
            batch_size=config.batch_size,
            caches=caches,
        )

        if no_progress:
            console.print(f"[cyan]Migrating {source_name}:{playlist_id} -> {dest_name_provider}...[/cyan]")
            return await orchestrator.migrate(source, playlist_id, dest, dest_name, catalog)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            task_id = progress.add_task(
                f"[cyan]Migrating {source_name}:{playlist_id} -> {dest_name_provider}...",
                total=None,
            )
            result = await orchestrator.migrate(source, playlist_id, dest, dest_name, catalog)
            progress.update(task_id, completed=True)
            return result


@cli.command("import")
@click.option("--from", "source", required=True, help="Source provider (e.g. youtube)")
@click.option("--playlist", "playlist_id", required=True, help="Source playlist id")
@click.option("--output", "-o", type=click.Path(path_type=Path), required=True, help="PIF JSON file to write")
@click.option("--page-size", type=int, help="Import page size (overrides config)")
@config_option
@log_level_option
@click.pass_obj
def import_playlist(
    obj: Dict,
    source: str,
    playlist_id: str,
    output: Path,
    page_size: Optional[int],
    config_path: Path,
    log_level: Optional[str],
) -> None:
    """Read a provider playlist and save it as PIF JSON."""
    try:
        app_config = _load_config(config_path, {
            "page_size": page_size,
            "log_level": log_level.upper() if log_level else None,
        })
        pif = asyncio.run(_read_playlist(app_config, source, playlist_id, _transport_factory(obj)))
        JSONOutputFormatter().save_pif(pif, output)
        console.print(f"✓ Imported {len(pif.tracks)} tracks from {source}:{playlist_id}")
        console.print(f"✓ Output saved to: {output}")
        sys.exit(0)

    except KeyboardInterrupt:
        console.print("\n[yellow]Import interrupted by user[/yellow]")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        _fail(e)


async def _read_playlist(
    config: AppConfig,
    source_name: str,
    playlist_id: str,
    transport_factory: TransportFactory,
) -> PIF:
    logger = StructuredLogger(level=config.log_level)
    registry = CircuitBreakerRegistry(
        failure_threshold=config.circuit_breaker_failure_threshold,
        cooldown_ms=config.circuit_breaker_cooldown_ms,
        logger=logger,
    )
    source = create_provider(
        source_name, config.token_for(source_name), registry, config,
        logger=logger, transport=transport_factory(source_name),
        cache=create_response_cache(config),
    )
    async with source.client.http_client:
        return await asyncio.wait_for(
            source.read_playlist(playlist_id, ReadOptions(page_size=config.page_size)),
            timeout=config.total_timeout,
        )


def _read_pif_file(path: Path) -> PIFValidationResult:
    """Load and validate a PIF JSON file; exits with EXIT_ERROR on bad JSON."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = json.load(f)
    except ValueError as e:
        console.print(f"[red]Invalid JSON:[/red] {e}")
        sys.exit(EXIT_ERROR)
    return validate_pif(document)


def _print_validation_errors(result: PIFValidationResult) -> None:
    table = Table(title="PIF validation errors")
    table.add_column("Path", style="cyan")
    table.add_column("Error", style="red")
    for error in result.errors:
        table.add_row(error.instance_path or "/", error.message)
    console.print(table)


@cli.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
def validate(path: Path) -> None:
    """Validate a PIF JSON file."""
    result = _read_pif_file(path)
    if result.success:
        console.print(f"✓ Valid PIF: {result.data.name} ({len(result.data.tracks)} tracks)")
        sys.exit(0)

    _print_validation_errors(result)
    sys.exit(EXIT_ERROR)


@cli.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--format",
    "-f",
    "fmt",
    type=click.Choice(sorted(EXPORT_FORMATS)),
    default="m3u",
    show_default=True,
    help="Output file format",
)
@click.option("--output", "-o", type=click.Path(path_type=Path), help="File to write (defaults to PATH with the format's suffix)")
def export(path: Path, fmt: str, output: Optional[Path]) -> None:
    """
    Render a PIF JSON file as a playlist file.

    Examples:

        $ tunebridge export playlist.json --format m3u

        $ tunebridge export playlist.json -f csv-verbose -o playlist.csv
    """
    result = _read_pif_file(path)
    if not result.success:
        _print_validation_errors(result)
        sys.exit(EXIT_ERROR)

    output_path = output if output else path.with_suffix(FILE_SUFFIXES[fmt])
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        # newline="" keeps CRLF row endings as written
        with open(output_path, "w", encoding="utf-8", newline="") as f:
            f.write(render(result.data, fmt))
    except OSError as e:
        _fail(e)

    console.print(f"✓ Exported {len(result.data.tracks)} tracks as {fmt}")
    console.print(f"✓ Output saved to: {output_path}")
    sys.exit(0)


def _display_results(result: MigrationResult, output_path: Path, no_progress: bool) -> None:
    """Display final results summary."""
    report = result.write_report
    if no_progress:
        console.print(f"✓ Migration complete: {report.added}/{result.track_count} tracks added")
        console.print(f"✓ Output saved to: {output_path}")
        return

    console.print("\n[bold green]Migration Complete![/bold green]\n")

    summary_table = Table(title="Migration Summary", show_header=False)
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Value", style="green")
    summary_table.add_row("Playlist", result.playlist_name)
    summary_table.add_row("Destination", f"{result.dest_service}:{result.dest_id}")
    summary_table.add_row("Tracks", str(result.track_count))
    summary_table.add_row("Added", str(report.added))
    summary_table.add_row("Skipped", str(report.skipped or 0))
    summary_table.add_row("Failed", str(report.failed))
    summary_table.add_row("ISRC matches", f"{result.match_report.matched_isrc_pct:.2f}%")
    summary_table.add_row("Fuzzy matches", f"{result.match_report.matched_fuzzy_pct:.2f}%")
    summary_table.add_row("Duration", f"{result.duration_seconds:.2f}s")
    console.print(summary_table)
    console.print()

    for note in report.notes:
        console.print(f"[yellow]Note:[/yellow] {note}")

    if result.breaker_metrics:
        console.print(_breaker_table(result.breaker_metrics))
        console.print()

    if result.cache_metrics:
        console.print(_cache_table(result.cache_metrics))
        console.print()

    console.print(f"[bold]Output saved to:[/bold] {output_path}")
    console.print()


def _breaker_table(metrics: Dict[str, CircuitBreakerMetrics]) -> Table:
    table = Table(title="Circuit Breakers")
    table.add_column("Provider", style="cyan")
    table.add_column("State", style="green")
    table.add_column("Failures", justify="right", style="yellow")
    table.add_column("Rejected", justify="right", style="magenta")
    for name, m in metrics.items():
        table.add_row(name, m.state.value, str(m.failure_count), str(m.rejected_count))
    return table


def _cache_table(metrics: Dict[str, CacheMetrics]) -> Table:
    table = Table(title="Response Cache")
    table.add_column("Provider", style="cyan")
    table.add_column("Hits", justify="right", style="green")
    table.add_column("Misses", justify="right", style="yellow")
    table.add_column("Evictions", justify="right", style="magenta")
    table.add_column("Size", justify="right")
    for name, m in metrics.items():
        table.add_row(name, str(m.hits), str(m.misses), str(m.evictions), str(m.size))
    return table


main = cli


if __name__ == "__main__":
    cli()
