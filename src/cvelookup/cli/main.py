"""CLI entry point for cvelookup."""

import click
import json
import sys
from pathlib import Path
from rich.console import Console

from .config_cmd import config
from .output import format_cache_stats, format_record, format_results
from ..enrichment.cve_service import CVEService
from ..enrichment.models import LookupResult, LookupStatus
from ..utils.config import Config, init_config
from ..utils.env_loader import load_env
from ..utils.exceptions import ConfigError, InvalidCVEIdError, NVDAPIError
from ..utils.logger import get_logger, setup_logging
from ..version import VERSION

console = Console()
logger = get_logger(__name__)

EXIT_OK = 0
EXIT_MISSING = 1
EXIT_INVALID_ID = 2
EXIT_CONFIG = 3


@click.group()
@click.version_option(version=VERSION, prog_name="cvelookup")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Configuration file path")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--log-file", type=click.Path(), help="Write logs to file")
@click.pass_context
def cli(ctx, config_path, verbose, log_file):
    """
    cvelookup - resolve CVE identifiers against the NVD.

    \b
    Examples:
        # Single CVE
        cvelookup lookup CVE-2021-44228

        # Several CVEs as JSON
        cvelookup lookup CVE-2021-44228 CVE-2014-0160 --json

        # Show configuration
        cvelookup config show
    """
    load_env()
    setup_logging(
        level="DEBUG" if verbose else "WARNING",
        log_file=Path(log_file) if log_file else None,
        verbose=verbose
    )

    try:
        cfg = init_config(Path(config_path)) if config_path else init_config()
    except ConfigError as e:
        console.print(f"[red]Configuration Error:[/red]\n{e}")
        sys.exit(EXIT_CONFIG)

    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg
    ctx.obj["verbose"] = verbose
    logger.debug("Configuration loaded successfully")


@cli.command()
@click.argument("cve_ids", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.option("--workers", "-w", type=click.IntRange(min=1), help="Parallel lookups for several CVEs")
@click.option("--stats", is_flag=True, help="Show cache statistics afterwards")
@click.pass_context
def lookup(ctx, cve_ids, as_json, workers, stats):
    """
    Look up one or more CVEs.

    Output is JSON with --json or when output.format is "json".

    \b
    Exit Codes:
        0 - Every CVE found
        1 - At least one CVE not found or failed
        2 - Invalid CVE ID (single lookup)
    """
    cfg = ctx.obj.get("config") or Config()
    as_json = as_json or cfg.output.format == "json"
    service = CVEService.from_config(cfg)

    try:
        if len(cve_ids) == 1:
            results = {cve_ids[0]: _single_lookup(service, cve_ids[0])}
        else:
            results = service.lookup_batch(cve_ids, max_workers=workers)

        if as_json:
            click.echo(json.dumps([r.to_dict() for r in results.values()], indent=2))
        elif len(results) == 1 and next(iter(results.values())).record is not None:
            console.print(format_record(next(iter(results.values())).record))
        else:
            console.print(format_results(results))

        if stats and not as_json:
            console.print(format_cache_stats(service.get_cache_stats()))
    finally:
        service.close()

    if any(r.status is not LookupStatus.FOUND for r in results.values()):
        sys.exit(EXIT_MISSING)


def _single_lookup(service: CVEService, cve_id: str) -> LookupResult:
    """Run one lookup, exiting with code 2 on a malformed identifier."""
    try:
        record = service.lookup(cve_id)
    except InvalidCVEIdError as e:
        console.print(f"[red]{e.message}[/red]")
        if e.suggestion:
            console.print(f"[dim]{e.suggestion}[/dim]")
        sys.exit(EXIT_INVALID_ID)
    except NVDAPIError as e:
        logger.error(f"Lookup failed for {cve_id}: {e.message}")
        return LookupResult(cve_id, LookupStatus.ERROR, error=e.message)

    if record is None:
        return LookupResult(cve_id, LookupStatus.NOT_FOUND)
    return LookupResult(cve_id, LookupStatus.FOUND, record=record)


@cli.command()
def version():
    """Show version information."""
    console.print(f"\n[bold cyan]cvelookup[/bold cyan] v[yellow]{VERSION}[/yellow]\n")


cli.add_command(config)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
