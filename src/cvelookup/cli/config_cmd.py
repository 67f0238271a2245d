"""Configuration management CLI commands."""

import click
import sys
from rich.console import Console
from rich.table import Table

from ..utils.config import Config
from ..utils.exceptions import ConfigError

console = Console()

SECTION_TITLES = {
    "nvd": "NVD API",
    "cache": "Cache",
    "retry": "Retry",
    "lookup": "Lookup",
    "output": "Output",
}


@click.group()
def config():
    """Manage cvelookup configuration."""
    pass


@config.command()
@click.pass_context
def show(ctx):
    """Show current configuration."""
    cfg = (ctx.obj or {}).get("config") or Config()
    data = cfg.to_dict()

    console.print("\n[bold cyan]Current Configuration[/bold cyan]\n")

    for section, values in data.items():
        console.print(f"[bold]{SECTION_TITLES.get(section, section)}:[/bold]")
        table = Table(show_header=False, box=None)
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="yellow")

        for key, value in values.items():
            table.add_row(key, "auto" if value is None else str(value))

        if section == "nvd":
            table.add_row("effective rate limit", f"{cfg.nvd.effective_rate_limit} / {cfg.nvd.window_seconds:g}s")

        console.print(table)
        console.print()


@config.command()
@click.option("--overwrite", is_flag=True, help="Overwrite existing config")
def init(overwrite):
    """Initialize user configuration file."""
    try:
        config_file = Config.create_user_config(overwrite=overwrite)
    except ConfigError as e:
        console.print(f"\n[red]Error:[/red] {e}\n")
        sys.exit(1)

    console.print(f"\n[green]Created configuration file:[/green] {config_file}")
    console.print("\n[dim]Edit this file to customize your settings. Keep NVD_API_KEY in the environment.[/dim]\n")
