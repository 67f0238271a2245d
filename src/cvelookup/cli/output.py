"""Rich rendering of lookup results."""

from typing import Any, Dict

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..enrichment.models import LookupResult, LookupStatus, VulnerabilityRecord

console = Console()

SEVERITY_COLORS = {
    "CRITICAL": "bold red",
    "HIGH": "red",
    "MEDIUM": "yellow",
    "LOW": "blue",
    "INFO": "dim",
}

STATUS_LABELS = {
    LookupStatus.FOUND: "[green]found[/green]",
    LookupStatus.NOT_FOUND: "[yellow]not found[/yellow]",
    LookupStatus.ERROR: "[red]error[/red]",
}


def _severity(record: VulnerabilityRecord) -> str:
    color = SEVERITY_COLORS.get(record.severity.value, "white")
    return f"[{color}]{record.severity.value}[/{color}]"


def format_record(record: VulnerabilityRecord, max_items: int = 5) -> Panel:
    """Detailed panel for a single CVE."""
    table = Table(show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    table.add_row("Severity", _severity(record))
    table.add_row("CVSS", f"{record.cvss_score:.1f} (v{record.cvss_version or '-'})")
    table.add_row("Vector", record.cvss_vector)
    table.add_row("Published", record.published.isoformat() if record.published else "unknown")
    table.add_row("Description", record.description)

    if record.affected_products:
        products = list(record.affected_products[:max_items])
        extra = len(record.affected_products) - len(products)
        if extra > 0:
            products.append(f"... and {extra} more")
        table.add_row("Affected", "\n".join(products))

    if record.references:
        table.add_row("References", "\n".join(record.references[:max_items]))

    return Panel(table, title=f"[bold]{record.cve_id}[/bold]", border_style="cyan")


def format_results(results: Dict[str, LookupResult]) -> Table:
    """Summary table for a batch lookup."""
    table = Table(title="CVE Lookup Results")
    table.add_column("CVE", style="bold")
    table.add_column("Status")
    table.add_column("Severity")
    table.add_column("CVSS", justify="right")
    table.add_column("Details", overflow="fold")

    for cve_id, result in results.items():
        record = result.record
        if record is not None:
            table.add_row(
                record.cve_id,
                STATUS_LABELS[result.status],
                _severity(record),
                f"{record.cvss_score:.1f}",
                record.description[:80],
            )
        else:
            table.add_row(cve_id, STATUS_LABELS[result.status], "-", "-", result.error or "")

    return table


def format_cache_stats(stats: Dict[str, Any]) -> Table:
    table = Table(title="Cache", show_header=False, box=None)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="yellow")

    table.add_row("Entries", str(stats["keys"]))
    table.add_row("Hits", str(stats["hits"]))
    table.add_row("Misses", str(stats["misses"]))
    table.add_row("Hit rate", f"{stats['hit_rate']:.0%}")
    return table
