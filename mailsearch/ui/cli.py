"""
Console rendering and export of search results.
"""

import csv
import json
import logging
import sys
from typing import List, Optional, TextIO

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from mailsearch.providers.base import OutputRecord
from mailsearch.search import SearchResult

logger = logging.getLogger(__name__)
console = Console()

EXPORT_FIELDS = ["Sender", "SubjectTitle", "DateSent", "Folder"]


def display_results(records: List[OutputRecord], out: Optional[Console] = None):
    """Display matching emails as a table."""
    out = out or console
    if not records:
        out.print("[yellow]No matching emails found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Sender")
    table.add_column("Subject")
    table.add_column("Date Sent", style="dim")
    table.add_column("Folder")

    for record in records:
        table.add_row(
            escape(record.sender or "-"),
            escape(record.subject_title or "-"),
            record.date_sent.strftime("%Y-%m-%d %H:%M") if record.date_sent else "-",
            escape(record.folder or "-")
        )

    out.print(Panel(table, title="Matching Emails", border_style="blue"))


def display_summary(result: SearchResult, out: Optional[Console] = None):
    """Print the one-line count summary."""
    out = out or console
    out.print(
        f"[bold]Found {len(result.records)} matching email(s) "
        f"across {result.folders_scanned} folder(s)[/bold]"
    )


def display_error(message: str, stage: Optional[str] = None, out: Optional[Console] = None):
    out = out or Console(stderr=True)
    prefix = f"{stage} failed: " if stage else ""
    out.print(f"[red]Error: {prefix}{escape(message)}[/red]")


def write_json(records: List[OutputRecord], stream: TextIO = None):
    """Write records as a JSON array."""
    stream = stream or sys.stdout
    json.dump([r.to_dict() for r in records], stream, indent=2)
    stream.write("\n")


def write_csv(records: List[OutputRecord], stream: TextIO = None):
    """Write records as CSV with a header row."""
    stream = stream or sys.stdout
    writer = csv.DictWriter(stream, fieldnames=EXPORT_FIELDS)
    writer.writeheader()
    for record in records:
        writer.writerow(record.to_dict())


def export_results(records: List[OutputRecord], fmt: str, output_path: Optional[str] = None):
    """Write records as json or csv, to a file if output_path is given."""
    writer = write_json if fmt == "json" else write_csv
    if output_path:
        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer(records, f)
        logger.info(f"Wrote {len(records)} record(s) to {output_path}")
    else:
        writer(records)
