"""Rich output formatting for the formbuilder CLI.

All functions write to a :class:`rich.console.Console` bound to *stderr* so
that JSON written to *stdout* is never polluted with decoration.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from formbuilder.errors import SchemaDriftError
from formbuilder.schema.checksum import SchemaFingerprint
from formbuilder.schema.guard import SchemaValidationOutcome

_OUTCOME_COLOURS: dict[SchemaValidationOutcome, str] = {
    SchemaValidationOutcome.CREATED: "cyan",
    SchemaValidationOutcome.MATCHED: "green",
    SchemaValidationOutcome.SKIPPED: "yellow",
}

_OUTCOME_TEXT: dict[SchemaValidationOutcome, str] = {
    SchemaValidationOutcome.CREATED: "Snapshot created",
    SchemaValidationOutcome.MATCHED: "Scheme unchanged",
    SchemaValidationOutcome.SKIPPED: "Snapshot empty, validation skipped",
}


def display_fingerprints(console: Console, fingerprints: list[SchemaFingerprint]) -> None:
    """Render one row per record type with its structural checksum."""
    if not fingerprints:
        console.print("[dim]No mapped record types found.[/dim]")
        return

    table = Table(title="Scheme checksums", show_lines=False)
    table.add_column("Record type", style="bold")
    table.add_column("Checksum", justify="right")
    for fingerprint in fingerprints:
        table.add_row(fingerprint.type_id, str(fingerprint.checksum))
    console.print(table)


def display_outcome(console: Console, outcome: SchemaValidationOutcome, snapshot: str) -> None:
    colour = _OUTCOME_COLOURS[outcome]
    console.print(f"[{colour}]{_OUTCOME_TEXT[outcome]}[/{colour}] ({escape(snapshot)})")


def display_drift(console: Console, error: SchemaDriftError) -> None:
    """Render a scheme drift as a red panel listing the drifted types."""
    lines = [f"[bold]Snapshot:[/bold] {escape(str(error.snapshot_location))}"]
    if error.drifted_types:
        lines.append("[bold]Drifted record types:[/bold]")
        lines.extend(f"  - {tid}" for tid in error.drifted_types)
    lines.append("")
    lines.append("Migrate the database scheme, then remove the snapshot file deliberately.")
    console.print(Panel("\n".join(lines), title="Scheme drift detected", border_style="red"))
