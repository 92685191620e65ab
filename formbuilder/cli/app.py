"""formbuilder CLI application -- Typer-based operator interface.

Provides commands to print the structural checksums of record types, to
run the startup scheme guard outside the application, and to print the
seed query of a record type.  Human-readable output goes to *stderr* via
Rich; ``--json`` output goes to *stdout*.

Exit codes:
    0 -- success (snapshot created, matched or skipped)
    2 -- scheme drift detected
    3 -- configuration, import or storage error
"""

from __future__ import annotations

import importlib
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Mapper

from formbuilder.cli.display import display_drift, display_fingerprints, display_outcome
from formbuilder.config import load_settings
from formbuilder.errors import ConfigError, SchemaDriftError, StorageError
from formbuilder.history.store import select_all_query
from formbuilder.logging_config import configure_logging
from formbuilder.schema.checksum import fingerprints_for, type_id
from formbuilder.schema.guard import SchemaGuardConf, validate_schema

EXIT_DRIFT = 2
EXIT_ERROR = 3

app = typer.Typer(
    name="formbuilder",
    help="formbuilder - scheme checksum guard and query tooling for record forms",
    no_args_is_help=True,
)
console = Console(stderr=True)

# Populated by the Typer callback.
_json_output: bool = False


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json",
        help="Emit machine-readable JSON on stdout.",
    ),
) -> None:
    global _json_output
    _json_output = json_mode
    configure_logging(load_settings())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_mapped(candidate: object) -> bool:
    return isinstance(candidate, type) and isinstance(sa_inspect(candidate, raiseerr=False), Mapper)


def _load_record_types(targets: list[str]) -> list[type]:
    """Import ``module`` or ``module:Class`` targets and collect mapped types.

    A bare module contributes every mapped class it defines itself (not the
    ones it imports).
    """
    found: dict[str, type] = {}
    for target in targets:
        module_name, _, class_name = target.partition(":")
        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            console.print(f"[red]Cannot import module {module_name}: {escape(str(exc))}[/red]")
            raise typer.Exit(code=EXIT_ERROR) from exc

        if class_name:
            candidate = getattr(module, class_name, None)
            if not isinstance(candidate, type):
                console.print(f"[red]{module_name} has no class {class_name}[/red]")
                raise typer.Exit(code=EXIT_ERROR)
            found[type_id(candidate)] = candidate
            continue

        for candidate in vars(module).values():
            if _is_mapped(candidate) and candidate.__module__ == module.__name__:
                found[type_id(candidate)] = candidate

    return [found[tid] for tid in sorted(found)]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def fingerprint(
    targets: list[str] = typer.Argument(..., help="Modules (or module:Class) defining record types."),
) -> None:
    """Print the structural checksum of every record type."""
    fingerprints = fingerprints_for(_load_record_types(targets))
    if _json_output:
        typer.echo(json.dumps({fp.type_id: fp.checksum for fp in fingerprints}, indent=2))
    else:
        display_fingerprints(console, fingerprints)


@app.command("check-schema")
def check_schema(
    targets: list[str] = typer.Argument(..., help="Modules (or module:Class) defining record types."),
    snapshot: Path | None = typer.Option(
        None,
        "--snapshot",
        "-s",
        help="Scheme checksum file (defaults to FORMBUILDER_SCHEME_CHECKSUM_FILE).",
    ),
    database_name: str | None = typer.Option(
        None,
        "--database-name",
        "-d",
        help="Database the snapshot belongs to (defaults to FORMBUILDER_DATABASE_NAME).",
    ),
) -> None:
    """Create or verify the scheme checksum snapshot."""
    settings = load_settings()
    conf = SchemaGuardConf(
        database_name=database_name if database_name is not None else settings.database_name,
        tracked_types=_load_record_types(targets),
        snapshot_location=snapshot if snapshot is not None else settings.scheme_checksum_file,
    )

    try:
        outcome = validate_schema(conf)
    except SchemaDriftError as exc:
        if _json_output:
            typer.echo(json.dumps({"status": "DRIFT", "drifted_types": list(exc.drifted_types)}))
        display_drift(console, exc)
        raise typer.Exit(code=EXIT_DRIFT) from exc
    except (ConfigError, StorageError) as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=EXIT_ERROR) from exc

    if _json_output:
        typer.echo(json.dumps({"status": outcome.value}))
    display_outcome(console, outcome, str(conf.snapshot_location))


@app.command("seed-query")
def seed_query(
    target: str = typer.Argument(..., help="Record type as module:Class."),
) -> None:
    """Print the select-all query that seeds a record type's history."""
    if ":" not in target:
        console.print("[red]Expected module:Class[/red]")
        raise typer.Exit(code=EXIT_ERROR)
    (record_type,) = _load_record_types([target])
    typer.echo(select_all_query(record_type))
