#!/usr/bin/env python
"""
Load a JSON export of character rows into the local catalog store.

Usage:
    python scripts/import_catalog.py characters.json
    python scripts/import_catalog.py --sync      # pull the catalog from Supabase instead

The JSON file holds a list of character rows, either flat
(``{"id", "name", "state": {...}, "classes": [{...}]}``) or in the Supabase
join shape (``"classes": [{"class": {...}}]``).

Environment variables (for --sync):
    SUPABASE_URL
    SUPABASE_KEY
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app import create_app  # noqa: E402
from catalog import ensure_catalog_cache, store_catalog_rows  # noqa: E402


def import_file(path: Path) -> int:
    with path.open("r", encoding="utf-8") as handle:
        rows = json.load(handle)
    if not isinstance(rows, list):
        raise click.ClickException(f"Expected a JSON list of characters in {path}.")
    return store_catalog_rows(rows)


@click.command()
@click.argument("path", required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--sync", is_flag=True, help="Force a sync from Supabase instead of reading a file.")
def main(path: Path | None, sync: bool) -> None:
    """Load a JSON export of character rows into the local catalog store."""
    if not path and not sync:
        raise click.UsageError("give a JSON file or --sync")

    app = create_app()
    with app.app_context():
        if sync:
            if not app.config.get("SUPABASE_CLIENT"):
                raise click.ClickException("Missing SUPABASE_URL or SUPABASE_KEY environment variables.")
            click.echo("🔍 Syncing catalog from Supabase...")
            count = ensure_catalog_cache(force=True)
        else:
            click.echo(f"🔍 Importing characters from {path}...")
            count = import_file(path)

    click.echo(f"\n✅ Catalog import complete. Characters stored: {count}")


if __name__ == "__main__":
    main()
