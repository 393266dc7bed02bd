"""
CLI utility helpers: output formatting and manager lifecycle.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from review_spine.core.errors import ReviewSpineError
from review_spine.core.logging import configure_logging, resolve_json_format
from review_spine.core.settings import get_settings
from review_spine.scheduling.manager import ReviewServiceManager, build_manager

console = Console()
err_console = Console(stderr=True)


# ── Manager helper ───────────────────────────────────────────────────────


@contextmanager
def open_manager() -> Iterator[ReviewServiceManager]:
    """Build a manager from settings and close it on exit.

    Review-spine errors are printed and turned into exit code 1.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=resolve_json_format(settings.log_format))
    try:
        manager = build_manager(settings)
    except ReviewSpineError as exc:
        fail(exc)
    try:
        yield manager
    except ReviewSpineError as exc:
        fail(exc)
    finally:
        manager.close()


def fail(exc: ReviewSpineError) -> None:
    err_console.print(f"[bold red]Error[/bold red] ({exc.category.value}): {exc.message}")
    raise typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / pydantic model / dict to plain dict."""
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output(data: Any, *, as_json: bool = False, title: str = "") -> None:
    """Render a dict, dataclass, or list of them to the terminal."""
    if as_json:
        payload = [_to_dict(d) for d in data] if isinstance(data, list | tuple) else _to_dict(data)
        console.print_json(json.dumps(payload, default=str))
        return

    if isinstance(data, list):
        if not data:
            console.print("[dim]No items.[/dim]")
            return
        _print_table(data, title=title)
    else:
        _print_dict(_to_dict(data), title=title)


# ── Private helpers ──────────────────────────────────────────────────────


def _print_table(items: list, *, title: str = "") -> None:
    """Render a list of dataclasses/dicts as a Rich table."""
    first = _to_dict(items[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for item in items:
        d = _to_dict(item)
        table.add_row(*(str(v) for v in d.values()))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")
