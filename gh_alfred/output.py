"""Alfred script filter output.

See https://www.alfredapp.com/help/workflows/inputs/script-filter/json/
"""

import json
from typing import Iterable, List

import click
from pydantic import BaseModel, Field


class AlfredItem(BaseModel):
    """A single result row shown by Alfred."""

    title: str = Field(description="The title displayed in the result row")


def to_items(names: Iterable[str]) -> List[AlfredItem]:
    """Wrap names as Alfred items, keeping their order."""
    return [AlfredItem(title=name) for name in names]


def format_results(names: Iterable[str], pretty: bool = False) -> str:
    """Serialize names as a JSON list of {"title": ...} records.

    Args:
        names: Resolved names
        pretty: Indent the JSON (debug mode)
    """
    items = [item.model_dump() for item in to_items(names)]
    if pretty:
        return json.dumps(items, indent=2)
    return json.dumps(items, separators=(",", ":"))


def print_results(names: Iterable[str], pretty: bool = False) -> None:
    """Print resolved names to stdout."""
    click.echo(format_results(names, pretty))
