"""SQL generation for JSON exports and assembly of the JSON array result."""

from __future__ import annotations

from typing import Sequence

from .models import QuerySpec


def build_query(spec: QuerySpec) -> str:
    """Compile *spec* into a single statement returning JSON.

    Without fields every row becomes one ``to_jsonb`` object; with fields the
    selected columns are aggregated into one ``jsonb_agg`` array. ``where`` and
    ``fields`` are inserted verbatim.
    """

    table = spec.table_name
    if spec.fields:
        pairs = ", ".join(f"'{name}', {name}" for name in spec.fields)
        statement = f"SELECT jsonb_agg(jsonb_build_object({pairs})) FROM {table}"
    else:
        statement = f"SELECT to_jsonb({table}) FROM {table}"
    if spec.where:
        statement += f" WHERE {spec.where}"
    if spec.limit > 0:
        statement += f" LIMIT {spec.limit}"
    return statement


def rows_to_json_array(rows: Sequence[str]) -> str:
    """Wrap row fragments in one JSON array, one fragment per line."""

    if not rows:
        return "[  ]"
    return "[ " + ",\n".join(rows) + "\n ]"


def parse_fields(text: str) -> tuple[str, ...]:
    """Split a comma separated field list, dropping blanks."""

    return tuple(part.strip() for part in text.split(",") if part.strip())


__all__ = ["build_query", "parse_fields", "rows_to_json_array"]
