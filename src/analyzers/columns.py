"""
Report column parsing.

Columns arrive either as a JSON array of column objects, e.g.
``[{"name": "contribution_rank", "hide": ["B"]}, {"name": "commits", "minimum": 2}]``,
or as a comma-separated list of column names.
"""

import json
from typing import Iterable, List, Optional, Union

from pydantic import TypeAdapter

from analyzers.models import ColumnCriterion, CountColumn, Rank, RankColumn

_columns_adapter = TypeAdapter(List[ColumnCriterion])


def _split(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def parse_columns(
    raw: str, hide: Iterable[str] = ()
) -> List[Union[RankColumn, CountColumn]]:
    """
    Parse report columns and merge the global hide list into every rank column.

    Args:
        raw (str): JSON array or comma-separated column names
        hide (Iterable[str]): Ranks hidden in every rank column

    Returns:
        List[Union[RankColumn, CountColumn]]: Validated, immutable column criteria

    Raises:
        ValueError: If a column name, rank or minimum is invalid
    """
    trimmed = raw.strip()
    items = None
    if trimmed.startswith("["):
        try:
            items = json.loads(trimmed)
        except json.JSONDecodeError:
            items = None
    if items is None:
        items = [{"name": name} for name in _split(trimmed)]

    for item in items:
        if isinstance(item, dict) and isinstance(item.get("hide"), str):
            item["hide"] = _split(item["hide"])

    columns = _columns_adapter.validate_python(items)

    hidden = [Rank(r) for r in hide]
    if not hidden:
        return columns
    return [
        column.model_copy(update={"hide": list(dict.fromkeys([*column.hide, *hidden]))})
        if isinstance(column, RankColumn)
        else column
        for column in columns
    ]


def get_column_criteria(
    columns: Iterable[Union[RankColumn, CountColumn]], name: str
) -> Optional[Union[RankColumn, CountColumn]]:
    """Return the first column named ``name``, or None."""
    return next((column for column in columns if column.name == name), None)
