"""Normalization of optimization engine responses.

The engine is loosely typed: rows may name the item ``item_id`` or ``id`` and
the figures either in snake_case or as uppercase abbreviations. Each logical
field has an ordered alias list; the first alias present wins.
"""

import json
import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Iterable, List, Optional

logger = logging.getLogger(__name__)

ITEM_ID_ALIASES = ("item_id", "id")

FIGURE_ALIASES = {
    "eoq": ("eoq", "EOQ"),
    "reorder_point": ("reorder_point", "ROP"),
    "safety_stock": ("safety_stock", "SS"),
}


@dataclass(frozen=True)
class ResultRow:
    """A validated result for one item. Figures are None when not computed."""

    item_id: int
    eoq: Optional[float] = None
    reorder_point: Optional[float] = None
    safety_stock: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)


def _first_alias(row: dict, aliases: Iterable[str]) -> Any:
    for key in aliases:
        if key in row and row[key] is not None:
            return row[key]
    return None


def coerce_item_id(value: Any) -> Optional[int]:
    """Return a positive integer item id, or None if ``value`` is not one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        item_id = value
    elif isinstance(value, float):
        if not value.is_integer():
            return None
        item_id = int(value)
    elif isinstance(value, str):
        try:
            item_id = int(value.strip())
        except ValueError:
            return None
    else:
        return None
    return item_id if item_id > 0 else None


def coerce_figure(value: Any, field: str = "", item_id: Optional[int] = None) -> Optional[float]:
    """Coerce a figure to a non-negative float; empty or unusable values become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip() == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric {field}={value!r} for item_id={item_id}")
        return None
    if not math.isfinite(number) or number < 0:
        logger.warning(f"Ignoring out-of-range {field}={value!r} for item_id={item_id}")
        return None
    return number


def normalize_row(row: Any) -> Optional[ResultRow]:
    """Validate one response row. Returns None for rows without a usable item id."""
    if not isinstance(row, dict):
        logger.warning(f"Skipping non-object result row: {row!r}")
        return None

    raw_id = _first_alias(row, ITEM_ID_ALIASES)
    if raw_id is None:
        logger.warning(f"Skipping row without item_id/id: {json.dumps(row, default=str)}")
        return None

    item_id = coerce_item_id(raw_id)
    if item_id is None:
        logger.warning(f"Skipping row with invalid item_id={raw_id!r}: {json.dumps(row, default=str)}")
        return None

    figures = {
        field: coerce_figure(_first_alias(row, aliases), field, item_id)
        for field, aliases in FIGURE_ALIASES.items()
    }
    return ResultRow(item_id=item_id, **figures)


def extract_rows(payload: Any) -> List[Any]:
    """Accept either a bare list of rows or ``{"results": [...]}``."""
    if isinstance(payload, dict):
        payload = payload.get("results")
    if isinstance(payload, list):
        return payload
    return []


def normalize_results(payload: Any) -> List[ResultRow]:
    """
    Convert a decoded engine response into validated result rows.

    Rows without a positive integer item id are dropped. When an item id
    repeats, the first row is kept and later ones are logged and dropped.

    Args:
        payload: Decoded JSON body

    Returns:
        Result rows in response order, one per item id
    """
    rows: List[ResultRow] = []
    seen = set()

    for raw in extract_rows(payload):
        row = normalize_row(raw)
        if row is None:
            continue
        if row.item_id in seen:
            logger.warning(f"Duplicate result for item_id={row.item_id}, keeping first row")
            continue
        seen.add(row.item_id)
        rows.append(row)

    return rows
