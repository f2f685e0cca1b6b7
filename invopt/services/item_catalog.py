"""Item catalog access for optimization.

Deployed catalogs do not agree on which planning columns exist, so reads and
write-backs start from the live column set and only touch columns that are
actually there. Statements are composed with SQLAlchemy constructs over the
discovered names, never string-built SQL.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from sqlalchemy import column, func, inspect, select, table, true, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from invopt.db.handle import Database
from invopt.services.normalizer import ResultRow, coerce_item_id

logger = logging.getLogger(__name__)

ITEMS_TABLE = "items"
ID_COLUMN = "id"
ACTIVE_COLUMN = "is_active"

# Sentinel default: leave the field out of the snapshot when the column is missing.
OMIT = object()


@dataclass(frozen=True)
class SnapshotField:
    """How one catalog column maps into an item snapshot."""

    name: str
    if_null: float
    if_missing: Any = 0.0


SNAPSHOT_FIELDS: Tuple[SnapshotField, ...] = (
    SnapshotField("avg_daily_demand", if_null=0.0),
    SnapshotField("lead_time_days", if_null=0.0),
    SnapshotField("unit_cost", if_null=0.0),
    SnapshotField("safety_stock", if_null=0.0, if_missing=OMIT),
    SnapshotField("order_cost", if_null=50.0, if_missing=50.0),
)

# Catalog columns that receive computed figures, first present alias wins.
WRITE_BACK_COLUMNS = {
    "eoq": ("eoq", "eoq_qty"),
    "reorder_point": ("reorder_point", "reorder_level"),
    "safety_stock": ("safety_stock",),
}


@dataclass(frozen=True)
class ItemSnapshot:
    """The record sent to the optimization engine for one item."""

    item_id: int
    values: Dict[str, float] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"item_id": self.item_id}
        payload.update(self.values)
        return payload


@dataclass
class CatalogUpdateOutcome:
    """Result of the best-effort write-back. Never affects job status."""

    updated: int = 0
    columns: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def discover_columns(session: Session, table_name: str = ITEMS_TABLE) -> FrozenSet[str]:
    """Return the set of column names the table currently has."""
    inspector = inspect(session.connection())
    return frozenset(col["name"] for col in inspector.get_columns(table_name))


def _coerce_number(value: Any, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug(f"Non-numeric catalog value {value!r}, using {default}")
        return default


def _eligible_filter(items, columns: FrozenSet[str]):
    if ACTIVE_COLUMN in columns:
        return items.c[ACTIVE_COLUMN] == true()
    return None


def _load_snapshots(session: Session) -> List[ItemSnapshot]:
    columns = discover_columns(session)
    if ID_COLUMN not in columns:
        logger.error(f"Item catalog has no '{ID_COLUMN}' column; nothing can be optimized")
        return []

    present = [f for f in SNAPSHOT_FIELDS if f.name in columns]
    selected = [ID_COLUMN] + [f.name for f in present]
    if ACTIVE_COLUMN in columns:
        selected.append(ACTIVE_COLUMN)
    items = table(ITEMS_TABLE, *[column(name) for name in selected])

    query = select(*[items.c[f.name] for f in present], items.c[ID_COLUMN]).order_by(items.c[ID_COLUMN])
    eligible = _eligible_filter(items, columns)
    if eligible is not None:
        query = query.where(eligible)

    snapshots = []
    for row in session.execute(query).mappings():
        item_id = coerce_item_id(row[ID_COLUMN])
        if item_id is None:
            logger.warning(f"Skipping catalog row without a valid id: {dict(row)}")
            continue

        values: Dict[str, float] = {}
        for mapping in SNAPSHOT_FIELDS:
            if mapping.name in columns:
                values[mapping.name] = _coerce_number(row[mapping.name], mapping.if_null)
            elif mapping.if_missing is not OMIT:
                values[mapping.name] = float(mapping.if_missing)
        snapshots.append(ItemSnapshot(item_id=item_id, values=values))

    return snapshots


def extract_items(db: Database) -> List[ItemSnapshot]:
    """
    Read eligible items from the catalog as snapshots.

    Storage failures are logged and reported as an empty list; callers treat
    that the same as "no items available".
    """
    try:
        snapshots = db.run(_load_snapshots, "item extraction")
    except SQLAlchemyError as e:
        logger.error(f"Item extraction failed: {e}")
        return []

    logger.info(f"Extracted {len(snapshots)} eligible item(s) for optimization")
    return snapshots


def count_eligible_items(db: Database) -> int:
    """
    Count items that would be sent for optimization.

    Unlike extraction, storage errors propagate: a job cannot be enqueued
    against an unreachable catalog.
    """

    def _count(session: Session) -> int:
        columns = discover_columns(session)
        if ID_COLUMN not in columns:
            return 0
        names = [ID_COLUMN] + ([ACTIVE_COLUMN] if ACTIVE_COLUMN in columns else [])
        items = table(ITEMS_TABLE, *[column(name) for name in names])
        query = select(func.count()).select_from(items)
        eligible = _eligible_filter(items, columns)
        if eligible is not None:
            query = query.where(eligible)
        return int(session.execute(query).scalar() or 0)

    return db.run(_count, "eligible item count")


def resolve_write_back_columns(columns: FrozenSet[str]) -> Dict[str, str]:
    """Map result fields to the catalog columns that exist for them."""
    resolved = {}
    for figure, aliases in WRITE_BACK_COLUMNS.items():
        for name in aliases:
            if name in columns:
                resolved[figure] = name
                break
    return resolved


def apply_results_to_catalog(db: Database, rows: Sequence[ResultRow]) -> CatalogUpdateOutcome:
    """
    Copy computed figures back onto catalog rows, best effort.

    Runs in its own transaction. Failures are logged and returned in the
    outcome; they are never raised.
    """
    outcome = CatalogUpdateOutcome()
    if not rows:
        return outcome

    def _apply(session: Session) -> None:
        columns = discover_columns(session)
        targets = resolve_write_back_columns(columns)
        outcome.columns = targets
        if not targets or ID_COLUMN not in columns:
            logger.debug("Item catalog has no write-back columns; skipping update")
            return

        items = table(ITEMS_TABLE, column(ID_COLUMN), *[column(name) for name in targets.values()])
        updated = 0
        for row in rows:
            values = {
                targets[figure]: getattr(row, figure)
                for figure in targets
                if getattr(row, figure) is not None
            }
            if not values:
                continue
            session.execute(
                update(items).where(items.c[ID_COLUMN] == row.item_id).values(**values)
            )
            updated += 1
        outcome.updated = updated

    try:
        db.run(_apply, "catalog write-back")
    except SQLAlchemyError as e:
        logger.warning(f"Best-effort item catalog update failed: {e}")
        outcome.updated = 0
        outcome.error = str(e)

    return outcome
