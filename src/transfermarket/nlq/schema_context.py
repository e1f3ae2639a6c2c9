"""Schema context module for NLQ.

This module turns the store's table metadata into the schema card that
grounds every planning prompt. The card is built once and shared.
"""

import logging
from dataclasses import dataclass

from transfermarket.nlq.errors import SchemaUnavailable
from transfermarket.store import DataStore, StoreError, TableSchema, get_store

logger = logging.getLogger(__name__)

# Known tables get a one-line hint so the model picks the right joins
TABLE_NOTES: dict[str, str] = {
    "club": "Football clubs. budget is the remaining transfer budget in euros.",
    "player": "Players. club_id references club.id (NULL for free agents); market_value is in euros.",
    "transfer": "Completed transfers. player_id references player.id; from_club_id and to_club_id reference club.id; fee is in euros.",
}


@dataclass(frozen=True)
class SchemaCard:
    """Immutable description of the queryable tables."""

    tables: tuple[TableSchema, ...]
    text: str

    @property
    def table_names(self) -> list[str]:
        return [table.name for table in self.tables]


def describe(store: DataStore) -> SchemaCard:
    """Build the schema card from store metadata.

    Tables are sorted by name and columns keep their declared order, so the
    same schema always renders the same text.

    Args:
        store: Data store to inspect

    Returns:
        SchemaCard with tables and rendered text

    Raises:
        SchemaUnavailable: If the store cannot be inspected or has no tables
    """
    try:
        tables = store.describe_schema()
    except StoreError as e:
        logger.error(f"Failed to describe store schema: {e}")
        raise SchemaUnavailable(f"Store schema unavailable: {e}") from e

    if not tables:
        logger.error("Store exposes no tables")
        raise SchemaUnavailable("Store exposes no tables")

    ordered = tuple(sorted(tables, key=lambda table: table.name))
    text = render_schema(ordered)

    logger.info(
        f"Loaded schema card with {len(ordered)} tables",
        extra={"tables": [table.name for table in ordered]},
    )

    return SchemaCard(tables=ordered, text=text)


def render_schema(tables: tuple[TableSchema, ...]) -> str:
    """Render tables as compact prompt text."""
    blocks = []
    for table in tables:
        lines = [f"### Table: {table.name}"]
        note = TABLE_NOTES.get(table.name)
        if note:
            lines.append(f"Description: {note}")
        lines.append("Columns:")
        lines.extend(f"  - {col.name} ({col.type})" for col in table.columns)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


# Module-level cache for the schema card
_schema_card_cache: SchemaCard | None = None


def get_schema_card() -> SchemaCard:
    """Get cached schema card, describing the configured store on first use."""
    global _schema_card_cache

    if _schema_card_cache is None:
        try:
            store = get_store()
        except StoreError as e:
            raise SchemaUnavailable(f"Store unavailable: {e}") from e
        _schema_card_cache = describe(store)

    return _schema_card_cache
