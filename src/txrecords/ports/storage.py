# txrecords/ports/storage.py
from __future__ import annotations

from typing import Protocol, Sequence
from ..domain.models import Page, RawRow, RowQuery


class RowSource(Protocol):
    """Port for the store mirroring chain state (database, node, Parquet mirror)."""

    async def query_rows(self, query: RowQuery, page: Page) -> Sequence[RawRow]:
        """Return raw rows of `query.kind` in natural chain order
        (block number, then transaction index, then log index) for the page.
        Storage-specific failures are raised as-is."""
