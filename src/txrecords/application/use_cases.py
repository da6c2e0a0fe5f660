"""
Operations exposed to the API layer.

Failure kinds each operation may raise (see RecordError.status_code):
  InvalidQuery                                  -> 400, e.g. no block range for a node
  InvalidAddressField / MissingRequiredAddress  -> 422, bad upstream data
  RecordNotFound                                -> 404
  UpstreamFetchError                            -> 502
Tolerant list operations never raise row-level errors; they return them.
"""
from __future__ import annotations

from ..domain.errors import RecordNotFound
from ..domain.models import (
    BatchResult, FailureDetail, LogEntry, Page, Receipt, Record, RowQuery, Transaction,
)
from ..domain.value_types import FaultMode, RecordKind
from ..ports.storage import RowSource
from .pipeline import fetch_batch

ListResult = list[Record] | tuple[list[Record], list[FailureDetail]]


def _unpack(result: BatchResult, mode: FaultMode) -> ListResult:
    if mode == "strict":
        result.raise_for_failure()
        return list(result.records)
    return list(result.records), list(result.failures)


async def _fetch_list(source: RowSource, query: RowQuery, kind: RecordKind,
                      page: Page | None, mode: FaultMode) -> ListResult:
    if query.kind != kind:
        raise ValueError(f"expected a {kind!r} query, got {query.kind!r}")
    return _unpack(await fetch_batch(source, query, page, mode=mode), mode)


async def _fetch_one(source: RowSource, query: RowQuery) -> Record:
    result = await fetch_batch(source, query, Page(offset=0, limit=1), mode="strict")
    result.raise_for_failure()
    if not result.records:
        raise RecordNotFound(query.describe())
    return result.records[0]


async def fetch_transactions(
    source: RowSource, query: RowQuery, page: Page | None = None, *, mode: FaultMode = "tolerant",
) -> list[Transaction] | tuple[list[Transaction], list[FailureDetail]]:
    """List view. tolerant -> (records, failures); strict -> records, or raises the row error."""
    return await _fetch_list(source, query, "transaction", page, mode)


async def fetch_logs(
    source: RowSource, query: RowQuery, page: Page | None = None, *, mode: FaultMode = "tolerant",
) -> list[LogEntry] | tuple[list[LogEntry], list[FailureDetail]]:
    return await _fetch_list(source, query, "log", page, mode)


async def fetch_transaction(source: RowSource, tx_hash: str) -> Transaction:
    """Detail view: one transaction, strict."""
    return await _fetch_one(source, RowQuery(kind="transaction", tx_hash=tx_hash))


async def fetch_receipt(source: RowSource, tx_hash: str) -> Receipt:
    """Detail view: one receipt with its logs, strict."""
    return await _fetch_one(source, RowQuery(kind="receipt", tx_hash=tx_hash))
