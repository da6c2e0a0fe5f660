from __future__ import annotations
import os
from collections import defaultdict
from typing import Any, Iterable, Sequence

import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.parquet as pq

from ..domain.errors import InvalidQuery
from ..domain.models import Page, RawLogRow, RawReceiptRow, RawRow, RawTransactionRow, RowQuery
from ..domain.value_types import RecordKind
from ..ports.storage import RowSource

# Addresses are stored exactly as the upstream indexer wrote them; big ints as strings.
TX_SCHEMA = pa.schema([
    pa.field("hash",              pa.large_string()),
    pa.field("block_number",      pa.int64()),
    pa.field("transaction_index", pa.int32()),
    pa.field("from_address",      pa.large_string()),
    pa.field("to_address",        pa.large_string()),
    pa.field("value",             pa.large_string()),
    pa.field("nonce",             pa.int64()),
    pa.field("gas",               pa.int64()),
    pa.field("gas_price",         pa.large_string()),
    pa.field("input",             pa.large_string()),
    pa.field("block_timestamp",   pa.int64()),
])

RECEIPT_SCHEMA = pa.schema([
    pa.field("transaction_hash",    pa.large_string()),
    pa.field("block_number",        pa.int64()),
    pa.field("transaction_index",   pa.int32()),
    pa.field("from_address",        pa.large_string()),
    pa.field("to_address",          pa.large_string()),
    pa.field("contract_address",    pa.large_string()),
    pa.field("status",              pa.int8()),
    pa.field("gas_used",            pa.int64()),
    pa.field("cumulative_gas_used", pa.int64()),
])

LOG_SCHEMA = pa.schema([
    pa.field("transaction_hash",  pa.large_string()),
    pa.field("block_number",      pa.int64()),
    pa.field("transaction_index", pa.int32()),
    pa.field("log_index",         pa.int32()),
    pa.field("address",           pa.large_string()),
    pa.field("topics",            pa.list_(pa.large_string())),
    pa.field("data",              pa.large_string()),
])

TABLES: dict[RecordKind, tuple[str, pa.Schema]] = {
    "transaction": ("transactions.parquet", TX_SCHEMA),
    "receipt":     ("receipts.parquet",     RECEIPT_SCHEMA),
    "log":         ("logs.parquet",         LOG_SCHEMA),
}

_HASH_COL  = {"transaction": "hash", "receipt": "transaction_hash", "log": "transaction_hash"}
_ADDR_COLS = {"transaction": ("from_address", "to_address"),
              "receipt":     ("from_address", "to_address"),
              "log":         ("address",)}
_SORT_KEYS = {"transaction": ["block_number", "transaction_index"],
              "receipt":     ["block_number", "transaction_index"],
              "log":         ["block_number", "log_index"]}


def _int(v: Any, default: int | None = 0) -> int | None:
    return default if v is None else int(v)

def _str_or_none(v: Any) -> str | None:
    return None if v is None else str(v)

# ---------- row <-> dict ------------------------------------------------------

def _tx_from_dict(d: dict[str, Any]) -> RawTransactionRow:
    return RawTransactionRow(
        hash=d["hash"], block_number=d["block_number"], transaction_index=d["transaction_index"],
        from_address=d["from_address"], to_address=d["to_address"],
        value=_int(d["value"]), nonce=_int(d["nonce"]), gas=_int(d["gas"]),
        gas_price=_int(d["gas_price"], None), input=d["input"] or "0x",
        block_timestamp=d["block_timestamp"],
    )

def _log_from_dict(d: dict[str, Any]) -> RawLogRow:
    return RawLogRow(
        transaction_hash=d["transaction_hash"], block_number=d["block_number"],
        transaction_index=d["transaction_index"], log_index=d["log_index"],
        address=d["address"], topics=tuple(d["topics"] or ()), data=d["data"] or "0x",
    )

def _receipt_from_dict(d: dict[str, Any], logs: Sequence[RawLogRow]) -> RawReceiptRow:
    return RawReceiptRow(
        transaction_hash=d["transaction_hash"], block_number=d["block_number"],
        transaction_index=d["transaction_index"],
        from_address=d["from_address"], to_address=d["to_address"],
        contract_address=d["contract_address"], status=d["status"],
        gas_used=_int(d["gas_used"]), cumulative_gas_used=_int(d["cumulative_gas_used"]),
        logs=tuple(logs),
    )

def _row_to_dict(row: RawRow) -> dict[str, Any]:
    if isinstance(row, RawTransactionRow):
        return {"hash": row.hash, "block_number": row.block_number,
                "transaction_index": row.transaction_index,
                "from_address": row.from_address, "to_address": row.to_address,
                "value": str(row.value), "nonce": row.nonce, "gas": row.gas,
                "gas_price": _str_or_none(row.gas_price), "input": row.input,
                "block_timestamp": row.block_timestamp}
    if isinstance(row, RawReceiptRow):
        return {"transaction_hash": row.transaction_hash, "block_number": row.block_number,
                "transaction_index": row.transaction_index,
                "from_address": row.from_address, "to_address": row.to_address,
                "contract_address": row.contract_address, "status": row.status,
                "gas_used": row.gas_used, "cumulative_gas_used": row.cumulative_gas_used}
    return {"transaction_hash": row.transaction_hash, "block_number": row.block_number,
            "transaction_index": row.transaction_index, "log_index": row.log_index,
            "address": row.address, "topics": list(row.topics), "data": row.data}

# ---------- writing (mirror export) -------------------------------------------

def _write_table(path: str, table: pa.Table) -> None:
    tmp = path + ".tmp"
    pq.write_table(table, tmp, compression="snappy", use_dictionary=True)
    os.replace(tmp, path)


def _merge_receipt_logs(root_dir: str, receipts: list[RawReceiptRow]) -> None:
    # logs of other transactions already in the mirror are kept
    fname, schema = TABLES["log"]
    path = os.path.join(root_dir, fname)
    new = pa.Table.from_pylist([_row_to_dict(lg) for r in receipts for lg in r.logs], schema=schema)
    if os.path.exists(path):
        existing = pq.read_table(path).cast(schema)
        owned = pa.array([r.transaction_hash.lower() for r in receipts], pa.large_string())
        keep = pc.invert(pc.is_in(pc.utf8_lower(existing["transaction_hash"]), value_set=owned))
        new = pa.concat_tables([existing.filter(keep), new])
    _write_table(path, new)


def write_rows(root_dir: str, kind: RecordKind, rows: Iterable[RawRow]) -> str:
    """Write one mirror table atomically, replacing it.

    Receipt rows also write their logs into logs.parquet. Logs already stored
    for those transactions are replaced; logs of any other transaction stay.
    """
    os.makedirs(root_dir, exist_ok=True)
    rows = list(rows)
    fname, schema = TABLES[kind]
    table = pa.Table.from_pylist([_row_to_dict(r) for r in rows], schema=schema)
    path = os.path.join(root_dir, fname)
    _write_table(path, table)
    if kind == "receipt":
        _merge_receipt_logs(root_dir, rows)
    return path

# ---------- reading -----------------------------------------------------------

def _and(mask: pa.Array | None, cond: pa.Array) -> pa.Array:
    return cond if mask is None else pc.and_kleene(mask, cond)

def _filter(table: pa.Table, kind: RecordKind, query: RowQuery) -> pa.Table:
    mask = None
    if query.tx_hash:
        mask = _and(mask, pc.equal(pc.utf8_lower(table[_HASH_COL[kind]]), query.tx_hash.lower()))
    if query.from_block is not None:
        mask = _and(mask, pc.greater_equal(table["block_number"], query.from_block))
    if query.to_block is not None:
        mask = _and(mask, pc.less_equal(table["block_number"], query.to_block))
    if query.address:
        a = query.address.lower()
        addr_mask = None
        for col in _ADDR_COLS[kind]:
            cond = pc.equal(pc.utf8_lower(table[col]), a)
            addr_mask = cond if addr_mask is None else pc.or_kleene(addr_mask, cond)
        mask = _and(mask, addr_mask)
    return table.filter(mask) if mask is not None else table


class ParquetRowSource(RowSource):
    """Reads a local Parquet mirror: transactions/receipts/logs tables in `root_dir`."""

    def __init__(self, root_dir: str) -> None:
        self.root = root_dir

    def _read(self, kind: RecordKind) -> pa.Table:
        fname, _ = TABLES[kind]
        path = os.path.join(self.root, fname)
        if not os.path.exists(path):
            raise FileNotFoundError(f"mirror table not found: {path}")
        return pq.read_table(path).combine_chunks()

    def _select(self, kind: RecordKind, query: RowQuery, page: Page) -> list[dict[str, Any]]:
        table = _filter(self._read(kind), kind, query)
        table = table.sort_by([(k, "ascending") for k in _SORT_KEYS[kind]])
        return table.slice(page.offset, page.limit).to_pylist()

    def _logs_for(self, tx_hashes: list[str]) -> dict[str, list[RawLogRow]]:
        if not tx_hashes:
            return {}
        logs = self._read("log")
        keys = pa.array([h.lower() for h in tx_hashes], pa.large_string())
        logs = logs.filter(pc.is_in(pc.utf8_lower(logs["transaction_hash"]), value_set=keys))
        logs = logs.sort_by([("block_number", "ascending"), ("log_index", "ascending")])
        by_tx: dict[str, list[RawLogRow]] = defaultdict(list)
        for d in logs.to_pylist():
            by_tx[d["transaction_hash"].lower()].append(_log_from_dict(d))
        return by_tx

    async def query_rows(self, query: RowQuery, page: Page) -> list[RawRow]:
        kind = query.kind
        if kind not in TABLES:
            raise InvalidQuery(f"unknown row kind: {kind!r}", query.describe())
        dicts = self._select(kind, query, page)
        if kind == "transaction":
            return [_tx_from_dict(d) for d in dicts]
        if kind == "log":
            return [_log_from_dict(d) for d in dicts]
        by_tx = self._logs_for([d["transaction_hash"] for d in dicts])
        return [_receipt_from_dict(d, by_tx.get(d["transaction_hash"].lower(), [])) for d in dicts]
