from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Union

from .errors import RecordError
from .value_types import (
    BatchState, ChecksummedAddress, FaultMode, RawAddress, RecordKind,
)

# ---------------------------- raw rows (as stored) ----------------------------

@dataclass(slots=True, frozen=True)
class RawTransactionRow:
    hash: str
    block_number: int
    transaction_index: int
    from_address: RawAddress | None
    to_address: RawAddress | None          # None for contract creation
    value: int = 0
    nonce: int = 0
    gas: int = 0
    gas_price: int | None = None
    input: str = "0x"
    block_timestamp: int | None = None

    @property
    def row_id(self) -> str: return self.hash

@dataclass(slots=True, frozen=True)
class RawLogRow:
    transaction_hash: str
    block_number: int
    transaction_index: int
    log_index: int
    address: RawAddress | None
    topics: tuple[str, ...] = ()
    data: str = "0x"

    @property
    def row_id(self) -> str: return f"{self.transaction_hash}:{self.log_index}"

@dataclass(slots=True, frozen=True)
class RawReceiptRow:
    transaction_hash: str
    block_number: int
    transaction_index: int
    from_address: RawAddress | None
    to_address: RawAddress | None
    contract_address: RawAddress | None    # set only for contract creation
    status: int | None = None
    gas_used: int = 0
    cumulative_gas_used: int = 0
    logs: tuple[RawLogRow, ...] = ()

    @property
    def row_id(self) -> str: return self.transaction_hash

RawRow = Union[RawTransactionRow, RawReceiptRow, RawLogRow]

# ---------------------------- domain records ----------------------------------

@dataclass(slots=True, frozen=True)
class Transaction:
    hash: str
    block_number: int
    transaction_index: int
    from_address: ChecksummedAddress
    to_address: ChecksummedAddress | None
    value: int
    nonce: int
    gas: int
    gas_price: int | None
    input: str
    block_timestamp: int | None

    @property
    def is_contract_creation(self) -> bool: return self.to_address is None

@dataclass(slots=True, frozen=True)
class LogEntry:
    transaction_hash: str
    block_number: int
    transaction_index: int
    log_index: int
    address: ChecksummedAddress
    topics: tuple[str, ...]
    data: str

@dataclass(slots=True, frozen=True)
class Receipt:
    transaction_hash: str
    block_number: int
    transaction_index: int
    from_address: ChecksummedAddress
    to_address: ChecksummedAddress | None
    contract_address: ChecksummedAddress | None
    status: int | None
    gas_used: int
    cumulative_gas_used: int
    logs: tuple[LogEntry, ...]

Record = Union[Transaction, Receipt, LogEntry]

# ---------------------------- queries & batch results -------------------------

@dataclass(slots=True, frozen=True)
class RowQuery:
    kind: RecordKind
    tx_hash: str | None = None
    from_block: int | None = None
    to_block: int | None = None
    address: str | None = None      # matches from/to (txs) or emitter (logs)

    def describe(self) -> str:
        parts = [self.kind]
        if self.tx_hash: parts.append(f"tx={self.tx_hash}")
        if self.from_block is not None or self.to_block is not None:
            parts.append(f"blocks={self.from_block}..{self.to_block}")
        if self.address: parts.append(f"address={self.address}")
        return " ".join(parts)

@dataclass(slots=True, frozen=True)
class Page:
    offset: int = 0
    limit: int = 100

@dataclass(slots=True, frozen=True)
class FailureDetail:
    index: int          # position in the storage row order
    row_id: str
    error: RecordError

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "row_id": self.row_id, **self.error.to_dict()}

@dataclass(slots=True, frozen=True)
class BatchResult:
    mode: FaultMode
    state: BatchState
    records: tuple[Record, ...] = ()
    failures: tuple[FailureDetail, ...] = ()

    @property
    def ok(self) -> bool: return not self.failures

    def raise_for_failure(self) -> None:
        """Re-raise the first captured failure, if any."""
        if self.failures:
            raise self.failures[0].error
