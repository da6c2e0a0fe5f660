from __future__ import annotations

import pytest

from txrecords.config import get_settings
from txrecords.domain.models import Page, RawLogRow, RawReceiptRow, RawTransactionRow, RowQuery

# EIP-55 reference vectors
ALICE = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
BOB = "0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359"
CAROL = "0xdbF03B407c01E7cD3CBea99509d93f8DDDC8C6FB"
DAVE = "0xD1220A0cf47c7B9Be7A2E6BA89F429762e7b9aDb"


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def make_tx(n: int, *, frm: str | None = ALICE, to: str | None = BOB, block: int = 100) -> RawTransactionRow:
    return RawTransactionRow(
        hash=tx_hash(n), block_number=block, transaction_index=n,
        from_address=frm, to_address=to, value=10**18, nonce=n, gas=21_000,
        gas_price=30 * 10**9, input="0x", block_timestamp=1_700_000_000,
    )


def make_log(n: int, *, address: str | None = CAROL, tx: int = 1, block: int = 100) -> RawLogRow:
    return RawLogRow(
        transaction_hash=tx_hash(tx), block_number=block, transaction_index=tx,
        log_index=n, address=address, topics=("0x" + "ab" * 32,), data="0x",
    )


def make_receipt(n: int, *, frm: str | None = ALICE, to: str | None = BOB,
                 contract: str | None = None, logs: tuple[RawLogRow, ...] = ()) -> RawReceiptRow:
    return RawReceiptRow(
        transaction_hash=tx_hash(n), block_number=100, transaction_index=n,
        from_address=frm, to_address=to, contract_address=contract,
        status=1, gas_used=21_000, cumulative_gas_used=21_000 * (n + 1), logs=logs,
    )


class FakeRowSource:
    """In-memory row source; records the calls it receives."""

    def __init__(self, rows=(), error: Exception | None = None) -> None:
        self.rows = list(rows)
        self.error = error
        self.calls: list[tuple[RowQuery, Page]] = []

    async def query_rows(self, query: RowQuery, page: Page):
        self.calls.append((query, page))
        if self.error is not None:
            raise self.error
        rows = self.rows
        if query.tx_hash:
            rows = [r for r in rows if r.row_id.split(":")[0] == query.tx_hash]
        return rows[page.offset: page.offset + page.limit]


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch):
    for var in ("TXRECORDS_RPC_URL", "TXRECORDS_PARQUET_DIR", "TXRECORDS_DEFAULT_MODE"):
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
