from __future__ import annotations
import asyncio, httpx
from typing import Any, Sequence
from ..domain.errors import InvalidQuery
from ..domain.models import Page, RawLogRow, RawReceiptRow, RawRow, RawTransactionRow, RowQuery
from ..logs import get_logger
from ..ports.storage import RowSource

logger = get_logger(__name__)


class RPCError(RuntimeError):
    def __init__(self, method: str, code: int | None, message: str | None) -> None:
        self.method, self.code = method, code
        super().__init__(f"{method} RPC error code={code} message={message}")


def _to_hex_block(n: int) -> str: return hex(int(n))

def _q(v: Any, default: int | None = 0) -> int | None:
    """Hex quantity ('0x1a'), decimal string or int -> int; None -> default."""
    if v is None: return default
    if isinstance(v, int): return v
    s = str(v)
    return int(s, 16) if s[:2].lower() == "0x" else int(s)

def _tx_row(d: dict[str, Any]) -> RawTransactionRow:
    return RawTransactionRow(
        hash=d["hash"].lower(),
        block_number=_q(d.get("blockNumber")),
        transaction_index=_q(d.get("transactionIndex")),
        from_address=d.get("from"),
        to_address=d.get("to"),
        value=_q(d.get("value")),
        nonce=_q(d.get("nonce")),
        gas=_q(d.get("gas")),
        gas_price=_q(d.get("gasPrice"), None),
        input=d.get("input") or "0x",
        block_timestamp=_q(d.get("blockTimestamp"), None),
    )

def _log_row(d: dict[str, Any]) -> RawLogRow:
    return RawLogRow(
        transaction_hash=(d.get("transactionHash") or "").lower(),
        block_number=_q(d.get("blockNumber")),
        transaction_index=_q(d.get("transactionIndex")),
        log_index=_q(d.get("logIndex")),
        address=d.get("address"),
        topics=tuple(t.lower() for t in d.get("topics", [])),
        data=d.get("data") or "0x",
    )

def _receipt_row(d: dict[str, Any]) -> RawReceiptRow:
    return RawReceiptRow(
        transaction_hash=d["transactionHash"].lower(),
        block_number=_q(d.get("blockNumber")),
        transaction_index=_q(d.get("transactionIndex")),
        from_address=d.get("from"),
        to_address=d.get("to"),
        contract_address=d.get("contractAddress"),
        status=_q(d.get("status"), None),
        gas_used=_q(d.get("gasUsed")),
        cumulative_gas_used=_q(d.get("cumulativeGasUsed")),
        logs=tuple(_log_row(lg) for lg in d.get("logs", [])),
    )

def _matches_address(d: dict[str, Any], address: str | None) -> bool:
    if not address: return True
    a = address.lower()
    return (d.get("from") or "").lower() == a or (d.get("to") or "").lower() == a

def _window(items: list, page: Page) -> list:
    return items[page.offset: page.offset + page.limit]


class HttpxRowSource(RowSource):
    """Row source backed by an Ethereum JSON-RPC node.

    Addresses are passed through exactly as the node returns them; validation
    belongs to the assembler. HTTP 429 is retried with backoff here, nothing else.
    """
    def __init__(self, rpc_url: str, timeout_s: int = 20, max_conn: int = 64,
                 concurrency: int = 8, client: httpx.AsyncClient | None = None) -> None:
        self.rpc_url = rpc_url
        self.concurrency = concurrency
        self.client = client or httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_connections=max_conn, max_keepalive_connections=max_conn//2),
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc":"2.0","id":1,"method":method,"params":params}
        for attempt in range(3):
            r = await self.client.post(self.rpc_url, json=payload)
            if r.status_code == 429:
                ra = r.headers.get("Retry-After")
                delay = max(1.0, float(ra)) if ra and ra.isdigit() else (1.0 * (2**attempt))
                logger.warning("rpc_rate_limited", method=method, attempt=attempt + 1, delay_s=delay)
                await asyncio.sleep(delay); continue
            r.raise_for_status()
            data = r.json()
            if "error" in data:
                err = data["error"]
                if isinstance(err, dict):
                    raise RPCError(method, err.get("code"), err.get("message"))
                raise RPCError(method, None, str(err))
            return data.get("result")
        raise RPCError(method, 429, "retries exhausted")

    async def _gather_limited(self, calls: Sequence[tuple[str, list[Any]]]) -> list[Any]:
        sem = asyncio.Semaphore(self.concurrency)
        async def one(method: str, params: list[Any]) -> Any:
            async with sem:
                return await self._call(method, params)
        # gather keeps input order
        return await asyncio.gather(*(one(m, p) for m, p in calls))

    async def _block_txs(self, query: RowQuery) -> list[dict[str, Any]]:
        if query.from_block is None or query.to_block is None:
            raise InvalidQuery(f"block range required for {query.describe()}", query.describe())
        blocks = await self._gather_limited([
            ("eth_getBlockByNumber", [_to_hex_block(b), True])
            for b in range(query.from_block, query.to_block + 1)
        ])
        txs: list[dict[str, Any]] = []
        for blk in blocks:
            if not blk: continue
            ts = blk.get("timestamp")
            for tx in blk.get("transactions", []):
                if _matches_address(tx, query.address):
                    txs.append({**tx, "blockTimestamp": ts})
        return txs

    async def _transactions(self, query: RowQuery, page: Page) -> list[RawRow]:
        if query.tx_hash:
            tx = await self._call("eth_getTransactionByHash", [query.tx_hash])
            return _window([_tx_row(tx)], page) if tx else []
        return [_tx_row(tx) for tx in _window(await self._block_txs(query), page)]

    async def _receipts(self, query: RowQuery, page: Page) -> list[RawRow]:
        if query.tx_hash:
            hashes = [query.tx_hash]
        else:
            hashes = [tx["hash"] for tx in await self._block_txs(query)]
        results = await self._gather_limited([
            ("eth_getTransactionReceipt", [h]) for h in _window(hashes, page)
        ])
        return [_receipt_row(r) for r in results if r]

    async def _logs(self, query: RowQuery, page: Page) -> list[RawRow]:
        if query.tx_hash:
            rcpt = await self._call("eth_getTransactionReceipt", [query.tx_hash])
            raw = rcpt.get("logs", []) if rcpt else []
        else:
            if query.from_block is None or query.to_block is None:
                raise InvalidQuery(f"block range required for {query.describe()}", query.describe())
            flt: dict[str, Any] = {"fromBlock": _to_hex_block(query.from_block),
                                   "toBlock": _to_hex_block(query.to_block)}
            if query.address:
                flt["address"] = query.address
            raw = await self._call("eth_getLogs", [flt]) or []
        rows = sorted((_log_row(lg) for lg in raw), key=lambda r: (r.block_number, r.log_index))
        return _window(rows, page)

    async def query_rows(self, query: RowQuery, page: Page) -> list[RawRow]:
        if query.kind == "transaction":
            return await self._transactions(query, page)
        if query.kind == "receipt":
            return await self._receipts(query, page)
        if query.kind == "log":
            return await self._logs(query, page)
        raise InvalidQuery(f"unknown row kind: {query.kind!r}", query.describe())
