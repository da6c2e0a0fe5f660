from __future__ import annotations
import asyncio, json
from dataclasses import asdict
from typing import Any, Awaitable, Callable, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..adapters.parquet_rows import ParquetRowSource
from ..adapters.rpc_httpx import HttpxRowSource
from ..application.use_cases import fetch_logs, fetch_receipt, fetch_transaction, fetch_transactions
from ..config import get_settings
from ..domain.addresses import is_canonical, normalize
from ..domain.errors import InvalidAddress, RecordError
from ..domain.models import FailureDetail, Page, RowQuery
from ..logs import configure_logging
from ..ports.storage import RowSource

app = typer.Typer(help="Validated, checksummed transaction/receipt/log records.")
err_console = Console(stderr=True)

# exit codes by failure family
EXIT_BAD_DATA, EXIT_NOT_FOUND, EXIT_UPSTREAM = 2, 3, 4


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override TXRECORDS_LOG_LEVEL"),
    log_format: Optional[str] = typer.Option(None, help="json | console"),
):
    configure_logging(log_level, log_format)


def _source(rpc_url: Optional[str], parquet_dir: Optional[str]) -> RowSource:
    s = get_settings()
    if rpc_url or (not parquet_dir and s.rpc_url):
        return HttpxRowSource(rpc_url or s.rpc_url, timeout_s=s.rpc_timeout_s,
                              max_conn=s.rpc_max_connections, concurrency=s.rpc_concurrency)
    if parquet_dir or s.parquet_dir:
        return ParquetRowSource(parquet_dir or s.parquet_dir)
    raise typer.BadParameter("pass --rpc-url or --parquet-dir (or set TXRECORDS_RPC_URL / TXRECORDS_PARQUET_DIR)")


def _exit_code(e: RecordError) -> int:
    if e.status_code == 404: return EXIT_NOT_FOUND
    if e.status_code >= 500: return EXIT_UPSTREAM
    return EXIT_BAD_DATA


def _run(source: RowSource, work: Callable[[], Awaitable[Any]]) -> Any:
    async def go():
        try:
            return await work()
        finally:
            if isinstance(source, HttpxRowSource):
                await source.aclose()
    try:
        return asyncio.run(go())
    except RecordError as e:
        err_console.print(f"[red]{type(e).__name__}[/]: {escape(str(e))}")
        raise typer.Exit(_exit_code(e))


def _echo_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, default=str))


def _print_failures(failures: list[FailureDetail]) -> None:
    if not failures:
        return
    t = Table(title=f"{len(failures)} row(s) excluded", style="yellow")
    for col in ("index", "row id", "error", "detail"):
        t.add_column(col)
    for f in failures:
        t.add_row(str(f.index), escape(f.row_id), type(f.error).__name__, escape(str(f.error)))
    err_console.print(t)


@app.command("normalize")
def normalize_cmd(address: str):
    """Print the checksummed form of ADDRESS."""
    try:
        out = normalize(address)
    except InvalidAddress as e:
        err_console.print(f"[red]InvalidAddress[/]: {escape(e.reason)}")
        raise typer.Exit(EXIT_BAD_DATA)
    typer.echo(out)
    if not is_canonical(address):
        err_console.print("[dim]input was not in canonical checksum case[/]")


@app.command("tx")
def tx_cmd(
    tx_hash: str,
    rpc_url: Optional[str] = typer.Option(None, "--rpc-url"),
    parquet_dir: Optional[str] = typer.Option(None, "--parquet-dir"),
):
    """Show one transaction (strict)."""
    src = _source(rpc_url, parquet_dir)
    tx = _run(src, lambda: fetch_transaction(src, tx_hash))
    _echo_json(asdict(tx))


@app.command("receipt")
def receipt_cmd(
    tx_hash: str,
    rpc_url: Optional[str] = typer.Option(None, "--rpc-url"),
    parquet_dir: Optional[str] = typer.Option(None, "--parquet-dir"),
):
    """Show one receipt with its logs (strict)."""
    src = _source(rpc_url, parquet_dir)
    rcpt = _run(src, lambda: fetch_receipt(src, tx_hash))
    _echo_json(asdict(rcpt))


def _list(kind: str, fetch, from_block: int, to_block: int, address: Optional[str],
          offset: int, limit: Optional[int], strict: Optional[bool],
          rpc_url: Optional[str], parquet_dir: Optional[str]) -> None:
    settings = get_settings()
    src = _source(rpc_url, parquet_dir)
    query = RowQuery(kind=kind, from_block=from_block, to_block=to_block, address=address)
    page = Page(offset=offset, limit=limit or settings.page_limit)
    # no flag given: TXRECORDS_DEFAULT_MODE decides
    mode = settings.default_mode if strict is None else ("strict" if strict else "tolerant")
    out = _run(src, lambda: fetch(src, query, page, mode=mode))
    records, failures = (out, []) if mode == "strict" else out
    for rec in records:
        _echo_json(asdict(rec))
    _print_failures(failures)


@app.command("txs")
def txs_cmd(
    from_block: int = typer.Option(..., "--from-block"),
    to_block: int = typer.Option(..., "--to-block"),
    address: Optional[str] = typer.Option(None, help="Match sender or recipient"),
    offset: int = 0,
    limit: Optional[int] = None,
    strict: Optional[bool] = typer.Option(None, "--strict/--tolerant", help="Fail the whole page on one bad row"),
    rpc_url: Optional[str] = typer.Option(None, "--rpc-url"),
    parquet_dir: Optional[str] = typer.Option(None, "--parquet-dir"),
):
    """List transactions in a block range."""
    _list("transaction", fetch_transactions, from_block, to_block, address,
          offset, limit, strict, rpc_url, parquet_dir)


@app.command("logs")
def logs_cmd(
    from_block: int = typer.Option(..., "--from-block"),
    to_block: int = typer.Option(..., "--to-block"),
    address: Optional[str] = typer.Option(None, help="Emitter contract"),
    offset: int = 0,
    limit: Optional[int] = None,
    strict: Optional[bool] = typer.Option(None, "--strict/--tolerant"),
    rpc_url: Optional[str] = typer.Option(None, "--rpc-url"),
    parquet_dir: Optional[str] = typer.Option(None, "--parquet-dir"),
):
    """List logs in a block range."""
    _list("log", fetch_logs, from_block, to_block, address,
          offset, limit, strict, rpc_url, parquet_dir)


if __name__ == "__main__":
    app()
