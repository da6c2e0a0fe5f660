import importlib
import json

import pytest
import structlog

from txrecords.application.pipeline import assemble_rows
from txrecords.domain.models import RowQuery
from txrecords.logs import configure_logging, get_logger

from conftest import FakeRowSource, make_tx, tx_hash

LOGGING_MODULES = [
    "txrecords.application.pipeline",
    "txrecords.application.use_cases",
    "txrecords.adapters.rpc_httpx",
    "txrecords.adapters.parquet_rows",
    "txrecords.presentation.cli",
]


@pytest.fixture
def json_logs():
    configure_logging("DEBUG", "json")
    yield
    configure_logging()


def _lines(err: str) -> list[dict]:
    return [json.loads(line) for line in err.splitlines() if line.strip()]


def test_json_logs_carry_event_and_context(json_logs, capsys):
    get_logger("txrecords.test").info("batch_done", records=3)
    (data,) = _lines(capsys.readouterr().err)
    assert data["event"] == "batch_done"
    assert data["records"] == 3
    assert data["logger"] == "txrecords.test"
    assert data["level"] == "info"
    assert "timestamp" in data


def test_level_filtering(capsys):
    configure_logging("WARNING", "json")
    try:
        get_logger("txrecords.test").info("quiet")
        assert capsys.readouterr().err == ""
    finally:
        configure_logging()


def test_row_failures_are_logged_with_field(json_logs, capsys):
    assemble_rows([make_tx(1, to="0xbad")], "tolerant")
    warnings = [d for d in _lines(capsys.readouterr().err) if d["level"] == "warning"]
    assert len(warnings) == 1
    assert warnings[0]["event"] == "row_failed"
    assert warnings[0]["row_id"] == tx_hash(1)
    assert warnings[0]["field"] == "to"


@pytest.mark.parametrize("name", LOGGING_MODULES)
def test_modules_import_with_logging_wired(name):
    assert importlib.import_module(name) is not None


@pytest.mark.asyncio
async def test_module_logger_follows_later_configuration(capsys):
    # module-level logger created before any configuration
    structlog.reset_defaults()
    pipeline = importlib.reload(importlib.import_module("txrecords.application.pipeline"))
    configure_logging("DEBUG", "json")
    try:
        result = await pipeline.fetch_batch(FakeRowSource([make_tx(1)]), RowQuery(kind="transaction"))
    finally:
        configure_logging()
    assert result.state == "complete"
    (done,) = [d for d in _lines(capsys.readouterr().err) if d["event"] == "batch_done"]
    assert done["logger"] == "txrecords.application.pipeline"
    assert done["records"] == 1
    assert done["state"] == "complete"
