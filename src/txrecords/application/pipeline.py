from __future__ import annotations
from typing import Sequence

from ..domain.assembly import assemble
from ..domain.errors import RecordError, UpstreamFetchError
from ..domain.models import BatchResult, FailureDetail, Page, RawRow, Record, RowQuery
from ..domain.value_types import FaultMode
from ..logs import get_logger
from ..ports.storage import RowSource

logger = get_logger(__name__)


async def _query(source: RowSource, query: RowQuery, page: Page) -> Sequence[RawRow]:
    try:
        return await source.query_rows(query, page)
    except RecordError:
        raise
    except Exception as e:
        logger.error("upstream_fetch_failed", query=query.describe(), error=repr(e))
        raise UpstreamFetchError(f"storage query failed for {query.describe()}: {e}", e) from e


def assemble_rows(rows: Sequence[RawRow], mode: FaultMode) -> BatchResult:
    """
    Assemble already-fetched rows.

    strict:   the first failing row aborts; no records, exactly one failure.
    tolerant: every row is tried; records and failures both keep storage order.
    """
    records: list[Record] = []
    failures: list[FailureDetail] = []

    for i, row in enumerate(rows):
        logger.debug("row_assembling", index=i, row_id=row.row_id)
        try:
            rec = assemble(row)
        except RecordError as e:
            failure = FailureDetail(index=i, row_id=row.row_id, error=e)
            logger.warning("row_failed", mode=mode, **failure.to_dict())
            if mode == "strict":
                return BatchResult(mode=mode, state="aborted", failures=(failure,))
            failures.append(failure)
            continue
        records.append(rec)
        logger.debug("row_assembled", index=i, row_id=row.row_id)

    state = "partial" if failures else "complete"
    return BatchResult(mode=mode, state=state, records=tuple(records), failures=tuple(failures))


async def fetch_batch(
    source: RowSource,
    query: RowQuery,
    page: Page | None = None,
    *,
    mode: FaultMode = "tolerant",
) -> BatchResult:
    """Query the row source once, then assemble every returned row per `mode`.

    Storage failures raise UpstreamFetchError (original chained); they are not
    retried here. Row-level failures never raise: they are reported in the
    returned BatchResult.
    """
    if mode not in ("strict", "tolerant"):
        raise ValueError(f"unknown fault mode: {mode!r}")
    page = page or Page()
    logger.debug("batch_querying", query=query.describe(), offset=page.offset, limit=page.limit)
    rows = await _query(source, query, page)

    logger.debug("batch_assembling", rows=len(rows), mode=mode)
    result = assemble_rows(rows, mode)
    logger.info(
        "batch_done", query=query.describe(), mode=mode, state=result.state,
        records=len(result.records), failures=len(result.failures),
    )
    return result
