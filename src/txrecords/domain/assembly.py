"""
Raw row -> domain record.

Address fields are checked in a fixed declared order so the same malformed
row always reports the same field. The first failure wins; nothing is
assembled partially and no default address is ever substituted.
"""
from __future__ import annotations

from .addresses import normalize
from .errors import InvalidAddress, InvalidAddressField, MissingRequiredAddress
from .models import (
    LogEntry, RawLogRow, RawReceiptRow, RawRow, RawTransactionRow,
    Receipt, Record, Transaction,
)
from .value_types import ChecksummedAddress

# (field name as reported, attribute on the raw row, required?)
TRANSACTION_FIELDS = (("from", "from_address", True),
                      ("to", "to_address", False))
RECEIPT_FIELDS     = (("from", "from_address", True),
                      ("to", "to_address", False),
                      ("contractAddress", "contract_address", False))
LOG_FIELDS         = (("address", "address", True),)


def _address_field(field: str, raw: str | None, required: bool) -> ChecksummedAddress | None:
    if raw is None:
        if required:
            raise MissingRequiredAddress(field)
        return None
    try:
        return normalize(raw)
    except InvalidAddress as e:
        raise InvalidAddressField(field, raw, e) from e


def _address_fields(row: RawRow, fields: tuple[tuple[str, str, bool], ...],
                    prefix: str = "") -> dict[str, ChecksummedAddress | None]:
    out: dict[str, ChecksummedAddress | None] = {}
    for name, attr, required in fields:
        out[attr] = _address_field(prefix + name, getattr(row, attr), required)
    return out


def assemble_transaction(row: RawTransactionRow) -> Transaction:
    addrs = _address_fields(row, TRANSACTION_FIELDS)
    return Transaction(
        hash=row.hash,
        block_number=row.block_number,
        transaction_index=row.transaction_index,
        from_address=addrs["from_address"],
        to_address=addrs["to_address"],
        value=row.value,
        nonce=row.nonce,
        gas=row.gas,
        gas_price=row.gas_price,
        input=row.input,
        block_timestamp=row.block_timestamp,
    )


def assemble_log(row: RawLogRow, *, field_prefix: str = "") -> LogEntry:
    addrs = _address_fields(row, LOG_FIELDS, field_prefix)
    return LogEntry(
        transaction_hash=row.transaction_hash,
        block_number=row.block_number,
        transaction_index=row.transaction_index,
        log_index=row.log_index,
        address=addrs["address"],
        topics=tuple(row.topics),
        data=row.data,
    )


def assemble_receipt(row: RawReceiptRow) -> Receipt:
    addrs = _address_fields(row, RECEIPT_FIELDS)
    # logs are validated after the receipt's own fields, in log order
    logs = tuple(assemble_log(lg, field_prefix=f"logs[{i}].") for i, lg in enumerate(row.logs))
    return Receipt(
        transaction_hash=row.transaction_hash,
        block_number=row.block_number,
        transaction_index=row.transaction_index,
        from_address=addrs["from_address"],
        to_address=addrs["to_address"],
        contract_address=addrs["contract_address"],
        status=row.status,
        gas_used=row.gas_used,
        cumulative_gas_used=row.cumulative_gas_used,
        logs=logs,
    )


def assemble(row: RawRow) -> Record:
    """Dispatch on the raw row type."""
    if isinstance(row, RawTransactionRow):
        return assemble_transaction(row)
    if isinstance(row, RawReceiptRow):
        return assemble_receipt(row)
    if isinstance(row, RawLogRow):
        return assemble_log(row)
    raise TypeError(f"unsupported row type: {type(row).__name__}")
