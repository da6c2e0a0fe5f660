from unittest.mock import patch

import pytest

from txrecords.domain import assembly
from txrecords.domain.assembly import assemble, assemble_log, assemble_receipt, assemble_transaction
from txrecords.domain.errors import InvalidAddress, InvalidAddressField, MissingRequiredAddress
from txrecords.domain.models import LogEntry, Receipt, Transaction

from conftest import ALICE, BOB, CAROL, DAVE, make_log, make_receipt, make_tx


def test_transaction_addresses_are_checksummed():
    tx = assemble_transaction(make_tx(1, frm=ALICE.lower(), to=BOB.upper().replace("0X", "0x")))
    assert isinstance(tx, Transaction)
    assert tx.from_address == ALICE
    assert tx.to_address == BOB
    assert tx.value == 10**18
    assert not tx.is_contract_creation


def test_contract_creation_has_absent_to():
    tx = assemble_transaction(make_tx(1, to=None))
    assert tx.to_address is None
    assert tx.is_contract_creation


def test_malformed_from_is_reported_as_from_field():
    with pytest.raises(InvalidAddressField) as ei:
        assemble_transaction(make_tx(1, frm="0x123"))
    err = ei.value
    assert err.field == "from"
    assert err.raw == "0x123"
    assert isinstance(err.cause, InvalidAddress)
    assert err.cause.reason == "wrong_length"
    assert err.__cause__ is err.cause
    assert err.status_code == 422


def test_malformed_from_stops_before_to():
    seen = []
    real = assembly.normalize

    def spy(raw):
        seen.append(raw)
        return real(raw)

    with patch.object(assembly, "normalize", side_effect=spy):
        with pytest.raises(InvalidAddressField) as ei:
            assemble_transaction(make_tx(1, frm="nope", to="also-bad"))
    assert ei.value.field == "from"
    assert seen == ["nope"]


def test_first_bad_field_in_declared_order_wins():
    with pytest.raises(InvalidAddressField) as ei:
        assemble_transaction(make_tx(1, frm=ALICE, to="0xdeadbeef"))
    assert ei.value.field == "to"


def test_missing_from_is_distinct_from_malformed():
    with pytest.raises(MissingRequiredAddress) as ei:
        assemble_transaction(make_tx(1, frm=None))
    assert ei.value.field == "from"
    assert ei.value.to_dict()["field"] == "from"


def test_empty_from_is_malformed_not_missing():
    with pytest.raises(InvalidAddressField) as ei:
        assemble_transaction(make_tx(1, frm=""))
    assert ei.value.cause.reason == "empty"


def test_receipt_with_contract_address_and_logs():
    logs = (make_log(0, address=CAROL.lower()), make_log(1, address=DAVE.lower()))
    rcpt = assemble_receipt(make_receipt(1, to=None, contract=BOB.lower(), logs=logs))
    assert isinstance(rcpt, Receipt)
    assert rcpt.to_address is None
    assert rcpt.contract_address == BOB
    assert [lg.address for lg in rcpt.logs] == [CAROL, DAVE]


def test_receipt_field_order_from_to_contract_then_logs():
    with pytest.raises(InvalidAddressField) as ei:
        assemble_receipt(make_receipt(1, contract="bad", logs=(make_log(0, address="bad"),)))
    assert ei.value.field == "contractAddress"

    with pytest.raises(InvalidAddressField) as ei:
        assemble_receipt(make_receipt(1, logs=(make_log(0), make_log(1, address="0x12"))))
    assert ei.value.field == "logs[1].address"


def test_receipt_log_without_address_is_missing():
    with pytest.raises(MissingRequiredAddress) as ei:
        assemble_receipt(make_receipt(1, logs=(make_log(0, address=None),)))
    assert ei.value.field == "logs[0].address"


def test_standalone_log():
    entry = assemble_log(make_log(3, address=DAVE.lower()))
    assert isinstance(entry, LogEntry)
    assert entry.address == DAVE
    assert entry.log_index == 3

    with pytest.raises(InvalidAddressField) as ei:
        assemble_log(make_log(3, address="0xZZ"))
    assert ei.value.field == "address"


def test_assemble_dispatches_on_row_type():
    assert isinstance(assemble(make_tx(1)), Transaction)
    assert isinstance(assemble(make_receipt(1)), Receipt)
    assert isinstance(assemble(make_log(1)), LogEntry)
    with pytest.raises(TypeError):
        assemble({"from": ALICE})


def test_raw_row_is_not_mutated():
    row = make_tx(1, frm=ALICE.lower())
    assemble(row)
    assert row.from_address == ALICE.lower()
