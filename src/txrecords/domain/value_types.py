from __future__ import annotations
from typing import NewType, Literal

RawAddress = str                                          # as stored, unvalidated
ChecksummedAddress = NewType("ChecksummedAddress", str)   # 0x + 40 hex, EIP-55 case

RecordKind   = Literal["transaction", "receipt", "log"]
FaultMode    = Literal["strict", "tolerant"]
AddressProblem = Literal["empty", "not_a_string", "invalid_hex", "wrong_length"]
BatchState   = Literal["querying", "assembling", "complete", "aborted", "partial"]
