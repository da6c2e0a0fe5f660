"""
Error taxonomy for record assembly.

Every failure a caller can see is a RecordError subclass carrying an HTTP-ish
`status_code`, so the API layer maps kinds to responses without inspecting
messages.
"""
from __future__ import annotations

from typing import Any

from .value_types import AddressProblem


class RecordError(Exception):
    """Base class for all failures raised by txrecords."""

    status_code: int = 500

    def to_dict(self) -> dict[str, Any]:
        return {"error_type": self.__class__.__name__, "message": str(self)}


class InvalidAddress(RecordError, ValueError):
    """The raw value is not a well-formed 20-byte hex address."""

    status_code = 422

    def __init__(self, raw: object, reason: AddressProblem) -> None:
        self.raw = raw
        self.reason = reason
        super().__init__(f"invalid address {raw!r}: {reason}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({"raw": self.raw if isinstance(self.raw, str) else repr(self.raw),
                     "reason": self.reason})
        return data


class InvalidAddressField(RecordError):
    """A named address field is present on a row but failed normalization."""

    status_code = 422

    def __init__(self, field: str, raw: object, cause: InvalidAddress) -> None:
        self.field = field
        self.raw = raw
        self.cause = cause
        super().__init__(f"field {field!r} holds an invalid address {raw!r} ({cause.reason})")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({"field": self.field, "cause": self.cause.to_dict()})
        return data


class MissingRequiredAddress(RecordError):
    """A required address field is absent at the storage layer."""

    status_code = 422

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"required address field {field!r} is missing")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        return data


class UpstreamFetchError(RecordError):
    """The storage collaborator failed; the original exception is chained."""

    status_code = 502

    def __init__(self, message: str, original: BaseException | None = None) -> None:
        self.original = original
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["original_error"] = repr(self.original) if self.original is not None else None
        return data


class RecordNotFound(RecordError):
    status_code = 404

    def __init__(self, what: str) -> None:
        self.what = what
        super().__init__(f"no record found for {what}")


class InvalidQuery(RecordError, ValueError):
    """The caller's query cannot be served by the row source as given."""

    status_code = 400

    def __init__(self, message: str, query: str) -> None:
        self.query = query
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["query"] = self.query
        return data
