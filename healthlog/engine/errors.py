"""Domain error kinds surfaced to callers.

Business errors (InvalidInput, ValidationError, NotFound, NotAuthorized) are
never worth retrying. StorageFailure is the only retryable kind.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    status_code: int = 400
    code: str = "domain_error"
    retryable: bool = False

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": self.detail, "retryable": self.retryable}


class InvalidInput(DomainError):
    status_code = 400
    code = "invalid_input"


class ValidationError(DomainError):
    """A composite input failed domain rules; `index` points at the first bad element."""

    status_code = 422
    code = "validation_error"

    def __init__(self, detail: str, index: int):
        super().__init__(detail)
        self.index = index

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["index"] = self.index
        return data


class NotFound(DomainError):
    status_code = 404
    code = "not_found"


class NotAuthorized(DomainError):
    status_code = 403
    code = "not_authorized"


class StorageFailure(DomainError):
    status_code = 503
    code = "storage_failure"
    retryable = True


class AdviceUnavailable(DomainError):
    status_code = 502
    code = "advice_unavailable"
