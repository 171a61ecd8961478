"""Error taxonomy for the scorecard engine."""

from __future__ import annotations

from fastapi import HTTPException


class ScorecardError(Exception):
    status_code = 400
    retryable = False

    def __init__(self, code: str, detail: str):
        super().__init__(detail)
        self.code = code
        self.detail = detail

    def __str__(self) -> str:
        return self.detail

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.detail)


class ScorecardValidationError(ScorecardError):
    pass


class NotFoundError(ScorecardError):
    status_code = 404


class StorageUnavailableError(ScorecardError):
    status_code = 503
    retryable = True

    def __init__(self, code: str = "storage_unavailable", detail: str = "Storage unavailable"):
        super().__init__(code, detail)


class SpreadsheetFormatError(ScorecardError):
    pass


def as_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, ScorecardError):
        return exc.to_http_exception()
    if isinstance(exc, HTTPException):
        return exc
    return HTTPException(status_code=500, detail="Internal error")
