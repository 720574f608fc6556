"""
The tagged error type and its FastAPI exception handler.

Every failure the cross-reference engine can report is one XrefError carrying
an XrefErrorKind tag. Callers branch on `exc.kind` rather than on exception
classes, and the HTTP layer maps each kind to a status code in one table.

Error kinds:
    VALIDATION         — malformed input; raised before any mutation
    NOT_FOUND          — well-formed key with no entry; the engine returns
                         None / [] for this, only the HTTP layer raises it
    INTEGRITY_FINDING  — orphaned reference; returned as data by the
                         integrity auditor, never raised by the engine
    CONFLICT           — a write collided with existing or concurrent data;
                         retryable, nothing was applied
"""

import enum

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class XrefErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INTEGRITY_FINDING = "integrity_finding"
    CONFLICT = "conflict"


class XrefError(Exception):
    """
    Domain error raised by the cross-reference engine and its callers.

    Attributes:
        kind: Which XrefErrorKind this is.
        detail: Human-readable message, safe to return to clients.
        field: The offending input field, when there is one.
    """

    def __init__(self, kind: XrefErrorKind, detail: str, field: str | None = None):
        self.kind = kind
        self.detail = detail
        self.field = field
        super().__init__(detail)

    @property
    def retryable(self) -> bool:
        return self.kind is XrefErrorKind.CONFLICT

    @classmethod
    def validation(cls, detail: str, field: str | None = None) -> "XrefError":
        return cls(XrefErrorKind.VALIDATION, detail, field)

    @classmethod
    def not_found(cls, detail: str) -> "XrefError":
        return cls(XrefErrorKind.NOT_FOUND, detail)

    @classmethod
    def conflict(cls, detail: str) -> "XrefError":
        return cls(XrefErrorKind.CONFLICT, detail)


# One entry per kind; register_exception_handlers relies on this being exhaustive
_STATUS_BY_KIND: dict[XrefErrorKind, int] = {
    XrefErrorKind.VALIDATION: 422,
    XrefErrorKind.NOT_FOUND: 404,
    XrefErrorKind.INTEGRITY_FINDING: 409,
    XrefErrorKind.CONFLICT: 409,
}


def status_for(kind: XrefErrorKind) -> int:
    return _STATUS_BY_KIND[kind]


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the XrefError handler with the FastAPI application.

    Response format: {"detail": ..., "error_type": <kind>, "field": ...}
    ("field" only for errors tied to one input).

    This is called once during app startup in main.py.
    """

    @app.exception_handler(XrefError)
    async def xref_error_handler(request: Request, exc: XrefError) -> JSONResponse:
        content = {"detail": exc.detail, "error_type": exc.kind.value}
        if exc.field is not None:
            content["field"] = exc.field
        return JSONResponse(status_code=status_for(exc.kind), content=content)
