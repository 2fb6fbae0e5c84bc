"""
sqlodata.core.errors - OData error taxonomy
============================================

Every failure surfaced to a client is one of these exceptions. The HTTP
gateway maps ``status`` onto the response code and ``message`` onto the
``{"error": {"message": ...}}`` envelope.
"""

from __future__ import annotations

from typing import Optional


class ODataError(RuntimeError):
    """
    Base class for errors raised while serving an OData request.

    Attributes
    ----------
    status : int
        HTTP status code reported to the client
    message : str
        Human readable message placed in the error envelope
    """

    status = 500

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status

    def to_dict(self) -> dict:
        return {"error": {"message": self.message}}


class NotFoundError(ODataError):
    """Unknown collection, entity key or navigation property."""

    status = 404


class BadRequestError(ODataError):
    """Malformed key, reference or query option."""

    status = 400


class ExecutionError(ODataError):
    """
    The backing engine rejected a query.

    Attributes
    ----------
    sql : str
        The statement that failed (truncated for display)
    cause : str
        Raw engine error text
    """

    status = 500

    def __init__(self, cause: str, sql: str = ""):
        super().__init__(cause)
        self.cause = cause
        self.sql = (sql or "")[:1200]
