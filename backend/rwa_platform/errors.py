"""Typed ledger errors and their HTTP mapping.

Every failure carries a machine-readable kind, a plain-language message
and, where useful, numeric context (available shares, requested quantity).
Handlers translate them into JSON responses; nothing is downgraded to a
generic 500 or replaced with placeholder data.
"""

import logging
from decimal import Decimal
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy import exc as sa_exc

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for all errors raised by the trading services."""

    kind = "ledger_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict:
        body = {"error": self.kind, "message": self.message}
        if self.context:
            body["context"] = self.context
        if self.retryable:
            body["retryable"] = True
        return body


class InvalidArgumentError(LedgerError):
    """Malformed, missing or non-positive input. Raised before the store is touched."""

    kind = "invalid_argument"
    status_code = 400


class NotFoundError(LedgerError):
    kind = "not_found"
    status_code = 404


class InsufficientSupplyError(LedgerError):
    """A buy asks for more shares than the asset has left to issue."""

    kind = "insufficient_supply"
    status_code = 409

    def __init__(self, available, requested):
        super().__init__(
            f"Insufficient shares available. Only {_fmt(available)} shares available",
            {"available": available, "requested": requested},
        )
        self.available = available
        self.requested = requested


class InsufficientHoldingsError(LedgerError):
    """A sell asks for more shares than the user holds."""

    kind = "insufficient_holdings"
    status_code = 409

    def __init__(self, available, requested):
        super().__init__(
            f"Insufficient shares to sell. You own {_fmt(available)} shares",
            {"available": available, "requested": requested},
        )
        self.available = available
        self.requested = requested


class ConflictError(LedgerError):
    """The request clashes with the current state of a record (e.g. an active KYC application)."""

    kind = "conflict"
    status_code = 409


class ContentionError(LedgerError):
    """The unit of work lost a lock race or timed out waiting. Safe to resubmit."""

    kind = "contention"
    status_code = 409
    retryable = True


class StoreUnavailableError(LedgerError):
    kind = "store_unavailable"
    status_code = 503


def _fmt(amount) -> str:
    if isinstance(amount, Decimal):
        return f"{amount.normalize():f}"
    return str(amount)


# Driver messages that indicate a lock conflict rather than a dead store
_CONTENTION_MARKERS = (
    "database is locked",
    "lock timeout",
    "lock wait timeout",
    "deadlock",
    "could not serialize",
    "could not obtain lock",
    "canceling statement due to lock timeout",
)


def translate_store_error(error: sa_exc.SQLAlchemyError) -> LedgerError:
    """Map a SQLAlchemy failure onto the ledger taxonomy."""
    message = str(getattr(error, "orig", None) or error).lower()
    if isinstance(error, sa_exc.DBAPIError) and error.connection_invalidated:
        return StoreUnavailableError("The database connection was lost")
    if isinstance(error, sa_exc.TimeoutError):
        # Connection pool exhausted: the store is busy, not gone
        return ContentionError("Timed out waiting for a database connection")
    if isinstance(error, sa_exc.OperationalError):
        if any(marker in message for marker in _CONTENTION_MARKERS):
            return ContentionError("Concurrent settlement in progress, please retry")
        return StoreUnavailableError("The database is unavailable")
    if isinstance(error, sa_exc.InterfaceError):
        return StoreUnavailableError("The database is unavailable")
    if isinstance(error, sa_exc.IntegrityError):
        # Two first-buys racing on the same (user, asset) hit the unique constraint
        return ContentionError("Concurrent settlement in progress, please retry")
    return StoreUnavailableError("Unexpected database failure")


def register_error_handlers(app: FastAPI) -> None:
    """Register the ledger error handler on the FastAPI application."""

    @app.exception_handler(LedgerError)
    async def handle_ledger_error(request: Request, exc: LedgerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.kind)
        else:
            logger.warning("%s %s rejected: %s (%s)", request.method, request.url.path, exc.kind, exc.message)
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Malformed bodies are invalid arguments like any other bad input
        errors = [{"loc": [str(part) for part in e["loc"]], "msg": e["msg"]} for e in exc.errors()]
        logger.warning("%s %s rejected: invalid_argument (%d field errors)", request.method, request.url.path, len(errors))
        return JSONResponse(
            status_code=InvalidArgumentError.status_code,
            content={"error": InvalidArgumentError.kind, "message": "Request validation failed", "context": {"errors": errors}},
        )
