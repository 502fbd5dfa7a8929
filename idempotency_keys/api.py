"""FastAPI application exposing key issuance and idempotent payments."""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Header, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import Settings
from .exceptions import (
    KeyExpiredError,
    KeyMismatchError,
    OperationFailedError,
    StillProcessingError,
    StorageUnavailableError,
    UnknownKeyError,
)
from .key import validate_key
from .manager import KeyManager
from .payments import MemoryPaymentLedger, PaymentLedger, SQLPaymentLedger
from .record import KeyRecord

logger = logging.getLogger(__name__)

PAY_OPERATION = "pay"


class IssueKeyRequest(BaseModel):
    owner: str | None = Field(default=None, description="Principal allowed to use the key")
    operation: str | None = Field(default=None, description="Protected action tag")


class IssueKeyResponse(BaseModel):
    key: str
    reserved_until: str


class PaymentRequest(BaseModel):
    user_id: int = Field(gt=0)
    amount: int = Field(gt=0)


def _iso(timestamp: float | None) -> str | None:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def _record_body(record: KeyRecord) -> dict[str, object]:
    return {
        "key": record.key,
        "status": record.status,
        "response": record.payload(),
        "owner": record.owner,
        "operation": record.operation,
        "reserved_until": _iso(record.reserved_until),
        "created_at": _iso(record.created_at),
        "updated_at": _iso(record.updated_at),
    }


def _default_ledger(manager: KeyManager) -> PaymentLedger:
    from .stores.sql import SQLStore

    if not isinstance(manager.store, SQLStore):
        return MemoryPaymentLedger()
    ledger = SQLPaymentLedger(manager.store.engine)
    ledger.create_schema()
    return ledger


def create_app(
    settings: Settings | None = None,
    manager: KeyManager | None = None,
    ledger: PaymentLedger | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Configuration (read from the environment when omitted)
        manager: Key manager; built from settings when omitted
        ledger: Payment ledger; shares the SQL database when the store has one
    """
    if manager is None:
        manager = KeyManager.from_settings(settings or Settings())
    if ledger is None:
        ledger = _default_ledger(manager)

    app = FastAPI(
        title="Idempotency Keys",
        description="Server-issued idempotency keys guarding payments",
        version="0.1.0",
    )
    app.state.manager = manager
    app.state.ledger = ledger

    @app.exception_handler(UnknownKeyError)
    async def unknown_key(_request: Request, exc: UnknownKeyError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})

    @app.exception_handler(KeyMismatchError)
    async def key_mismatch(_request: Request, exc: KeyMismatchError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": str(exc)})

    @app.exception_handler(KeyExpiredError)
    async def key_expired(_request: Request, exc: KeyExpiredError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_410_GONE, content={"error": str(exc)})

    @app.exception_handler(StillProcessingError)
    async def still_processing(_request: Request, exc: StillProcessingError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={
                "status": "processing",
                "message": "Request being processed; check status endpoint.",
            },
        )

    @app.exception_handler(OperationFailedError)
    async def operation_failed(_request: Request, exc: OperationFailedError) -> JSONResponse:
        error = "Previous attempt failed" if exc.replayed else "Payment failed"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": error, "detail": exc.error_info},
        )

    @app.exception_handler(StorageUnavailableError)
    async def storage_unavailable(_request: Request, exc: StorageUnavailableError) -> JSONResponse:
        logger.error("Storage unavailable: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"error": "Storage unavailable", "detail": exc.reason},
        )

    @app.post("/idempotency-keys", response_model=IssueKeyResponse)
    def issue_key(body: IssueKeyRequest | None = None) -> IssueKeyResponse:
        body = body or IssueKeyRequest()
        record = manager.issue(owner=body.owner, operation=body.operation)
        return IssueKeyResponse(key=record.key, reserved_until=_iso(record.reserved_until) or "")

    @app.post("/execute", response_model=None)
    def execute(
        body: PaymentRequest,
        idempotency_key: str | None = Header(default=None),
    ) -> object:
        if idempotency_key is None:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "Missing Idempotency-Key header"},
            )
        try:
            key = validate_key(idempotency_key)
        except ValueError as exc:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)}
            )

        def pay() -> dict[str, object]:
            payment = ledger.record(body.user_id, body.amount)
            return {
                "success": True,
                "payment_id": payment.id,
                "user_id": payment.user_id,
                "amount": payment.amount,
                "created_at": _iso(payment.created_at),
            }

        return manager.execute(
            key,
            pay,
            owner=str(body.user_id),
            operation=PAY_OPERATION,
        )

    @app.get("/idempotency/{key}", response_model=None)
    def get_key(key: str) -> object:
        record = manager.store.get(key)
        if record is None:
            return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": "not found"})
        return _record_body(record)

    @app.get("/payments", response_model=None)
    def list_payments() -> list[dict[str, object]]:
        return [
            {**payment.to_dict(), "created_at": _iso(payment.created_at)}
            for payment in ledger.recent(100)
        ]

    return app
