import os
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Optional

import httpx
from fastapi import FastAPI, Request, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import limiter, verify_api_key, RETURN_RATE_LIMIT
from .config import CheckoutSettings, Credentials, load_credentials
from .connectors.base import ConnectorBase
from .connectors.paypal_connector import PayPalConnector
from .database import SqlPaymentRecordStore, get_db, init_db, close_db
from .errors import (
    AuthError,
    CaptureError,
    CaptureNotCompletedError,
    ConfigurationError,
    NotFoundError,
    OrderCreationError,
    PayPalError,
)
from .services import PayPalGateway
from .tokens import TokenProvider

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS_CODES = [
    (NotFoundError, 404),
    (CaptureNotCompletedError, 402),
    (ConfigurationError, 500),
    (AuthError, 502),
    (OrderCreationError, 502),
    (CaptureError, 502),
]


def error_status_code(exc: PayPalError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = CheckoutSettings.from_env()
    await init_db()
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.http_timeout))
    # One token provider per process so every request shares the token cache
    app.state.connector = PayPalConnector(http_client, TokenProvider(http_client))
    try:
        yield
    finally:
        await http_client.aclose()
        await close_db()


app = FastAPI(title="PayPal Checkout - Reference API", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(PayPalError)
async def paypal_error_handler(request: Request, exc: PayPalError):
    status_code = error_status_code(exc)
    logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    body = {"error": type(exc).__name__, "detail": exc.message}
    if isinstance(exc, CaptureNotCompletedError):
        body["status"] = exc.status
    return JSONResponse(status_code=status_code, content=body)


def get_settings() -> CheckoutSettings:
    return CheckoutSettings.from_env()


def get_credentials() -> Credentials:
    return load_credentials()


def get_connector(request: Request) -> ConnectorBase:
    return request.app.state.connector


async def get_store(
    db: AsyncSession = Depends(get_db),
    settings: CheckoutSettings = Depends(get_settings),
) -> SqlPaymentRecordStore:
    return SqlPaymentRecordStore(db, settings.public_base_url)


def get_gateway(
    connector: ConnectorBase = Depends(get_connector),
    store: SqlPaymentRecordStore = Depends(get_store),
) -> PayPalGateway:
    currencies = [c.strip() for c in os.getenv("PAYPAL_CURRENCIES", "").split(",") if c.strip()]
    return PayPalGateway(connector, store, currencies=currencies)


class CreatePaymentBody(BaseModel):
    amount: Decimal = Field(..., ge=0)
    currency: str = Field(..., min_length=3, max_length=3)


async def _get_record_or_404(store: SqlPaymentRecordStore, payment_id: str):
    record = await store.get(payment_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Payment not found")
    return record


@app.get("/health")
async def health():
    return {"ok": True}


@app.post("/payments", status_code=201, dependencies=[Depends(verify_api_key)])
async def create_payment(body: CreatePaymentBody, store: SqlPaymentRecordStore = Depends(get_store)):
    try:
        payment = await store.repository.create(amount=body.amount, currency=body.currency)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    await store.repository.session.commit()
    return payment.to_dict()


@app.get("/payments/{payment_id}", dependencies=[Depends(verify_api_key)])
async def read_payment(payment_id: str, store: SqlPaymentRecordStore = Depends(get_store)):
    record = await _get_record_or_404(store, payment_id)
    history = await store.repository.get_history(payment_id)
    return {**record.payment.to_dict(), "history": [h.to_dict() for h in history]}


@app.post("/payments/{payment_id}/checkout", dependencies=[Depends(verify_api_key)])
async def start_checkout(
    payment_id: str,
    redirect: bool = False,
    store: SqlPaymentRecordStore = Depends(get_store),
    gateway: PayPalGateway = Depends(get_gateway),
    credentials: Credentials = Depends(get_credentials),
):
    record = await _get_record_or_404(store, payment_id)
    if record.is_paid():
        raise HTTPException(status_code=409, detail="Payment already completed")

    approval_url = await gateway.pay(record, credentials)
    if redirect:
        return RedirectResponse(approval_url, status_code=303)
    return {"payment_id": payment_id, "transaction_id": record.transaction_id, "approval_url": approval_url}


@app.get("/paypal/return")
@limiter.limit(RETURN_RATE_LIMIT)
async def paypal_return(
    request: Request,
    token: Optional[str] = Query(None),
    store: SqlPaymentRecordStore = Depends(get_store),
    gateway: PayPalGateway = Depends(get_gateway),
    credentials: Credentials = Depends(get_credentials),
):
    try:
        record = await gateway.callback(token, credentials)
    except CaptureNotCompletedError as e:
        payment = await store.repository.get_by_transaction_id(token)
        if payment is not None:
            await store.repository.record_capture_failure(payment, e.status, e.message)
            await store.repository.session.commit()
        raise
    return RedirectResponse(record.success_url(), status_code=303)


@app.get("/payments/{payment_id}/success")
async def checkout_success(payment_id: str, store: SqlPaymentRecordStore = Depends(get_store)):
    record = await _get_record_or_404(store, payment_id)
    return {"payment_id": payment_id, "status": record.payment.status, "paid": record.is_paid()}


@app.get("/payments/{payment_id}/cancel")
async def checkout_cancel(payment_id: str, store: SqlPaymentRecordStore = Depends(get_store)):
    record = await _get_record_or_404(store, payment_id)
    if record.is_paid():
        raise HTTPException(status_code=409, detail="Payment already completed")
    await store.repository.mark_cancelled(record.payment)
    await store.repository.session.commit()
    return {"payment_id": payment_id, "status": record.payment.status}
