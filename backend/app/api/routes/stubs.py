"""
Placeholder routes for the payment, oracle, transaction and wallet APIs.

These answer with a fixed FEATURE_DISABLED envelope so the dashboard keeps
working until a payment processor and exchange are integrated. Routes that
required a local token before still do.
"""

from typing import Any, Optional
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from app.api.dependencies import get_local_user

router = APIRouter(tags=["disabled"])

FEATURE_DISABLED_ERROR = "Feature in development"

QR_DISABLED = "QR generation is temporarily disabled until the payment processor integration is available."
PAYMENTS_DISABLED = "Payment creation is temporarily disabled until the payment processor integration is available."
ORACLE_DISABLED = "The price oracle is temporarily disabled."
TRANSACTIONS_DISABLED = "Transaction queries are temporarily disabled."
WALLET_DISABLED = "Wallet management is temporarily disabled."


def feature_disabled_response(
    message: str,
    status_code: int = 501,
    include_success: bool = True,
    extra: Optional[dict[str, Any]] = None,
) -> JSONResponse:
    content: dict[str, Any] = {}
    if include_success:
        content["success"] = False
    content.update({"error": FEATURE_DISABLED_ERROR, "message": message, "code": "FEATURE_DISABLED"})
    if extra:
        content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


# (method, path, message, status, include_success, extra, requires local auth)
DISABLED_ROUTES = [
    # /midatopay - QR payments
    ("POST", "/midatopay/generate-qr", QR_DISABLED, 200, True, None, False),
    ("POST", "/midatopay/scan-qr", "QR scanning is temporarily disabled.", 501, True, None, False),
    ("GET", "/midatopay/payment-history", "Payment history is temporarily disabled.", 501, True, None, True),
    ("GET", "/midatopay/stats", "Statistics are temporarily disabled.", 501, True, None, True),
    ("GET", "/midatopay/session/{session_id}", "Payment sessions are temporarily disabled.", 501, True, None, False),
    # /oracle - ARS conversion
    ("GET", "/oracle/quote/{amount}", ORACLE_DISABLED, 200, True, {"data": None}, False),
    ("GET", "/oracle/rate", ORACLE_DISABLED, 501, True, None, False),
    ("GET", "/oracle/status", ORACLE_DISABLED, 501, True, None, False),
    ("GET", "/oracle/balance/{address}", "Balance queries are temporarily disabled.", 501, True, None, False),
    ("GET", "/oracle/test", ORACLE_DISABLED, 501, True, None, False),
    ("GET", "/oracle/price/{currency}", ORACLE_DISABLED, 501, True, None, False),
    ("GET", "/oracle/prices", ORACLE_DISABLED, 501, True, None, False),
    ("GET", "/oracle/average/{currency}", ORACLE_DISABLED, 501, True, None, False),
    ("GET", "/oracle/history/{currency}", ORACLE_DISABLED, 501, True, None, False),
    ("POST", "/oracle/convert", "Currency conversion is temporarily disabled.", 501, True, None, False),
    # /payments
    ("POST", "/payments/create", PAYMENTS_DISABLED, 501, False, None, True),
    ("GET", "/payments/qr/{qr_id}", "Payment queries are temporarily disabled.", 501, False, None, False),
    ("GET", "/payments/my-payments", "Payment queries are temporarily disabled.", 501, False, None, True),
    ("GET", "/payments/{payment_id}", "Payment queries are temporarily disabled.", 501, False, None, True),
    ("PUT", "/payments/{payment_id}/cancel", "Payment cancellation is temporarily disabled.", 501, False, None, True),
    # /transactions
    ("POST", "/transactions/create", "Transaction creation is temporarily disabled.", 501, False, None, False),
    ("POST", "/transactions/{transaction_id}/confirm", "Transaction confirmation is temporarily disabled.", 501, False, None, False),
    ("GET", "/transactions/{transaction_id}/status", TRANSACTIONS_DISABLED, 501, False, None, False),
    ("GET", "/transactions/my-transactions", TRANSACTIONS_DISABLED, 501, False, None, True),
    ("GET", "/transactions/{transaction_id}", TRANSACTIONS_DISABLED, 501, True, None, False),
    # /wallet
    ("POST", "/wallet/save", WALLET_DISABLED, 501, True, None, False),
    ("GET", "/wallet/get", "Wallet queries are temporarily disabled.", 501, True, None, False),
    ("GET", "/wallet/has-wallet", "Wallet queries are temporarily disabled.", 501, True, None, False),
    ("DELETE", "/wallet/clear", WALLET_DISABLED, 501, True, None, False),
    ("GET", "/wallet/user/{email}", "Wallet queries are temporarily disabled.", 501, True, None, False),
    ("POST", "/wallet/create-user", "Creating users with a wallet is temporarily disabled.", 501, True, None, False),
]


def _disabled_endpoint(message: str, status_code: int, include_success: bool, extra: Optional[dict[str, Any]]):
    async def endpoint():
        return feature_disabled_response(message, status_code, include_success, extra)
    return endpoint


for method, path, message, status_code, include_success, extra, requires_auth in DISABLED_ROUTES:
    router.add_api_route(
        path,
        _disabled_endpoint(message, status_code, include_success, extra),
        methods=[method],
        status_code=status_code,
        dependencies=[Depends(get_local_user)] if requires_auth else None,
        name=f"disabled_{method.lower()}_{path.strip('/').replace('/', '_')}",
        include_in_schema=True,
    )
