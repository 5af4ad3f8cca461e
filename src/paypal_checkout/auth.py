"""Merchant API key check and return-endpoint rate limiting."""

import os
import secrets
import logging

from fastapi import HTTPException, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

merchant_bearer = HTTPBearer()

# The payer's browser hits /paypal/return directly, so it is limited per client address.
limiter = Limiter(key_func=get_remote_address)
RETURN_RATE_LIMIT = os.getenv("PAYPAL_RETURN_RATE_LIMIT", "30/minute")


def _configured_api_key() -> str:
    api_key = os.getenv("API_KEY")
    if not api_key:
        logger.error("API_KEY is not set; merchant endpoints are disabled")
        raise HTTPException(status_code=500, detail="Server configuration error")
    return api_key


async def verify_api_key(bearer: HTTPAuthorizationCredentials = Security(merchant_bearer)) -> str:
    """Allow the request only when the bearer token equals API_KEY."""
    if not secrets.compare_digest(bearer.credentials, _configured_api_key()):
        logger.warning("Rejected merchant request with an invalid API key")
        raise HTTPException(status_code=401, detail="Invalid API key")
    return bearer.credentials
