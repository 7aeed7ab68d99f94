"""
slowapi rate limiter, keyed on client address.

OTP and credential endpoints carry tighter limits than the 200/minute default
since they are the brute-force surface (6-digit codes, passwords).

Every rate-limited endpoint MUST take `request: Request` (slowapi reads the client
address from it), and @limiter.limit goes BELOW the @router.xxx decorator.
"""
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from app.schemas.common import error_body

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200/minute"],
)

OTP_SEND_LIMIT = "3/minute"
OTP_VERIFY_LIMIT = "10/minute"
REGISTER_LIMIT = "5/minute"
LOGIN_LIMIT = "10/minute"


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """slowapi's default 429 handler, answering in the API envelope."""
    response = JSONResponse(
        status_code=429,
        content=error_body(f"Rate limit exceeded: {exc.detail}"),
    )
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)
