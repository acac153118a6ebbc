"""Rate limiter singleton — import from here to avoid circular deps.

Limits are keyed on the caller's identity (JWT subject) when a bearer token
is present, so several approvers behind one proxy do not share a bucket.
"""
from jose import JWTError
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from app.core.security import decode_token


def actor_or_remote_address(request: Request) -> str:
    auth = request.headers.get("Authorization", "")
    scheme, _, token = auth.partition(" ")
    if scheme.lower() == "bearer" and token:
        try:
            subject = decode_token(token).get("sub")
        except JWTError:
            subject = None
        if subject:
            return f"actor:{subject}"
    return get_remote_address(request)


limiter = Limiter(key_func=actor_or_remote_address)
