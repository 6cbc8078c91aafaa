import re
from typing import Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

REJECTED_MESSAGE = (
    "The CORS policy for this site does not allow access from the specified Origin."
)


def subdomain_regex(parent_domain: Optional[str]) -> Optional[str]:
    if not parent_domain:
        return None
    return rf"^https://([a-z0-9-]+\.)+{re.escape(parent_domain.lower())}$"


def origin_allowed(
    origin: Optional[str], allowed: Iterable[str], parent_domain: Optional[str]
) -> bool:
    # no Origin header: curl, server-to-server, same-origin navigation
    if not origin:
        return True
    if origin in allowed:
        return True
    pattern = subdomain_regex(parent_domain)
    return bool(pattern and re.fullmatch(pattern, origin.lower()))


class OriginGuardMiddleware(BaseHTTPMiddleware):
    """Refuses requests from unknown origins before any handler runs."""

    def __init__(self, app, allowed: Iterable[str], parent_domain: Optional[str]):
        super().__init__(app)
        self.allowed = set(allowed)
        self.parent_domain = parent_domain

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")
        if not origin_allowed(origin, self.allowed, self.parent_domain):
            return JSONResponse({"detail": REJECTED_MESSAGE}, status_code=403)
        return await call_next(request)


def install_cors(app: FastAPI, allowed: Iterable[str], parent_domain: Optional[str]) -> None:
    allowed = list(allowed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed,
        allow_origin_regex=subdomain_regex(parent_domain),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # added last so it wraps CORSMiddleware and runs first
    app.add_middleware(OriginGuardMiddleware, allowed=allowed, parent_domain=parent_domain)
