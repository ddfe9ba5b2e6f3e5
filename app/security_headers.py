"""
Response hardening headers

The API only serves JSON to the Rzev dashboard, so the CSP denies every
resource type and framing is limited to the allowed origins. HSTS is sent in
production only and responses default to no-store.
"""

import logging
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from . import config

logger = logging.getLogger(__name__)

IS_PRODUCTION = config.ENVIRONMENT == "production"

DISABLED_BROWSER_FEATURES = ("accelerometer", "camera", "geolocation", "gyroscope", "microphone", "payment", "usb")


def get_csp_policy() -> str:
    frame_ancestors = " ".join(config.ALLOWED_ORIGINS) or "'none'"
    return "; ".join(
        [
            "default-src 'none'",
            f"frame-ancestors {frame_ancestors}",
            "base-uri 'none'",
            "form-action 'none'",
        ]
    )


def get_permissions_policy() -> str:
    return ", ".join(f"{feature}=()" for feature in DISABLED_BROWSER_FEATURES)


def get_security_headers_dict() -> dict:
    headers = {
        "Content-Security-Policy": get_csp_policy(),
        "Permissions-Policy": get_permissions_policy(),
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "SAMEORIGIN",
    }
    if IS_PRODUCTION:
        headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = tuple(exclude_paths or ())
        self.headers = get_security_headers_dict()
        logger.info(f"🛡️ Security headers on ({len(self.headers)} headers, production={IS_PRODUCTION})")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        if self.exclude_paths and request.url.path.startswith(self.exclude_paths):
            return response

        response.headers.update(self.headers)
        response.headers.setdefault("Cache-Control", "no-store")
        return response
