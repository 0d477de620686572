# hikkoshi/transport/security.py
"""
Security utilities for the public API.

- LINE webhook signature verification (constant-time comparison)
- Error message sanitization for production responses
- OWASP response headers
"""
import base64
import hashlib
import hmac

from hikkoshi.config import settings
from hikkoshi.infra.logging_config import get_logger

logger = get_logger(__name__)


def compute_line_signature(channel_secret: str, body: bytes) -> str:
    """
    Compute the LINE webhook signature for a raw request body.

    Returns:
        base64(HMAC-SHA256(channel_secret, body))
    """
    digest = hmac.new(
        channel_secret.encode("utf-8"),
        body,
        hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_line_signature(channel_secret: str, body: bytes, signature: str | None) -> bool:
    """Check the X-Line-Signature header against the raw body."""
    if not signature:
        return False

    expected = compute_line_signature(channel_secret, body)
    return hmac.compare_digest(signature.encode("ascii", "ignore"), expected.encode("ascii"))


class SecurityHeaders:
    """
    OWASP recommended headers for API security:
    https://cheatsheetseries.owasp.org/cheatsheets/REST_Security_Cheat_Sheet.html
    """

    @staticmethod
    def add_security_headers(response):
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"

        # Prevent MIME sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Referrer policy - don't leak URLs to third parties
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Content Security Policy (strict for API - no scripts/styles/etc)
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        # Cache control for API responses (default no-cache, endpoints can override)
        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"

        # HSTS (only in production with HTTPS)
        if settings.is_production or settings.is_staging:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"

        if "Server" in response.headers:
            del response.headers["Server"]

        return response


def sanitize_error_message(error: Exception, is_production: bool) -> str:
    """
    Sanitize error messages for external responses.
    In production: Generic messages
    In dev: Detailed messages
    """
    if not is_production:
        return str(error)

    error_type = type(error).__name__

    generic_messages = {
        "ValueError": "Invalid input",
        "EstimateInputError": "Invalid input",
        "KeyError": "Invalid request",
        "PostgresError": "Service temporarily unavailable",
        "ConnectionError": "Service temporarily unavailable",
        "TimeoutError": "Request timeout",
    }

    return generic_messages.get(error_type, "An error occurred")
