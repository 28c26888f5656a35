from __future__ import annotations

import hashlib
import hmac


_SHA256_PREFIX = "sha256="


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    """Check an HMAC-SHA256 hex signature over the raw request body.

    Enforcement is optional: a missing signature passes, only a present signature that
    does not match fails. Header values of the form ``sha256=<hex>`` are accepted.
    Without a configured secret nothing can be checked, so the delivery passes.
    """
    if not signature:
        return True
    if not secret:
        return True
    provided = signature.strip()
    if provided.lower().startswith(_SHA256_PREFIX):
        provided = provided[len(_SHA256_PREFIX):]
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected.encode(), provided.lower().encode())
