"""HMAC-signed upload URLs."""

from __future__ import annotations

import hashlib
import hmac
import time
from urllib.parse import parse_qs, quote, unquote, urlencode, urlsplit


def _signature(secret: str, key: str, content_type: str, expires: int) -> str:
    message = f"{key}\n{content_type}\n{expires}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def sign_upload_url(
    base_url: str,
    key: str,
    content_type: str,
    secret: str,
    ttl: int,
    *,
    now: float | None = None,
) -> str:
    """Return a URL granting a single upload of *key* until ``now + ttl``."""
    expires = int((now if now is not None else time.time()) + ttl)
    query = urlencode(
        {
            "contentType": content_type,
            "expires": expires,
            "signature": _signature(secret, key, content_type, expires),
        }
    )
    return f"{base_url.rstrip('/')}/{quote(key, safe='/')}?{query}"


def verify_upload_signature(
    url: str,
    base_url: str,
    secret: str,
    *,
    now: float | None = None,
) -> str | None:
    """Return the key an upload URL grants, or ``None`` if invalid or expired."""
    base_path = urlsplit(base_url.rstrip("/")).path
    parts = urlsplit(url)
    if not parts.path.startswith(base_path + "/"):
        return None
    key = unquote(parts.path[len(base_path) + 1 :])

    params = parse_qs(parts.query)
    try:
        content_type = params["contentType"][0]
        expires = int(params["expires"][0])
        signature = params["signature"][0]
    except (KeyError, IndexError, ValueError):
        return None

    expected = _signature(secret, key, content_type, expires)
    if not hmac.compare_digest(signature, expected):
        return None
    if expires < (now if now is not None else time.time()):
        return None
    return key
