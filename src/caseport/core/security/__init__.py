# src/caseport/core/security/__init__.py
"""Security utilities for caseport.

Exports:
- keyed_digest: HMAC-SHA256 of a value within a domain
- secret_fingerprint: hex fingerprint of a value
- get_sanitize_key: pseudonym key from environment, or a random run key
"""

from caseport.core.security.fingerprint import (
    get_sanitize_key,
    keyed_digest,
    secret_fingerprint,
)

__all__ = [
    "get_sanitize_key",
    "keyed_digest",
    "secret_fingerprint",
]
