# src/caseport/core/security/fingerprint.py
"""Keyed digests (HMAC-SHA256) used to derive pseudonyms.

Pseudonymizing transforms never see a plain hash of the original value:
a plain SHA-256 of a 9-digit SSN can be reversed by enumerating all SSNs.
Instead the digest is keyed, and the key never leaves the process.

Key resolution:
1. Explicit key passed by the caller
2. CASEPORT_SANITIZE_KEY environment variable (stable pseudonyms across runs)
3. A random key generated for this run (pseudonyms differ between runs)

Usage:
    from caseport.core.security import keyed_digest

    digest = keyed_digest("123-45-6789", key=run_key, domain="ssn")
"""

from __future__ import annotations

import hashlib
import hmac
import os
import secrets

_ENV_VAR = "CASEPORT_SANITIZE_KEY"


def get_sanitize_key(env_var: str = _ENV_VAR) -> bytes:
    """Get the pseudonym key from the environment, or a fresh random one.

    Args:
        env_var: Environment variable holding the key

    Returns:
        The key as bytes. A random 32-byte key when the variable is unset.
    """
    env_key = os.environ.get(env_var)
    if env_key:
        return env_key.encode("utf-8")
    return secrets.token_bytes(32)


def keyed_digest(value: str, *, key: bytes, domain: str = "") -> bytes:
    """Compute HMAC-SHA256 of a value within a domain.

    The domain separates identical strings that mean different things
    (a file number and a css_id that happen to be equal get unrelated
    digests).

    Args:
        value: The original value
        key: HMAC key
        domain: Value domain, typically the sanitized field's name

    Returns:
        32-byte digest

    Example:
        >>> a = keyed_digest("abc", key=b"k", domain="ssn")
        >>> a == keyed_digest("abc", key=b"k", domain="ssn")
        True
        >>> a == keyed_digest("abc", key=b"k", domain="email")
        False
    """
    message = f"{domain}\x00{value}".encode()
    return hmac.new(key=key, msg=message, digestmod=hashlib.sha256).digest()


def secret_fingerprint(value: str, *, key: bytes) -> str:
    """Hex form of keyed_digest without a domain (64 lowercase hex chars)."""
    return keyed_digest(value, key=key).hex()
