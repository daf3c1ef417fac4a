"""PKCE (RFC 7636) helpers."""

from __future__ import annotations

import base64
import hashlib
import secrets


def create_code_verifier(length: int = 64) -> str:
    """Return a random verifier of ``length`` URL-safe characters (43-128)."""
    if not 43 <= length <= 128:
        raise ValueError("PKCE code verifier length must be between 43 and 128")
    return secrets.token_urlsafe(96)[:length]


def code_challenge_s256(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
