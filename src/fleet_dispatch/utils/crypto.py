"""Cryptographic helpers for device API keys and command ids."""

from __future__ import annotations

import hashlib
import secrets
import uuid

_API_KEY_PREFIX = "fd_"


class Crypto:
    """Static helpers for key generation and hashing."""

    @staticmethod
    def generate_api_key() -> str:
        """Generate a plaintext device API key with the ``fd_`` prefix."""
        return _API_KEY_PREFIX + secrets.token_urlsafe(32)

    @staticmethod
    def hash_key(plaintext: str) -> str:
        """SHA-256 hash of a plaintext API key."""
        return hashlib.sha256(plaintext.encode()).hexdigest()

    @staticmethod
    def new_id() -> str:
        """Generate a new UUID hex string."""
        return uuid.uuid4().hex
