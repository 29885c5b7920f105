"""
Password hashing for Notekeeper users.

Hashes are PBKDF2-HMAC-SHA256 with a random per-password salt, encoded as
``pbkdf2_sha256$<iterations>$<salt>$<hash>`` (base64 fields). Key
derivation is CPU-bound, so the async helpers run it in a worker thread.
"""

import asyncio
import base64
import os

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

ALGORITHM = "pbkdf2_sha256"


class PasswordHasher:
    """Hash and verify user passwords."""

    KEY_LENGTH = 32
    SALT_LENGTH = 16

    def __init__(self, iterations: int = 600000):
        self.iterations = iterations

    def _kdf(self, salt: bytes, iterations: int) -> PBKDF2HMAC:
        return PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=self.KEY_LENGTH,
            salt=salt,
            iterations=iterations,
        )

    def hash(self, password: str) -> str:
        """Hash a password with a fresh salt."""
        salt = os.urandom(self.SALT_LENGTH)
        derived = self._kdf(salt, self.iterations).derive(password.encode("utf-8"))
        return "$".join([
            ALGORITHM,
            str(self.iterations),
            base64.b64encode(salt).decode("ascii"),
            base64.b64encode(derived).decode("ascii"),
        ])

    def verify(self, password: str, encoded: str) -> bool:
        """Check a password against an encoded hash in constant time."""
        try:
            algorithm, iterations, salt, expected = encoded.split("$")
        except (AttributeError, ValueError):
            return False
        if algorithm != ALGORITHM:
            return False

        try:
            kdf = self._kdf(base64.b64decode(salt), int(iterations))
            kdf.verify(password.encode("utf-8"), base64.b64decode(expected))
            return True
        except (InvalidKey, ValueError):
            return False

    async def hash_async(self, password: str) -> str:
        return await asyncio.to_thread(self.hash, password)

    async def verify_async(self, password: str, encoded: str) -> bool:
        return await asyncio.to_thread(self.verify, password, encoded)
