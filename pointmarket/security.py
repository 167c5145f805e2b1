"""PBKDF2 credential hashing and verification."""

import secrets

from cryptography.hazmat.primitives import constant_time, hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

HASH_LENGTH = 64


class CredentialHasher:
    """PBKDF2-SHA512 credential hashing with per-account hex salts."""

    def __init__(self, iterations: int = 100_000, salt_bytes: int = 16):
        self.iterations = iterations
        self.salt_bytes = salt_bytes

    def new_salt(self) -> str:
        return secrets.token_hex(self.salt_bytes)

    def _derive(self, credential: str, salt: str) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=HASH_LENGTH,
            salt=salt.encode("utf-8"),
            iterations=self.iterations,
        )
        return kdf.derive(credential.encode("utf-8"))

    def hash(self, credential: str, salt: str | None = None) -> tuple[str, str]:
        """Return ``(hash_hex, salt)``; a fresh salt is generated when none is given."""
        salt = salt or self.new_salt()
        return self._derive(credential, salt).hex(), salt

    def verify(self, credential: str, stored_hash: str, salt: str) -> bool:
        try:
            expected = bytes.fromhex(stored_hash)
        except ValueError:
            return False
        return constant_time.bytes_eq(self._derive(credential, salt), expected)
