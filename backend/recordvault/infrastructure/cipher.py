"""Fernet Cipher — authenticated symmetric encryption for sensitive record fields.

Invariants:
    - Stateless after construction: the derived key never changes for the process
    - Every encrypt() uses a fresh IV, so equal plaintexts give different ciphertexts
    - decrypt() of anything not produced under this key raises EncryptionError

Design Decisions:
    - Fernet (AES-128-CBC + HMAC-SHA256) from `cryptography`: authenticated, so
      corruption and key mismatch are detected instead of returning garbage
    - Key derived from the configured secret with PBKDF2-HMAC-SHA256 and a fixed
      application salt: operators configure a passphrase, not a raw key
"""

import base64
import logging

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from recordvault.core.errors import EncryptionError

logger = logging.getLogger(__name__)

_KDF_SALT = b"recordvault.field-encryption.v1"
_KDF_ITERATIONS = 200_000


def derive_fernet_key(secret: str) -> bytes:
    """Derive a urlsafe-base64 Fernet key from a passphrase."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=_KDF_SALT,
        iterations=_KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(secret.encode("utf-8")))


class FernetCipher:
    """SymmetricCipher implementation backed by Fernet."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("encryption secret must not be empty")
        self._fernet = Fernet(derive_fernet_key(secret))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError, AttributeError) as e:
            raise EncryptionError() from e
