"""
Master passphrase authentication.

The vault stores a verifier, never the passphrase. Both the verifier and the
record encryption key are HKDF sub-keys of the same Argon2id master key, so
knowing the verifier does not reveal the encryption key.
"""

import logging
from typing import Optional, Tuple

from . import config
from .crypto import CryptoManager, KdfParams

logger = logging.getLogger(__name__)


class Authenticator:
    """Creates and checks master passphrase verifiers."""

    def __init__(self, crypto: Optional[CryptoManager] = None):
        self.crypto = crypto or CryptoManager()

    @property
    def kdf_params(self) -> KdfParams:
        return self.crypto.kdf_params

    def enroll(self, passphrase: str) -> Tuple[bytes, bytes, bytearray]:
        """
        Create a verifier and salt, and the matching record encryption key.

        Returns:
            Tuple of (verifier, salt, record key)
        """
        salt = self.crypto.generate_salt()
        master = bytearray(self.crypto.derive_key(passphrase, salt))
        try:
            verifier = self.crypto.expand_key(master, config.VERIFIER_CONTEXT)
            key = bytearray(self.crypto.expand_key(master, config.RECORD_KEY_CONTEXT))
        finally:
            self.crypto.clear_bytes(master)
        logger.debug("Created master passphrase verifier")
        return verifier, salt, key

    def setup(self, passphrase: str) -> Tuple[bytes, bytes]:
        """
        First-run setup.

        Returns:
            Tuple of (verifier, salt) to persist with the vault
        """
        verifier, salt, key = self.enroll(passphrase)
        self.crypto.clear_bytes(key)
        return verifier, salt

    def verify(self, passphrase: str, verifier: bytes, salt: bytes,
               params: Optional[KdfParams] = None) -> bool:
        """Check a passphrase against a stored verifier."""
        key = self.open(passphrase, verifier, salt, params)
        if key is None:
            return False
        self.crypto.clear_bytes(key)
        return True

    def open(self, passphrase: str, verifier: bytes, salt: bytes,
             params: Optional[KdfParams] = None) -> Optional[bytearray]:
        """
        Check a passphrase and derive the record encryption key.

        Returns:
            The record encryption key as a wipeable buffer, or None when the
            passphrase does not match

        Raises:
            DerivationError: If salt or parameters are invalid
        """
        master = bytearray(self.crypto.derive_key(passphrase, salt, params))
        try:
            candidate = self.crypto.expand_key(master, config.VERIFIER_CONTEXT)
            if not self.crypto.secure_compare(candidate, verifier):
                return None
            return bytearray(self.crypto.expand_key(master, config.RECORD_KEY_CONTEXT))
        finally:
            self.crypto.clear_bytes(master)
