"""
Cryptographic operations for the credential vault.

LEGAL NOTICE:
This module handles encryption/decryption of sensitive data. It must only be used
for legitimate personal credential management on devices you own or administer.

Key derivation (Argon2id), sub-key expansion (HKDF-SHA256) and record
encryption (AES-256-GCM). Nothing in this module logs passphrases, keys,
plaintext or ciphertext.
"""

import os
import hmac
import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from argon2.low_level import hash_secret_raw, Type
from argon2.exceptions import HashingError
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.backends import default_backend

from . import config
from .errors import DerivationError

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray]


@dataclass(frozen=True)
class KdfParams:
    """Argon2id work factor. Persisted with the vault it was used for."""
    time_cost: int = config.ARGON2_TIME_COST
    memory_cost: int = config.ARGON2_MEMORY_COST
    parallelism: int = config.ARGON2_PARALLELISM

    def validate(self) -> None:
        """Raise DerivationError when the parameters are unusable."""
        for name in ("time_cost", "memory_cost", "parallelism"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise DerivationError(f"{name} must be an integer, got {value!r}")
        if self.time_cost < 1:
            raise DerivationError(f"time_cost must be at least 1, got {self.time_cost}")
        if self.parallelism < 1:
            raise DerivationError(f"parallelism must be at least 1, got {self.parallelism}")
        if self.memory_cost < 8 * self.parallelism:
            raise DerivationError(
                f"memory_cost must be at least {8 * self.parallelism} KiB "
                f"for parallelism {self.parallelism}, got {self.memory_cost}"
            )


DEFAULT_KDF_PARAMS = KdfParams()


class CryptoManager:
    """Handles all cryptographic operations for the credential vault."""

    SALT_SIZE = config.SALT_SIZE
    KEY_SIZE = config.KEY_SIZE
    NONCE_SIZE = config.NONCE_SIZE
    TAG_SIZE = config.TAG_SIZE

    def __init__(self, kdf_params: Optional[KdfParams] = None):
        self.backend = default_backend()
        self.kdf_params = kdf_params or DEFAULT_KDF_PARAMS

    def generate_salt(self) -> bytes:
        """Generate a cryptographically secure random salt."""
        return os.urandom(self.SALT_SIZE)

    def derive_key(self, passphrase: str, salt: BytesLike,
                   params: Optional[KdfParams] = None) -> bytes:
        """
        Derive a master key from a passphrase using Argon2id.

        Args:
            passphrase: The master passphrase. Any str is accepted.
            salt: Per-vault random salt of exactly SALT_SIZE bytes
            params: Work factor, defaults to the manager's parameters

        Returns:
            KEY_SIZE-byte master key

        Raises:
            DerivationError: If the salt or work factor is invalid
        """
        params = params or self.kdf_params
        if not isinstance(salt, (bytes, bytearray)):
            raise DerivationError(f"salt must be bytes, got {type(salt).__name__}")
        if len(salt) != self.SALT_SIZE:
            raise DerivationError(
                f"salt must be exactly {self.SALT_SIZE} bytes, got {len(salt)}"
            )
        params.validate()

        # surrogatepass keeps lone surrogates encodable so no str is rejected
        secret = passphrase.encode("utf-8", "surrogatepass")
        try:
            return hash_secret_raw(
                secret=secret,
                salt=bytes(salt),
                time_cost=params.time_cost,
                memory_cost=params.memory_cost,
                parallelism=params.parallelism,
                hash_len=self.KEY_SIZE,
                type=Type.ID,
            )
        except HashingError as e:
            logger.error("Argon2id derivation failed: %s", e)
            raise DerivationError(f"Key derivation failed: {e}") from e

    def expand_key(self, master_key: BytesLike, context: str) -> bytes:
        """Derive a KEY_SIZE sub-key from the master key using HKDF-SHA256."""
        hkdf = HKDF(
            algorithm=hashes.SHA256(),
            length=self.KEY_SIZE,
            salt=None,
            info=context.encode("utf-8"),
            backend=self.backend,
        )
        return hkdf.derive(bytes(master_key))

    def encrypt(self, plaintext: bytes, key: BytesLike,
                associated_data: bytes = b"") -> Tuple[bytes, bytes, bytes]:
        """
        Encrypt data using AES-256-GCM.

        Args:
            plaintext: Data to encrypt
            key: 32-byte encryption key
            associated_data: Authenticated but unencrypted data

        Returns:
            Tuple of (ciphertext, nonce, tag)
        """
        nonce = os.urandom(self.NONCE_SIZE)
        cipher = Cipher(
            algorithms.AES(bytes(key)),
            modes.GCM(nonce),
            backend=self.backend
        )
        encryptor = cipher.encryptor()
        if associated_data:
            encryptor.authenticate_additional_data(associated_data)
        ciphertext = encryptor.update(plaintext) + encryptor.finalize()
        return ciphertext, nonce, encryptor.tag

    def decrypt(self, ciphertext: BytesLike, key: BytesLike, nonce: BytesLike,
                tag: BytesLike, associated_data: bytes = b"") -> bytes:
        """
        Decrypt data using AES-256-GCM.

        Raises:
            InvalidTag: If authentication fails
            ValueError: If the nonce or tag has an impossible size
        """
        cipher = Cipher(
            algorithms.AES(bytes(key)),
            modes.GCM(bytes(nonce), bytes(tag)),
            backend=self.backend
        )
        decryptor = cipher.decryptor()
        if associated_data:
            decryptor.authenticate_additional_data(associated_data)
        return decryptor.update(bytes(ciphertext)) + decryptor.finalize()

    def secure_compare(self, a: BytesLike, b: BytesLike) -> bool:
        """Constant-time comparison to prevent timing attacks."""
        return hmac.compare_digest(a, b)

    def clear_bytes(self, data: Optional[BytesLike]) -> None:
        """Zero a mutable buffer in place. Immutable bytes are left alone."""
        if isinstance(data, bytearray):
            for i in range(len(data)):
                data[i] = 0


def derive_key(passphrase: str, salt: BytesLike,
               params: Optional[KdfParams] = None) -> bytes:
    """Module-level shortcut for CryptoManager().derive_key()."""
    return CryptoManager(params).derive_key(passphrase, salt)
