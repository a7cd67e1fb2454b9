"""
Persistence for the encrypted vault.

LEGAL NOTICE:
This module handles secure storage of credentials. All data is encrypted locally
before it is written and never leaves the device.

Only the already encrypted representation reaches disk: the verifier
header and the sealed records. A save writes a complete new file next to
the target and atomically replaces it, so a crash mid-write leaves the
previous vault intact.
"""

import io
import os
import stat
import struct
import logging
import platform
from typing import BinaryIO

from . import config
from .crypto import KdfParams
from .errors import DerivationError, VaultFormatError
from .vault import SealedRecord, Vault

logger = logging.getLogger(__name__)


class VaultFile:
    """Loads and saves a Vault at a filesystem path."""

    # File format version
    VERSION = 1
    MAGIC_BYTES = b'CVLT'

    def __init__(self, filepath: str):
        """
        Args:
            filepath: Path to the encrypted vault file
        """
        self.filepath = filepath

    def exists(self) -> bool:
        return os.path.exists(self.filepath) and os.path.getsize(self.filepath) > 0

    # -- reading ----------------------------------------------------------

    @staticmethod
    def _read_exact(f: BinaryIO, size: int) -> bytes:
        data = f.read(size)
        if len(data) != size:
            raise VaultFormatError("Vault file is truncated")
        return data

    def _read_uint(self, f: BinaryIO) -> int:
        return struct.unpack('<I', self._read_exact(f, 4))[0]

    def _read_block(self, f: BinaryIO) -> bytes:
        return self._read_exact(f, self._read_uint(f))

    def _read_text(self, f: BinaryIO) -> str:
        try:
            return self._read_block(f).decode('utf-8')
        except UnicodeDecodeError as e:
            raise VaultFormatError("Vault file contains invalid text") from e

    def load(self) -> Vault:
        """
        Read the vault from disk.

        Raises:
            FileNotFoundError: If the file does not exist
            VaultFormatError: If the file is not a readable vault
        """
        with open(self.filepath, 'rb') as f:
            data = f.read()
        buf = io.BytesIO(data)

        magic = buf.read(4)
        if magic != self.MAGIC_BYTES:
            logger.warning("Load: Magic bytes mismatch. Expected %r, got %r", self.MAGIC_BYTES, magic)
            raise VaultFormatError("Not a credential vault file")

        version = self._read_uint(buf)
        if version != self.VERSION:
            logger.warning("Load: Version mismatch. Expected %d, got %d", self.VERSION, version)
            raise VaultFormatError(f"Unsupported vault version {version}")

        salt = self._read_block(buf)
        verifier = self._read_block(buf)
        kdf_params = KdfParams(
            time_cost=self._read_uint(buf),
            memory_cost=self._read_uint(buf),
            parallelism=self._read_uint(buf),
        )
        if len(salt) != config.SALT_SIZE:
            raise VaultFormatError(f"Vault salt must be {config.SALT_SIZE} bytes, got {len(salt)}")
        try:
            kdf_params.validate()
        except DerivationError as e:
            raise VaultFormatError(f"Invalid key derivation parameters: {e}") from e
        created_at = self._read_text(buf)

        records = {}
        for _ in range(self._read_uint(buf)):
            service = self._read_text(buf)
            nonce = self._read_block(buf)
            tag = self._read_block(buf)
            ciphertext = bytearray(self._read_block(buf))
            if service in records:
                raise VaultFormatError(f"Duplicate service {service!r} in vault file")
            records[service] = SealedRecord(service, nonce, tag, ciphertext)

        if buf.read(1):
            raise VaultFormatError("Unexpected data after the last record")

        logger.info("Loaded vault with %d record(s) from %s", len(records), self.filepath)
        return Vault(salt=salt, verifier=verifier, kdf_params=kdf_params,
                     records=records, created_at=created_at)

    # -- writing ----------------------------------------------------------

    @staticmethod
    def _write_block(f: BinaryIO, data: bytes) -> None:
        f.write(struct.pack('<I', len(data)))
        f.write(data)

    def serialize(self, vault: Vault) -> bytes:
        """Encode a vault in the on-disk format."""
        f = io.BytesIO()
        # Header
        f.write(self.MAGIC_BYTES)
        f.write(struct.pack('<I', self.VERSION))

        # Verifier
        self._write_block(f, vault.salt)
        self._write_block(f, vault.verifier)
        params = vault.kdf_params
        f.write(struct.pack('<III', params.time_cost, params.memory_cost, params.parallelism))
        self._write_block(f, vault.created_at.encode('utf-8'))

        # Records, in a stable order
        f.write(struct.pack('<I', len(vault.records)))
        for service in sorted(vault.records):
            sealed = vault.records[service]
            self._write_block(f, service.encode('utf-8'))
            self._write_block(f, sealed.nonce)
            self._write_block(f, sealed.tag)
            self._write_block(f, bytes(sealed.ciphertext))
        return f.getvalue()

    def save(self, vault: Vault) -> None:
        """
        Atomically replace the vault file.

        Raises:
            OSError: If the file cannot be written; the old file is kept
        """
        payload = self.serialize(vault)
        directory = os.path.dirname(os.path.abspath(self.filepath))
        os.makedirs(directory, exist_ok=True)
        tmp_path = self.filepath + '.tmp'

        try:
            with open(tmp_path, 'wb') as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            self._set_file_permissions(tmp_path)
            os.replace(tmp_path, self.filepath)
        except Exception as e:
            logger.error("Error saving vault file %s: %s", self.filepath, e, exc_info=True)
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        logger.debug("Saved vault with %d record(s) to %s", len(vault.records), self.filepath)

    def _set_file_permissions(self, filepath: str) -> None:
        """Set file to be readable/writable by owner only."""
        if platform.system() == 'Windows':
            logger.warning("Skipping owner-only permissions for %s on Windows", filepath)
            return
        os.chmod(filepath, stat.S_IRUSR | stat.S_IWUSR)  # 600
