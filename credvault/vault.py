"""
Vault data model and the encrypted credential store.

Records are held only in sealed form: AES-256-GCM over a JSON document of
the username, secret and timestamps, with the service name bound in as
associated data. Service names are the only plaintext, so list() and
search() never decrypt anything.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from cryptography.exceptions import InvalidTag

from . import config
from . import audit
from .crypto import CryptoManager, KdfParams
from .errors import DuplicateService, IntegrityError, NotAuthenticated, NotFound, WeakSecret
from .strength import validate_strength

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CredentialRecord:
    """Plaintext view of a stored credential, returned by VaultStore.get()."""
    service: str
    username: str
    secret: str
    created_at: datetime
    updated_at: datetime

    def __repr__(self) -> str:
        return (
            f"CredentialRecord(service={self.service!r}, username={self.username!r}, "
            f"secret='********', created_at={self.created_at.isoformat()}, "
            f"updated_at={self.updated_at.isoformat()})"
        )


@dataclass
class SealedRecord:
    """Encrypted form of a credential as held in memory and on disk."""
    service: str
    nonce: bytes
    tag: bytes
    ciphertext: bytearray

    def wipe(self) -> None:
        for i in range(len(self.ciphertext)):
            self.ciphertext[i] = 0


@dataclass
class Vault:
    """Everything that is persisted: verifier header plus sealed records."""
    salt: bytes
    verifier: bytes
    kdf_params: KdfParams
    records: Dict[str, SealedRecord] = field(default_factory=dict)
    created_at: str = field(default_factory=lambda: utcnow().isoformat())


class VaultStore:
    """
    Owns all mutation and lookup of the records in one Vault.

    The store is handed out by the session controller and shares the
    session's key buffer. Once the session locks, the key is gone and every
    operation raises NotAuthenticated.
    """

    def __init__(self, vault: Vault, key: bytearray,
                 crypto: Optional[CryptoManager] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.vault = vault
        self.crypto = crypto or CryptoManager(vault.kdf_params)
        self._key: Optional[bytearray] = key
        self._clock = clock
        self._lock = threading.RLock()

    # -- session plumbing -------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._key is not None

    def close(self) -> None:
        """Drop the key reference. The owning session wipes the buffer."""
        with self._lock:
            self._key = None

    def _require_key(self) -> bytearray:
        key = self._key
        if key is None:
            raise NotAuthenticated()
        return key

    # -- sealing ----------------------------------------------------------

    def _seal(self, key: bytearray, record: CredentialRecord) -> SealedRecord:
        document = {
            'username': record.username,
            'secret': record.secret,
            'created_at': record.created_at.isoformat(),
            'updated_at': record.updated_at.isoformat(),
        }
        plaintext = bytearray(json.dumps(document).encode('utf-8'))
        try:
            ciphertext, nonce, tag = self.crypto.encrypt(
                plaintext, key, record.service.encode('utf-8')
            )
        finally:
            self.crypto.clear_bytes(plaintext)
        return SealedRecord(record.service, nonce, tag, bytearray(ciphertext))

    def _open(self, key: bytearray, sealed: SealedRecord) -> CredentialRecord:
        service = sealed.service
        try:
            plaintext = bytearray(self.crypto.decrypt(
                sealed.ciphertext, key, sealed.nonce, sealed.tag,
                service.encode('utf-8'),
            ))
        except (InvalidTag, ValueError) as e:
            logger.error("Integrity check failed for service %r", service)
            audit.audit_event(audit.INTEGRITY_FAILURE, service, level=logging.CRITICAL)
            raise IntegrityError(service) from e

        try:
            document = json.loads(plaintext.decode('utf-8'))
            return CredentialRecord(
                service=service,
                username=document['username'],
                secret=document['secret'],
                created_at=datetime.fromisoformat(document['created_at']),
                updated_at=datetime.fromisoformat(document['updated_at']),
            )
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
            logger.error("Malformed record document for service %r", service)
            audit.audit_event(audit.INTEGRITY_FAILURE, service, level=logging.CRITICAL,
                              reason="malformed")
            raise IntegrityError(service, "malformed record") from e
        finally:
            self.crypto.clear_bytes(plaintext)

    # -- validation -------------------------------------------------------

    @staticmethod
    def _validate_service(service: str) -> None:
        if not isinstance(service, str) or not service.strip():
            raise ValueError("Service name cannot be empty")
        if len(service) > config.SERVICE_NAME_MAX_LENGTH:
            raise ValueError(
                f"Service name cannot exceed {config.SERVICE_NAME_MAX_LENGTH} characters"
            )

    @staticmethod
    def _check_strength(service: str, secret: str, allow_weak: bool) -> None:
        passes, missing = validate_strength(secret)
        if not passes and not allow_weak:
            raise WeakSecret(missing, service)

    # -- operations -------------------------------------------------------

    def add(self, service: str, username: str, secret: str,
            allow_weak: bool = False) -> CredentialRecord:
        """
        Encrypt and insert a new credential.

        Raises:
            NotAuthenticated: If the session is locked
            ValueError: If the service name is empty or too long
            DuplicateService: If a record for service already exists
            WeakSecret: If secret fails the policy and allow_weak is not set
        """
        with self._lock:
            key = self._require_key()
            self._validate_service(service)
            if service in self.vault.records:
                raise DuplicateService(service)
            self._check_strength(service, secret, allow_weak)

            now = self._clock()
            record = CredentialRecord(service, username, secret, now, now)
            self.vault.records[service] = self._seal(key, record)

        logger.info("Added credential for service %r", service)
        audit.audit_event(audit.RECORD_ADDED, service, weak=allow_weak)
        return record

    def get(self, service: str) -> CredentialRecord:
        """
        Decrypt and return a credential.

        Raises:
            NotAuthenticated: If the session is locked
            NotFound: If no record exists for service
            IntegrityError: If the stored ciphertext fails authentication
        """
        with self._lock:
            # Private copy, so a concurrent lock cannot zero it mid-decrypt
            key = bytearray(self._require_key())
            sealed = self.vault.records.get(service)
            if sealed is None:
                self.crypto.clear_bytes(key)
                raise NotFound(service)
            snapshot = SealedRecord(sealed.service, sealed.nonce, sealed.tag,
                                    bytearray(sealed.ciphertext))
        try:
            record = self._open(key, snapshot)
        finally:
            self.crypto.clear_bytes(key)
            snapshot.wipe()
        if not self.is_open:
            raise NotAuthenticated()
        audit.audit_event(audit.RECORD_ACCESSED, service)
        return record

    def update(self, service: str, new_username: Optional[str] = None,
               new_secret: Optional[str] = None,
               allow_weak: bool = False) -> CredentialRecord:
        """
        Change the username and/or secret of an existing credential.

        A None or blank username keeps the current one; a None secret keeps
        the current secret. The record is re-sealed under a fresh nonce and
        replaces the old one only once encryption has succeeded.
        """
        with self._lock:
            key = self._require_key()
            sealed = self.vault.records.get(service)
            if sealed is None:
                raise NotFound(service)
            if new_secret is not None:
                self._check_strength(service, new_secret, allow_weak)

            current = self._open(key, sealed)
            if new_username is not None and new_username.strip():
                current.username = new_username
            if new_secret is not None:
                current.secret = new_secret
            current.updated_at = self._clock()

            self.vault.records[service] = self._seal(key, current)
            sealed.wipe()

        logger.info("Updated credential for service %r", service)
        audit.audit_event(audit.RECORD_UPDATED, service,
                          secret_changed=new_secret is not None)
        return current

    def delete(self, service: str) -> None:
        """Remove a credential and zero its buffer."""
        with self._lock:
            self._require_key()
            sealed = self.vault.records.pop(service, None)
            if sealed is None:
                raise NotFound(service)
            sealed.wipe()

        logger.info("Deleted credential for service %r", service)
        audit.audit_event(audit.RECORD_DELETED, service)

    def list(self) -> List[str]:
        """Service names in lexicographic order."""
        with self._lock:
            self._require_key()
            return sorted(self.vault.records)

    def search(self, substring: str) -> List[str]:
        """Case-insensitive substring match over service names only."""
        needle = substring.casefold()
        with self._lock:
            self._require_key()
            return sorted(s for s in self.vault.records if needle in s.casefold())

    def reseal(self, new_key: bytearray) -> None:
        """
        Re-encrypt every record under new_key.

        The new record map is built completely before it replaces the old
        one, so a failure part way leaves the vault untouched.
        """
        with self._lock:
            key = self._require_key()
            resealed = {}
            for service, sealed in self.vault.records.items():
                resealed[service] = self._seal(new_key, self._open(key, sealed))
            old = self.vault.records
            self.vault.records = resealed
            self._key = new_key
            for sealed in old.values():
                sealed.wipe()
        logger.info("Re-encrypted %d credential(s) under a new key", len(resealed))

    def __len__(self) -> int:
        with self._lock:
            self._require_key()
            return len(self.vault.records)

    def __contains__(self, service: object) -> bool:
        with self._lock:
            self._require_key()
            return service in self.vault.records
