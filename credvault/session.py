"""
Session controller: the Locked/Unlocked state machine in front of the vault.

The record encryption key exists only while the session is unlocked and is
zeroed on every transition back to locked.
"""

import enum
import time
import logging
from typing import Callable, Optional

from . import config
from . import audit
from .auth import Authenticator
from .crypto import CryptoManager, KdfParams
from .errors import LockedOut, NotAuthenticated, VaultError, WeakSecret
from .strength import validate_strength
from .vault import Vault, VaultStore

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class SessionController:
    """
    Gates all vault operations behind a successful passphrase check.

    Repeated failed passphrase checks, from unlock() or change_passphrase(),
    open an exponential backoff window: after ``backoff_after`` consecutive
    failures, further attempts are refused with LockedOut for
    ``min(2 ** (failures - 1), backoff_max)`` seconds.
    """

    def __init__(self, vault: Optional[Vault] = None,
                 kdf_params: Optional[KdfParams] = None,
                 backoff_after: int = config.BACKOFF_AFTER_FAILURES,
                 backoff_max: int = config.BACKOFF_MAX_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.crypto = CryptoManager(kdf_params)
        self.authenticator = Authenticator(self.crypto)
        self._vault = vault
        self._state = SessionState.LOCKED
        self._key: Optional[bytearray] = None
        self._store: Optional[VaultStore] = None
        self._backoff_after = backoff_after
        self._backoff_max = backoff_max
        self._clock = clock
        self.failed_attempts = 0
        self._lockout_until: Optional[float] = None

    def __enter__(self) -> "SessionController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.lock()

    # -- state ------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_unlocked(self) -> bool:
        return self._state is SessionState.UNLOCKED

    @property
    def is_initialized(self) -> bool:
        return self._vault is not None

    @property
    def vault(self) -> Optional[Vault]:
        """The vault in its encrypted form, for the persistence layer."""
        return self._vault

    @property
    def store(self) -> VaultStore:
        """The record store. Only available while unlocked."""
        if self._state is not SessionState.UNLOCKED or self._store is None:
            raise NotAuthenticated()
        return self._store

    def retry_after(self) -> float:
        """Seconds until the next unlock attempt is accepted (0 if now)."""
        if self._lockout_until is None:
            return 0.0
        return max(0.0, self._lockout_until - self._clock())

    # -- transitions ------------------------------------------------------

    def _enter_unlocked(self, key: bytearray) -> None:
        if self._key is not None:
            self._wipe_key()
        self._key = key
        self._store = VaultStore(self._vault, key, self.crypto)
        self._state = SessionState.UNLOCKED

    def _wipe_key(self) -> None:
        if self._store is not None:
            self._store.close()
            self._store = None
        if self._key is not None:
            self.crypto.clear_bytes(self._key)
            self._key = None

    def _check_master_strength(self, passphrase: str, allow_weak: bool) -> None:
        passes, missing = validate_strength(passphrase, config.MASTER_PASSPHRASE_MIN_LENGTH)
        if not passes and not allow_weak:
            raise WeakSecret(missing)

    def create(self, passphrase: str, confirm: Optional[str] = None,
               allow_weak: bool = False) -> None:
        """
        First-run setup: create an empty vault protected by passphrase.

        Raises:
            VaultError: If this controller already has a vault
            ValueError: If confirm is given and does not match
            WeakSecret: If the passphrase fails the policy and allow_weak is not set
        """
        if self._vault is not None:
            raise VaultError("Vault already exists. Unlock it instead.")
        if confirm is not None and confirm != passphrase:
            raise ValueError("Passphrases don't match")
        self._check_master_strength(passphrase, allow_weak)

        verifier, salt, key = self.authenticator.enroll(passphrase)
        self._vault = Vault(salt=salt, verifier=verifier, kdf_params=self.crypto.kdf_params)
        self._enter_unlocked(key)
        self.failed_attempts = 0
        logger.info("Created new vault")
        audit.audit_event(audit.VAULT_CREATED)

    def unlock(self, passphrase: str) -> bool:
        """
        Unlock the vault.

        Returns:
            True on success, False if the passphrase is wrong

        Raises:
            VaultError: If there is no vault yet
            LockedOut: While a backoff window from earlier failures is open
        """
        if self._vault is None:
            raise VaultError("No vault exists yet. Create one first.")

        self._check_backoff()

        vault = self._vault
        key = self.authenticator.open(passphrase, vault.verifier, vault.salt, vault.kdf_params)
        if key is None:
            self._record_failure()
            return False

        self._enter_unlocked(key)
        self.failed_attempts = 0
        self._lockout_until = None
        logger.info("Vault unlocked")
        audit.audit_event(audit.VAULT_UNLOCKED)
        return True

    def _check_backoff(self) -> None:
        remaining = self.retry_after()
        if remaining > 0:
            audit.audit_event(audit.VAULT_LOCKED_OUT, level=logging.WARNING,
                              retry_after=f"{remaining:.1f}s")
            raise LockedOut(remaining)

    def _record_failure(self) -> None:
        self.failed_attempts += 1
        delay = 0
        if self.failed_attempts >= self._backoff_after:
            delay = min(2 ** (self.failed_attempts - 1), self._backoff_max)
            self._lockout_until = self._clock() + delay
        logger.warning("Passphrase check failed (attempt %d)", self.failed_attempts)
        audit.audit_event(audit.VAULT_UNLOCK_FAILED, level=logging.WARNING,
                          attempt=self.failed_attempts, backoff=f"{delay}s")

    def lock(self) -> None:
        """Wipe the key and return to LOCKED. Safe to call repeatedly."""
        was_unlocked = self._state is SessionState.UNLOCKED
        self._wipe_key()
        self._state = SessionState.LOCKED
        if was_unlocked:
            logger.info("Vault locked")
            audit.audit_event(audit.VAULT_LOCKED)

    def change_passphrase(self, current: str, new: str, confirm: Optional[str] = None,
                          allow_weak: bool = False) -> None:
        """
        Replace the master passphrase and re-encrypt every record.

        The header is swapped only after all records have been re-sealed
        under the new key.

        Raises:
            NotAuthenticated: If locked or current is not the master passphrase
            LockedOut: While a backoff window from earlier failures is open
            ValueError: If confirm is given and does not match
            WeakSecret: If the new passphrase fails the policy and allow_weak is not set
        """
        store = self.store
        vault = self._vault
        if confirm is not None and confirm != new:
            raise ValueError("Passphrases don't match")
        self._check_backoff()
        if not self.authenticator.verify(current, vault.verifier, vault.salt, vault.kdf_params):
            self._record_failure()
            raise NotAuthenticated("Current passphrase is incorrect")
        self.failed_attempts = 0
        self._lockout_until = None
        self._check_master_strength(new, allow_weak)

        verifier, salt, new_key = self.authenticator.enroll(new)
        try:
            store.reseal(new_key)
        except Exception:
            self.crypto.clear_bytes(new_key)
            raise

        vault.salt = salt
        vault.verifier = verifier
        vault.kdf_params = self.crypto.kdf_params
        old_key = self._key
        self._key = new_key
        self.crypto.clear_bytes(old_key)
        logger.info("Master passphrase changed")
        audit.audit_event(audit.PASSPHRASE_CHANGED)
