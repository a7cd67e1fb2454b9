"""
credvault Credential Vault
Copyright (c) 2025

LEGAL NOTICE AND THREAT MODEL:
This tool is for personal use only. It must operate only on the device where
it is installed and only with the explicit consent of the device owner. It must
never be used to store or recover credentials for accounts you are not
authorized to use. Anyone who can read the vault file and guess the master
passphrase can read every record.

credvault: a single-user credential store.

Records are sealed with AES-256-GCM under a key derived from the master
passphrase with Argon2id. The passphrase itself is never stored; only a
salted verifier is kept alongside the sealed records.

Security Note:
    Decrypted usernames and secrets returned by VaultStore.get() are Python
    strings and cannot be zeroed. Keys and sealed buffers are wiped on lock
    and delete.
"""

from .config import APP_VERSION as __version__
from .auth import Authenticator
from .crypto import CryptoManager, KdfParams, derive_key
from .errors import (
    VaultError,
    NotAuthenticated,
    DuplicateService,
    NotFound,
    IntegrityError,
    DerivationError,
    WeakSecret,
    LockedOut,
    VaultFormatError,
)
from .session import SessionController, SessionState
from .storage import VaultFile
from .strength import validate_strength, describe_strength, generate_password
from .vault import CredentialRecord, SealedRecord, Vault, VaultStore

__all__ = [
    "Authenticator",
    "CryptoManager",
    "KdfParams",
    "derive_key",
    "VaultError",
    "NotAuthenticated",
    "DuplicateService",
    "NotFound",
    "IntegrityError",
    "DerivationError",
    "WeakSecret",
    "LockedOut",
    "VaultFormatError",
    "SessionController",
    "SessionState",
    "VaultFile",
    "validate_strength",
    "describe_strength",
    "generate_password",
    "CredentialRecord",
    "SealedRecord",
    "Vault",
    "VaultStore",
]
