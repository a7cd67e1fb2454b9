"""
Security audit trail.

Audit events go to the ``credvault.audit`` logger. Only event names, service
names and outcomes are recorded; secrets and passphrases never are.
"""

import os
import logging
from typing import Optional

AUDIT_LOGGER_NAME = "credvault.audit"

VAULT_CREATED = "vault_created"
VAULT_UNLOCKED = "vault_unlocked"
VAULT_UNLOCK_FAILED = "vault_unlock_failed"
VAULT_LOCKED_OUT = "vault_locked_out"
VAULT_LOCKED = "vault_locked"
PASSPHRASE_CHANGED = "passphrase_changed"
RECORD_ADDED = "record_added"
RECORD_ACCESSED = "record_accessed"
RECORD_UPDATED = "record_updated"
RECORD_DELETED = "record_deleted"
INTEGRITY_FAILURE = "integrity_failure"

_audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)


def get_audit_logger() -> logging.Logger:
    return _audit_logger


def audit_event(event: str, service: Optional[str] = None,
                level: int = logging.INFO, **details) -> None:
    """Record a security event."""
    parts = [f"event={event}"]
    if service is not None:
        parts.append(f"service={service!r}")
    parts.extend(f"{key}={value}" for key, value in sorted(details.items()))
    _audit_logger.log(level, " ".join(parts))


def configure_audit_log(path: str) -> logging.Handler:
    """
    Attach a file handler for audit events.

    The directory is created if needed and the file is made owner-only on
    POSIX systems.
    """
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    _audit_logger.addHandler(handler)
    _audit_logger.setLevel(logging.INFO)
    if os.name == "posix":
        os.chmod(path, 0o600)
    return handler
