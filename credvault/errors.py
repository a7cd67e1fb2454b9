"""
Error taxonomy for the credential vault.

Every condition is recoverable by the caller. IntegrityError is the one
that must also be surfaced to the user as a security event.
"""

import math
from typing import List, Optional


class VaultError(Exception):
    """Base class for all credential vault errors."""


class NotAuthenticated(VaultError):
    """A vault operation was attempted while the session is locked."""

    def __init__(self, message: str = "Vault is locked"):
        super().__init__(message)


class DuplicateService(VaultError):
    """A record for the service already exists."""

    def __init__(self, service: str):
        self.service = service
        super().__init__(f"A credential for '{service}' already exists")


class NotFound(VaultError):
    """No record is stored for the service."""

    def __init__(self, service: str):
        self.service = service
        super().__init__(f"No credential found for '{service}'")


class IntegrityError(VaultError):
    """Stored ciphertext failed authentication (tampering or corruption)."""

    def __init__(self, service: str, reason: str = "authentication failed"):
        self.service = service
        self.reason = reason
        super().__init__(f"Integrity check failed for '{service}': {reason}")


class DerivationError(VaultError):
    """Key derivation was called with invalid parameters."""


class WeakSecret(VaultError):
    """A secret does not satisfy the strength policy.

    Advisory: the caller may retry the same operation with an explicit
    override once the user has agreed to store the weak secret.
    """

    def __init__(self, missing: List[str], service: Optional[str] = None):
        self.missing = list(missing)
        self.service = service
        super().__init__("Weak password. Needs: " + ", ".join(self.missing))


class LockedOut(VaultError):
    """Unlock attempts are temporarily refused after repeated failures."""

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(
            f"Too many failed attempts. Please wait {math.ceil(retry_after)} seconds."
        )


class VaultFormatError(VaultError):
    """A vault file is not in a format this version can read."""
