"""
Configuration constants for the credvault credential store.
"""

import os

# Application Metadata
APP_VERSION = "0.2.0"  # Use: Current version of the application. Type: str. Range: Semantic versioning string (e.g., "1.0.0")
APP_NAME = "credvault"  # Use: Short name of the application, used for the console banner and logger names. Type: str. Range: Any valid string.
APP_TITLE = f"Credential Vault v{APP_VERSION}"  # Use: Title printed in the console banner. Type: str (f-string). Range: Derived from APP_VERSION.

# Security Settings
SALT_SIZE = 16  # Use: Size of the per-vault key derivation salt in bytes. Type: int. Range: Exactly this many bytes are accepted by derive_key; at least 16 (128 bits) is recommended.
KEY_SIZE = 32  # Use: Size of derived keys in bytes. Corresponds to AES-256. Type: int. Range: 32 bytes.
NONCE_SIZE = 12  # Use: Size of the Nonce (Number used once) in bytes for AES-GCM. Type: int. Range: 12 bytes (96 bits) is the recommended size for GCM.
TAG_SIZE = 16  # Use: Size of the authentication tag in bytes for AES-GCM. Type: int. Range: 16 bytes (128 bits) is the recommended size for GCM.
ARGON2_TIME_COST = 3  # Use: Argon2id time cost parameter. Controls the number of iterations. Type: int. Range: 1 or more. Higher values increase security but also unlock time.
ARGON2_MEMORY_COST = 65536  # Use: Argon2id memory cost parameter in KiB. Type: int. Range: At least 8 * ARGON2_PARALLELISM; 65536 (64 MB) or more is recommended.
ARGON2_PARALLELISM = 4  # Use: Argon2id parallelism parameter (lanes). Type: int. Range: 1 or more, often the number of CPU cores.
VERIFIER_CONTEXT = "credvault-verifier"  # Use: HKDF info string for the master passphrase verifier. Type: str. Range: Must differ from RECORD_KEY_CONTEXT.
RECORD_KEY_CONTEXT = "credvault-records"  # Use: HKDF info string for the record encryption key. Type: str. Range: Must differ from VERIFIER_CONTEXT.

# Authentication Policy
MAX_LOGIN_ATTEMPTS = 5  # Use: Number of unlock attempts the console allows before giving up. Type: int. Range: Positive integer (e.g., 3-10).
MAX_SETUP_ATTEMPTS = 3  # Use: Number of times the console re-prompts a mismatched master passphrase confirmation. Type: int. Range: Positive integer.
BACKOFF_AFTER_FAILURES = 2  # Use: Consecutive failed unlocks after which a backoff delay is enforced. Type: int. Range: Positive integer.
BACKOFF_MAX_SECONDS = 16  # Use: Upper bound of the exponential backoff delay in seconds. Type: int. Range: Positive integer.

# Secret Strength Policy
SECRET_MIN_LENGTH = 8  # Use: Minimum length for a stored secret to pass the strength policy. Type: int. Range: Positive integer.
MASTER_PASSPHRASE_MIN_LENGTH = 8  # Use: Minimum length for the master passphrase. Type: int. Range: Positive integer; higher is better.

# Password Generator Settings
PASSWORD_GENERATOR_DEFAULT_LENGTH = 16  # Use: Default length for generated passwords. Type: int. Range: PASSWORD_GENERATOR_MIN_LENGTH to PASSWORD_GENERATOR_MAX_LENGTH.
PASSWORD_GENERATOR_MIN_LENGTH = 8  # Use: Minimum allowed length for generated passwords. Type: int. Range: Positive integer.
PASSWORD_GENERATOR_MAX_LENGTH = 128  # Use: Maximum allowed length for generated passwords. Type: int. Range: Positive integer.
PASSWORD_GENERATOR_AMBIGUOUS_CHARS = "0O1lI"  # Use: Characters considered ambiguous and can be excluded from generated passwords. Type: str. Range: Any string of characters.

# Vault Limits
SERVICE_NAME_MAX_LENGTH = 255  # Use: Maximum length of a service name. Type: int. Range: Positive integer.

# Console State Machine States
STATE_STARTUP = "STARTUP"  # Use: Console state before the vault is created or unlocked. Type: str. Range: Any string.
STATE_LOGIN = "LOGIN"  # Use: Console state while prompting for the master passphrase. Type: str. Range: Any string.
STATE_MENU = "MENU"  # Use: Console state while the main menu is shown. Type: str. Range: Any string.
STATE_EXIT = "EXIT"  # Use: Console terminal state. Type: str. Range: Any string.

# File and Directory Names
AUDIT_LOG_FILE = "audit.log"  # Use: Filename for the security audit log. Type: str. Range: Any valid filename.
CONFIG_DIR_NAME = ".credvault"  # Use: Name of the hidden directory within the user's home directory where credvault stores its files. Type: str. Range: Any valid directory name.
DEFAULT_VAULT_FILE = "vault.cvf"  # Use: Default filename for the encrypted vault. Type: str. Range: Any valid filename.


def default_data_dir() -> str:
    """Return the directory holding the default vault and audit log."""
    return os.path.join(os.path.expanduser("~"), CONFIG_DIR_NAME)
