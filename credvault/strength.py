"""
Secret strength policy and password generation.
"""

import secrets
import string
from typing import List, Tuple

from . import config

REQUIREMENT_LENGTH = f"at least {config.SECRET_MIN_LENGTH} characters"
REQUIREMENT_UPPERCASE = "an uppercase letter"
REQUIREMENT_LOWERCASE = "a lowercase letter"
REQUIREMENT_DIGIT = "a number"
REQUIREMENT_SYMBOL = "a special character"


def validate_strength(secret: str, min_length: int = config.SECRET_MIN_LENGTH) -> Tuple[bool, List[str]]:
    """
    Check a secret against the strength policy.

    Returns:
        Tuple of (passes, missing requirements in a fixed order)
    """
    missing = []
    if len(secret) < min_length:
        missing.append(f"at least {min_length} characters")
    if not any(c.isupper() for c in secret):
        missing.append(REQUIREMENT_UPPERCASE)
    if not any(c.islower() for c in secret):
        missing.append(REQUIREMENT_LOWERCASE)
    if not any(c.isdigit() for c in secret):
        missing.append(REQUIREMENT_DIGIT)
    if not any(not c.isalnum() for c in secret):
        missing.append(REQUIREMENT_SYMBOL)
    return not missing, missing


def describe_strength(secret: str) -> str:
    passes, missing = validate_strength(secret)
    if passes:
        return "Strong password!"
    return "Weak password. Needs: " + ", ".join(missing)


def generate_password(length: int = config.PASSWORD_GENERATOR_DEFAULT_LENGTH,
                      uppercase: bool = True,
                      lowercase: bool = True,
                      digits: bool = True,
                      symbols: bool = True,
                      exclude_ambiguous: bool = False) -> str:
    """
    Generate a random password from the selected character classes.

    At least one character of every selected class is included.

    Raises:
        ValueError: If no class is selected or length is out of range
    """
    if not config.PASSWORD_GENERATOR_MIN_LENGTH <= length <= config.PASSWORD_GENERATOR_MAX_LENGTH:
        raise ValueError(
            f"Password length must be between {config.PASSWORD_GENERATOR_MIN_LENGTH} "
            f"and {config.PASSWORD_GENERATOR_MAX_LENGTH}"
        )

    classes = []
    if uppercase:
        classes.append(string.ascii_uppercase)
    if lowercase:
        classes.append(string.ascii_lowercase)
    if digits:
        classes.append(string.digits)
    if symbols:
        classes.append(string.punctuation)
    if not classes:
        raise ValueError("Select at least one character type")

    if exclude_ambiguous:
        ambiguous = config.PASSWORD_GENERATOR_AMBIGUOUS_CHARS
        classes = [''.join(c for c in chars if c not in ambiguous) for chars in classes]

    chars = ''.join(classes)
    password = [secrets.choice(group) for group in classes]
    password += [secrets.choice(chars) for _ in range(length - len(password))]
    # Shuffle so the guaranteed characters are not always first
    secrets.SystemRandom().shuffle(password)
    return ''.join(password)
