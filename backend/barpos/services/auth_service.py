# Overview: PIN hashing and manager-PIN verification.

"""
PIN Verification Service

WHY: Privileged voids (waste, manager_void) need a manager or admin to
authorize at the terminal. Verification is a pure function over the user
list: the raw PIN is hashed locally and never compared in clear text.

HASH SCHEMES:
- sha256: unsalted SHA-256 hex digest. This is what existing terminals
  store. 4-digit PINs have only 10,000 values, so an unsalted digest is
  trivially reversible by anyone who can read the users table.
- bcrypt: salted, cost factor 12. Select with PIN_HASH_SCHEME=bcrypt.
  Verification accepts both so stores can migrate user by user.

Whether sha256 is acceptable for a single trusted LAN terminal is a
product decision; the default stays sha256 to keep existing PINs valid.
"""

import hashlib
import hmac
import logging

import bcrypt

from ..models.auth import AUTHORIZING_ROLES
from ..validation import ValidationError, validate_pin_format

logger = logging.getLogger(__name__)

SCHEME_SHA256 = "sha256"
SCHEME_BCRYPT = "bcrypt"
VALID_SCHEMES = (SCHEME_SHA256, SCHEME_BCRYPT)


def _sha256_hex(pin: str) -> str:
    return hashlib.sha256(pin.encode("utf-8")).hexdigest()


def _is_bcrypt_hash(pin_hash: str) -> bool:
    return pin_hash.startswith(("$2a$", "$2b$", "$2y$"))


def hash_pin(pin: str, scheme: str = SCHEME_SHA256) -> str:
    """Hash a 4-digit PIN for storage."""
    validate_pin_format(pin)
    if scheme == SCHEME_SHA256:
        return _sha256_hex(pin)
    if scheme == SCHEME_BCRYPT:
        salt = bcrypt.gensalt(rounds=12)
        return bcrypt.hashpw(pin.encode("utf-8"), salt).decode("utf-8")
    raise ValidationError(f"Unknown PIN hash scheme: {scheme}. Must be one of {list(VALID_SCHEMES)}")


def verify_pin(pin: str, pin_hash: str) -> bool:
    """
    Compare a PIN to one stored hash.

    Timing-safe for both schemes: hmac.compare_digest for sha256,
    bcrypt.checkpw for bcrypt.
    """
    if not pin_hash:
        return False
    if _is_bcrypt_hash(pin_hash):
        try:
            return bcrypt.checkpw(pin.encode("utf-8"), pin_hash.encode("utf-8"))
        except ValueError:
            return False
    return hmac.compare_digest(_sha256_hex(pin), pin_hash.lower())


def find_authorizer(pin: str, users):
    """
    Return the first admin/manager whose PIN matches, else None.

    Raises ValidationError for a malformed PIN (wrong length, non-digits).
    """
    validate_pin_format(pin)
    for user in users:
        if user.role not in AUTHORIZING_ROLES:
            continue
        if verify_pin(pin, user.pin_hash):
            return user
    return None


def validate_pin(pin: str, users) -> bool:
    authorizer = find_authorizer(pin, users)
    if authorizer is None:
        logger.warning("Manager PIN rejected")
        return False
    return True
