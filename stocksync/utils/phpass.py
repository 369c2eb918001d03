# stocksync/utils/phpass.py
"""
Verification of legacy WordPress (PHPass portable) password hashes.

Layout: "$P$" or "$H$", one character giving log2 of the MD5 round count as
an index into ITOA64 (7..30), an 8 character salt, then the 16 byte digest
encoded in 22 ITOA64 characters. Only verification is needed: accounts are
moved to the new auth provider once the legacy password checks out.
"""
from passlib.hash import phpass

from .logger import debug

ITOA64 = "./0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
PREFIXES = ("$P$", "$H$")
HASH_LENGTH = 34
MIN_ROUNDS, MAX_ROUNDS = 7, 30


def rounds_of(stored_hash: str) -> int:
    """log2 of the iteration count encoded at index 3, or -1 if unusable."""
    if not stored_hash or len(stored_hash) < 4:
        return -1
    return ITOA64.find(stored_hash[3])


def is_legacy_hash(stored_hash: str) -> bool:
    if not isinstance(stored_hash, str) or len(stored_hash) != HASH_LENGTH:
        return False
    if not stored_hash.startswith(PREFIXES):
        return False
    if not MIN_ROUNDS <= rounds_of(stored_hash) <= MAX_ROUNDS:
        return False
    return all(c in ITOA64 for c in stored_hash[4:])


def check_password(password: str, stored_hash: str) -> bool:
    if password is None or not is_legacy_hash(stored_hash):
        debug("[phpass] not a portable WordPress hash")
        return False
    try:
        return phpass.verify(password, stored_hash)
    except ValueError as e:
        debug(f"[phpass] rejected hash: {e}")
        return False


def hash_password(password: str, rounds: int = 8) -> str:
    """Portable hash in the legacy format; used to seed fixtures."""
    return phpass.using(rounds=rounds).hash(password)
