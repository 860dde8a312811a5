"""
OTP Service

Handles OTP code generation, salting, hashing and comparison.
"""

import hashlib
import hmac
import re
import secrets
from typing import Optional


OTP_CODE_LENGTH = 6
OTP_CODE_PATTERN = re.compile(r"[0-9]{6}")


def generate_otp() -> str:
    """Generate a 6-digit OTP code (leading zeros allowed)."""
    return str(secrets.randbelow(10 ** OTP_CODE_LENGTH)).zfill(OTP_CODE_LENGTH)


def generate_salt() -> str:
    """Generate a random per-challenge salt (16 bytes, hex encoded)."""
    return secrets.token_hex(16)


def hash_otp(salt: str, code: str) -> str:
    """Hash an OTP code with its salt using SHA-256."""
    return hashlib.sha256(f"{salt}:{code}".encode()).hexdigest()


def verify_otp(salt: str, code: str, expected_hash: str) -> bool:
    """
    Check a submitted code against a stored hash in constant time.

    Args:
        salt: Salt stored with the challenge.
        code: Code submitted by the user.
        expected_hash: Hash stored with the challenge.

    Returns:
        bool: True if the code matches.
    """
    return hmac.compare_digest(hash_otp(salt, code), expected_hash)


def normalize_otp(code: str) -> Optional[str]:
    """Strip whitespace and return the code if it is exactly six digits."""
    normalized = code.strip()
    if not OTP_CODE_PATTERN.fullmatch(normalized):
        return None
    return normalized
