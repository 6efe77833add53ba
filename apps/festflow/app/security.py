"""
PIN hashing for staff logins.

Hashes are stored as ``scrypt$N$r$p$<salt b64>$<key b64>`` so the cost
parameters travel with each hash and can be raised later without
invalidating existing PINs.
"""
import base64
import hashlib
import hmac
import os

KEYLEN = 32
SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def hash_pin(pin: str) -> str:
    salt = os.urandom(16)
    key = hashlib.scrypt(pin.encode("utf-8"), salt=salt, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P, dklen=KEYLEN)
    return f"scrypt${SCRYPT_N}${SCRYPT_R}${SCRYPT_P}${_b64(salt)}${_b64(key)}"


def verify_pin(pin: str, stored: str) -> bool:
    parts = (stored or "").split("$")
    if len(parts) != 6 or parts[0] != "scrypt":
        return False
    try:
        n, r, p = int(parts[1]), int(parts[2]), int(parts[3])
        salt = base64.b64decode(parts[4], validate=True)
        expected = base64.b64decode(parts[5], validate=True)
    except ValueError:
        return False
    if not expected:
        return False
    try:
        actual = hashlib.scrypt(pin.encode("utf-8"), salt=salt, n=n, r=r, p=p, dklen=len(expected))
    except ValueError:
        # n not a power of two, or parameters beyond OpenSSL's memory limit
        return False
    return hmac.compare_digest(actual, expected)
