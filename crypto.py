# PBKDF2 password hashing for the in-memory signup_user / signin_user procedures.
import base64
import os

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

PBKDF2_ITERATIONS = 120_000
SALT_LENGTH = 16
KEY_LENGTH = 32


def generate_salt() -> bytes:
    return os.urandom(SALT_LENGTH)


def _kdf(salt: bytes) -> PBKDF2HMAC:
    return PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
        backend=default_backend(),
    )


def hash_password(password: str, salt: bytes | None = None) -> str:
    """Return "salt$digest", both base64."""
    salt = salt or generate_salt()
    digest = _kdf(salt).derive(password.encode("utf-8"))
    return f"{_b64(salt)}${_b64(digest)}"


def verify_password(password: str, stored: str) -> bool:
    try:
        salt_b64, digest_b64 = stored.split("$", 1)
        _kdf(base64.b64decode(salt_b64)).verify(password.encode("utf-8"), base64.b64decode(digest_b64))
    except (ValueError, InvalidKey):
        return False
    return True


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")
