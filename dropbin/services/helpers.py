from __future__ import annotations
import bcrypt
import hashlib
import secrets
import string

from werkzeug.utils import secure_filename


SLUG_ALPHABET = string.ascii_letters + string.digits
SLUG_LENGTH = 10


def _prehash(password: str) -> bytes:
    # 64-character hex string -> encode to bytes for bcrypt
    return hashlib.sha256(password.encode("utf-8")).hexdigest().encode("utf-8")


def hash_password(raw_password: str) -> str:
    hashed = bcrypt.hashpw(_prehash(raw_password), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(
            _prehash(plain),
            hashed.encode("utf-8")
        )
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False


def generate_slug() -> str:
    """Return a random public slug (~59 bits)."""
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(SLUG_LENGTH))


def build_storage_path(slug: str, filename: str) -> str:
    safe_name = secure_filename(filename) or "file"
    return f"uploads/{slug}-{safe_name}"
