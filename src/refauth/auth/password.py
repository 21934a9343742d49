"""Password hashing utilities.

Learn: Stored hashes are ``hash(salt + " " + password)`` with a fresh
UUID salt per password set. The hash function is a plain callable so
deployments can swap in their own primitive; the default is SHA-256 hex.
Comparison uses secrets.compare_digest so timing doesn't leak how many
leading characters matched.
"""

import hashlib
import secrets
import uuid
from typing import Callable, Optional

Hasher = Callable[[str], str]


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def new_salt() -> str:
    return str(uuid.uuid4())


def hash_password(salt: str, password: str, hasher: Hasher = sha256_hex) -> str:
    return hasher(f"{salt} {password}")


def verify_password(
    password: str,
    salt: Optional[str],
    password_hash: Optional[str],
    hasher: Hasher = sha256_hex,
) -> bool:
    """Check a password against a stored salt + hash.

    Users created anonymously have neither, and never match.
    """
    if not salt or not password_hash:
        return False
    return secrets.compare_digest(hash_password(salt, password, hasher), password_hash)
