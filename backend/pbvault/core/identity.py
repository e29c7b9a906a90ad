# pbvault/core/identity.py

import secrets
import string

# URL-safe alphabet, 64 symbols → 6 bits per character
ALPHABET = string.ascii_letters + string.digits + "_-"
SHORT_ID_LENGTH = 10


def new_short_id(length: int = SHORT_ID_LENGTH) -> str:
    """Random fixed-length public identifier. Uniqueness is enforced by the store."""
    return "".join(secrets.choice(ALPHABET) for _ in range(length))
