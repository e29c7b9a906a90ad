# pbvault/core/security.py

import base64
import hashlib
import hmac
from datetime import datetime, timezone

import bcrypt

# Stored verifier for records without a passphrase
UNSET_VERIFIER = ""

BCRYPT_ROUNDS = 12


def _bcrypt_input(passphrase: bytes) -> bytes:
    # bcrypt only reads 72 bytes; pre-hash so long passphrases stay distinct
    return base64.b64encode(hashlib.sha256(passphrase).digest())


def _as_bytes(passphrase) -> bytes:
    if isinstance(passphrase, str):
        return passphrase.encode("utf-8")
    return passphrase or b""


def hash_password(passphrase, rounds: int = None) -> str:
    """
    Salted bcrypt verifier for an access passphrase.
    An empty passphrase maps to UNSET_VERIFIER.
    """
    passphrase = _as_bytes(passphrase)
    if not passphrase:
        return UNSET_VERIFIER
    salt = bcrypt.gensalt(rounds=rounds or BCRYPT_ROUNDS)
    return bcrypt.hashpw(_bcrypt_input(passphrase), salt).decode("utf-8")


def verify_password(passphrase, verifier: str) -> bool:
    passphrase = _as_bytes(passphrase)
    if not verifier:
        return not passphrase
    if not passphrase:
        return False
    try:
        return bcrypt.checkpw(_bcrypt_input(passphrase), verifier.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def master_key_digest(master_key: str, now: datetime = None) -> str:
    """
    Hourly-rotating admin token: BLAKE2b(master_key + UTC "YYYYMMDDHH").
    """
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).strftime("%Y%m%d%H")
    return hashlib.blake2b(f"{master_key}{stamp}".encode("utf-8")).hexdigest()


def verify_master_key(supplied: str, master_key: str, now: datetime = None) -> bool:
    if not supplied or not master_key:
        return False
    expected = master_key_digest(master_key, now).encode("utf-8")
    return hmac.compare_digest(supplied.encode("utf-8"), expected)
