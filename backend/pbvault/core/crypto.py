import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from pbvault.core.errors import AuthFailure, IntegrityFailure, ValidationFailure
from pbvault.core.security import hash_password, verify_password

logger = logging.getLogger(__name__)

ENVELOPE_VERSION = b"\x01"
SALT_SIZE = 16
NONCE_SIZE = 12
TAG_SIZE = 16
HEADER_SIZE = len(ENVELOPE_VERSION) + SALT_SIZE + NONCE_SIZE


# ---------- KEY DERIVATION ----------

def derive_paste_key(secret: bytes, salt: bytes) -> bytes:
    """
    HKDF-SHA256(process secret, per-paste salt) → 32-byte AES-256 key
    """
    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        info=b"pb-vault-paste-v1",
    ).derive(secret)


class CryptoEngine:
    """
    Encrypts pastes at rest with a key derived from process-level secret
    material. The access passphrase only produces a verifier, which is
    bound to the ciphertext as associated data.
    """

    def __init__(self, secret: bytes = None):
        if not secret:
            logger.warning("No encryption secret configured, generating an ephemeral one")
            secret = os.urandom(32)
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        self._secret = secret

    # ---------- ENCRYPTION ----------

    def encrypt(self, plaintext: bytes, passphrase=b"") -> tuple[bytes, str]:
        """
        Returns (envelope, verifier).
        envelope = version (1) + salt (16) + nonce (12) + ciphertext + tag (16)
        """
        if plaintext is None:
            raise ValidationFailure("nothing to encrypt")
        verifier = hash_password(passphrase)
        salt = os.urandom(SALT_SIZE)
        nonce = os.urandom(NONCE_SIZE)
        aesgcm = AESGCM(derive_paste_key(self._secret, salt))
        ciphertext = aesgcm.encrypt(nonce, bytes(plaintext), verifier.encode("utf-8"))
        return ENVELOPE_VERSION + salt + nonce + ciphertext, verifier

    def decrypt(self, envelope: bytes, passphrase, verifier: str) -> bytes:
        if not verify_password(passphrase, verifier):
            raise AuthFailure("passphrase rejected")
        if (
            not envelope
            or len(envelope) < HEADER_SIZE + TAG_SIZE
            or envelope[:1] != ENVELOPE_VERSION
        ):
            raise IntegrityFailure("malformed ciphertext")
        salt = envelope[1:1 + SALT_SIZE]
        nonce = envelope[1 + SALT_SIZE:HEADER_SIZE]
        aesgcm = AESGCM(derive_paste_key(self._secret, salt))
        try:
            return aesgcm.decrypt(nonce, bytes(envelope[HEADER_SIZE:]), (verifier or "").encode("utf-8"))
        except InvalidTag as exc:
            raise IntegrityFailure("ciphertext failed authentication") from exc
