# pbvault/services/paste_service.py

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pbvault.core.abuse import content_is_valid
from pbvault.core.crypto import CryptoEngine
from pbvault.core.errors import (
    AuthFailure,
    ConnectionFailure,
    DuplicateShortId,
    NotAvailable,
    NotFound,
    PasteError,
    ValidationFailure,
)
from pbvault.core.identity import new_short_id
from pbvault.core.policy import LifecyclePolicy
from pbvault.core.record import PasteRecord
from pbvault.core.security import verify_master_key
from pbvault.utils.netaddr import encode_ip

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 3


class ContentKind(str, Enum):
    RAW = "raw"
    RENDERED = "rendered"


@dataclass(frozen=True)
class IngestResult:
    short_id: str
    location: str
    redirect: bool


@dataclass(frozen=True)
class Disclosure:
    content: object
    kind: ContentKind


def encode_verify_id(short_id: str) -> str:
    return base64.urlsafe_b64encode(short_id.encode("utf-8")).decode("ascii").rstrip("=")


def decode_verify_id(encoded: str) -> str:
    """Raw URL-safe base64 → short id."""
    if not encoded:
        raise ValidationFailure("missing paste id")
    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        short_id = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise ValidationFailure("malformed paste id") from exc
    if not short_id:
        raise ValidationFailure("missing paste id")
    return short_id


def parse_expire_hours(raw):
    """Form value → requested hours; blank means not requested."""
    if raw is None:
        return None
    raw = str(raw).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationFailure(f"expire hours must be an integer, got {raw!r}") from None


def render_content(short_id: str, plaintext: bytes, expire_at: datetime) -> dict:
    """Structured form handed to the page renderer."""
    try:
        content, encoding = plaintext.decode("utf-8"), "utf-8"
    except UnicodeDecodeError:
        content, encoding = base64.b64encode(plaintext).decode("ascii"), "base64"
    return {
        "shortId": short_id,
        "content": content,
        "encoding": encoding,
        "expireAt": expire_at.isoformat() if expire_at else None,
    }


class PasteService:
    """
    Lifecycle of a paste: ingestion, disclosure, verification and
    administrative deletion. Holds no per-request state.
    """

    def __init__(self, store, settings, crypto: CryptoEngine = None,
                 policy: LifecyclePolicy = None, id_factory=new_short_id, clock=None):
        self.store = store
        self.settings = settings
        self.crypto = crypto or CryptoEngine(settings.encryption_secret)
        self.policy = policy or LifecyclePolicy(
            max_expire_hours=settings.expire_hours,
            default_expire_hours=settings.default_expire_hours,
            verify_window=settings.verify_window,
        )
        self.id_factory = id_factory
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # =========================
    # INGESTION
    # =========================

    def ingest(self, data: bytes, password=b"", requested_expire_hours=None,
               client_ip: str = "") -> IngestResult:
        try:
            user_ip = encode_ip(client_ip)
        except ValueError as exc:
            raise ConnectionFailure("client address unavailable") from exc

        if not data:
            raise ValidationFailure("empty paste")
        if len(data) > self.settings.max_paste_bytes:
            raise ValidationFailure("paste too large")

        decision = self.policy.decide(
            requested_expire_hours,
            passphrase_present=bool(password),
            captcha_required=self.settings.recaptcha_enable,
            now=self.clock(),
        )

        if self.settings.detect_abuse and not content_is_valid(data, self.settings.blocked_patterns):
            raise AuthFailure("content rejected")

        ciphertext, verifier = self.crypto.encrypt(data, password or b"")
        record = PasteRecord(
            data=ciphertext,
            password=verifier,
            pwd_is_set=decision.pwd_is_set,
            user_ip=user_ip,
            expire_at=decision.expire_at,
            wait_verify=decision.wait_verify,
            read_then_burn=decision.read_then_burn,
        )

        for attempt in range(1, MAX_ID_ATTEMPTS + 1):
            record.short_id = self.id_factory()
            try:
                self.store.create(record)
                break
            except DuplicateShortId:
                logger.warning("Short id collision on attempt %d", attempt)
                if attempt == MAX_ID_ATTEMPTS:
                    raise

        if record.wait_verify:
            return IngestResult(
                short_id=record.short_id,
                location=f"/showVerify?id={encode_verify_id(record.short_id)}",
                redirect=True,
            )
        return IngestResult(
            short_id=record.short_id,
            location=f"https://{self.settings.host}/{record.short_id}",
            redirect=False,
        )

    # =========================
    # DISCLOSURE
    # =========================

    def disclose(self, short_id: str, passphrase=b"", raw: bool = False) -> Disclosure:
        try:
            record = self.store.read(short_id)
        except NotFound:
            raise NotAvailable(short_id) from None
        if record.wait_verify or record.is_expired(self.clock()):
            raise NotAvailable(short_id)

        supplied = (passphrase or b"") if record.pwd_is_set else b""
        # Checks the passphrase (AuthFailure) before burning; a rejected
        # or undecryptable record is left in place
        plaintext = self.crypto.decrypt(record.data, supplied, record.password)

        if record.read_then_burn:
            if self.store.supports_take:
                try:
                    self.store.take(short_id)
                except NotFound:
                    # Burned by a concurrent disclosure
                    raise NotAvailable(short_id) from None
            else:
                try:
                    self.store.delete(short_id)
                except PasteError as exc:
                    logger.error("Failed to burn paste %s: %s", short_id, exc)

        if raw:
            return Disclosure(content=plaintext, kind=ContentKind.RAW)
        return Disclosure(
            content=render_content(short_id, plaintext, record.expire_at),
            kind=ContentKind.RENDERED,
        )

    # =========================
    # VERIFICATION
    # =========================

    def confirm(self, short_id: str) -> int:
        """
        Lift the verification hold after a successful CAPTCHA. Expiry restarts
        from the default horizon, not the expiry requested at upload.
        """
        now = self.clock()
        return self.store.update(
            short_id,
            {"wait_verify": False, "expire_at": self.policy.default_expiry(now)},
            pending_only=True,
            now=now,
        )

    # =========================
    # ADMINISTRATION
    # =========================

    def admin_delete(self, master_key_hash: str, short_id: str) -> int:
        if not verify_master_key(master_key_hash, self.settings.master_key, self.clock()):
            raise AuthFailure("master key rejected")
        if not short_id:
            raise ValidationFailure("missing paste id")
        return self.store.delete(short_id)
