# pbvault/core/record.py

import hashlib
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

# Generic binary subtype, as tagged on every stored payload
BINARY_SUBTYPE_GENERIC = 0


def payload_digest(data: bytes) -> str:
    return hashlib.blake2b(data or b"").hexdigest()


@dataclass(eq=False)
class PasteRecord:
    """Single persisted paste, detached from any database session."""

    short_id: str = ""
    data: bytes = b""
    data_subtype: int = BINARY_SUBTYPE_GENERIC
    password: str = ""
    pwd_is_set: bool = False
    user_ip: str = ""
    expire_at: Optional[datetime] = None
    wait_verify: bool = False
    read_then_burn: bool = False

    def __eq__(self, other):
        # Payloads are compared by digest, length and subtype rather than byte by byte
        if not isinstance(other, PasteRecord):
            return NotImplemented
        if self.data_subtype != other.data_subtype or len(self.data) != len(other.data):
            return False
        return (
            payload_digest(self.data) == payload_digest(other.data)
            and self.wait_verify == other.wait_verify
            and self.read_then_burn == other.read_then_burn
            and self.pwd_is_set == other.pwd_is_set
            and self.short_id == other.short_id
            and self.expire_at == other.expire_at
            and self.password == other.password
        )

    __hash__ = None

    def is_empty(self) -> bool:
        return self == EMPTY_RECORD

    def is_expired(self, now: datetime) -> bool:
        return self.expire_at is None or self.expire_at <= now


EMPTY_RECORD = PasteRecord()
