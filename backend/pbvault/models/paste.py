# pbvault/models/paste.py

from datetime import timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, LargeBinary, String

from pbvault.core.record import BINARY_SUBTYPE_GENERIC, PasteRecord
from pbvault.models.base import Base


class Paste(Base):
    __tablename__ = "pastes"

    id = Column(Integer, primary_key=True)

    # Public identifier, the only lookup key
    short_id = Column(String(32), unique=True, index=True, nullable=False)

    # AES-GCM envelope, never plaintext
    data = Column(LargeBinary, nullable=False)
    data_subtype = Column(Integer, nullable=False, default=BINARY_SUBTYPE_GENERIC)

    # BLAKE2b verifier, empty when no passphrase is set
    password = Column(String(128), nullable=False, default="")
    pwd_is_set = Column(Boolean, nullable=False, default=False)

    # Zero-padded decimal encoding of the submitter's address
    user_ip = Column(String(39), nullable=False, default="")

    expire_at = Column(DateTime(timezone=True), nullable=False, index=True)
    wait_verify = Column(Boolean, nullable=False, default=False)
    read_then_burn = Column(Boolean, nullable=False, default=False)

    @classmethod
    def from_record(cls, record: PasteRecord) -> "Paste":
        return cls(
            short_id=record.short_id,
            data=record.data,
            data_subtype=record.data_subtype,
            password=record.password,
            pwd_is_set=record.pwd_is_set,
            user_ip=record.user_ip,
            expire_at=record.expire_at,
            wait_verify=record.wait_verify,
            read_then_burn=record.read_then_burn,
        )

    def to_record(self) -> PasteRecord:
        return row_to_record(self)


def row_to_record(row) -> PasteRecord:
    """Build a detached PasteRecord from an ORM instance or a result row."""
    expire_at = row.expire_at
    if expire_at is not None and expire_at.tzinfo is None:
        # SQLite drops the offset; values are always written in UTC
        expire_at = expire_at.replace(tzinfo=timezone.utc)
    return PasteRecord(
        short_id=row.short_id or "",
        data=bytes(row.data or b""),
        data_subtype=row.data_subtype if row.data_subtype is not None else BINARY_SUBTYPE_GENERIC,
        password=row.password or "",
        pwd_is_set=bool(row.pwd_is_set),
        user_ip=row.user_ip or "",
        expire_at=expire_at,
        wait_verify=bool(row.wait_verify),
        read_then_burn=bool(row.read_then_burn),
    )
