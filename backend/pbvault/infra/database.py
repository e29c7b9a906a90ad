import logging
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import create_engine, delete, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from pbvault.core.errors import (
    ConnectionFailure,
    DuplicateShortId,
    NotFound,
    PasteError,
    RecordNotMatched,
    ValidationFailure,
)
from pbvault.core.record import PasteRecord
from pbvault.models.base import Base
from pbvault.models.paste import Paste, row_to_record

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = {"wait_verify", "expire_at", "read_then_burn", "password", "pwd_is_set"}

# =========================
# ENGINE CONFIGURATION
# =========================


def engine_options(database_url: str, pool_min: int, pool_max: int,
                   connect_timeout: int, op_timeout: int) -> dict:
    """
    Pool bounds and driver deadlines for create_engine().
    """
    url = make_url(database_url)
    backend = url.get_backend_name()
    options = {
        "pool_pre_ping": True,  # Check connections before using them
        "pool_recycle": 3600,   # Recycle connections every hour
        "echo": False,
    }

    if backend == "postgresql":
        options["connect_args"] = {
            "connect_timeout": connect_timeout,
            "options": f"-c statement_timeout={op_timeout * 1000}",
        }
    elif backend == "sqlite":
        options["connect_args"] = {"timeout": op_timeout, "check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            # In-memory SQLite does not use a queue pool
            return options

    pool_size = max(pool_min, 1)
    options["pool_size"] = pool_size
    options["max_overflow"] = max(pool_max - pool_size, 0)
    options["pool_timeout"] = op_timeout
    return options


class PasteStore:
    """
    Persistence for paste records over one pooled SQLAlchemy engine.
    Built once per process; connect() must succeed before any operation.
    """

    def __init__(self, database_url: str, pool_min: int = 2, pool_max: int = 4,
                 connect_timeout: int = 10, op_timeout: int = 5):
        self.database_url = database_url
        self.pool_min = pool_min
        self.pool_max = pool_max
        self.connect_timeout = connect_timeout
        self.op_timeout = op_timeout
        self.engine = None
        self.SessionLocal = None

    @classmethod
    def from_settings(cls, settings) -> "PasteStore":
        return cls(
            settings.database_url,
            pool_min=settings.pool_min,
            pool_max=settings.pool_max,
            connect_timeout=settings.connect_timeout,
            op_timeout=settings.op_timeout,
        )

    # =========================
    # LIFECYCLE
    # =========================

    def connect(self) -> "PasteStore":
        """Create the pool, probe it and make sure the table exists."""
        engine = create_engine(
            self.database_url,
            **engine_options(self.database_url, self.pool_min, self.pool_max,
                             self.connect_timeout, self.op_timeout),
        )
        logger.info("Database connection pool created, testing...")
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            Base.metadata.create_all(bind=engine)
        except SQLAlchemyError as exc:
            engine.dispose()
            logger.error("Database connection is not responding: %s", exc)
            raise ConnectionFailure("cannot connect to database") from exc

        self.engine = engine
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        logger.info("Database successfully connected")
        return self

    def close(self):
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database connection pool disposed")
        self.engine = None
        self.SessionLocal = None

    def ping(self) -> bool:
        if self.engine is None:
            return False
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.warning("Database ping failed: %s", exc)
            return False

    @property
    def supports_take(self) -> bool:
        """True when the backend can delete and return a row in one statement."""
        return self.engine is not None and bool(getattr(self.engine.dialect, "delete_returning", False))

    @contextmanager
    def session(self):
        """
        Session scope for one store operation.
        Database errors surface as ConnectionFailure.
        """
        if self.SessionLocal is None:
            raise ConnectionFailure("default connection to store is not set up")
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except PasteError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            raise ConnectionFailure(str(exc)) from exc
        finally:
            session.close()

    def _retry_once(self, operation):
        # Transport-level retry: only when the driver dropped the connection
        try:
            return operation()
        except ConnectionFailure as exc:
            cause = exc.__cause__
            if isinstance(cause, DBAPIError) and cause.connection_invalidated:
                logger.warning("Connection invalidated, retrying once")
                return operation()
            raise

    # =========================
    # CRUD
    # =========================

    def create(self, record: PasteRecord):
        if record is None or not isinstance(record, PasteRecord) or record.is_empty():
            raise ValidationFailure("insert queue empty")
        if not record.short_id or not record.data or record.expire_at is None:
            raise ValidationFailure("record is missing short id, payload or expiry")

        with self.session() as session:
            session.add(Paste.from_record(record))
            try:
                session.flush()
            except IntegrityError as exc:
                raise DuplicateShortId(f"short id {record.short_id} already in use") from exc
        logger.info("Inserted paste %s", record.short_id)

    def read(self, short_id: str) -> PasteRecord:
        def _read():
            with self.session() as session:
                row = session.query(Paste).filter(Paste.short_id == short_id).first()
                return row.to_record() if row is not None else None

        record = self._retry_once(_read)
        if record is None or record.is_empty():
            raise NotFound(short_id)
        return record

    def update(self, short_id: str, changes: dict, pending_only: bool = False,
               now: datetime = None) -> int:
        """
        Partial update of one record. Returns the matched count;
        matching nothing raises RecordNotMatched.

        pending_only restricts the match to records still on hold whose
        hold window has not elapsed at `now`.
        """
        unknown = set(changes) - MUTABLE_FIELDS
        if not changes or unknown:
            raise ValidationFailure(f"unsupported update fields: {sorted(unknown)}")
        now = now or datetime.now(timezone.utc)

        def _update():
            with self.session() as session:
                query = session.query(Paste).filter(Paste.short_id == short_id)
                if pending_only:
                    query = query.filter(Paste.wait_verify.is_(True), Paste.expire_at > now)
                return query.update(changes, synchronize_session=False)

        matched = self._retry_once(_update)
        logger.info("Matched %d docs and updated %d docs", matched, matched)
        if matched == 0:
            raise RecordNotMatched(f"no record matched {short_id}")
        return matched

    def delete(self, short_id: str) -> int:
        """Remove at most one record. A missing record is not an error."""
        def _delete():
            with self.session() as session:
                return (
                    session.query(Paste)
                    .filter(Paste.short_id == short_id)
                    .delete(synchronize_session=False)
                )

        deleted = self._retry_once(_delete)
        logger.info("Deleted %d documents", deleted)
        return deleted

    def take(self, short_id: str) -> PasteRecord:
        """
        Atomically delete a disclosable record and return it.
        Only one caller can ever take a given record.

        The row is gone once this returns, so callers should decrypt what
        they read before taking; a record that fails decryption after the
        take cannot be recovered.
        """
        if not self.supports_take:
            raise ConnectionFailure("backend has no atomic delete-returning")

        def _take():
            stmt = (
                delete(Paste)
                .where(Paste.short_id == short_id, Paste.wait_verify.is_(False))
                .returning(*Paste.__table__.c)
                .execution_options(synchronize_session=False)
            )
            with self.session() as session:
                row = session.execute(stmt).first()
                return row_to_record(row) if row is not None else None

        record = self._retry_once(_take)
        if record is None:
            raise NotFound(short_id)
        logger.info("Burned paste %s", short_id)
        return record

    def purge_expired(self, now: datetime = None) -> int:
        now = now or datetime.now(timezone.utc)
        with self.session() as session:
            purged = (
                session.query(Paste)
                .filter(Paste.expire_at <= now)
                .delete(synchronize_session=False)
            )
        if purged:
            logger.info("Purged %d expired pastes", purged)
        return purged
