"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore and RefreshTokenStore are the repositories; _row_to_user /
_row_to_record are the mappers. Route, strategy and coordinator code never
touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  refresh_tokens holds SHA-256 hashes only. The raw token is never written.

  Records are never deleted. revoked flips False -> True exactly once; that
  is what lets a re-presented rotated token be recognised and refused.

Atomic rotation:
  rotate() runs one transaction: a compare-and-swap UPDATE on the old record
  (WHERE token_hash = :old AND revoked = false) followed by the INSERT of the
  successor. If the UPDATE matches no row another request already rotated or
  revoked the token, and the transaction is rolled back. If the INSERT fails
  the UPDATE is rolled back with it, so a cancelled or failed refresh never
  leaves a user with the old token revoked and no new one stored.

  On SQLite every transaction is opened with BEGIN IMMEDIATE so a second
  writer waits on the busy timeout instead of racing on a stale WAL snapshot.
  On server databases the row lock taken by the UPDATE gives the same
  guarantee: the loser re-evaluates the WHERE clause and matches zero rows.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import Pool
from sqlalchemy.exc import IntegrityError

from auth.errors import (
    Conflict,
    RefreshTokenExpired,
    RefreshTokenNotFound,
    RefreshTokenRevoked,
)
from auth.models import RefreshTokenRecord, User
from auth.tokens import hash_token

logger = logging.getLogger("sessionward.auth.store")

_SQLITE_BUSY_TIMEOUT = 30  # seconds a writer waits for the lock

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(255)),
    Column("hashed_password", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token_hash", String(64), nullable=False, unique=True),  # SHA-256 hex
    Column("user_id", String(32), nullable=False, index=True),
    Column("expires_at", DateTime, nullable=False),  # naive UTC
    Column("revoked", Boolean, nullable=False, default=False),
    Column("replaced_by", String(64)),  # successor hash, set by rotate()
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL and hand transaction control to SQLAlchemy.

    WAL lets readers proceed while a writer holds the lock. Setting
    isolation_level=None stops pysqlite from issuing its own deferred BEGIN,
    so the "begin" listener below can emit BEGIN IMMEDIATE instead.
    PRAGMAs are per-connection, so this runs on every new pool connection.
    """
    dbapi_conn.isolation_level = None
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _begin_immediate(conn) -> None:
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def _make_engine(db_url: str, poolclass: type[Pool] | None = None) -> Engine:
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = _SQLITE_BUSY_TIMEOUT
    engine_args: dict = {"connect_args": connect_args}
    if poolclass is not None:
        engine_args["poolclass"] = poolclass
    engine = create_engine(db_url, **engine_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_sqlite_pragmas)
        event.listen(engine, "begin", _begin_immediate)
    _metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_db_time(value: datetime) -> datetime:
    """Store timestamps as naive UTC so SQLite and server DBs compare alike."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db_time(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities (the identity store).

    Usage:
        store = UserStore("sqlite:///sessionward.db")
        uid = store.create_user(User(email="a@x.com", hashed_password=hash_password("Password123")))
        user = store.get_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str, poolclass: type[Pool] | None = None) -> None:
        self.engine: Engine = _make_engine(db_url, poolclass)

    def create_user(self, user: User) -> str:
        """Insert a new user and return its generated id.

        Raises Conflict if the email is already registered. The UNIQUE
        constraint is the source of truth, so two concurrent registrations of
        the same email cannot both succeed.
        """
        user_id = uuid.uuid4().hex
        now = _now_iso()
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user_id,
                        email=_normalize_email(user.email),
                        name=user.name,
                        hashed_password=user.hashed_password,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError as exc:
            raise Conflict("User with this email already exists.") from exc
        return user_id

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == _normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable fields (name, hashed_password). Returns False if user_id was not found."""
        fields["updated_at"] = _now_iso()
        with self.engine.begin() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
        return result.rowcount > 0

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete a user record. Returns True if deleted.

        Refresh-token records owned by the user are left in place; a later
        refresh with one of them fails because the owner no longer exists.
        """
        with self.engine.begin() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Refresh tokens
# ---------------------------------------------------------------------------


class RefreshTokenStore:
    """Repository for RefreshTokenRecord entities.

    This class is the only writer of revocation state.

    Usage:
        store = RefreshTokenStore("sqlite:///sessionward.db")
        store.create(user_id, token, codec.refresh_expires_at())
        record = store.validate(hash_token(token))  # raises RefreshTokenError
        store.rotate(token, user_id, new_token, codec.refresh_expires_at())
    """

    def __init__(self, db_url: str, poolclass: type[Pool] | None = None) -> None:
        self.engine: Engine = _make_engine(db_url, poolclass)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, user_id: str, token: str, expires_at: datetime) -> RefreshTokenRecord:
        """Insert a record for `token`. Raises Conflict on a duplicate hash."""
        record = RefreshTokenRecord(
            token_hash=hash_token(token),
            user_id=user_id,
            expires_at=expires_at,
            created_at=_now_iso(),
        )
        try:
            with self.engine.begin() as conn:
                record.id = self._insert(conn, record)
        except IntegrityError as exc:
            raise Conflict("Refresh token already recorded.") from exc
        return record

    def rotate(self, old_token: str, user_id: str, new_token: str, expires_at: datetime) -> RefreshTokenRecord:
        """Revoke the record for old_token and insert one for new_token, atomically.

        Raises RefreshTokenRevoked if the old record was already revoked (or
        rotated) by the time the lock was taken, RefreshTokenNotFound if it
        does not exist or belongs to another user, and Conflict if the new
        hash is already present. In every failure case nothing is written.
        """
        old_hash = hash_token(old_token)
        new_record = RefreshTokenRecord(
            token_hash=hash_token(new_token),
            user_id=user_id,
            expires_at=expires_at,
            created_at=_now_iso(),
        )
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _refresh_tokens.update()
                    .where(
                        (_refresh_tokens.c.token_hash == old_hash)
                        & (_refresh_tokens.c.user_id == user_id)
                        & (_refresh_tokens.c.revoked.is_(False))
                    )
                    .values(revoked=True, replaced_by=new_record.token_hash)
                )
                if result.rowcount != 1:
                    exists = conn.execute(
                        select(_refresh_tokens.c.id).where(
                            (_refresh_tokens.c.token_hash == old_hash) & (_refresh_tokens.c.user_id == user_id)
                        )
                    ).first()
                    if exists is None:
                        raise RefreshTokenNotFound("Refresh token not found.")
                    raise RefreshTokenRevoked("Refresh token already revoked.")
                new_record.id = self._insert(conn, new_record)
        except IntegrityError as exc:
            raise Conflict("Refresh token already recorded.") from exc
        return new_record

    def revoke(self, token_hash: str) -> bool:
        """Revoke one record. Idempotent: returns False if absent or already revoked."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _refresh_tokens.update()
                .where((_refresh_tokens.c.token_hash == token_hash) & (_refresh_tokens.c.revoked.is_(False)))
                .values(revoked=True)
            )
        return result.rowcount > 0

    def revoke_by_token(self, token: str) -> bool:
        return self.revoke(hash_token(token))

    def revoke_all_for_user(self, user_id: str) -> int:
        """Revoke every unrevoked record of a user. Returns the number newly revoked."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _refresh_tokens.update()
                .where((_refresh_tokens.c.user_id == user_id) & (_refresh_tokens.c.revoked.is_(False)))
                .values(revoked=True)
            )
        return result.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        with self.engine.connect() as conn:
            row = conn.execute(_refresh_tokens.select().where(_refresh_tokens.c.token_hash == token_hash)).fetchone()
        return _row_to_record(row) if row is not None else None

    def find_by_token(self, token: str) -> RefreshTokenRecord | None:
        return self.find_by_hash(hash_token(token))

    def validate(self, token_hash: str, now: datetime | None = None) -> RefreshTokenRecord:
        """Return the record if it is usable at `now` (default: current time), otherwise raise.

        Raises RefreshTokenNotFound, RefreshTokenRevoked (rotated records are
        revoked too) or RefreshTokenExpired. Always re-reads the database;
        there is no cached revocation state to go stale.
        """
        record = self.find_by_hash(token_hash)
        if record is None:
            raise RefreshTokenNotFound("Refresh token not found.")
        if record.revoked:
            raise RefreshTokenRevoked("Refresh token has been revoked.")
        if record.is_expired(now):
            raise RefreshTokenExpired("Refresh token has expired.")
        return record

    def list_for_user(self, user_id: str) -> list[RefreshTokenRecord]:
        """Return every record of a user, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _refresh_tokens.select()
                .where(_refresh_tokens.c.user_id == user_id)
                .order_by(_refresh_tokens.c.id.desc())
            ).fetchall()
        return [_row_to_record(r) for r in rows]

    def count_active(self, user_id: str) -> int:
        """Number of unrevoked, unexpired records for a user."""
        now = _to_db_time(datetime.now(timezone.utc))
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count())
                .select_from(_refresh_tokens)
                .where(
                    (_refresh_tokens.c.user_id == user_id)
                    & (_refresh_tokens.c.revoked.is_(False))
                    & (_refresh_tokens.c.expires_at > now)
                )
            ).scalar()
        return result or 0

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _insert(conn, record: RefreshTokenRecord) -> int:
        result = conn.execute(
            _refresh_tokens.insert().values(
                token_hash=record.token_hash,
                user_id=record.user_id,
                expires_at=_to_db_time(record.expires_at),
                revoked=False,
                created_at=record.created_at,
            )
        )
        return result.inserted_primary_key[0]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        hashed_password=row.hashed_password,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_record(row) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        id=row.id,
        token_hash=row.token_hash,
        user_id=row.user_id,
        expires_at=_from_db_time(row.expires_at),
        revoked=bool(row.revoked),
        replaced_by=row.replaced_by,
        created_at=row.created_at,
    )
