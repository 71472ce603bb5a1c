"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper. AuthStore is the repository;
_row_to_user / _row_to_refresh_token are the mappers. Service code never
touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  users.email_hash carries a UNIQUE index. Two concurrent registrations of the
  same address both pass the service's existence check; the second INSERT
  then raises IntegrityError, which the service reports as a conflict.

  rotate_refresh_token() is the only multi-statement write. It runs the
  conditional revoke and the successor insert inside one engine.begin()
  transaction; see its docstring.

Timestamps are stored as fixed-width ISO 8601 UTC strings
("YYYY-MM-DDTHH:MM:SS.ffffff+00:00"), so string comparison in SQL orders the
same way as time. Always write them through _to_iso().

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, LargeBinary, MetaData, String, Table, create_engine, event, text
from sqlalchemy.engine import Engine

from auth.models import RefreshToken, User

_DEFAULT_DB_URL = "sqlite:///datavisualizer_auth.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email_hash", LargeBinary(32), nullable=False, unique=True),
    Column("email_hash_version", Integer, nullable=False),
    Column("password_hash", String(512), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token", String(128), nullable=False, unique=True),
    Column("user_id", String(36), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False, index=True),
    Column("revoked", Integer, nullable=False, server_default="0"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL lets readers proceed while a rotation transaction holds the write
    lock. Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_iso(value: str) -> datetime:
    return datetime.fromisoformat(value)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AuthStore:
    """Repository for User and RefreshToken entities.

    Usage:
        store = AuthStore("sqlite:///auth.db")
        store.create_user(user)
        user = store.get_user_by_email_hash(digest)
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> None:
        """Insert a new user.

        Raises sqlalchemy.exc.IntegrityError if email_hash already exists.
        """
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user.id,
                    email_hash=user.email_hash,
                    email_hash_version=user.email_hash_version,
                    password_hash=user.password_hash,
                    created_at=_to_iso(user.created_at),
                    updated_at=_to_iso(user.updated_at),
                )
            )
            conn.commit()

    def get_user_by_email_hash(self, email_hash: bytes) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email_hash == email_hash)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_user_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_password_hash(self, user_id: str, password_hash: str, updated_at: datetime) -> bool:
        """Overwrite a user's password hash. Returns False if user_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(password_hash=password_hash, updated_at=_to_iso(updated_at))
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Refresh tokens
    # ------------------------------------------------------------------

    def create_refresh_token(self, token: RefreshToken) -> None:
        with self.engine.connect() as conn:
            conn.execute(_refresh_tokens.insert().values(**_refresh_token_values(token)))
            conn.commit()

    def get_refresh_token(self, token: str) -> RefreshToken | None:
        with self.engine.connect() as conn:
            row = conn.execute(_refresh_tokens.select().where(_refresh_tokens.c.token == token)).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def list_refresh_tokens(self, user_id: str) -> list[RefreshToken]:
        """Return every refresh token row owned by user_id, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _refresh_tokens.select()
                .where(_refresh_tokens.c.user_id == user_id)
                .order_by(_refresh_tokens.c.id)
            ).fetchall()
        return [_row_to_refresh_token(r) for r in rows]

    def rotate_refresh_token(self, token: str, successor: RefreshToken, now: datetime) -> bool:
        """Revoke token and insert successor as one atomic unit.

        The UPDATE only matches a row that is still unrevoked and unexpired at
        ``now``. If it matches nothing -- another caller redeemed the token
        first, or it expired between lookup and rotation -- no insert happens
        and False is returned. Both statements share one transaction, so a
        failure in the INSERT rolls the revoke back as well.

        On SQLite the UPDATE takes the database write lock, which serializes
        concurrent rotations of the same token: the loser sees revoked=1 and
        matches zero rows.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                _refresh_tokens.update()
                .where(
                    (_refresh_tokens.c.token == token)
                    & (_refresh_tokens.c.revoked == 0)
                    & (_refresh_tokens.c.expires_at > _to_iso(now))
                )
                .values(revoked=1)
            )
            if result.rowcount != 1:
                return False
            conn.execute(_refresh_tokens.insert().values(**_refresh_token_values(successor)))
        return True

    def purge_refresh_tokens(self, expired_before: datetime) -> int:
        """Delete refresh tokens whose expires_at is earlier than expired_before.

        Returns the number of rows removed. Only expired rows qualify, so a
        token that is still redeemable is never touched.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _refresh_tokens.delete().where(_refresh_tokens.c.expires_at < _to_iso(expired_before))
            )
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _refresh_token_values(token: RefreshToken) -> dict:
    return {
        "token": token.token,
        "user_id": token.user_id,
        "created_at": _to_iso(token.created_at),
        "expires_at": _to_iso(token.expires_at),
        "revoked": 1 if token.revoked else 0,
    }


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email_hash=bytes(row.email_hash),
        email_hash_version=row.email_hash_version,
        password_hash=row.password_hash,
        created_at=_from_iso(row.created_at),
        updated_at=_from_iso(row.updated_at),
    )


def _row_to_refresh_token(row) -> RefreshToken:
    return RefreshToken(
        token=row.token,
        user_id=row.user_id,
        created_at=_from_iso(row.created_at),
        expires_at=_from_iso(row.expires_at),
        revoked=bool(row.revoked),
    )
