"""
auth/store.py -- SQLAlchemy Core persistence layer for user credentials.

Pattern: Repository + Data Mapper (same as tasks/store.py).
UserStore is the repository; _row_to_user is the mapper.
The AuthService never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced by the schema. Emails are normalized by the
  caller before they reach the store, so the constraint is effectively
  case-insensitive. create() surfaces duplicates as IntegrityError so a
  concurrent registration that slips past the existence check still fails.

  Every write is a single-row statement committed on its own. Nothing spans
  more than one statement, so there is no multi-step transaction to roll back.

Layer rule: no imports from api/, tasks/ or client/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, MetaData, String, Table, Text, text
from sqlalchemy.engine import Engine

from auth.models import User
from core.db import make_engine

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("name", String(255)),
    Column("refresh_token_hash", Text),  # NULL = no active session
    Column("created_at", String(32), nullable=False),
)

# Fields update() may change. id, email and created_at are immutable.
_MUTABLE_FIELDS = frozenset({"password_hash", "name", "refresh_token_hash"})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///:memory:")
        user = store.create(email="a@b.com", password_hash=hasher.hash("secret1"))
        store.update(user.id, refresh_token_hash=hasher.hash(refresh_token))
        store.find_by_email("a@b.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by normalized email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def create(self, *, email: str, password_hash: str, name: str | None = None) -> User:
        """Insert a new user and return it with id and created_at assigned.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        The new user starts with no refresh token hash.
        """
        user = User(
            id=str(uuid4()),
            email=email,
            password_hash=password_hash,
            name=name,
            refresh_token_hash=None,
            created_at=_now_iso(),
        )
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user.id,
                    email=user.email,
                    password_hash=user.password_hash,
                    name=user.name,
                    refresh_token_hash=None,
                    created_at=user.created_at,
                )
            )
            conn.commit()
        return user

    def update(self, user_id: str, **fields) -> User | None:
        """Update mutable fields and return the fresh record.

        Accepted fields: password_hash, name, refresh_token_hash. Unknown
        fields raise ValueError rather than being silently ignored.

        Returns None if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown or immutable user fields: {sorted(unknown)!r}")
        if fields:
            with self.engine.connect() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
                conn.commit()
            if result.rowcount == 0:
                return None
        return self.find_by_id(user_id)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        name=row.name,
        refresh_token_hash=row.refresh_token_hash,
        created_at=row.created_at,
    )
