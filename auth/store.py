"""
auth/store.py -- SQLAlchemy Core persistence layer for credentials.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_credential
is the mapper. Route and orchestration code never touches SQL directly.

Uniqueness: username is the primary key, so create_user() is atomic with
respect to duplicates. register_user() still does a get_by_username()
pre-check for a friendly error, but a concurrent signup that slips between
the check and the insert is caught here as IntegrityError -> ConflictError.

Lookup: get_by_username() is the single lookup contract. Usernames are
stored normalized, so an exact primary-key match is the only code path.

Errors: any other SQLAlchemyError is logged and re-raised as DependencyError
so the API layer answers 503 without leaking driver details.

Security: all queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or posts/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import Credential
from core.errors import ConflictError, DependencyError

logger = logging.getLogger("geoconnect.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("username", String(64), primary_key=True),
    Column("hashed_password", Text, nullable=False),
    Column("age", Integer, nullable=False, server_default="0"),
    Column("gender", String(32), nullable=False, server_default=""),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_credential(row) -> Credential:
    return Credential(
        username=row.username,
        hashed_password=row.hashed_password,
        age=row.age,
        gender=row.gender,
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for Credential records.

    Usage:
        store = UserStore("sqlite:///users.db")
        store.create_user(Credential(username="alice", hashed_password=hash_password("pw")))
        cred = store.get_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def get_by_username(self, username: str) -> Credential | None:
        """Return the Credential for username, or None if there is none."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(select(_users).where(_users.c.username == username)).fetchone()
        except SQLAlchemyError as exc:
            logger.exception("User lookup failed for %r", username)
            raise DependencyError("Credential store unavailable.") from exc
        return _row_to_credential(row) if row else None

    def create_user(self, credential: Credential) -> Credential:
        """Insert a new credential and return it with created_at filled in.

        Raises ConflictError if the username already exists. Existing records
        are never overwritten.
        """
        created_at = _now_iso()
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        username=credential.username,
                        hashed_password=credential.hashed_password,
                        age=credential.age,
                        gender=credential.gender,
                        created_at=created_at,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError("Username already exists.") from exc
        except SQLAlchemyError as exc:
            logger.exception("User insert failed for %r", credential.username)
            raise DependencyError("Credential store unavailable.") from exc
        credential.created_at = created_at
        return credential

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return result or 0

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.warning("Credential store ping failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()
