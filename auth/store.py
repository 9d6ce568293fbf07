"""
auth/store.py -- SQLAlchemy Core persistence layer for users and authorities.

Pattern: Repository + Data Mapper.
UserStore is the repository; _rows_to_users is the mapper. Service and route
code never touches SQL directly.

Schema:
  users        PK username (stored lowercased), email, hashed_password.
  authorities  PK (username, authority), FK username -> users ON DELETE CASCADE.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Case-insensitive uniqueness of username and email is checked by the user
  service before insert (exists_by_username / exists_by_email). The username
  primary key is the last line of defence against a concurrent duplicate.

Layer rule: no imports from api/ or users/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    create_engine,
    distinct,
    event,
    func,
    select,
)
from sqlalchemy.engine import Connection, Engine

from auth.models import Authority, User
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("username", String(255), primary_key=True),
    Column("hashed_password", Text, nullable=False),
    Column("email", String(255), nullable=False),
    Column("created_at", String(32), nullable=False),
)

_authorities = Table(
    "authorities",
    _metadata,
    Column("username", String(255), ForeignKey("users.username", ondelete="CASCADE"), nullable=False),
    Column("authority", String(100), nullable=False),
    PrimaryKeyConstraint("username", "authority"),
)


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _configure_sqlite(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. foreign_keys=ON is what makes the authorities
    ON DELETE CASCADE take effect.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User and Authority entities.

    Usage:
        store = UserStore()
        store.create_user(User(username="bob", hashed_password=hash_password("pw"), email="bob@x.com"))
        user = store.get_by_username("bob")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _configure_sqlite)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        """Return True if at least one user record exists."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
            if row is None:
                return None
            return _rows_to_users(conn, [row])[0]

    def exists_by_username(self, username: str) -> bool:
        """Case-insensitive existence check on username."""
        with self.engine.connect() as conn:
            row = conn.execute(
                select(_users.c.username).where(func.lower(_users.c.username) == username.lower())
            ).fetchone()
        return row is not None

    def exists_by_email(self, email: str) -> bool:
        """Case-insensitive existence check on email."""
        with self.engine.connect() as conn:
            row = conn.execute(select(_users.c.username).where(func.lower(_users.c.email) == email.lower())).fetchone()
        return row is not None

    def list_users(self) -> list[User]:
        """Return all users ordered by username."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.username)).fetchall()
            return _rows_to_users(conn, rows)

    def filter_users(self, username: str | None = None, email: str | None = None) -> list[User]:
        """Return users whose username and/or email contain the given fragments.

        Matching is case-insensitive. Each filter is optional; a None filter
        contributes no predicate, so filter_users() with no arguments returns
        every user. LIKE wildcards in the input are matched literally.
        """
        query = _users.select()
        if username:
            lowered = func.lower(_users.c.username, type_=String)
            query = query.where(lowered.contains(username.lower(), autoescape=True))
        if email:
            lowered = func.lower(_users.c.email, type_=String)
            query = query.where(lowered.contains(email.lower(), autoescape=True))
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_users.c.username)).fetchall()
            return _rows_to_users(conn, rows)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> None:
        """Insert a user together with its authorities in one transaction.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        """
        with self.engine.begin() as conn:
            conn.execute(
                _users.insert().values(
                    username=user.username,
                    hashed_password=user.hashed_password,
                    email=user.email,
                    created_at=_now_iso(),
                )
            )
            if user.authorities:
                conn.execute(
                    _authorities.insert(),
                    [{"username": user.username, "authority": a.authority} for a in user.authorities],
                )

    def add_authority(self, authority: Authority) -> None:
        """Insert one authority row. Raises IntegrityError if it already exists."""
        with self.engine.begin() as conn:
            conn.execute(_authorities.insert().values(username=authority.username, authority=authority.authority))

    def remove_authority(self, authority: Authority) -> bool:
        """Delete one authority row. Returns True if a row was removed."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _authorities.delete().where(
                    (_authorities.c.username == authority.username) & (_authorities.c.authority == authority.authority)
                )
            )
        return result.rowcount > 0

    def count_authority_holders(self, authority: str) -> int:
        """Return how many distinct users hold the authority (case-insensitive)."""
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count(distinct(_authorities.c.username))).where(
                    func.lower(_authorities.c.authority) == authority.lower()
                )
            ).scalar()
        return result or 0

    def delete_user(self, username: str) -> bool:
        """Delete a user and its authorities. Returns True if deleted, False if not found.

        Authority rows are deleted in the same transaction as the user row.
        """
        with self.engine.begin() as conn:
            conn.execute(_authorities.delete().where(_authorities.c.username == username))
            result = conn.execute(_users.delete().where(_users.c.username == username))
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _rows_to_users(conn: Connection, rows) -> list[User]:
    """Map user rows to User objects, loading authorities in a single query."""
    if not rows:
        return []
    usernames = [r.username for r in rows]
    auth_rows = conn.execute(_authorities.select().where(_authorities.c.username.in_(usernames))).fetchall()
    by_user: dict[str, set[Authority]] = {name: set() for name in usernames}
    for a in auth_rows:
        by_user[a.username].add(Authority(username=a.username, authority=a.authority))
    return [
        User(
            username=r.username,
            hashed_password=r.hashed_password,
            email=r.email,
            authorities=by_user[r.username],
            created_at=r.created_at,
        )
        for r in rows
    ]
