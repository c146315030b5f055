"""Server database using SQLAlchemy with SQLite.

This module provides:
- Account creation and password authentication
- Access / refresh token issuing, validation, rotation and revocation
- The key-value store holding each user's inventory document
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

import argon2
from sqlalchemy import create_engine, select, update
from sqlalchemy.orm import Session

from invtrac.server.models import Base, KVEntry, RefreshToken, Token, User

if TYPE_CHECKING:
    from sqlalchemy import Engine

DEFAULT_ACCESS_TOKEN_TTL = timedelta(hours=1)

ph = argon2.PasswordHasher()


def hash_token(token: str) -> str:
    """Hash a token using SHA-256.

    Args:
        token: Raw token string.

    Returns:
        Hex-encoded SHA-256 hash.
    """
    return hashlib.sha256(token.encode()).hexdigest()


def user_data_key(user_id: int) -> str:
    """Key under which a user's inventory document is stored."""
    return f"user_data:{user_id}"


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes; assume UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class DuplicateUserError(Exception):
    """Raised when an account with the same email already exists."""


@dataclass
class IssuedTokens:
    """Raw tokens handed to a client after sign-in or refresh."""

    access_token: str
    refresh_token: str
    expires_in: int


class Database:
    """SQLAlchemy database for accounts, tokens and user data.

    Uses SQLite with WAL mode for better concurrency with multiple readers.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Create engine with check_same_thread=False for multi-threaded access
        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        # Enable WAL mode
        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")
            conn.exec_driver_sql("PRAGMA foreign_keys=ON")

        # Create tables if they don't exist
        Base.metadata.create_all(self._engine)

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine)

    # === User operations ===

    def create_user(self, email: str, password: str, name: str = "") -> User:
        """Create an account.

        Args:
            email: Unique email address (stored lower-cased).
            password: Plain password, stored as an Argon2 hash.
            name: Display name.

        Returns:
            Created User object.

        Raises:
            DuplicateUserError: If the email is already registered.
        """
        email = email.strip().lower()
        if self.get_user_by_email(email) is not None:
            raise DuplicateUserError(email)

        with self._session() as session:
            user = User(email=email, name=name, password_hash=ph.hash(password))
            session.add(user)
            session.commit()
            session.refresh(user)
            session.expunge(user)
            return user

    def get_user(self, user_id: int) -> User | None:
        """Get a user by ID."""
        with self._session() as session:
            user = session.get(User, user_id)
            if user:
                session.expunge(user)
            return user

    def get_user_by_email(self, email: str) -> User | None:
        """Get a user by email (case-insensitive)."""
        with self._session() as session:
            stmt = select(User).where(User.email == email.strip().lower())
            user = session.execute(stmt).scalar_one_or_none()
            if user:
                session.expunge(user)
            return user

    def authenticate(self, email: str, password: str) -> User | None:
        """Check an email/password pair.

        Returns:
            The user if the password matches, None otherwise.
        """
        user = self.get_user_by_email(email)
        if user is None:
            return None
        try:
            ph.verify(user.password_hash, password)
        except argon2.exceptions.VerifyMismatchError:
            return None
        return user

    # === Token operations ===

    def issue_tokens(
        self,
        user_id: int,
        access_ttl: timedelta = DEFAULT_ACCESS_TOKEN_TTL,
    ) -> IssuedTokens:
        """Create a new access token and refresh token for a user.

        Args:
            user_id: User to authenticate.
            access_ttl: Lifetime of the access token.

        Returns:
            The raw tokens (only their hashes are stored).
        """
        raw_access = "it_" + secrets.token_urlsafe(32)
        raw_refresh = "rt_" + secrets.token_urlsafe(32)
        now = datetime.now(UTC)

        with self._session() as session:
            session.add(
                Token(
                    user_id=user_id,
                    token_hash=hash_token(raw_access),
                    created_at=now,
                    expires_at=now + access_ttl,
                )
            )
            session.add(
                RefreshToken(
                    user_id=user_id,
                    token_hash=hash_token(raw_refresh),
                    created_at=now,
                )
            )
            session.commit()

        return IssuedTokens(
            access_token=raw_access,
            refresh_token=raw_refresh,
            expires_in=int(access_ttl.total_seconds()),
        )

    def validate_access_token(self, raw_token: str) -> Token | None:
        """Validate an access token and return it if valid.

        Args:
            raw_token: Raw token string.

        Returns:
            Token if valid, None otherwise.
        """
        token_hash = hash_token(raw_token)
        with self._session() as session:
            stmt = select(Token).where(Token.token_hash == token_hash, Token.revoked == False)  # noqa: E712
            token = session.execute(stmt).scalar_one_or_none()

            if token is None:
                return None
            if _as_utc(token.expires_at) < datetime.now(UTC):
                return None

            session.expunge(token)
            return token

    def refresh_tokens(
        self,
        raw_refresh: str,
        access_ttl: timedelta = DEFAULT_ACCESS_TOKEN_TTL,
    ) -> IssuedTokens | None:
        """Exchange a refresh token for a new token pair.

        Refresh tokens are single use: the presented one is consumed.

        Returns:
            New tokens, or None if the refresh token is unknown, used or
            revoked.
        """
        token_hash = hash_token(raw_refresh)
        with self._session() as session:
            stmt = select(RefreshToken).where(
                RefreshToken.token_hash == token_hash,
                RefreshToken.revoked == False,  # noqa: E712
                RefreshToken.used_at.is_(None),
            )
            refresh = session.execute(stmt).scalar_one_or_none()
            if refresh is None:
                return None
            refresh.used_at = datetime.now(UTC)
            user_id = refresh.user_id
            session.commit()

        return self.issue_tokens(user_id, access_ttl)

    def revoke_user_tokens(self, user_id: int) -> None:
        """Revoke every access and refresh token of a user (sign-out)."""
        with self._session() as session:
            session.execute(
                update(Token).where(Token.user_id == user_id).values(revoked=True)
            )
            session.execute(
                update(RefreshToken)
                .where(RefreshToken.user_id == user_id)
                .values(revoked=True)
            )
            session.commit()

    # === Key-value operations ===

    def kv_get(self, key: str) -> Any | None:
        """Get a stored value.

        Returns:
            The JSON value, or None if the key is absent.
        """
        with self._session() as session:
            entry = session.get(KVEntry, key)
            return entry.value if entry else None

    def kv_set(self, key: str, value: Any) -> None:
        """Store a value, replacing any previous one."""
        with self._session() as session:
            entry = session.get(KVEntry, key)
            if entry is None:
                session.add(KVEntry(key=key, value=value))
            else:
                entry.value = value
                entry.updated_at = datetime.now(UTC)
            session.commit()
