"""Tests for server database."""

from datetime import timedelta

import pytest

from invtrac.server.database import (
    Database,
    DuplicateUserError,
    hash_token,
    user_data_key,
)


@pytest.fixture
def db(tmp_path) -> Database:
    """Create a test database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


class TestDatabaseCreation:
    """Tests for database initialization."""

    def test_creates_db_file(self, tmp_path) -> None:
        """Database should create SQLite file."""
        db_path = tmp_path / "test.db"
        db = Database(db_path)
        assert db_path.exists()
        db.close()

    def test_uses_wal_mode(self, tmp_path) -> None:
        """Database should use WAL mode for concurrency."""
        db = Database(tmp_path / "test.db")
        with db._engine.connect() as conn:
            result = conn.exec_driver_sql("PRAGMA journal_mode").fetchone()
        assert result is not None
        assert result[0].lower() == "wal"
        db.close()


class TestUsers:
    """Tests for user operations."""

    def test_create_user(self, db: Database) -> None:
        """Should store a user with a hashed password."""
        user = db.create_user("Me@Example.com", "secret", "Me")

        assert user.id is not None
        assert user.email == "me@example.com"
        assert user.name == "Me"
        assert user.password_hash != "secret"

    def test_duplicate_email(self, db: Database) -> None:
        """Should reject a second account with the same email."""
        db.create_user("me@example.com", "secret")

        with pytest.raises(DuplicateUserError):
            db.create_user("ME@example.com", "other")

    def test_authenticate(self, db: Database) -> None:
        """Should accept the right password only."""
        user = db.create_user("me@example.com", "secret")

        authenticated = db.authenticate("me@example.com", "secret")
        assert authenticated is not None
        assert authenticated.id == user.id
        assert db.authenticate("me@example.com", "wrong") is None
        assert db.authenticate("nobody@example.com", "secret") is None


class TestTokens:
    """Tests for token operations."""

    def test_hash_token(self) -> None:
        """Should be a deterministic SHA-256 hex digest."""
        assert hash_token("abc") == hash_token("abc")
        assert len(hash_token("abc")) == 64

    def test_issue_and_validate(self, db: Database) -> None:
        """Issued access tokens should validate to their user."""
        user = db.create_user("me@example.com", "secret")

        tokens = db.issue_tokens(user.id)

        token = db.validate_access_token(tokens.access_token)
        assert token is not None
        assert token.user_id == user.id
        assert tokens.expires_in == 3600
        assert db.validate_access_token("invalid") is None

    def test_expired_token(self, db: Database) -> None:
        """Expired access tokens should be rejected."""
        user = db.create_user("me@example.com", "secret")

        tokens = db.issue_tokens(user.id, access_ttl=timedelta(seconds=-1))

        assert db.validate_access_token(tokens.access_token) is None

    def test_refresh_rotates(self, db: Database) -> None:
        """A refresh token should be usable exactly once."""
        user = db.create_user("me@example.com", "secret")
        tokens = db.issue_tokens(user.id)

        refreshed = db.refresh_tokens(tokens.refresh_token)

        assert refreshed is not None
        assert refreshed.refresh_token != tokens.refresh_token
        assert db.validate_access_token(refreshed.access_token) is not None
        assert db.refresh_tokens(tokens.refresh_token) is None

    def test_revoke_user_tokens(self, db: Database) -> None:
        """Revoking should invalidate access and refresh tokens."""
        user = db.create_user("me@example.com", "secret")
        tokens = db.issue_tokens(user.id)

        db.revoke_user_tokens(user.id)

        assert db.validate_access_token(tokens.access_token) is None
        assert db.refresh_tokens(tokens.refresh_token) is None


class TestKeyValue:
    """Tests for the key-value store."""

    def test_missing_key(self, db: Database) -> None:
        """Absent keys should read as None."""
        assert db.kv_get("nope") is None

    def test_set_and_replace(self, db: Database) -> None:
        """Setting a key should replace the previous value."""
        key = user_data_key(1)
        db.kv_set(key, {"categories": [], "items": []})
        db.kv_set(key, {"categories": [{"id": "c1", "name": "Food"}], "items": []})

        assert db.kv_get(key) == {"categories": [{"id": "c1", "name": "Food"}], "items": []}

    def test_user_data_key(self) -> None:
        """Keys should be namespaced per user."""
        assert user_data_key(42) == "user_data:42"
