"""
Credential store adapters for the portal.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import asyncpg

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.errors import StoreUnavailableError, ValidationError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception

# Driver failures that mean the database cannot answer; command_timeout surfaces as asyncio.TimeoutError
STORE_ERRORS = (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError)


@dataclass(frozen=True)
class UserRecord:
    """A registered portal user."""

    id: str
    name: str
    email: str
    password_hash: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore:
    """Lookup contract the session verifier and account routes rely on.

    Implementations raise ``StoreUnavailableError`` when the backing system
    cannot answer; a missing user is ``None``, never an error.
    """

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def lookup_session(self, user_id: str) -> Optional[UserRecord]:
        """Return the user a session is bound to, if it still exists."""
        raise NotImplementedError

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        raise NotImplementedError

    async def create_user(self, name: str, email: str, password_hash: str) -> UserRecord:
        raise NotImplementedError

    async def check_health(self) -> str:
        return "ok"


class InMemoryCredentialStore(CredentialStore):
    """Process-local store used for local runs and tests."""

    def __init__(self):
        self._users: Dict[str, UserRecord] = {}
        self._by_email: Dict[str, str] = {}

    async def lookup_session(self, user_id: str) -> Optional[UserRecord]:
        return self._users.get(user_id)

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        user_id = self._by_email.get(normalize_email(email))
        return self._users.get(user_id) if user_id else None

    async def create_user(self, name: str, email: str, password_hash: str) -> UserRecord:
        email = normalize_email(email)
        if email in self._by_email:
            raise ValidationError("Email already registered", details={"field": "email"})

        user = UserRecord(id=uuid.uuid4().hex, name=name, email=email, password_hash=password_hash)
        self._users[user.id] = user
        self._by_email[email] = user.id
        return user

    async def delete_user(self, user_id: str) -> bool:
        user = self._users.pop(user_id, None)
        if user is None:
            return False
        self._by_email.pop(user.email, None)
        return True


class PostgresCredentialStore(CredentialStore):
    """User records in PostgreSQL, read through an asyncpg pool."""

    def __init__(self, dsn: str, command_timeout: float = 5.0):
        self.dsn = dsn
        self.command_timeout = command_timeout
        self.logger = get_logger("portal.credential_store.postgres")
        self.pool: Optional[asyncpg.Pool] = None
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=3,
            recovery_timeout=30.0,
            name="credential_store"
        )

    async def connect(self) -> None:
        """Open the pool and make sure the users table exists."""
        try:
            self.pool = await self._create_pool()
        except RetryError as e:
            self.logger.error("Failed to connect credential store", error=str(e.last_exception))
            raise StoreUnavailableError("Could not connect to credential store") from e

        try:
            async with self.pool.acquire() as conn:
                await conn.execute("""
                    CREATE TABLE IF NOT EXISTS users (
                        id VARCHAR(64) PRIMARY KEY,
                        name VARCHAR(255) NOT NULL,
                        email VARCHAR(320) NOT NULL UNIQUE,
                        password_hash TEXT NOT NULL,
                        created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                    );
                """)
        except STORE_ERRORS as e:
            self.logger.error("Failed to prepare credential store schema", error=str(e))
            await self.pool.close()
            self.pool = None
            raise StoreUnavailableError("Could not prepare credential store", details={"error": str(e)}) from e

        self.logger.info("Credential store connected")

    @retry_on_exception((OSError, asyncpg.PostgresError), config=RetryConfig(max_attempts=3, base_delay=1.0))
    async def _create_pool(self) -> asyncpg.Pool:
        return await asyncpg.create_pool(
            self.dsn,
            min_size=1,
            max_size=10,
            command_timeout=self.command_timeout
        )

    async def disconnect(self) -> None:
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("Credential store disconnected")

    async def _fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
        if self.pool is None:
            raise StoreUnavailableError("Credential store is not connected")

        async def _query():
            async with self.pool.acquire() as conn:
                return await conn.fetchrow(query, *args)

        try:
            return await self.circuit_breaker.call(_query)
        except CircuitBreakerOpenException as e:
            raise StoreUnavailableError("Credential store circuit open") from e
        except STORE_ERRORS as e:
            raise StoreUnavailableError("Credential store query failed", details={"error": str(e)}) from e

    async def lookup_session(self, user_id: str) -> Optional[UserRecord]:
        row = await self._fetchrow(
            "SELECT id, name, email, password_hash, created_at FROM users WHERE id = $1",
            user_id
        )
        return self._row_to_user(row) if row else None

    async def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        row = await self._fetchrow(
            "SELECT id, name, email, password_hash, created_at FROM users WHERE email = $1",
            normalize_email(email)
        )
        return self._row_to_user(row) if row else None

    async def create_user(self, name: str, email: str, password_hash: str) -> UserRecord:
        if self.pool is None:
            raise StoreUnavailableError("Credential store is not connected")

        user_id = uuid.uuid4().hex
        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow("""
                    INSERT INTO users (id, name, email, password_hash)
                    VALUES ($1, $2, $3, $4)
                    RETURNING id, name, email, password_hash, created_at
                """, user_id, name, normalize_email(email), password_hash)
        except asyncpg.UniqueViolationError as e:
            raise ValidationError("Email already registered", details={"field": "email"}) from e
        except STORE_ERRORS as e:
            raise StoreUnavailableError("Credential store insert failed", details={"error": str(e)}) from e

        self.logger.info("User created", user_id=user_id)
        return self._row_to_user(row)

    async def check_health(self) -> str:
        try:
            await self._fetchrow("SELECT 1")
            return "ok"
        except StoreUnavailableError as e:
            self.logger.error("Credential store health check failed", error=e.message)
            return "error"

    @staticmethod
    def _row_to_user(row: asyncpg.Record) -> UserRecord:
        return UserRecord(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            password_hash=row["password_hash"],
            created_at=row["created_at"],
        )
