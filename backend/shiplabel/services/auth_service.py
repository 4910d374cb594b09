"""
ShipLabel Backend - Authentication Service
============================================

What:  Credential lookup and password verification for the login gate.
How:   A UserDirectory answers find_by_username(); AuthService hashes and
       checks passwords with bcrypt in a worker thread.
Who:   Used by the /login route and by the application lifespan, which
       creates the bootstrap account.

The directory is injected, so tests and alternative backends can supply
their own lookup without touching process-wide state.
"""

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

import bcrypt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserRecord:
    id: int
    username: str
    password_hash: bytes


class UserDirectory(ABC):
    """Lookup and registration of stored credentials."""

    @abstractmethod
    def find_by_username(self, username: str) -> Optional[UserRecord]:
        """Return the record for `username`, or None if there is no such user."""

    @abstractmethod
    def add(self, username: str, password_hash: bytes) -> UserRecord:
        """Store a new user. Raises ValueError if `username` is taken."""


class InMemoryUserDirectory(UserDirectory):
    """Process-local user list, populated at startup."""

    def __init__(self) -> None:
        self._users: Dict[str, UserRecord] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._users)

    def add(self, username: str, password_hash: bytes) -> UserRecord:
        if username in self._users:
            raise ValueError(f"user {username!r} already exists")
        record = UserRecord(id=next(self._ids), username=username, password_hash=password_hash)
        self._users[username] = record
        return record

    def find_by_username(self, username: str) -> Optional[UserRecord]:
        return self._users.get(username)


class AuthService:
    """
    Password hashing and login checks.

    Attributes:
        directory: Where user records are looked up.
        rounds:    bcrypt cost factor used for new hashes.
    """

    def __init__(self, directory: UserDirectory, rounds: int = 10):
        self.directory = directory
        self.rounds = rounds

    def hash_password(self, password: str) -> bytes:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds))

    async def authenticate(self, username: str, password: str) -> Optional[UserRecord]:
        """
        Check a username/password pair.

        Returns:
            The matching UserRecord, or None for an unknown user or wrong password.
        """
        if not username or not password:
            return None
        user = self.directory.find_by_username(username)
        if user is None:
            logger.info("Login rejected: unknown user %r", username)
            return None

        ok = await asyncio.to_thread(
            bcrypt.checkpw, password.encode("utf-8"), user.password_hash
        )
        if not ok:
            logger.info("Login rejected: wrong password for %r", username)
            return None
        return user

    async def ensure_default_user(self, username: str, password: str) -> UserRecord:
        """Create the bootstrap account unless the directory already has it."""
        existing = self.directory.find_by_username(username)
        if existing is not None:
            return existing

        password_hash = await asyncio.to_thread(self.hash_password, password)
        record = self.directory.add(username, password_hash)
        logger.info("Default user created: %s", username)
        return record
