"""
ShipLabel Backend - Auth Service Tests
========================================

What:  Tests for bcrypt-backed AuthService and InMemoryUserDirectory.
"""

import pytest

from shiplabel.services.auth_service import (
    AuthService,
    InMemoryUserDirectory,
    UserDirectory,
    UserRecord,
)


class TestAuthService:

    def setup_method(self):
        self.directory = InMemoryUserDirectory()
        self.service = AuthService(self.directory, rounds=4)

    @pytest.mark.asyncio
    async def test_default_user_created_once(self):
        first = await self.service.ensure_default_user("test", "test123")
        second = await self.service.ensure_default_user("test", "other")

        assert first == second
        assert first.id == 1
        assert len(self.directory) == 1

    @pytest.mark.asyncio
    async def test_password_is_hashed(self):
        record = await self.service.ensure_default_user("test", "test123")
        assert record.password_hash != b"test123"
        assert record.password_hash.startswith(b"$2")

    @pytest.mark.asyncio
    async def test_authenticate_success(self):
        await self.service.ensure_default_user("test", "test123")
        user = await self.service.authenticate("test", "test123")
        assert user is not None
        assert user.username == "test"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "username,password",
        [("test", "wrong"), ("nobody", "test123"), ("", "test123"), ("test", "")],
    )
    async def test_authenticate_rejects(self, username, password):
        await self.service.ensure_default_user("test", "test123")
        assert await self.service.authenticate(username, password) is None

    @pytest.mark.asyncio
    async def test_injected_directory_used_for_lookup(self):
        hashed = self.service.hash_password("s3cret")

        class StaticDirectory(UserDirectory):
            def find_by_username(self, username):
                if username == "ops":
                    return UserRecord(id=7, username="ops", password_hash=hashed)
                return None

            def add(self, username, password_hash):
                raise ValueError("read-only directory")

        service = AuthService(StaticDirectory(), rounds=4)
        user = await service.authenticate("ops", "s3cret")
        assert user.id == 7

    @pytest.mark.asyncio
    async def test_default_user_created_in_any_directory(self):
        class RecordingDirectory(UserDirectory):
            def __init__(self):
                self.added = []

            def find_by_username(self, username):
                return None

            def add(self, username, password_hash):
                self.added.append(username)
                return UserRecord(id=42, username=username, password_hash=password_hash)

        directory = RecordingDirectory()
        service = AuthService(directory, rounds=4)

        record = await service.ensure_default_user("test", "test123")

        assert directory.added == ["test"]
        assert record.id == 42

    def test_duplicate_user_rejected(self):
        self.directory.add("test", b"hash")
        with pytest.raises(ValueError):
            self.directory.add("test", b"hash")
