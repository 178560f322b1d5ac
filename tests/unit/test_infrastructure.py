"""Tests for settings, logging, the database unit of work and Redis helpers."""

from __future__ import annotations

import json
import logging
from unittest.mock import AsyncMock

import pytest
import structlog
from sqlalchemy import text

from creatorcompass import database, redis_client
from creatorcompass.config import Settings
from creatorcompass.logging_config import bind_user_context, setup_logging


class TestSettings:

    def test_defaults(self):
        settings = Settings()
        assert settings.daily_challenge_count == 3
        assert settings.leaderboard_cache_ttl_seconds == 60
        assert settings.reward_claim_bonus_action == "complete_milestone"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("CC_DAILY_CHALLENGE_COUNT", "5")
        monkeypatch.setenv("CC_LOG_FORMAT", "console")
        settings = Settings()
        assert settings.daily_challenge_count == 5
        assert settings.log_format == "console"


class TestLogging:

    @pytest.fixture(autouse=True)
    def _restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)
        structlog.reset_defaults()
        structlog.contextvars.clear_contextvars()

    def test_setup_installs_single_handler(self):
        setup_logging(Settings(log_format="console", log_level="debug"))
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
        assert root.level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        setup_logging(Settings(log_level="chatty"))
        assert logging.getLogger().level == logging.INFO

    def test_bind_user_context(self):
        bind_user_context(42)
        assert structlog.contextvars.get_contextvars()["user_id"] == 42


class TestDatabase:

    @pytest.mark.asyncio
    async def test_requires_init(self):
        await database.close_db()
        with pytest.raises(RuntimeError):
            database.get_engine()
        with pytest.raises(RuntimeError):
            async with database.session_scope():
                pass

    @pytest.mark.asyncio
    async def test_session_scope_commits_and_rolls_back(self):
        engine = await database.init_db("sqlite+aiosqlite:///:memory:")
        try:
            assert database.get_engine() is engine
            async with database.session_scope() as session:
                result = await session.execute(text("SELECT 1"))
                assert result.scalar_one() == 1

            with pytest.raises(ValueError):
                async with database.session_scope():
                    raise ValueError("boom")
        finally:
            await database.close_db()


class TestRedis:

    @pytest.mark.asyncio
    async def test_requires_init(self):
        await redis_client.close_redis()
        with pytest.raises(RuntimeError):
            redis_client.get_redis()

    @pytest.mark.asyncio
    async def test_init_and_close(self):
        client = await redis_client.init_redis("redis://localhost:6379/9")
        assert redis_client.get_redis() is client
        await redis_client.close_redis()
        with pytest.raises(RuntimeError):
            redis_client.get_redis()

    @pytest.mark.asyncio
    async def test_publish_event(self):
        client = AsyncMock()
        assert await redis_client.publish_event(client, "pubsub:test", {"a": 1}) is True
        channel, payload = client.publish.await_args.args
        assert channel == "pubsub:test"
        assert json.loads(payload) == {"a": 1}

    @pytest.mark.asyncio
    async def test_publish_without_client_or_on_error(self):
        assert await redis_client.publish_event(None, "pubsub:test", {}) is False

        client = AsyncMock()
        client.publish.side_effect = ConnectionError("down")
        assert await redis_client.publish_event(client, "pubsub:test", {}) is False
