"""
Tests for the logging module.

Tests verify:
- configure_logging accepts JSON and console output
- Engine operations emit snake_case events with field context
- Scoped context binds and unbinds
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import pytest
import structlog
from structlog.testing import capture_logs

from actor_migration.database import Database
from actor_migration.engine import ActorMigrationEngine
from actor_migration.errors import FieldDeprecationWarning
from actor_migration.identity import UserIdentity
from actor_migration.logging import (
    LogContext,
    _add_service_metadata,
    _elasticsearch_compatible,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)

EngineFactory = Callable[..., ActorMigrationEngine]


class TestConfigureLogging:
    def test_json_output(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO)
        configure_logging(level="INFO", json_format=True, service="test-service")
        get_logger("test").info("hello", field="rev_user")
        assert '"event": "hello"' in caplog.text
        assert '"service.name": "test-service"' in caplog.text
        assert '"log.level": "info"' in caplog.text

    def test_debug_suppressed_at_info(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG)
        configure_logging(level="INFO", json_format=True)
        get_logger("test").debug("hidden")
        assert "hidden" not in caplog.text

    def test_console_output(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.DEBUG)
        configure_logging(level="DEBUG", json_format=False, add_timestamp=False)
        get_logger("test").debug("visible")
        assert "visible" in caplog.text


class TestProcessors:
    def test_ecs_renaming(self) -> None:
        event = _elasticsearch_compatible(None, "info", {"timestamp": "t", "level": "info"})
        assert event == {"@timestamp": "t", "log.level": "info"}

    def test_service_metadata_default(self) -> None:
        event = _add_service_metadata(None, "info", {"event": "x"})
        assert "service.name" in event


class TestEngineEvents:
    def test_join_built(self, make_engine: EngineFactory) -> None:
        with capture_logs() as logs:
            make_engine("new").build_join("rev_user")
        events = [e for e in logs if e["event"] == "join_built"]
        assert len(events) == 1
        assert events[0]["field"] == "rev_user"
        assert events[0]["stage"] == "write-new/read-new"

    def test_join_built_once_per_key(self, make_engine: EngineFactory) -> None:
        engine = make_engine("new")
        with capture_logs() as logs:
            engine.build_join("rev_user")
            engine.build_join("rev_user")
        assert len([e for e in logs if e["event"] == "join_built"]) == 1

    def test_actor_id_acquired(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity
    ) -> None:
        with capture_logs() as logs:
            make_engine("new").build_insert_values(db, "rev_user", alice)
        event = next(e for e in logs if e["event"] == "actor_id_acquired")
        assert event["actor_id"] == 1
        assert event["domain"] == "local"

    def test_temp_table_upserted(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity
    ) -> None:
        _, deferred = make_engine("new").build_insert_values_with_temp_table(db, "ar_user", alice)
        with capture_logs() as logs:
            deferred.complete(3, {"ar_timestamp": "1"})
        event = next(e for e in logs if e["event"] == "temp_table_upserted")
        assert event["table"] == "archive_actor_temp"
        assert event["pk"] == 3

    def test_field_deprecated(self, make_engine: EngineFactory) -> None:
        with capture_logs() as logs, pytest.warns(FieldDeprecationWarning):
            make_engine("old").build_join("old_user")
        event = next(e for e in logs if e["event"] == "field_deprecated")
        assert event["log_level"] == "warning"
        assert event["version"] == "1.31"


class TestContext:
    def test_log_context_scoped(self) -> None:
        with LogContext(field="rev_user"):
            assert structlog.contextvars.get_contextvars() == {"field": "rev_user"}
        assert structlog.contextvars.get_contextvars() == {}

    def test_bind_and_clear(self) -> None:
        bind_context(operation="build_where")
        assert structlog.contextvars.get_contextvars()["operation"] == "build_where"
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}
