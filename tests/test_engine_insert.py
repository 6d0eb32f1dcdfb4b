"""Tests for the engine's write paths."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable

import pytest

from actor_migration.database import Database
from actor_migration.deferred import DeferredAction
from actor_migration.engine import ActorMigrationEngine
from actor_migration.errors import (
    FieldDeprecationWarning,
    FieldRemovedError,
    MissingExtraValueError,
    TempTableMismatchError,
)
from actor_migration.identity import UserIdentity

EngineFactory = Callable[..., ActorMigrationEngine]
RowCount = Callable[[str], int]


class TestBuildInsertValues:
    def test_dual_write(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity
    ) -> None:
        engine = make_engine("write-both/read-old")
        values = engine.build_insert_values(db, "rev_user", alice)
        assert values == {"rev_user": 7, "rev_user_text": "Alice", "rev_actor": 1}

    def test_actor_id_stable_across_calls(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity, row_count: RowCount
    ) -> None:
        engine = make_engine("write-both/read-new")
        first = engine.build_insert_values(db, "rev_user", alice)
        second = engine.build_insert_values(db, "log_user", alice)
        assert first["rev_actor"] == second["log_actor"]
        assert row_count("actor") == 1

    def test_write_old_only_allocates_nothing(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity, row_count: RowCount
    ) -> None:
        values = make_engine("old").build_insert_values(db, "rev_user", alice)
        assert values == {"rev_user": 7, "rev_user_text": "Alice"}
        assert row_count("actor") == 0

    def test_write_new_only(
        self, make_engine: EngineFactory, db: Database, anon: UserIdentity
    ) -> None:
        values = make_engine("new").build_insert_values(db, "rev_user", anon)
        assert values == {"rev_actor": 1}
        assert db.query_one("SELECT actor_user, actor_name FROM actor") == {
            "actor_user": None,
            "actor_name": "127.0.0.1",
        }

    def test_name_overrides(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity
    ) -> None:
        values = make_engine("write-both/read-new").build_insert_values(db, "ipb_by", alice)
        assert values == {"ipb_by": 7, "ipb_by_text": "Alice", "ipb_by_actor": 1}

    def test_temp_table_field_rejected(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity, row_count: RowCount
    ) -> None:
        engine = make_engine("write-both/read-old")
        with pytest.raises(
            TempTableMismatchError,
            match=r"Must use build_insert_values_with_temp_table\(\) for ar_user",
        ):
            engine.build_insert_values(db, "ar_user", alice)
        assert row_count("actor") == 0

    def test_removed_field(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity, any_stage: str
    ) -> None:
        with pytest.raises(FieldRemovedError):
            make_engine(any_stage).build_insert_values(db, "gone_user", alice)

    def test_deprecated_field_still_writes(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity
    ) -> None:
        with pytest.warns(FieldDeprecationWarning, match="old_user"):
            values = make_engine("old").build_insert_values(db, "old_user", alice)
        assert values == {"old_user": 7, "old_user_text": "Alice"}

    def test_actor_store_scoped_to_handle_domain(
        self,
        make_engine: EngineFactory,
        conn: sqlite3.Connection,
        actor_store_factory: object,
    ) -> None:
        foreign = Database(conn, domain_id="otherwiki")
        user = UserIdentity(7, "Alice", domain="localwiki")
        make_engine("new").build_insert_values(foreign, "rev_user", user)
        assert actor_store_factory.requested == ["otherwiki"]  # type: ignore[attr-defined]


class TestBuildInsertValuesWithTempTable:
    def test_write_new_goes_to_temp_table(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity
    ) -> None:
        engine = make_engine("write-new/read-new")
        values, deferred = engine.build_insert_values_with_temp_table(db, "ar_user", alice)
        assert values == {}
        assert deferred.action is DeferredAction.UPSERT

        result = deferred.complete(42, {"ar_timestamp": "20210101000000"})
        assert result.performed
        assert dict(result.row) == {
            "arat_id": 42,
            "arat_actor": 1,
            "ar_timestamp": "20210101000000",
        }
        assert db.query("SELECT * FROM archive_actor_temp") == [
            {"arat_id": 42, "arat_actor": 1, "ar_timestamp": "20210101000000"}
        ]

    def test_dual_write_keeps_actor_off_main_row(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity
    ) -> None:
        values, deferred = make_engine("write-both/read-old").build_insert_values_with_temp_table(
            db, "ar_user", alice
        )
        assert values == {"ar_user": 7, "ar_user_text": "Alice"}
        assert deferred.pending == {"arat_actor": 1}

    def test_missing_extra_no_write(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity, row_count: RowCount
    ) -> None:
        _, deferred = make_engine("new").build_insert_values_with_temp_table(db, "ar_user", alice)
        with pytest.raises(MissingExtraValueError):
            deferred.complete(42, {})
        assert row_count("archive_actor_temp") == 0

    def test_write_old_only_validates_extras(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity, row_count: RowCount
    ) -> None:
        values, deferred = make_engine("old").build_insert_values_with_temp_table(
            db, "ar_user", alice
        )
        assert values == {"ar_user": 7, "ar_user_text": "Alice"}
        assert deferred.action is DeferredAction.VALIDATE
        with pytest.raises(MissingExtraValueError):
            deferred.complete(42)
        assert not deferred.complete(42, {"ar_timestamp": "1"}).performed
        assert row_count("archive_actor_temp") == 0
        assert row_count("actor") == 0

    def test_plain_field_rejected(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity
    ) -> None:
        with pytest.raises(TempTableMismatchError, match=r"Must use build_insert_values\(\)"):
            make_engine("new").build_insert_values_with_temp_table(db, "rev_user", alice)

    def test_former_temp_table_field_accepted(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity
    ) -> None:
        engine = make_engine("write-both/read-new")
        with pytest.warns(FieldDeprecationWarning, match="1.33"):
            values, deferred = engine.build_insert_values_with_temp_table(
                db, "legacy_user", alice
            )
        assert values == {"legacy_user": 7, "legacy_user_text": "Alice", "legacy_actor": 1}
        assert deferred.action is DeferredAction.NONE
        assert not deferred.complete(None).performed

    def test_former_temp_table_write_old(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity
    ) -> None:
        with pytest.warns(FieldDeprecationWarning):
            values, deferred = make_engine("old").build_insert_values_with_temp_table(
                db, "legacy_user", alice
            )
        assert values == {"legacy_user": 7, "legacy_user_text": "Alice"}
        assert deferred.action is DeferredAction.NONE

    def test_removed_field(
        self, make_engine: EngineFactory, db: Database, alice: UserIdentity, any_stage: str
    ) -> None:
        with pytest.raises(FieldRemovedError):
            make_engine(any_stage).build_insert_values_with_temp_table(db, "gone_user", alice)
