import sqlite3
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from testtrend.adapters.storage import SQLiteStorage
from testtrend.core.counts import FAILED
from testtrend.core.engine import TrendEngine
from testtrend.core.errors import MissingHistoryError
from testtrend.core.models import TestOutcome, TrendConfig, TrendQuery
from testtrend.core.walker import walk_builds


@pytest.fixture
def temp_db():
    with TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "nested" / "test.db"
        yield db_path


@pytest.fixture
def storage(temp_db):
    config = TrendConfig(db_path=temp_db)
    return SQLiteStorage(config)


def test_storage_initialization(temp_db):
    config = TrendConfig(db_path=temp_db)
    storage = SQLiteStorage(config)

    assert temp_db.exists()
    with sqlite3.connect(temp_db) as conn:
        row = conn.execute("SELECT value FROM metadata WHERE key = 'schema_version'").fetchone()
    assert row == ("1",)
    storage.close()


def test_save_and_load_record(storage, make_record):
    record = make_record(
        3,
        failed=[("pkg.Suite.test_a", 1.5)],
        passed=[("pkg.Suite.test_b", 0.25), ("pkg.Other.test_c", 0.0)],
        skipped=["pkg.Suite.test_d"],
    )
    storage.save_record(record)

    loaded = storage.load_record(3, "junit")

    assert loaded == record


def test_load_record_returns_none_for_unknown_build(storage, make_record):
    storage.save_record(make_record(1))

    assert storage.load_record(2, "junit") is None
    assert storage.load_record(1, "testng") is None


def test_load_empty_build(storage, make_record):
    storage.save_record(make_record(1))

    loaded = storage.load_record(1, "junit")

    assert loaded is not None
    assert loaded.total_count == 0


def test_save_record_replaces_previous_results(storage, make_record):
    storage.save_record(make_record(1, failed=["pkg.Suite.test_a"]))
    storage.save_record(make_record(1, passed=["pkg.Suite.test_a"]))

    loaded = storage.load_record(1, "junit")

    assert loaded.fail_count == 0
    assert [case.full_name for case in loaded.tests(TestOutcome.PASSED)] == ["pkg.Suite.test_a"]


def test_kinds_are_stored_separately(storage, make_record):
    storage.save_record(make_record(1, failed=["pkg.A.t"], kind="junit"))
    storage.save_record(make_record(1, passed=["pkg.A.t"], kind="testng"))

    assert storage.load_record(1, "junit").fail_count == 1
    assert storage.load_record(1, "testng").pass_count == 1
    assert storage.build_numbers() == [1]


def test_build_navigation(storage, make_record):
    for number in (1, 4, 7):
        storage.save_record(make_record(number))

    assert storage.latest_build() == 7
    assert storage.previous_build(7) == 4
    assert storage.previous_build(4) == 1
    assert storage.previous_build(1) is None
    assert storage.build_numbers() == [1, 4, 7]
    assert storage.is_materialized(5)


def test_empty_storage(storage):
    assert storage.latest_build() is None
    assert storage.previous_build(10) is None
    assert storage.build_numbers() == []


def test_clear_removes_all_builds(storage, make_record):
    storage.save_record(make_record(1, failed=["pkg.A.t"]))
    storage.save_record(make_record(2, passed=["pkg.A.t"]))

    storage.clear()

    assert storage.build_numbers() == []
    assert storage.load_record(1, "junit") is None


def test_corrupt_database_raises_missing_history(temp_db, make_record):
    storage = SQLiteStorage(TrendConfig(db_path=temp_db))
    storage.save_record(make_record(1))
    with sqlite3.connect(temp_db) as conn:
        conn.execute("DROP TABLE test_cases")

    with pytest.raises(MissingHistoryError, match="Cannot load build #1"):
        storage.load_record(1, "junit")


def test_walk_stored_history_skips_gaps(storage, make_record):
    for number in (1, 2, 5):
        storage.save_record(make_record(number, failed=["pkg.A.t"]))

    chain = list(walk_builds(storage, storage.load_record(5, "junit")))

    assert [record.build_number for record in chain] == [5, 2, 1]


def test_engine_over_stored_history(storage, make_outcome_history):
    for record in make_outcome_history({"com.a.T.flaky": "FPFPF", "com.a.T.ok": "PPPPP"}):
        storage.save_record(record)

    engine = TrendEngine(storage, TrendConfig(db_path=storage.db_path))

    counts = engine.render_dataset(TrendQuery(project_level="com.a"))
    flappers = engine.render_dataset(TrendQuery(trend_type="FlakyTests", order_by="flap"))

    assert counts.series[FAILED] == {5: 1, 4: 0, 3: 1, 2: 0, 1: 1}
    assert flappers.ranked_names == ["com.a.T.flaky"]
    assert flappers.row_stats[1].flaps == 2
