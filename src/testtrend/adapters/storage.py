import logging
import sqlite3
from datetime import datetime, timezone

from testtrend.core.errors import MissingHistoryError
from testtrend.core.models import BuildTestRecord, TestCase, TestOutcome, TrendConfig

logger = logging.getLogger(__name__)


class SQLiteStorage:
    def __init__(self, config: TrendConfig) -> None:
        self.db_path = config.db_path
        self._init_database()

    def _init_database(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS metadata (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS builds (
                    build_number INTEGER NOT NULL,
                    kind TEXT NOT NULL,
                    recorded_at TEXT NOT NULL,
                    PRIMARY KEY (build_number, kind)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS test_cases (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    build_number INTEGER NOT NULL,
                    kind TEXT NOT NULL,
                    full_name TEXT NOT NULL,
                    name TEXT NOT NULL,
                    outcome TEXT NOT NULL,
                    duration REAL NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_build
                ON test_cases(build_number, kind)
            """)

            cursor.execute(
                "INSERT OR IGNORE INTO metadata (key, value) VALUES (?, ?)",
                ("schema_version", "1"),
            )

            conn.commit()

    def save_record(self, record: BuildTestRecord) -> None:
        rows = [
            (record.build_number, record.kind, case.full_name, case.name, outcome.value, case.duration)
            for outcome in TestOutcome
            for case in record.tests(outcome)
        ]

        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT OR REPLACE INTO builds (build_number, kind, recorded_at) VALUES (?, ?, ?)",
                (record.build_number, record.kind, datetime.now(timezone.utc).isoformat()),
            )
            cursor.execute(
                "DELETE FROM test_cases WHERE build_number = ? AND kind = ?",
                (record.build_number, record.kind),
            )
            cursor.executemany(
                """
                INSERT INTO test_cases (build_number, kind, full_name, name, outcome, duration)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                rows,
            )
            conn.commit()

        logger.debug("saved build #%d with %d test case(s)", record.build_number, len(rows))

    def load_record(self, build_number: int, kind: str) -> BuildTestRecord | None:
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT 1 FROM builds WHERE build_number = ? AND kind = ?",
                    (build_number, kind),
                )
                if cursor.fetchone() is None:
                    return None

                cursor.execute(
                    """
                    SELECT full_name, name, outcome, duration
                    FROM test_cases
                    WHERE build_number = ? AND kind = ?
                    ORDER BY id
                """,
                    (build_number, kind),
                )
                rows = cursor.fetchall()
        except sqlite3.DatabaseError as exc:
            raise MissingHistoryError(f"Cannot load build #{build_number}: {exc}") from exc

        tests: dict[TestOutcome, list[TestCase]] = {outcome: [] for outcome in TestOutcome}
        for full_name, name, outcome_str, duration in rows:
            tests[TestOutcome(outcome_str)].append(
                TestCase(full_name=full_name, name=name, duration=duration)
            )

        return BuildTestRecord(
            build_number=build_number,
            kind=kind,
            failed_tests=tuple(tests[TestOutcome.FAILED]),
            passed_tests=tuple(tests[TestOutcome.PASSED]),
            skipped_tests=tuple(tests[TestOutcome.SKIPPED]),
        )

    def previous_build(self, build_number: int) -> int | None:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT MAX(build_number) FROM builds WHERE build_number < ?",
                (build_number,),
            )
            row = cursor.fetchone()
        return row[0] if row else None

    def is_materialized(self, build_number: int) -> bool:
        # Every stored build is on local disk.
        return True

    def latest_build(self) -> int | None:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT MAX(build_number) FROM builds")
            row = cursor.fetchone()
        return row[0] if row else None

    def build_numbers(self) -> list[int]:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT DISTINCT build_number FROM builds ORDER BY build_number")
            return [row[0] for row in cursor.fetchall()]

    def clear(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM test_cases")
            cursor.execute("DELETE FROM builds")
            conn.commit()

    def close(self) -> None:
        pass
