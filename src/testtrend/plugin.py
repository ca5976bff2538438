from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from testtrend.adapters.storage import SQLiteStorage
from testtrend.core.models import BuildTestRecord, TestCase, TestOutcome, TrendConfig
from testtrend.core.summary import failure_diff, resolve_trend, summarize
from testtrend.core.walker import previous_record
from testtrend.ports.protocols import StoragePort


def pytest_addoption(parser: Any) -> None:
    group = parser.getgroup("testtrend")

    group.addoption(
        "--testtrend",
        action="store_true",
        default=False,
        help="Record this session as one build of the test trend history",
    )

    group.addoption(
        "--testtrend-db",
        type=str,
        default=".testtrend/history.db",
        help="Path to database file (default: .testtrend/history.db)",
    )

    group.addoption(
        "--testtrend-build",
        type=int,
        default=None,
        help="Build number to record (default: latest recorded build + 1)",
    )

    group.addoption(
        "--testtrend-kind",
        type=str,
        default="junit",
        help="Result kind tag stored with the build (default: junit)",
    )


def pytest_configure(config: Any) -> None:
    if not config.getoption("--testtrend"):
        return

    trend_config = TrendConfig(
        db_path=Path(config.getoption("--testtrend-db")),
        kind=config.getoption("--testtrend-kind"),
    )

    storage = SQLiteStorage(trend_config)

    config.pluginmanager.register(
        TrendRecorder(storage, trend_config, config.getoption("--testtrend-build")),
        "testtrend-runtime",
    )


def node_id_to_full_name(node_id: str) -> str:
    path, _, rest = node_id.partition("::")
    module = path[:-3] if path.endswith(".py") else path
    parts = [module.replace("\\", ".").replace("/", "."), *rest.split("::")]
    return ".".join(part for part in parts if part)


class TrendRecorder:
    def __init__(
        self,
        storage: StoragePort,
        config: TrendConfig,
        build_number: int | None = None,
    ) -> None:
        self.storage = storage
        self.config = config
        self.build_number = build_number
        self.results: dict[str, tuple[TestOutcome, TestCase]] = {}
        self.saved_record: BuildTestRecord | None = None

    @pytest.hookimpl(tryfirst=True, hookwrapper=True)
    def pytest_runtest_makereport(
        self, item: Any, call: Any
    ) -> Generator[None, Any, None]:
        outcome = yield
        self.record_report(outcome.get_result())

    def record_report(self, report: Any) -> None:
        relevant = (
            report.when == "call"
            or (report.when == "setup" and not report.passed)
            or (report.when == "teardown" and report.failed)
        )
        if not relevant:
            return

        if report.passed:
            test_outcome = TestOutcome.PASSED
        elif report.skipped:
            test_outcome = TestOutcome.SKIPPED
        else:
            test_outcome = TestOutcome.FAILED

        case = TestCase(
            full_name=node_id_to_full_name(report.nodeid),
            name=report.nodeid.rpartition("::")[2],
            duration=max(getattr(report, "duration", 0.0), 0.0),
        )
        self.results[report.nodeid] = (test_outcome, case)

    def build_record(self) -> BuildTestRecord:
        number = self.build_number
        if number is None:
            latest = self.storage.latest_build()
            number = 1 if latest is None else latest + 1

        tests: dict[TestOutcome, list[TestCase]] = {outcome: [] for outcome in TestOutcome}
        for test_outcome, case in self.results.values():
            tests[test_outcome].append(case)

        return BuildTestRecord(
            build_number=number,
            kind=self.config.kind,
            failed_tests=tuple(tests[TestOutcome.FAILED]),
            passed_tests=tuple(tests[TestOutcome.PASSED]),
            skipped_tests=tuple(tests[TestOutcome.SKIPPED]),
        )

    def pytest_sessionfinish(self, session: Any) -> None:
        record = self.build_record()
        self.storage.save_record(record)
        self.saved_record = record

    def pytest_terminal_summary(self, terminalreporter: Any) -> None:
        record = self.saved_record
        if record is None:
            return

        previous = previous_record(self.storage, record)

        terminalreporter.section("testtrend")
        terminalreporter.write_line(
            f"Recorded build #{record.build_number}: "
            f"{record.pass_count} passed, {record.fail_count} failed, "
            f"{record.skip_count} skipped{failure_diff(record, previous)}"
        )

        summary = summarize(record, previous, resolve_trend(record, previous))
        if summary is not None:
            terminalreporter.write_line(
                f"  {summary.message}", **{"red" if summary.worse else "yellow": True}
            )

        self.storage.close()
