from collections.abc import Callable, Iterable

import pytest

from testtrend.adapters.memory import InMemoryHistory
from testtrend.core.models import BuildTestRecord, TestCase

CaseEntry = str | tuple[str, float]


def _case(entry: CaseEntry) -> TestCase:
    full_name, duration = (entry, 0.0) if isinstance(entry, str) else entry
    return TestCase(full_name=full_name, name=full_name.rpartition(".")[2], duration=duration)


@pytest.fixture
def make_record() -> Callable[..., BuildTestRecord]:
    def _make(
        build_number: int,
        failed: Iterable[CaseEntry] = (),
        passed: Iterable[CaseEntry] = (),
        skipped: Iterable[CaseEntry] = (),
        kind: str = "junit",
    ) -> BuildTestRecord:
        return BuildTestRecord(
            build_number=build_number,
            kind=kind,
            failed_tests=tuple(_case(entry) for entry in failed),
            passed_tests=tuple(_case(entry) for entry in passed),
            skipped_tests=tuple(_case(entry) for entry in skipped),
        )

    return _make


@pytest.fixture
def make_outcome_history(
    make_record: Callable[..., BuildTestRecord],
) -> Callable[[dict[str, str]], list[BuildTestRecord]]:
    """Build records, newest first, from per-test outcome strings.

    ``{"a.B.t1": "FFPFP"}`` describes builds 1..5 oldest first: F failed,
    P passed, S skipped and ``.`` absent.
    """

    def _make(outcomes: dict[str, str]) -> list[BuildTestRecord]:
        builds = max(len(sequence) for sequence in outcomes.values())
        records = []
        for index in range(builds):
            lists: dict[str, list[str]] = {"F": [], "P": [], "S": []}
            for name, sequence in outcomes.items():
                if index < len(sequence) and sequence[index] in lists:
                    lists[sequence[index]].append(name)
            records.append(
                make_record(index + 1, failed=lists["F"], passed=lists["P"], skipped=lists["S"])
            )
        return list(reversed(records))

    return _make


@pytest.fixture
def history_of() -> Callable[[Iterable[BuildTestRecord]], InMemoryHistory]:
    def _make(records: Iterable[BuildTestRecord], **kwargs) -> InMemoryHistory:
        return InMemoryHistory(records, **kwargs)

    return _make
