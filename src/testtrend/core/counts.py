import logging
from collections.abc import Iterable

from testtrend.core.datasets import CategoryDataset
from testtrend.core.models import ALL_PROJECTS, BuildTestRecord, TestCase, TestOutcome
from testtrend.core.projects import matches
from testtrend.core.tooltips import ToolTip

logger = logging.getLogger(__name__)

FAILED = "failed"
SKIPPED = "skipped"
TOTAL = "total"

_SERIES_OUTCOMES = {
    FAILED: TestOutcome.FAILED,
    SKIPPED: TestOutcome.SKIPPED,
    TOTAL: TestOutcome.PASSED,
}


def _series_names(failure_only: bool) -> list[str]:
    return [FAILED] if failure_only else [FAILED, SKIPPED, TOTAL]


def _count_matching(tests: Iterable[TestCase], project_level: str) -> tuple[int, str]:
    count = 0
    tooltip = ToolTip()
    for case in tests:
        if not matches(case.full_name, project_level):
            continue
        count += 1
        tooltip.add(case.name)
    return count, str(tooltip)


def aggregate_counts(
    chain: Iterable[BuildTestRecord],
    project_level: str = ALL_PROJECTS,
    failure_only: bool = False,
) -> CategoryDataset:
    names = _series_names(failure_only)
    series: dict[str, dict[int, int]] = {name: {} for name in names}
    tooltips: dict[str, dict[int, str]] = {name: {} for name in names}
    visited = 0

    for record in chain:
        visited += 1
        for name in names:
            count, tooltip = _count_matching(
                record.tests(_SERIES_OUTCOMES[name]), project_level
            )
            series[name][record.build_number] = count
            tooltips[name][record.build_number] = tooltip

    logger.debug("aggregated test counts for %d build(s), project %s", visited, project_level)
    return CategoryDataset(series=series, tooltips=tooltips)


def aggregate_totals(
    chain: Iterable[BuildTestRecord], failure_only: bool = False
) -> CategoryDataset:
    names = _series_names(failure_only)
    series: dict[str, dict[int, int]] = {name: {} for name in names}
    tooltips: dict[str, dict[int, str]] = {name: {} for name in names}

    for record in chain:
        number = record.build_number
        series[FAILED][number] = record.fail_count
        tooltips[FAILED][number] = f"{record.fail_count} failed"
        if failure_only:
            continue
        series[SKIPPED][number] = record.skip_count
        tooltips[SKIPPED][number] = f"{record.skip_count} skipped"
        series[TOTAL][number] = record.total_count - record.fail_count - record.skip_count
        tooltips[TOTAL][number] = f"{record.total_count} tests"

    return CategoryDataset(series=series, tooltips=tooltips)
