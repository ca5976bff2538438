"""Flapping test detection.

The chain is scanned once, newest build first. A test is tracked from the
first build in which it fails. Seeing it pass afterwards arms it, and the next
failure counts as a flap. A trailing window of the last ``window`` builds
decides, for each build leaving the window, how many of the tests failing in
it were still flapping in the older builds scanned so far.
"""

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field

from testtrend.core.datasets import FlapperDataset, FlapStats, Point, XYSeries
from testtrend.core.models import ALL_PROJECTS, BuildTestRecord, OrderBy, TestOutcome
from testtrend.core.projects import filter_tests
from testtrend.core.ranking import top_k

logger = logging.getLogger(__name__)

FLAP_WINDOW = 10
FLAPPER_LIMIT = 20


@dataclass
class _TestStat:
    failures: int = 0
    flaps: int = 0
    last_outcome: TestOutcome | None = None
    failed_builds: list[int] = field(default_factory=list)
    flap_builds: deque[int] = field(default_factory=deque)


def _evict(
    window: deque[tuple[int, set[str]]],
    stats: dict[str, _TestStat],
    flapper_counts: dict[int, int],
) -> None:
    build_number, failed = window.popleft()
    flapping = 0
    for name in failed:
        history = stats[name].flap_builds
        while history and history[0] >= build_number:
            history.popleft()
        if history:
            flapping += 1
    flapper_counts[build_number] = flapping


def _polyline(failed_builds: list[int], row: int) -> list[Point]:
    points: list[Point] = []
    previous: int | None = None
    for build_number in failed_builds:
        # Break the line between failure episodes.
        if previous is not None and previous - build_number > 1:
            points.append((build_number + 1, None))
        points.append((build_number, row))
        previous = build_number
    return points


def detect_flappers(
    chain: Iterable[BuildTestRecord],
    project_level: str = ALL_PROJECTS,
    order_by: OrderBy = OrderBy.FAIL,
    window: int = FLAP_WINDOW,
    limit: int = FLAPPER_LIMIT,
) -> FlapperDataset:
    stats: dict[str, _TestStat] = {}
    recent: deque[tuple[int, set[str]]] = deque()
    flapper_counts: dict[int, int] = {}
    scaffold: list[Point] = []
    anchor: int | None = None

    for record in chain:
        if anchor is None:
            anchor = record.build_number
        if anchor - record.build_number + 1 > window and recent:
            _evict(recent, stats, flapper_counts)

        failed_here: set[str] = set()
        for case in filter_tests(record.failed_tests, project_level):
            stat = stats.setdefault(case.full_name, _TestStat())
            stat.failures += 1
            if stat.last_outcome is TestOutcome.PASSED:
                stat.flaps += 1
                stat.flap_builds.append(record.build_number)
            stat.last_outcome = TestOutcome.FAILED
            stat.failed_builds.append(record.build_number)
            failed_here.add(case.full_name)

        for case in filter_tests(record.passed_tests, project_level):
            stat = stats.get(case.full_name)
            if stat is not None:
                stat.last_outcome = TestOutcome.PASSED

        scaffold.append((record.build_number, None))
        recent.append((record.build_number, failed_here))

    while recent:
        _evict(recent, stats, flapper_counts)

    if order_by == OrderBy.FLAP:
        scores = {name: stat.flaps for name, stat in stats.items()}
    else:
        scores = {name: stat.failures for name, stat in stats.items()}
    ranked = top_k(scores, limit)
    shown = len(ranked)

    if anchor is not None:
        scaffold.append((anchor + 0.5, shown + 0.5))

    series = [XYSeries(key=0, points=tuple(scaffold))]
    rows: list[str] = [""] * shown
    row_stats: dict[int, FlapStats] = {}
    for rank, name in enumerate(ranked, start=1):
        row = shown - rank + 1
        stat = stats[name]
        rows[row - 1] = name
        row_stats[row] = FlapStats(failures=stat.failures, flaps=stat.flaps)
        series.append(
            XYSeries(key=rank, points=tuple(_polyline(stat.failed_builds, row)))
        )

    logger.debug(
        "ranked %d of %d failing test(s) over %d build(s)",
        shown,
        len(stats),
        len(flapper_counts),
    )
    return FlapperDataset(
        series=tuple(series),
        rows=tuple(rows),
        row_stats=row_stats,
        flapper_counts=flapper_counts,
    )
