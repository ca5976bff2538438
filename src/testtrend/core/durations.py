import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable

from testtrend.core.datasets import CategoryDataset
from testtrend.core.models import ALL_PROJECTS, BuildTestRecord, DurationMetric, TestCase
from testtrend.core.projects import matches
from testtrend.core.tooltips import ToolTip

logger = logging.getLogger(__name__)

LENGTHY_TESTS = "Lengthy Tests"
THRESHOLD_SECONDS = 0.002
EWMA_ALPHA = 0.5


class DurationMetricStrategy(ABC):
    @abstractmethod
    def observe(self, case: TestCase) -> bool:
        """Return whether ``case`` ran longer than its baseline, then update it."""


class ThresholdMetric(DurationMetricStrategy):
    def __init__(self, threshold: float = THRESHOLD_SECONDS) -> None:
        self.threshold = threshold

    def observe(self, case: TestCase) -> bool:
        return case.duration > self.threshold


class BaselineMetric(DurationMetricStrategy):
    def __init__(self) -> None:
        self.baselines: dict[str, float] = {}

    def observe(self, case: TestCase) -> bool:
        baseline = self.baselines.get(case.full_name)
        if baseline is None:
            # The first pass only seeds the baseline.
            self.baselines[case.full_name] = case.duration
            return False
        self.baselines[case.full_name] = self.update(baseline, case.duration)
        return case.duration > baseline

    @abstractmethod
    def update(self, baseline: float, duration: float) -> float: ...


class MaxMetric(BaselineMetric):
    def update(self, baseline: float, duration: float) -> float:
        return max(baseline, duration)


class PrevMetric(BaselineMetric):
    def update(self, baseline: float, duration: float) -> float:
        return duration


class MeanMetric(BaselineMetric):
    def __init__(self, alpha: float = EWMA_ALPHA) -> None:
        super().__init__()
        self.alpha = alpha

    def update(self, baseline: float, duration: float) -> float:
        return round(self.alpha * duration + (1 - self.alpha) * baseline, 5)


def get_metric(metric: DurationMetric) -> DurationMetricStrategy:
    strategies: dict[DurationMetric, type[DurationMetricStrategy]] = {
        DurationMetric.THRESHOLD: ThresholdMetric,
        DurationMetric.MAX: MaxMetric,
        DurationMetric.PREV: PrevMetric,
        DurationMetric.MEAN: MeanMetric,
    }

    strategy = strategies.get(metric)
    if strategy is None:
        raise ValueError(f"Unknown duration metric: {metric}")

    return strategy()


def detect_lengthy_tests(
    chain: Iterable[BuildTestRecord],
    project_level: str = ALL_PROJECTS,
    metric: DurationMetric = DurationMetric.MEAN,
) -> CategoryDataset:
    metric = DurationMetric(metric)
    strategy = get_metric(metric)
    counts: dict[int, int] = {}
    tooltips: dict[int, str] = {}

    # Baselines carry forward in time, so replay the newest-first chain backwards.
    stack = list(chain)
    while stack:
        record = stack.pop()
        lengthy = 0
        tooltip = ToolTip()
        for case in record.passed_tests:
            if not matches(case.full_name, project_level):
                continue
            if strategy.observe(case):
                lengthy += 1
                tooltip.add(case.name)
        counts[record.build_number] = lengthy
        tooltips[record.build_number] = str(tooltip)

    logger.debug("lengthy tests by %s over %d build(s)", metric.value, len(counts))
    return CategoryDataset(
        series={LENGTHY_TESTS: counts}, tooltips={LENGTHY_TESTS: tooltips}
    )
