import pytest

from testtrend.core.durations import (
    LENGTHY_TESTS,
    MaxMetric,
    MeanMetric,
    PrevMetric,
    ThresholdMetric,
    detect_lengthy_tests,
    get_metric,
)
from testtrend.core.models import DurationMetric, TestCase


def _case(duration: float, name: str = "pkg.Suite.test") -> TestCase:
    return TestCase(full_name=name, name=name.rpartition(".")[2], duration=duration)


@pytest.fixture
def duration_chain(make_record):
    def _make(durations, name="pkg.Suite.test"):
        records = [
            make_record(index + 1, passed=[(name, duration)])
            for index, duration in enumerate(durations)
        ]
        return list(reversed(records))

    return _make


def test_get_metric_returns_correct_strategies():
    assert isinstance(get_metric(DurationMetric.THRESHOLD), ThresholdMetric)
    assert isinstance(get_metric(DurationMetric.MAX), MaxMetric)
    assert isinstance(get_metric(DurationMetric.PREV), PrevMetric)
    assert isinstance(get_metric(DurationMetric.MEAN), MeanMetric)


def test_get_metric_returns_fresh_state():
    first = get_metric(DurationMetric.MAX)
    first.observe(_case(1.0))

    assert get_metric(DurationMetric.MAX).baselines == {}


def test_get_metric_raises_for_unknown_metric():
    with pytest.raises(ValueError, match="Unknown duration metric"):
        get_metric("median")  # type: ignore[arg-type]


def test_threshold_metric():
    metric = ThresholdMetric()

    assert metric.observe(_case(0.003))
    assert not metric.observe(_case(0.002))
    assert not metric.observe(_case(0.001))


def test_max_metric():
    metric = MaxMetric()

    assert [metric.observe(_case(d)) for d in (2.0, 1.0, 3.0, 2.5, 3.5)] == [
        False,
        False,
        True,
        False,
        True,
    ]
    assert metric.baselines["pkg.Suite.test"] == 3.5


def test_prev_metric():
    metric = PrevMetric()

    assert [metric.observe(_case(d)) for d in (2.0, 1.0, 3.0, 2.5, 3.5)] == [
        False,
        False,
        True,
        False,
        True,
    ]
    assert metric.baselines["pkg.Suite.test"] == 3.5


def test_mean_metric_ewma():
    metric = MeanMetric()

    assert not metric.observe(_case(1.0))
    assert metric.baselines["pkg.Suite.test"] == 1.0
    assert metric.observe(_case(2.0))
    assert metric.baselines["pkg.Suite.test"] == 1.5
    assert metric.observe(_case(3.0))
    assert metric.baselines["pkg.Suite.test"] == 2.25


def test_mean_metric_rounds_to_five_decimals():
    metric = MeanMetric()
    metric.observe(_case(0.1))
    metric.observe(_case(0.123456789))

    assert metric.baselines["pkg.Suite.test"] == round(0.5 * 0.123456789 + 0.05, 5)


def test_mean_metric_is_reproducible():
    durations = [0.3, 0.71, 0.123456, 1.9, 0.000017, 0.5]

    def _run():
        metric = MeanMetric()
        flags = [metric.observe(_case(d)) for d in durations]
        return flags, metric.baselines["pkg.Suite.test"]

    assert _run() == _run()


def test_baselines_are_tracked_per_test():
    metric = MaxMetric()
    metric.observe(_case(5.0, "pkg.A.slow"))

    assert not metric.observe(_case(1.0, "pkg.A.fast"))
    assert metric.observe(_case(1.5, "pkg.A.fast"))


def test_detect_lengthy_tests_mean_example(duration_chain):
    dataset = detect_lengthy_tests(duration_chain([1.0, 2.0, 3.0]))

    assert dataset.series_names == [LENGTHY_TESTS]
    assert dataset.series[LENGTHY_TESTS] == {1: 0, 2: 1, 3: 1}
    assert dataset.tooltip(LENGTHY_TESTS, 2) == "test"
    assert dataset.tooltip(LENGTHY_TESTS, 1) == ""


def test_detect_lengthy_tests_processes_oldest_first(duration_chain):
    # Build 1 ran 3.0s and build 3 ran 1.0s: nothing got slower.
    dataset = detect_lengthy_tests(duration_chain([3.0, 2.0, 1.0]), metric=DurationMetric.PREV)

    assert dataset.series[LENGTHY_TESTS] == {1: 0, 2: 0, 3: 0}


@pytest.mark.parametrize("metric", [DurationMetric.MEAN, DurationMetric.MAX, DurationMetric.PREV])
def test_first_pass_never_flagged(duration_chain, metric):
    dataset = detect_lengthy_tests(duration_chain([100.0]), metric=metric)

    assert dataset.series[LENGTHY_TESTS] == {1: 0}


def test_first_pass_flagged_only_by_threshold(duration_chain):
    dataset = detect_lengthy_tests(duration_chain([1.0]), metric=DurationMetric.THRESHOLD)

    assert dataset.series[LENGTHY_TESTS] == {1: 1}


def test_detect_lengthy_tests_ignores_failed_and_filtered_tests(make_record):
    chain = [
        make_record(
            2,
            failed=[("com.a.T.slow", 9.0)],
            passed=[("com.a.T.other", 5.0), ("org.b.T.elsewhere", 5.0)],
        ),
        make_record(
            1,
            passed=[("com.a.T.slow", 1.0), ("com.a.T.other", 1.0), ("org.b.T.elsewhere", 1.0)],
        ),
    ]

    dataset = detect_lengthy_tests(chain, project_level="com", metric=DurationMetric.MAX)

    assert dataset.series[LENGTHY_TESTS] == {1: 0, 2: 1}
    assert dataset.tooltip(LENGTHY_TESTS, 2) == "other"


def test_detect_lengthy_tests_accepts_metric_name(duration_chain):
    dataset = detect_lengthy_tests(duration_chain([1.0, 2.0]), metric="max")

    assert dataset.series[LENGTHY_TESTS] == {1: 0, 2: 1}
