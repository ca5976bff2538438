from enum import Enum

from pydantic import BaseModel, ConfigDict

from testtrend.core.models import BuildTestRecord


class ResultTrend(str, Enum):
    SUCCESS = "success"
    FIXED = "fixed"
    UNSTABLE = "unstable"
    NOW_UNSTABLE = "now_unstable"
    STILL_UNSTABLE = "still_unstable"


class BuildSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    worse: bool
    message: str


def resolve_trend(
    current: BuildTestRecord, previous: BuildTestRecord | None
) -> ResultTrend:
    if current.fail_count == 0:
        if previous is not None and previous.fail_count > 0:
            return ResultTrend.FIXED
        return ResultTrend.SUCCESS
    if previous is None:
        return ResultTrend.UNSTABLE
    if previous.fail_count == 0:
        return ResultTrend.NOW_UNSTABLE
    return ResultTrend.STILL_UNSTABLE


def _diff_string(delta: int) -> str:
    if delta == 0:
        return "±0"
    return f"+{delta}" if delta > 0 else str(delta)


def failure_diff(current: BuildTestRecord, previous: BuildTestRecord | None) -> str:
    if previous is None:
        return ""
    return " / " + _diff_string(current.fail_count - previous.fail_count)


def summarize(
    current: BuildTestRecord, previous: BuildTestRecord | None, trend: ResultTrend
) -> BuildSummary | None:
    overrides: dict[ResultTrend, bool | None] = {
        ResultTrend.NOW_UNSTABLE: False,
        ResultTrend.UNSTABLE: True,
        ResultTrend.STILL_UNSTABLE: None,
    }
    if trend not in overrides:
        return None
    override = overrides[trend]

    def _summary(worse: bool, message: str) -> BuildSummary:
        return BuildSummary(worse=worse if override is None else override, message=message)

    failures = current.fail_count
    if failures == 0:
        return None
    if previous is None:
        return _summary(True, f"{failures} test failures")

    previous_failures = previous.fail_count
    if previous_failures == 0:
        return _summary(True, f"{failures} tests started to fail")
    if previous_failures < failures:
        return _summary(
            True, f"{failures - previous_failures} more tests are failing (total {failures})"
        )
    if previous_failures > failures:
        return _summary(
            False, f"{previous_failures - failures} fewer tests are failing (total {failures})"
        )
    return _summary(False, f"{failures} tests are still failing")
