import logging
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from testtrend.core.errors import InvalidQueryOption

logger = logging.getLogger(__name__)

ALL_PROJECTS = "AllProjects"
DEFAULT_KIND = "junit"


class TestOutcome(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class TrendType(str, Enum):
    BUILD_ANALYSIS = "BuildAnalysis"
    LENGTHY_TESTS = "LengthyTests"
    FLAKY_TESTS = "FlakyTests"


class DurationMetric(str, Enum):
    MEAN = "mean"
    MAX = "max"
    PREV = "prev"
    THRESHOLD = "threshold"


class OrderBy(str, Enum):
    FAIL = "fail"
    FLAP = "flap"


class TestCase(BaseModel):
    model_config = ConfigDict(frozen=True)

    full_name: str
    name: str
    duration: float = Field(default=0.0, ge=0.0)


class BuildTestRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    build_number: int = Field(ge=0)
    kind: str = DEFAULT_KIND
    failed_tests: tuple[TestCase, ...] = ()
    passed_tests: tuple[TestCase, ...] = ()
    skipped_tests: tuple[TestCase, ...] = ()

    @property
    def fail_count(self) -> int:
        return len(self.failed_tests)

    @property
    def skip_count(self) -> int:
        return len(self.skipped_tests)

    @property
    def pass_count(self) -> int:
        return len(self.passed_tests)

    @property
    def total_count(self) -> int:
        return self.fail_count + self.skip_count + self.pass_count

    def tests(self, outcome: TestOutcome) -> tuple[TestCase, ...]:
        if outcome is TestOutcome.FAILED:
            return self.failed_tests
        if outcome is TestOutcome.SKIPPED:
            return self.skipped_tests
        return self.passed_tests


def parse_option(enum_cls: type[Enum], value: Any) -> Enum:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise InvalidQueryOption(f"Unknown {enum_cls.__name__} option: {value!r}") from exc


def _option_or_default(enum_cls: type[Enum], value: Any, default: Enum) -> Enum:
    if value is None:
        return default
    try:
        return parse_option(enum_cls, value)
    except InvalidQueryOption as exc:
        logger.debug("%s, using %s", exc, default.value)
        return default


class TrendQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_level: str = ALL_PROJECTS
    trend_type: TrendType = TrendType.BUILD_ANALYSIS
    metric_name: DurationMetric = DurationMetric.MEAN
    order_by: OrderBy = OrderBy.FAIL
    failure_only: bool = False

    @model_validator(mode="before")
    @classmethod
    def _split_trend_metric(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        trend_type = data.get("trend_type")
        if isinstance(trend_type, str) and "_" in trend_type:
            trend, _, metric = trend_type.rpartition("_")
            data = {**data, "trend_type": trend, "metric_name": metric}
        return data

    @field_validator("project_level", mode="before")
    @classmethod
    def _default_project_level(cls, value: Any) -> str:
        if isinstance(value, str):
            return value
        if value is not None:
            logger.debug("Unknown project level: %r, using %s", value, ALL_PROJECTS)
        return ALL_PROJECTS

    @field_validator("trend_type", mode="before")
    @classmethod
    def _parse_trend_type(cls, value: Any) -> TrendType:
        return _option_or_default(TrendType, value, TrendType.BUILD_ANALYSIS)

    @field_validator("metric_name", mode="before")
    @classmethod
    def _parse_metric_name(cls, value: Any) -> DurationMetric:
        return _option_or_default(DurationMetric, value, DurationMetric.MEAN)

    @field_validator("order_by", mode="before")
    @classmethod
    def _parse_order_by(cls, value: Any) -> OrderBy:
        return _option_or_default(OrderBy, value, OrderBy.FAIL)

    @field_validator("failure_only", mode="before")
    @classmethod
    def _parse_failure_only(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return False

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "TrendQuery":
        aliases = {
            "projectLevel": "project_level",
            "trendType": "trend_type",
            "metricName": "metric_name",
            "orderBy": "order_by",
            "failureOnly": "failure_only",
        }
        data = {}
        for key, value in options.items():
            field = aliases.get(key, key)
            if field in cls.model_fields:
                data[field] = value
        return cls(**data)


class TrendConfig(BaseModel):
    db_path: Path = Field(default=Path(".testtrend/history.db"))
    kind: str = DEFAULT_KIND
    max_builds: int | None = Field(default=None, ge=1)
    flap_window: int = Field(default=10, ge=1)
    flapper_limit: int = Field(default=20, ge=1)
    project_limit: int = Field(default=50, ge=1)
