import logging
from collections.abc import Iterator

from testtrend.core.counts import aggregate_counts, aggregate_totals
from testtrend.core.datasets import CategoryDataset, FlapperDataset
from testtrend.core.durations import detect_lengthy_tests
from testtrend.core.errors import MissingHistoryError
from testtrend.core.flappers import detect_flappers
from testtrend.core.models import (
    ALL_PROJECTS,
    BuildTestRecord,
    TrendConfig,
    TrendQuery,
    TrendType,
)
from testtrend.core.projects import project_list
from testtrend.core.summary import (
    BuildSummary,
    failure_diff,
    resolve_trend,
    summarize,
)
from testtrend.core.walker import previous_record, walk_builds
from testtrend.ports.protocols import BuildRecordProvider

logger = logging.getLogger(__name__)


class TrendEngine:
    """Runs trend queries against the build history of one provider.

    Every call walks the history again and keeps its intermediate state local,
    so one engine can serve concurrent queries.
    """

    def __init__(
        self, provider: BuildRecordProvider, config: TrendConfig | None = None
    ) -> None:
        self.provider = provider
        self.config = config or TrendConfig()

    def last_record(self, kind: str | None = None) -> BuildTestRecord | None:
        kind = kind or self.config.kind
        number = self.provider.latest_build()
        while number is not None:
            try:
                record = self.provider.load_record(number, kind)
            except MissingHistoryError as exc:
                logger.debug("latest history unavailable: %s", exc)
                return None
            if record is not None:
                return record
            number = self.provider.previous_build(number)
        return None

    def chain(self, start: BuildTestRecord) -> Iterator[BuildTestRecord]:
        return walk_builds(self.provider, start, cap=self.config.max_builds)

    def project_list(self, start: BuildTestRecord | None = None) -> list[str]:
        start = start or self._require_last()
        return project_list([start], limit=self.config.project_limit)

    def render_dataset(
        self, query: TrendQuery, start: BuildTestRecord | None = None
    ) -> CategoryDataset | FlapperDataset:
        start = start or self._require_last()
        level = query.project_level

        if level != ALL_PROJECTS and level not in self.project_list(start):
            logger.debug("unknown project level %r, showing build totals", level)
            return aggregate_totals(self.chain(start), query.failure_only)

        if query.trend_type is TrendType.LENGTHY_TESTS:
            return detect_lengthy_tests(self.chain(start), level, query.metric_name)
        if query.trend_type is TrendType.FLAKY_TESTS:
            return detect_flappers(
                self.chain(start),
                level,
                query.order_by,
                window=self.config.flap_window,
                limit=self.config.flapper_limit,
            )
        return aggregate_counts(self.chain(start), level, query.failure_only)

    def summary(
        self, start: BuildTestRecord | None = None
    ) -> tuple[BuildSummary | None, str]:
        start = start or self._require_last()
        previous = previous_record(self.provider, start)
        summary = summarize(start, previous, resolve_trend(start, previous))
        return summary, failure_diff(start, previous)

    def _require_last(self) -> BuildTestRecord:
        record = self.last_record()
        if record is None:
            raise MissingHistoryError("No test history recorded")
        return record
