import logging
from collections.abc import Iterator

from testtrend.core.errors import DataConsistencyError, MissingHistoryError
from testtrend.core.models import BuildTestRecord
from testtrend.ports.protocols import BuildRecordProvider

logger = logging.getLogger(__name__)


def previous_record(
    provider: BuildRecordProvider, record: BuildTestRecord, eager: bool = True
) -> BuildTestRecord | None:
    number = record.build_number

    while True:
        # Lazy walks assume no gaps and never force a load of an unloaded build.
        if not eager and not provider.is_materialized(number - 1):
            logger.debug("build #%d is not loaded, stopping history walk", number - 1)
            return None

        previous = provider.previous_build(number)
        if previous is None:
            return None
        if previous >= number:
            raise DataConsistencyError(
                f"build #{previous} is listed as preceding build #{number}"
            )

        try:
            candidate = provider.load_record(previous, record.kind)
        except MissingHistoryError as exc:
            logger.debug("history for build #%d unavailable: %s", previous, exc)
            return None

        if candidate is not None:
            if candidate is record:
                raise DataConsistencyError(
                    f"record of build #{record.build_number} "
                    f"was attached to both #{previous} and #{record.build_number}"
                )
            if candidate.build_number != previous:
                raise DataConsistencyError(
                    f"record of build #{candidate.build_number} "
                    f"was attached to build #{previous}"
                )
            return candidate

        number = previous


def walk_builds(
    provider: BuildRecordProvider,
    start: BuildTestRecord,
    cap: int | None = None,
    eager: bool = False,
) -> Iterator[BuildTestRecord]:
    """Yield ``start`` and its predecessors of the same kind, newest first.

    The walk ends at the oldest build, after ``cap`` records, or, unless
    ``eager`` is set, at the first build the provider has not loaded yet.
    Each call starts over from ``start``.
    """
    count = 0
    record: BuildTestRecord | None = start

    while record is not None:
        yield record
        count += 1
        if cap is not None and count >= cap:
            logger.debug("capping test trend for build #%d at %d", start.build_number, cap)
            break
        record = previous_record(provider, record, eager=eager)

    logger.debug("total test trend count for build #%d: %d", start.build_number, count)
