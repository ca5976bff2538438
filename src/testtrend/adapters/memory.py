from collections.abc import Iterable

from testtrend.core.errors import MissingHistoryError
from testtrend.core.models import BuildTestRecord


class InMemoryHistory:
    """Build history held in memory.

    ``materialized`` limits which build numbers count as loaded; ``None``
    means all of them. Builds listed in ``broken`` exist but fail to load.
    """

    def __init__(
        self,
        records: Iterable[BuildTestRecord] = (),
        materialized: Iterable[int] | None = None,
        broken: Iterable[int] = (),
    ) -> None:
        self._builds: set[int] = set()
        self._records: dict[tuple[int, str], BuildTestRecord] = {}
        self.materialized = set(materialized) if materialized is not None else None
        self.broken = set(broken)
        for record in records:
            self.save_record(record)

    def add_build(self, build_number: int) -> None:
        self._builds.add(build_number)

    def attach(self, build_number: int, record: BuildTestRecord) -> None:
        self._builds.add(build_number)
        self._records[(build_number, record.kind)] = record

    def save_record(self, record: BuildTestRecord) -> None:
        self.attach(record.build_number, record)

    def load_record(self, build_number: int, kind: str) -> BuildTestRecord | None:
        if build_number in self.broken:
            raise MissingHistoryError(f"Build #{build_number} cannot be loaded")
        return self._records.get((build_number, kind))

    def previous_build(self, build_number: int) -> int | None:
        earlier = [number for number in self._builds if number < build_number]
        return max(earlier) if earlier else None

    def is_materialized(self, build_number: int) -> bool:
        return self.materialized is None or build_number in self.materialized

    def latest_build(self) -> int | None:
        return max(self._builds) if self._builds else None

    def build_numbers(self) -> list[int]:
        return sorted(self._builds)

    def clear(self) -> None:
        self._builds.clear()
        self._records.clear()

    def close(self) -> None:
        pass
