from typing import Protocol

from testtrend.core.models import BuildTestRecord


class BuildRecordProvider(Protocol):
    def load_record(self, build_number: int, kind: str) -> BuildTestRecord | None: ...

    def previous_build(self, build_number: int) -> int | None: ...

    def is_materialized(self, build_number: int) -> bool: ...

    def latest_build(self) -> int | None: ...


class StoragePort(BuildRecordProvider, Protocol):
    def save_record(self, record: BuildTestRecord) -> None: ...

    def build_numbers(self) -> list[int]: ...

    def clear(self) -> None: ...

    def close(self) -> None: ...
