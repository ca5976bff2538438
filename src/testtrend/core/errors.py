class TrendError(Exception):
    """Base class for errors raised by the trend engine."""


class DataConsistencyError(TrendError):
    """A build history association is corrupted.

    Raised when the same record is reachable from two different builds, or
    when a record reports a build number other than the build it was loaded
    from. Never recovered: the scan aborts.
    """


class MissingHistoryError(TrendError):
    """A build's test record cannot be loaded."""


class InvalidQueryOption(TrendError, ValueError):
    """A query option carries a value outside its known choices."""
