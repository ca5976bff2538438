"""Datasets handed to whatever renders a trend.

A :class:`CategoryDataset` backs the stacked-area views (one integer per
series per build). A :class:`FlapperDataset` backs the flaky test view: one
polyline per ranked test, x being the build number and y the display row.
"""

from pydantic import BaseModel, ConfigDict

Point = tuple[float, float | None]


class CategoryDataset(BaseModel):
    model_config = ConfigDict(frozen=True)

    series: dict[str, dict[int, int]]
    tooltips: dict[str, dict[int, str]] = {}

    @property
    def series_names(self) -> list[str]:
        return list(self.series)

    @property
    def builds(self) -> list[int]:
        numbers: set[int] = set()
        for values in self.series.values():
            numbers.update(values)
        return sorted(numbers)

    def value(self, series: str, build_number: int) -> int:
        return self.series[series].get(build_number, 0)

    def tooltip(self, series: str, build_number: int) -> str:
        return self.tooltips.get(series, {}).get(build_number, "")


class XYSeries(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: int
    points: tuple[Point, ...] = ()


class FlapStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    failures: int
    flaps: int


class FlapperDataset(BaseModel):
    """Ranked flapper polylines.

    ``series[0]`` is the axis scaffold: a null point for every visited build
    and one terminal point sized to the number of rows. ``series[i]`` belongs
    to the i-th ranked test, drawn on row ``len(rows) - i + 1`` so the worst
    offender sits on the top row. ``rows[row - 1]`` names the test on a row.
    """

    model_config = ConfigDict(frozen=True)

    series: tuple[XYSeries, ...]
    rows: tuple[str, ...] = ()
    row_stats: dict[int, FlapStats] = {}
    flapper_counts: dict[int, int] = {}

    @property
    def ranked_names(self) -> list[str]:
        return list(reversed(self.rows))

    def row_of(self, name: str) -> int:
        return self.rows.index(name) + 1

    def failed_builds(self, name: str) -> list[int]:
        rank = len(self.rows) - self.row_of(name) + 1
        return [int(x) for x, y in self.series[rank].points if y is not None]

    def tooltip(self, build_number: int, row: int) -> str:
        stats = self.row_stats[row]
        return (
            f"Build #{build_number}\n"
            f"{self.rows[row - 1]}\n"
            f"Total failures: {stats.failures}\n"
            f"Flaps: {stats.flaps}\n"
            f"Flapping tests in build: {self.flapper_counts.get(build_number, 0)}"
        )
