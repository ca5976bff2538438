from rich.console import Console
from rich.markup import escape
from rich.table import Table

from testtrend.core.datasets import CategoryDataset, FlapperDataset
from testtrend.core.models import BuildTestRecord
from testtrend.core.summary import BuildSummary


class RichReporter:
    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def report(self, dataset: CategoryDataset | FlapperDataset, title: str = "Test Trend") -> None:
        if isinstance(dataset, FlapperDataset):
            self.report_flappers(dataset, title)
        else:
            self.report_counts(dataset, title)

    def report_counts(self, dataset: CategoryDataset, title: str = "Test Trend") -> None:
        if not dataset.builds:
            self.console.print("[yellow]No builds to report.[/yellow]")
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Build", justify="right")
        for name in dataset.series_names:
            table.add_column(name.capitalize(), justify="right")
        lead = dataset.series_names[0]
        table.add_column("Tests", style="dim", no_wrap=False)

        for build_number in reversed(dataset.builds):
            values = [str(dataset.value(name, build_number)) for name in dataset.series_names]
            if dataset.value(lead, build_number) > 0:
                values[0] = f"[red]{values[0]}[/red]"
            table.add_row(
                f"#{build_number}", *values, escape(dataset.tooltip(lead, build_number))
            )

        self.console.print(table)

    def report_flappers(self, dataset: FlapperDataset, title: str = "Flaky Tests") -> None:
        if not dataset.rows:
            self.console.print("[green]No failing tests in the history.[/green]")
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Rank", justify="right")
        table.add_column("Test", style="dim", no_wrap=False)
        table.add_column("Failures", justify="right")
        table.add_column("Flaps", justify="right")
        table.add_column("Failed Builds", no_wrap=False)

        for rank, name in enumerate(dataset.ranked_names, start=1):
            stats = dataset.row_stats[dataset.row_of(name)]
            flap_color = "red" if stats.flaps > 1 else "yellow" if stats.flaps else "green"
            builds = ", ".join(f"#{n}" for n in dataset.failed_builds(name))
            table.add_row(
                str(rank),
                escape(name),
                str(stats.failures),
                f"[{flap_color}]{stats.flaps}[/{flap_color}]",
                builds,
            )

        self.console.print(table)
        self._print_flapping_builds(dataset)

    def _print_flapping_builds(self, dataset: FlapperDataset) -> None:
        flapping = {n: c for n, c in dataset.flapper_counts.items() if c > 0}
        self.console.print()
        if not flapping:
            self.console.print("No build had tests flapping in its window.")
            return
        self.console.print("[bold]Flapping tests per build:[/bold]")
        for build_number in sorted(flapping, reverse=True):
            self.console.print(f"  #{build_number}: {flapping[build_number]}")

    def report_projects(self, projects: list[str]) -> None:
        if not projects:
            self.console.print("[yellow]No projects found.[/yellow]")
            return
        self.console.print(f"Found {len(projects)} project level(s):")
        for project in projects:
            self.console.print(f"  - {escape(project)}")

    def report_summary(
        self, record: BuildTestRecord, summary: BuildSummary | None, diff: str
    ) -> None:
        self.console.print(
            f"[bold]Build #{record.build_number}[/bold]: "
            f"{record.total_count} tests, {record.fail_count} failed{diff}, "
            f"{record.skip_count} skipped"
        )
        if summary is None:
            self.console.print("[green]No test failures.[/green]")
            return
        color = "red" if summary.worse else "yellow"
        self.console.print(f"[{color}]{summary.message}[/{color}]")
