from collections.abc import Iterable

from testtrend.core.models import ALL_PROJECTS, BuildTestRecord, TestCase

PROJECT_LIMIT = 50


def matches(full_name: str, project_level: str) -> bool:
    # Literal prefix: "com" also selects "comX.Y".
    return project_level == ALL_PROJECTS or full_name.startswith(project_level)


def filter_tests(tests: Iterable[TestCase], project_level: str) -> list[TestCase]:
    return [case for case in tests if matches(case.full_name, project_level)]


def class_name(full_name: str) -> str:
    return full_name.rpartition(".")[0]


def _class_names(records: Iterable[BuildTestRecord]) -> list[str]:
    names: dict[str, None] = {}
    for record in records:
        for tests in (record.failed_tests, record.passed_tests, record.skipped_tests):
            for case in tests:
                names.setdefault(class_name(case.full_name), None)
    return list(names)


def project_list(
    records: Iterable[BuildTestRecord], limit: int = PROJECT_LIMIT
) -> list[str]:
    """Package prefixes of every test class, at every level of the hierarchy.

    Once more than ``limit`` prefixes are known, the deepest level collected
    so far is dropped as a whole and nothing deeper is collected afterwards.
    Top-level packages are never dropped; past the limit, new ones are
    ignored.
    """
    levels: dict[int, set[str]] = {}
    count = 0
    level_cap: int | None = None

    for suite in _class_names(records):
        packages = suite.split(".")[:-1]
        project = ""
        for level, package in enumerate(packages):
            if level_cap is not None and level > level_cap:
                break
            project = f"{project}.{package}" if project else package
            known = levels.setdefault(level, set())
            if project not in known:
                known.add(project)
                count += 1
            if count > limit:
                deepest = len(levels) - 1
                if deepest == 0:
                    known.discard(project)
                    count -= 1
                    break
                count -= len(levels.pop(deepest))
                level_cap = deepest - 1

    return sorted(project for names in levels.values() for project in names)
