from collections.abc import Mapping


def top_k(scores: Mapping[str, int], k: int) -> list[str]:
    """Names ordered by score descending, then name ascending, at most ``k``."""
    ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    return [name for name, _ in ranked[: max(k, 0)]]

