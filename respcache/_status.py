from __future__ import annotations

import typing as tp

from ._exceptions import ConfigError

__all__ = ("DEFAULT_NOT_CACHE", "StatusFilter", "parse_status_spec")

DEFAULT_NOT_CACHE: tp.Tuple[tp.Union[int, str], ...] = ("299-599",)

StatusSpec = tp.Iterable[tp.Union[int, str]]


def parse_status_spec(spec: StatusSpec) -> tp.FrozenSet[int]:
    """
    Expand an exclusion spec into the set of status codes it names.

    Each item is either a status code (``404`` or ``"404"``) or an inclusive
    range string (``"500-599"``).

    Example:
        ```python
        assert parse_status_spec([204, "500-502"]) == {204, 500, 501, 502}
        ```
    """
    if isinstance(spec, (str, int)):
        raise ConfigError(f"Expected a list of status codes or ranges, got {spec!r}")

    statuses: tp.Set[int] = set()
    for item in spec:
        if isinstance(item, bool):
            raise ConfigError(f"Invalid status code: {item!r}")
        if isinstance(item, int):
            statuses.add(item)
            continue
        if not isinstance(item, str):
            raise ConfigError(f"Invalid status code: {item!r}")

        low, sep, high = item.strip().partition("-")
        try:
            if not sep:
                statuses.add(int(low))
                continue
            start, end = int(low), int(high)
        except ValueError:
            raise ConfigError(f"Invalid status code or range: {item!r}") from None

        if start > end:
            raise ConfigError(f"Invalid status range, {start} is greater than {end}: {item!r}")
        statuses.update(range(start, end + 1))
    return frozenset(statuses)


class StatusFilter:
    """Decides whether a response status may be written to the store."""

    def __init__(self, not_cache: StatusSpec = DEFAULT_NOT_CACHE) -> None:
        self.excluded = parse_status_spec(not_cache)

    def is_cacheable(self, status_code: int) -> bool:
        return status_code not in self.excluded

    def __repr__(self) -> str:
        return f"{type(self).__name__}(excluded={len(self.excluded)} codes)"
