from __future__ import annotations

import typing as tp
from dataclasses import dataclass
from pathlib import Path

from ._exceptions import ConfigError
from ._models import StoreKind
from ._status import DEFAULT_NOT_CACHE, parse_status_spec

__all__ = ("CacheConfig", "DEFAULT_CACHE_DIR")

DEFAULT_CACHE_DIR = Path(".cache/respcache")

STORE_ALIASES = {
    "memory": StoreKind.MEMORY,
    "mem": StoreKind.MEMORY,
    "filesystem": StoreKind.FILESYSTEM,
    "fs": StoreKind.FILESYSTEM,
}

OPTION_ALIASES = {
    "browser": "browser_ttl",
    "browser_ttl": "browser_ttl",
    "server": "server_ttl",
    "server_ttl": "server_ttl",
    "store": "store",
    "not_cache": "not_cache",
    "notCache": "not_cache",
    "cache_dir": "cache_dir",
    "methods": "methods",
}


def _parse_store_kind(value: tp.Union[str, StoreKind]) -> StoreKind:
    if isinstance(value, StoreKind):
        return value
    try:
        return STORE_ALIASES[str(value).lower()]
    except KeyError:
        raise ConfigError(f"Unknown store {value!r}, expected one of {sorted(STORE_ALIASES)}") from None


@dataclass(frozen=True)
class CacheConfig:
    """
    Settings of one cache engine.

    Attributes:
    ----------
    browser_ttl : int
        Value of the ``max-age`` directive sent to clients in ``Cache-Control``.

    server_ttl : int
        Number of seconds a stored entry is served without revalidation. Also
        the interval of the expiry sweep.

    store : StoreKind
        Which backend keeps the entries. Strings ``"memory"``, ``"mem"``,
        ``"filesystem"`` and ``"fs"`` are accepted.

    not_cache : tuple
        Status codes and ``"low-high"`` ranges that are never stored.
        Defaults to ``("299-599",)``, so only successful responses below 299
        are cached.

    cache_dir : Path
        Directory of the filesystem store.

    methods : tuple
        Request methods that go through the cache. Other methods reach the
        application untouched.
    """

    browser_ttl: int = 300
    server_ttl: int = 600
    store: StoreKind = StoreKind.FILESYSTEM
    not_cache: tp.Tuple[tp.Union[int, str], ...] = DEFAULT_NOT_CACHE
    cache_dir: Path = DEFAULT_CACHE_DIR
    methods: tp.Tuple[str, ...] = ("GET",)

    def __post_init__(self) -> None:
        for name in ("browser_ttl", "server_ttl"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                raise ConfigError(f"{name} must be a non-negative number of seconds, got {value!r}")
        if isinstance(self.not_cache, (str, int)):
            raise ConfigError(f"not_cache must be a list of status codes or ranges, got {self.not_cache!r}")
        if isinstance(self.methods, str):
            raise ConfigError(f"methods must be a list of method names, got {self.methods!r}")

        object.__setattr__(self, "store", _parse_store_kind(self.store))
        object.__setattr__(self, "not_cache", tuple(self.not_cache))
        object.__setattr__(self, "cache_dir", Path(self.cache_dir))
        object.__setattr__(self, "methods", tuple(method.upper() for method in self.methods))

        parse_status_spec(self.not_cache)

    @classmethod
    def from_options(cls, **options: tp.Any) -> "CacheConfig":
        """
        Build a config from middleware-style options.

        Accepts ``browser``, ``server``, ``store``, ``notCache`` as well as
        the attribute names of this class.

        Example:
            ```python
            config = CacheConfig.from_options(browser=60, server=120, store="mem", notCache=["400-599"])
            ```
        """
        kwargs: tp.Dict[str, tp.Any] = {}
        for name, value in options.items():
            try:
                attribute = OPTION_ALIASES[name]
            except KeyError:
                raise ConfigError(f"Unknown cache option {name!r}") from None
            if attribute in kwargs:
                raise ConfigError(f"Cache option {attribute!r} was given more than once")
            kwargs[attribute] = value
        return cls(**kwargs)
