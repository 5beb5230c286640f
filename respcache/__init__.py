from respcache.__version__ import __version__ as __version__
from respcache._config import CacheConfig as CacheConfig
from respcache._engine import CACHE_STATUS_HEADER as CACHE_STATUS_HEADER, AsyncCacheEngine as AsyncCacheEngine
from respcache._exceptions import (
    ConfigError as ConfigError,
    MalformedEntry as MalformedEntry,
    RespCacheError as RespCacheError,
    StoreError as StoreError,
    StoreUnavailable as StoreUnavailable,
)
from respcache._freshness import evaluate_freshness as evaluate_freshness
from respcache._janitor import Janitor as Janitor
from respcache._keygen import normalize_key as normalize_key
from respcache._models import (
    CacheEntry as CacheEntry,
    CacheOutcome as CacheOutcome,
    CacheResult as CacheResult,
    CacheState as CacheState,
    Freshness as Freshness,
    Request as Request,
    Response as Response,
    StoreKind as StoreKind,
)
from respcache._status import StatusFilter as StatusFilter, parse_status_spec as parse_status_spec
from respcache._storages import (
    AsyncBaseStore as AsyncBaseStore,
    AsyncFileStore as AsyncFileStore,
    AsyncInMemoryStore as AsyncInMemoryStore,
)

__all__ = (
    "__version__",
    # Engine
    "AsyncCacheEngine",
    "CacheConfig",
    "CACHE_STATUS_HEADER",
    "Janitor",
    ## Building blocks
    "normalize_key",
    "evaluate_freshness",
    "StatusFilter",
    "parse_status_spec",
    ## Models
    "CacheEntry",
    "CacheOutcome",
    "CacheResult",
    "CacheState",
    "Freshness",
    "Request",
    "Response",
    "StoreKind",
    # Stores
    "AsyncBaseStore",
    "AsyncFileStore",
    "AsyncInMemoryStore",
    # Errors
    "RespCacheError",
    "ConfigError",
    "StoreError",
    "StoreUnavailable",
    "MalformedEntry",
)
