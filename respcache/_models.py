from __future__ import annotations

import enum
import typing as tp
from dataclasses import dataclass, field

import httpx

__all__ = (
    "CacheEntry",
    "CacheOutcome",
    "CacheResult",
    "CacheState",
    "Freshness",
    "Request",
    "Response",
    "StoreKind",
)

TEXTUAL_CONTENT_TYPES = (
    "application/json",
    "application/javascript",
    "application/xml",
    "application/x-www-form-urlencoded",
)


class StoreKind(str, enum.Enum):
    MEMORY = "memory"
    FILESYSTEM = "filesystem"


class Freshness(str, enum.Enum):
    FRESH = "fresh"
    STALE = "stale"
    ABSENT = "absent"


class CacheOutcome(str, enum.Enum):
    """Values of the ``X-Cache`` response header."""

    HIT = "HIT"
    MISS = "MISS"
    FRESH = "FRESH"
    STALE = "STALE"
    REVALIDATING = "REVALIDATING"
    BYPASS = "BYPASS"


def is_binary_content(content_type: str, body: bytes) -> bool:
    mime = content_type.split(";", 1)[0].strip().lower()
    textual = (
        mime.startswith("text/") or mime in TEXTUAL_CONTENT_TYPES or mime.endswith("+json") or mime.endswith("+xml")
    )
    if not textual:
        return True
    try:
        body.decode("utf-8")
    except UnicodeDecodeError:
        return True
    return False


@dataclass(frozen=True)
class CacheEntry:
    body: bytes
    timestamp: float
    """Unix time at which the response was produced."""

    content_type: str
    is_binary: bool
    status_code: int = 200

    def age(self, now: float) -> float:
        return now - self.timestamp

    def to_metadata(self) -> tp.Dict[str, tp.Any]:
        return {
            "timestamp": self.timestamp,
            "content_type": self.content_type,
            "is_binary": self.is_binary,
            "status_code": self.status_code,
        }

    @classmethod
    def from_metadata(cls, body: bytes, metadata: tp.Mapping[str, tp.Any]) -> "CacheEntry":
        return cls(
            body=body,
            timestamp=float(metadata["timestamp"]),
            content_type=str(metadata["content_type"]),
            is_binary=bool(metadata["is_binary"]),
            status_code=int(metadata.get("status_code", 200)),
        )


@dataclass
class CacheState:
    """
    Per-request record of what the cache did, attached to the ASGI scope as
    ``scope["state"]["response_cache"]``.
    """

    hit: bool = False
    stale: bool = False
    revalidating: bool = False
    miss: bool = False
    bypass: bool = False
    fresh: bool = False
    store_type: tp.Optional[StoreKind] = None

    def reset(self) -> None:
        self.hit = self.stale = self.revalidating = False
        self.miss = self.bypass = self.fresh = False

    @property
    def is_neutral(self) -> bool:
        return not any((self.hit, self.stale, self.revalidating, self.miss, self.bypass, self.fresh))


@dataclass
class Request:
    method: str
    url: str
    """Request target: path plus the raw query string."""

    state: CacheState = field(default_factory=CacheState)


@dataclass
class Response:
    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: bytes = b""


@dataclass
class CacheResult:
    response: Response
    outcome: tp.Optional[CacheOutcome]
    background: tp.Optional[tp.Callable[[], tp.Awaitable[None]]] = None
    """Work to run once the response has been sent to the client."""
