from __future__ import annotations

import logging
import mimetypes
import time
import typing as tp

import anyio
import httpx
from typing_extensions import assert_never

from ._config import CacheConfig
from ._freshness import evaluate_freshness
from ._janitor import Janitor
from ._keygen import normalize_key
from ._models import (
    CacheEntry,
    CacheOutcome,
    CacheResult,
    Freshness,
    Request,
    Response,
    StoreKind,
    is_binary_content,
)
from ._status import StatusFilter
from ._storages import AsyncBaseStore, AsyncFileStore, AsyncInMemoryStore

logger = logging.getLogger("respcache.engine")

__all__ = ("AsyncCacheEngine", "CACHE_STATUS_HEADER", "RequestSender")

CACHE_STATUS_HEADER = "X-Cache"
DEFAULT_CONTENT_TYPE = "text/html"

RequestSender = tp.Callable[[], tp.Awaitable[Response]]


def create_store(config: CacheConfig) -> AsyncBaseStore:
    if config.store is StoreKind.MEMORY:
        return AsyncInMemoryStore()
    if config.store is StoreKind.FILESYSTEM:
        return AsyncFileStore(base_path=config.cache_dir)
    assert_never(config.store)


class AsyncCacheEngine:
    """
    Serves responses from a store and keeps the store filled.

    The engine knows nothing about the web framework in front of it. An
    adapter hands it a :class:`Request` and a ``send_request`` callable that
    runs the wrapped handler and returns the produced :class:`Response`.

    Args:
        config: Cache settings. Defaults to ``CacheConfig()``.
        store: The store to use instead of the one ``config.store`` names.

    Example:
        ```python
        engine = AsyncCacheEngine(CacheConfig(store="memory", server_ttl=60))
        result = await engine.handle(Request("GET", "/items?b=2&a=1"), call_app)
        await send_to_client(result.response)
        if result.background is not None:
            await result.background()
        ```
    """

    def __init__(self, config: tp.Optional[CacheConfig] = None, *, store: tp.Optional[AsyncBaseStore] = None) -> None:
        self.config = config if config is not None else CacheConfig()
        self.store = store if store is not None else create_store(self.config)
        self.status_filter = StatusFilter(self.config.not_cache)
        self.janitor = Janitor(self.store, ttl=self.config.server_ttl)
        self._revalidating: tp.Set[str] = set()

        logger.info(
            "Initialized AsyncCacheEngine with store=%s, browser_ttl=%s, server_ttl=%s",
            type(self.store).__name__,
            self.config.browser_ttl,
            self.config.server_ttl,
        )

    async def handle(self, request: Request, send_request: RequestSender) -> CacheResult:
        if request.method.upper() not in self.config.methods:
            logger.debug("Passing through uncacheable method: method=%s url=%s", request.method, request.url)
            return CacheResult(response=await send_request(), outcome=None)

        state = request.state
        state.store_type = self.store.kind

        key = normalize_key(request.url)
        entry = await self.store.get(key)
        freshness = evaluate_freshness(entry, self.config.server_ttl)
        logger.debug("Looked up cache entry: key=%s freshness=%s", key, freshness.value)

        if freshness is Freshness.ABSENT:
            return await self._handle_miss(key, request, send_request)
        assert entry is not None

        if freshness is Freshness.FRESH:
            state.hit = True
            return CacheResult(response=self._build_response(entry, CacheOutcome.HIT), outcome=CacheOutcome.HIT)

        if freshness is Freshness.STALE:
            state.stale = True
            if key in self._revalidating:
                state.revalidating = True
                return CacheResult(
                    response=self._build_response(entry, CacheOutcome.REVALIDATING),
                    outcome=CacheOutcome.REVALIDATING,
                )
            self._revalidating.add(key)

            async def revalidate() -> None:
                await self._revalidate(key, request, send_request)

            return CacheResult(
                response=self._build_response(entry, CacheOutcome.STALE),
                outcome=CacheOutcome.STALE,
                background=revalidate,
            )

        assert_never(freshness)

    async def purge(self, url: tp.Optional[str] = None) -> None:
        """
        Invalidates cached entries.

        Args:
            url: Request target whose entry should be removed. When omitted,
                the whole store is emptied. Purging a target that was never
                cached is not an error.
        """
        if url is None:
            cleared = await self.store.clear()
            logger.info("Cleared the entire cache: success=%s", cleared)
            return

        key = normalize_key(url)
        deleted = await self.store.delete(key)
        logger.info("Cleared cache for %s: key=%s success=%s", url, key, deleted)

    async def aclose(self) -> None:
        await self.store.aclose()

    async def _handle_miss(self, key: str, request: Request, send_request: RequestSender) -> CacheResult:
        request.state.miss = True
        response = await send_request()

        if not self._is_storable(key, response):
            request.state.bypass = True
            return CacheResult(response=self._decorate(response, CacheOutcome.BYPASS), outcome=CacheOutcome.BYPASS)

        stored = await self.store.put(key, self._make_entry(request, response))
        if not stored:
            return CacheResult(response=self._decorate(response, CacheOutcome.MISS), outcome=CacheOutcome.MISS)

        request.state.fresh = True
        return CacheResult(response=self._decorate(response, CacheOutcome.FRESH), outcome=CacheOutcome.FRESH)

    async def _revalidate(self, key: str, request: Request, send_request: RequestSender) -> None:
        state = request.state
        # Never cancelled once started, so a store write is not cut short
        with anyio.CancelScope(shield=True):
            state.revalidating = True
            logger.debug("Revalidating stale entry: key=%s", key)
            try:
                response = await send_request()
                if self._is_storable(key, response):
                    stored = await self.store.put(key, self._make_entry(request, response))
                    logger.debug("Revalidated stale entry: key=%s stored=%s", key, stored)
                else:
                    logger.debug("Keeping stale entry: key=%s", key)
            except Exception:
                logger.error("Revalidation failed: key=%s", key, exc_info=True)
            finally:
                self._revalidating.discard(key)
                state.reset()

    def _is_storable(self, key: str, response: Response) -> bool:
        if not self.status_filter.is_cacheable(response.status_code):
            logger.debug("Not storing excluded status: key=%s status=%d", key, response.status_code)
            return False
        # Stored entries replay only Content-Type, so encoded bodies would lose their encoding
        if "content-encoding" in response.headers:
            logger.debug(
                "Not storing encoded response: key=%s encoding=%s", key, response.headers["content-encoding"]
            )
            return False
        return True

    def _make_entry(self, request: Request, response: Response) -> CacheEntry:
        content_type = response.headers.get("content-type") or guess_content_type(request.url)
        return CacheEntry(
            body=response.body,
            timestamp=time.time(),
            content_type=content_type,
            is_binary=is_binary_content(content_type, response.body),
            status_code=response.status_code,
        )

    def _build_response(self, entry: CacheEntry, outcome: CacheOutcome) -> Response:
        headers = httpx.Headers(
            {
                "Content-Type": entry.content_type,
                "Content-Length": str(len(entry.body)),
            }
        )
        return self._decorate(Response(status_code=entry.status_code, headers=headers, body=entry.body), outcome)

    def _decorate(self, response: Response, outcome: CacheOutcome) -> Response:
        response.headers["Cache-Control"] = f"public, max-age={self.config.browser_ttl}"
        response.headers[CACHE_STATUS_HEADER] = outcome.value
        return response


def guess_content_type(url: str) -> str:
    path = url.split("?", 1)[0]
    content_type, _ = mimetypes.guess_type(path)
    return content_type or DEFAULT_CONTENT_TYPE
