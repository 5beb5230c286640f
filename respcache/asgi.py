from __future__ import annotations

import logging
import mimetypes
import typing as t

import anyio
import httpx

from respcache._config import CacheConfig
from respcache._engine import AsyncCacheEngine
from respcache._exceptions import ConfigError
from respcache._models import CacheState, Request, Response
from respcache._storages import AsyncBaseStore

logger = logging.getLogger(__name__)

STATE_KEY = "response_cache"


class _ASGIScope(t.TypedDict, total=False):
    """ASGI HTTP scope type."""

    type: str
    asgi: dict[str, str]
    http_version: str
    method: str
    scheme: str
    path: str
    raw_path: bytes
    query_string: bytes
    root_path: str
    headers: list[tuple[bytes, bytes]]
    server: tuple[str, int | None] | None
    client: tuple[str, int] | None
    state: dict[str, t.Any]
    extensions: dict[str, t.Any]


_Scope = _ASGIScope
_Receive = t.Callable[[], t.Awaitable[dict[str, t.Any]]]
_Send = t.Callable[[dict[str, t.Any]], t.Awaitable[None]]
_ASGIApp = t.Callable[[_Scope, _Receive, _Send], t.Awaitable[None]]


class ResponseCapture:
    """
    An ASGI ``send`` callable that records the response instead of
    transmitting it.

    Understands ``http.response.start``, ``http.response.body`` and the
    ``http.response.pathsend`` extension, whose file is read into the body.
    """

    def __init__(self) -> None:
        self.started = False
        self.status_code = 200
        self.headers: list[tuple[bytes, bytes]] = []
        self.chunks: list[bytes] = []

    async def send(self, message: dict[str, t.Any]) -> None:
        if message["type"] == "http.response.start":
            self.started = True
            self.status_code = message["status"]
            self.headers = list(message.get("headers", []))
            logger.debug("Application response started: status=%d", self.status_code)
        elif message["type"] == "http.response.body":
            body_chunk = message.get("body", b"")
            if body_chunk:
                self.chunks.append(body_chunk)
                logger.debug("Received response body chunk: size=%d bytes", len(body_chunk))
        elif message["type"] == "http.response.pathsend":
            path = message["path"]
            self.chunks.append(await anyio.Path(path).read_bytes())
            if not any(key.lower() == b"content-type" for key, _ in self.headers):
                content_type, _ = mimetypes.guess_type(str(path))
                self.headers.append((b"content-type", (content_type or "application/octet-stream").encode("latin1")))
            logger.debug("Read response body from file: path=%s", path)

    def response(self) -> Response:
        headers = httpx.Headers(self.headers)
        body = b"".join(self.chunks)
        if "content-length" in headers:
            headers["content-length"] = str(len(body))
        return Response(status_code=self.status_code, headers=headers, body=body)


class ASGICacheMiddleware:
    """
    ASGI middleware that serves responses from a cache.

    Responses of cacheable requests are stored under the request target with
    its query parameters sorted. Stored responses are served without calling
    the application until they are older than the server TTL. Older entries
    are still served once, after which the application is called again to
    refresh them.

    The cache state of each request is available to the application as
    ``scope["state"]["response_cache"]`` (``request.state.response_cache`` in
    Starlette and FastAPI).

    When the server runs the ``lifespan`` protocol, the middleware also runs
    the janitor that evicts expired entries.

    Only the body, status code and ``Content-Type`` of a response are stored.
    Responses carrying ``Content-Encoding`` (for example from a ``GZipMiddleware``
    placed inside this one) are passed through with ``X-Cache: BYPASS`` and
    never stored.

    Args:
        app: The ASGI application to wrap.
        config: Cache settings. Mutually exclusive with keyword options.
        store: A store instance to use instead of the configured one.
        **options: ``browser``, ``server``, ``store``, ``not_cache``
            (``notCache``), ``cache_dir`` and ``methods``, as accepted by
            :meth:`CacheConfig.from_options`.

    Example:
        ```python
        from starlette.applications import Starlette
        from starlette.middleware import Middleware

        from respcache.asgi import ASGICacheMiddleware

        app = Starlette(
            routes=routes,
            middleware=[Middleware(ASGICacheMiddleware, browser=60, server=300, store="memory")],
        )
        ```
    """

    def __init__(
        self,
        app: _ASGIApp,
        config: CacheConfig | None = None,
        *,
        store: AsyncBaseStore | str | None = None,
        **options: t.Any,
    ) -> None:
        if isinstance(store, str):
            options["store"] = store
            store = None
        if config is not None and options:
            raise ConfigError("Pass either a CacheConfig or keyword options, not both")

        self.app = app
        self.config = config if config is not None else CacheConfig.from_options(**options)
        self.engine = AsyncCacheEngine(self.config, store=store)

        logger.info(
            "Initialized ASGICacheMiddleware with store=%s, browser_ttl=%s, server_ttl=%s",
            type(self.engine.store).__name__,
            self.config.browser_ttl,
            self.config.server_ttl,
        )

    async def __call__(self, scope: _Scope, receive: _Receive, send: _Send) -> None:
        if scope["type"] == "lifespan":
            await self._run_lifespan(scope, receive, send)
            return

        if scope["type"] != "http":
            logger.debug("Skipping non-HTTP request: type=%s", scope["type"])
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "GET")
        target = self._request_target(scope)
        logger.debug("Incoming HTTP request: method=%s path=%s", method, target)

        if method.upper() not in self.config.methods:
            logger.debug("Passing request through: method=%s path=%s", method, target)
            await self.app(scope, receive, send)
            return

        state = CacheState()
        scope.setdefault("state", {})[STATE_KEY] = state
        request = Request(method=method, url=target, state=state)

        async def send_request_to_app() -> Response:
            # Revalidation runs after the response went out, the client body is gone by then
            app_receive = _empty_receive() if state.stale else receive

            logger.debug("Sending request to wrapped application: path=%s", target)
            capture = ResponseCapture()
            await self.app({**scope}, app_receive, capture.send)
            response = capture.response()
            logger.debug(
                "Application response complete: status=%d total_bytes=%d",
                response.status_code,
                len(response.body),
            )
            return response

        result = await self.engine.handle(request, send_request_to_app)
        logger.info(
            "Request processed: method=%s path=%s status=%d cache=%s",
            method,
            target,
            result.response.status_code,
            result.outcome.value if result.outcome else "-",
        )

        try:
            await self._send_response(result.response, send)
        finally:
            if result.background is not None:
                await result.background()

    async def purge(self, url: str | None = None) -> None:
        """Removes the entry for ``url``, or every entry when ``url`` is omitted."""
        await self.engine.purge(url)

    async def aclose(self) -> None:
        """Close the store and release resources."""
        logger.info("Closing ASGICacheMiddleware and store")
        await self.engine.aclose()

    async def _run_lifespan(self, scope: _Scope, receive: _Receive, send: _Send) -> None:
        async with anyio.create_task_group() as tg:
            await tg.start(self.engine.janitor.run)
            try:
                await self.app(scope, receive, send)
            finally:
                tg.cancel_scope.cancel()
        logger.info("Cache janitor stopped")

    def _request_target(self, scope: _Scope) -> str:
        raw_path = scope.get("raw_path")
        path = raw_path.decode("latin1") if raw_path else scope.get("path", "/")
        query_string = scope.get("query_string", b"")
        if query_string:
            return f"{path}?{query_string.decode('latin1')}"
        return path

    async def _send_response(self, response: Response, send: _Send) -> None:
        headers: list[tuple[bytes, bytes]] = list(response.headers.raw)
        await send(
            {
                "type": "http.response.start",
                "status": response.status_code,
                "headers": headers,
            }
        )
        await send(
            {
                "type": "http.response.body",
                "body": response.body,
                "more_body": False,
            }
        )
        logger.debug(
            "Response fully sent: status=%d total_bytes=%d",
            response.status_code,
            len(response.body),
        )


def _empty_receive() -> _Receive:
    sent = False

    async def receive() -> dict[str, t.Any]:
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        return {"type": "http.request", "body": b"", "more_body": False}

    return receive
