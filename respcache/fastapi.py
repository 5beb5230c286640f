from __future__ import annotations

import typing as t

from respcache._models import CacheState
from respcache.asgi import STATE_KEY

try:
    import fastapi
except ImportError as e:
    raise ImportError(
        "fastapi is required to use respcache.fastapi module. "
        "Please install respcache with the 'fastapi' extra, "
        "e.g., 'pip install respcache[fastapi]'."
    ) from e


def get_cache_state(request: fastapi.Request) -> CacheState:
    """
    Return what the cache middleware did for the current request.

    Outside of :class:`~respcache.asgi.ASGICacheMiddleware` a neutral state is
    returned.
    """
    state = request.scope.get("state", {}).get(STATE_KEY)
    if isinstance(state, CacheState):
        return state
    return CacheState()


def cache_state() -> t.Any:
    """
    Dependency giving a path operation access to its :class:`CacheState`.

    Examples:
        >>> from fastapi import FastAPI
        >>> from respcache import CacheState
        >>> from respcache.asgi import ASGICacheMiddleware
        >>> from respcache.fastapi import cache_state
        >>>
        >>> app = FastAPI()
        >>> app.add_middleware(ASGICacheMiddleware, store="memory")
        >>>
        >>> @app.get("/items")
        >>> async def read_items(state: CacheState = cache_state()):
        ...     return {"revalidating": state.revalidating}
    """
    return fastapi.Depends(get_cache_state)
