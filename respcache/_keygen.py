from __future__ import annotations

import logging

logger = logging.getLogger("respcache.keygen")

__all__ = ("normalize_key",)


def _parameter_name(segment: str) -> str:
    return segment.split("=", 1)[0]


def normalize_key(url: str) -> str:
    """
    Derive the cache key for a request target.

    Query parameters are sorted by name, so two targets that differ only in
    parameter order share a key. Parameters with the same name keep their
    relative order. The path and every ``name=value`` segment are kept
    exactly as they were sent, without decoding or re-encoding.

    Args:
        url: The raw request target, e.g. ``/items?b=2&a=1``.

    Returns:
        The canonical key, e.g. ``/items?a=1&b=2``. Targets that are not in
        origin form (not starting with ``/``) are returned unchanged.

    Example:
        ```python
        assert normalize_key("/items?b=2&a=1") == normalize_key("/items?a=1&b=2")
        ```
    """
    path, _, query = url.partition("?")
    if not path:
        path = "/"
    elif not path.startswith("/"):
        logger.debug("Request target is not in origin form, using it as the cache key: url=%r", url)
        return url

    segments = sorted((segment for segment in query.split("&") if segment), key=_parameter_name)
    if not segments:
        return path
    return f"{path}?{'&'.join(segments)}"
