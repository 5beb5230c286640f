from __future__ import annotations

import json
import typing as tp
from pathlib import Path

import anyio

__all__ = ("AsyncFileManager",)


class AsyncFileManager:
    """Async reads and writes of the files behind one filesystem store entry."""

    async def write_bytes(self, path: Path, data: bytes) -> None:
        async with await anyio.open_file(path, "wb") as f:
            await f.write(data)

    async def read_bytes(self, path: Path) -> bytes:
        async with await anyio.open_file(path, "rb") as f:
            return tp.cast(bytes, await f.read())

    async def write_json(self, path: Path, data: tp.Mapping[str, tp.Any]) -> None:
        async with await anyio.open_file(path, "wt", encoding="utf-8") as f:
            await f.write(json.dumps(data))

    async def read_json(self, path: Path) -> tp.Any:
        async with await anyio.open_file(path, "rt", encoding="utf-8") as f:
            return json.loads(await f.read())

    async def unlink(self, path: Path) -> bool:
        """Remove ``path``; returns False if it was already gone."""
        try:
            await anyio.Path(path).unlink()
        except FileNotFoundError:
            return False
        return True
