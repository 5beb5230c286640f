from __future__ import annotations

import abc
import logging
import typing as tp
from pathlib import Path
from urllib.parse import quote, unquote

import anyio

from ._config import DEFAULT_CACHE_DIR
from ._exceptions import MalformedEntry, StoreError, StoreUnavailable
from ._files import AsyncFileManager
from ._models import CacheEntry, StoreKind

logger = logging.getLogger("respcache.storages")

__all__ = ("AsyncBaseStore", "AsyncFileStore", "AsyncInMemoryStore", "DATA_SUFFIX", "META_SUFFIX")

DATA_SUFFIX = ".data"
META_SUFFIX = ".meta"


class AsyncBaseStore(abc.ABC):
    """
    Maps cache keys to cache entries.

    Implementations never raise on storage failures: ``get`` reports them as a
    missing entry and the mutating methods return ``False``.
    """

    kind: tp.ClassVar[StoreKind]

    @abc.abstractmethod
    async def get(self, key: str) -> tp.Optional[CacheEntry]:
        """
        Retrieves the entry stored under the key.

        :param key: Normalized request target
        :type key: str
        :return: The stored entry, or None when nothing usable is stored
        :rtype: tp.Optional[CacheEntry]
        """
        raise NotImplementedError()

    @abc.abstractmethod
    async def put(self, key: str, entry: CacheEntry) -> bool:
        """
        Stores the entry, replacing whatever the key pointed to.

        :param key: Normalized request target
        :type key: str
        :param entry: The entry to store
        :type entry: CacheEntry
        :return: Whether the entry was written
        :rtype: bool
        """
        raise NotImplementedError()

    @abc.abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Removes the entry stored under the key. Removing a missing key succeeds.

        :param key: Normalized request target
        :type key: str
        :rtype: bool
        """
        raise NotImplementedError()

    @abc.abstractmethod
    async def clear(self) -> bool:
        """Removes every entry of this store."""
        raise NotImplementedError()

    @abc.abstractmethod
    def scan(self) -> tp.AsyncIterator[tp.Tuple[str, float]]:
        """Yields ``(key, timestamp)`` for each stored entry."""
        raise NotImplementedError()

    async def prune(self, older_than: float) -> int:
        """
        Removes leftovers that do not form a readable entry.

        :param older_than: Only files last modified before this Unix time are considered
        :type older_than: float
        :return: The number of files removed
        :rtype: int
        """
        return 0

    async def aclose(self) -> None:
        return


class AsyncInMemoryStore(AsyncBaseStore):
    """
    A store that keeps entries in a dictionary owned by the instance.

    Entries live as long as the store does; expired ones are removed by the
    janitor's sweep.
    """

    kind = StoreKind.MEMORY

    def __init__(self) -> None:
        self._entries: tp.Dict[str, CacheEntry] = {}
        self._lock = anyio.Lock()

    async def get(self, key: str) -> tp.Optional[CacheEntry]:
        async with self._lock:
            return self._entries.get(key)

    async def put(self, key: str, entry: CacheEntry) -> bool:
        async with self._lock:
            self._entries[key] = entry
        return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            self._entries.pop(key, None)
        return True

    async def clear(self) -> bool:
        async with self._lock:
            self._entries.clear()
        return True

    async def scan(self) -> tp.AsyncIterator[tp.Tuple[str, float]]:
        async with self._lock:
            snapshot = [(key, entry.timestamp) for key, entry in self._entries.items()]
        for item in snapshot:
            yield item

    def __len__(self) -> int:
        return len(self._entries)


class AsyncFileStore(AsyncBaseStore):
    """
    A store that keeps each entry as two sibling files.

    ``<key>.data`` holds the raw body and ``<key>.meta`` a JSON record with
    the timestamp, content type, binary flag and status code. File names are
    the percent-encoded cache key. The directory is created on first write.

    :param base_path: Directory the files are written to, defaults to ``.cache/respcache``
    :type base_path: tp.Optional[tp.Union[str, Path]], optional
    """

    kind = StoreKind.FILESYSTEM

    def __init__(self, base_path: tp.Optional[tp.Union[str, Path]] = None) -> None:
        self._base_path = Path(base_path) if base_path is not None else DEFAULT_CACHE_DIR
        self._gitignore_file = self._base_path / ".gitignore"
        self._file_manager = AsyncFileManager()
        self._directory_ready = False

    @property
    def base_path(self) -> Path:
        return self._base_path

    def paths_for(self, key: str) -> tp.Tuple[Path, Path]:
        name = quote(key, safe="")
        return self._base_path / f"{name}{DATA_SUFFIX}", self._base_path / f"{name}{META_SUFFIX}"

    async def get(self, key: str) -> tp.Optional[CacheEntry]:
        try:
            return await self._read_entry(key)
        except StoreError as exc:
            logger.warning("Ignoring unusable cache entry: key=%s error=%s", key, exc)
            return None

    async def put(self, key: str, entry: CacheEntry) -> bool:
        data_path, meta_path = self.paths_for(key)
        try:
            await self._ensure_directory()
            await self._file_manager.write_bytes(data_path, entry.body)
            await self._file_manager.write_json(meta_path, entry.to_metadata())
        except (StoreError, OSError) as exc:
            logger.warning("Could not store cache entry: key=%s error=%s", key, exc)
            self._directory_ready = False
            return False
        logger.debug("Stored cache entry: key=%s size=%d", key, len(entry.body))
        return True

    async def delete(self, key: str) -> bool:
        data_path, meta_path = self.paths_for(key)
        try:
            await self._file_manager.unlink(data_path)
            await self._file_manager.unlink(meta_path)
        except OSError as exc:
            logger.warning("Could not delete cache entry: key=%s error=%s", key, exc)
            return False
        return True

    async def clear(self) -> bool:
        directory = anyio.Path(self._base_path)
        if not await directory.is_dir():
            return True

        cleared = True
        async for path in directory.iterdir():
            if path.suffix not in (DATA_SUFFIX, META_SUFFIX):
                continue
            try:
                await self._file_manager.unlink(Path(path))
            except OSError as exc:
                logger.warning("Could not delete cache file: path=%s error=%s", path, exc)
                cleared = False
        return cleared

    async def scan(self) -> tp.AsyncIterator[tp.Tuple[str, float]]:
        directory = anyio.Path(self._base_path)
        if not await directory.is_dir():
            return

        async for meta_path in directory.glob(f"*{META_SUFFIX}"):
            key = unquote(meta_path.name[: -len(META_SUFFIX)])
            try:
                metadata = await self._file_manager.read_json(Path(meta_path))
                timestamp = float(metadata["timestamp"])
            except FileNotFoundError:
                continue
            except (OSError, ValueError, KeyError, TypeError) as exc:
                logger.warning("Skipping unreadable metadata file: path=%s error=%s", meta_path, exc)
                continue
            yield key, timestamp

    async def prune(self, older_than: float) -> int:
        directory = anyio.Path(self._base_path)
        if not await directory.is_dir():
            return 0

        paths = [path async for path in directory.iterdir() if path.suffix in (DATA_SUFFIX, META_SUFFIX)]
        removed = 0
        for path in paths:
            try:
                if (await path.stat()).st_mtime >= older_than or not await self._is_leftover(Path(path)):
                    continue
                leftovers = [Path(path)]
                if path.suffix == META_SUFFIX:
                    leftovers.append(Path(path).with_suffix(DATA_SUFFIX))
                for leftover in leftovers:
                    if await self._file_manager.unlink(leftover):
                        removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Could not remove leftover cache file: path=%s error=%s", path, exc)
                continue
            logger.debug("Removed leftover cache file: path=%s", path)
        return removed

    async def _is_leftover(self, path: Path) -> bool:
        if path.suffix == DATA_SUFFIX:
            return not await anyio.Path(path.with_suffix(META_SUFFIX)).exists()
        try:
            metadata = await self._file_manager.read_json(path)
            float(metadata["timestamp"])
        except FileNotFoundError:
            return False
        except (ValueError, KeyError, TypeError):
            return True
        return False

    async def _read_entry(self, key: str) -> tp.Optional[CacheEntry]:
        data_path, meta_path = self.paths_for(key)
        try:
            metadata = await self._file_manager.read_json(meta_path)
            body = await self._file_manager.read_bytes(data_path)
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StoreUnavailable(str(exc)) from exc
        except ValueError as exc:
            raise MalformedEntry(f"metadata is not valid JSON: {exc}") from exc

        try:
            return CacheEntry.from_metadata(body, metadata)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise MalformedEntry(f"metadata is missing or has invalid fields: {exc!r}") from exc

    async def _ensure_directory(self) -> None:
        if self._directory_ready:
            return
        try:
            await anyio.Path(self._base_path).mkdir(parents=True, exist_ok=True)
            if not await anyio.Path(self._gitignore_file).is_file():
                async with await anyio.open_file(self._gitignore_file, "w", encoding="utf-8") as f:
                    await f.write("# Automatically created by respcache\n*")
        except OSError as exc:
            raise StoreUnavailable(f"cache directory {self._base_path} could not be created: {exc}") from exc
        logger.info("Using cache directory %s", self._base_path)
        self._directory_ready = True
