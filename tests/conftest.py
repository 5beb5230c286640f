import os
from pathlib import Path

import pytest

from respcache import AsyncBaseStore, AsyncFileStore, AsyncInMemoryStore


@pytest.fixture()
def use_temp_dir(tmpdir):
    cur_dir = os.getcwd()
    os.chdir(tmpdir)
    yield
    os.chdir(cur_dir)


@pytest.fixture()
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture()
def file_store(cache_dir: Path) -> AsyncFileStore:
    return AsyncFileStore(base_path=cache_dir)


@pytest.fixture(params=["memory", "filesystem"])
def store(request: pytest.FixtureRequest, cache_dir: Path) -> AsyncBaseStore:
    if request.param == "memory":
        return AsyncInMemoryStore()
    return AsyncFileStore(base_path=cache_dir)
