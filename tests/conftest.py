import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from chunkdl.api import create_app
from chunkdl.transfer.engine import EngineConfig, TransferEngine

SMALL_CHUNK = 1000


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    root = tmp_path / "server-files"
    root.mkdir()
    return root


@pytest.fixture
def make_file(storage_root: Path):
    """Write a file of random bytes under the storage root."""
    def _make(name: str, size: int) -> bytes:
        data = os.urandom(size)
        (storage_root / name).write_bytes(data)
        return data
    return _make


@pytest.fixture
def engine(storage_root: Path) -> TransferEngine:
    return TransferEngine(EngineConfig(storage_root=storage_root, chunk_size=SMALL_CHUNK))


@pytest.fixture
def client(engine: TransferEngine):
    with TestClient(create_app(engine)) as c:
        yield c
