import json
from pathlib import Path

import pytest

from chunkdl.config import Config, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # Keep a developer's .env / shell settings out of these tests
    monkeypatch.chdir(tmp_path)
    for key in ("HOST", "PORT", "STORAGE_ROOT", "CHUNK_SIZE", "CHECKSUM_BUFFER_SIZE",
                "SERVER_URL", "REQUEST_TIMEOUT", "MAX_RETRIES", "LOG_LEVEL"):
        monkeypatch.delenv(f"CHUNKDL_{key}", raising=False)


def test_defaults():
    config = Config()
    assert config.chunk_size == 512_000
    assert config.storage_root == Path("./server-files")
    assert config.port == 8080


def test_is_immutable():
    with pytest.raises(AttributeError):
        Config().chunk_size = 10


@pytest.mark.parametrize("kwargs", [
    {"chunk_size": 0}, {"checksum_buffer_size": -1}, {"max_retries": -1}, {"port": 0},
])
def test_rejects_bad_values(kwargs):
    with pytest.raises(ValueError):
        Config(**kwargs)


def test_env_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"chunk_size": 4096, "port": 9000, "storage_root": "/srv/files"}))
    monkeypatch.setenv("CHUNKDL_PORT", "9100")

    config = load_config(path)

    assert config.chunk_size == 4096
    assert config.port == 9100
    assert config.storage_root == Path("/srv/files")


def test_unknown_file_keys_rejected(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"chunksize": 1}))
    with pytest.raises(ValueError, match="chunksize"):
        Config.from_file(path)


def test_save_round_trip(tmp_path):
    path = tmp_path / "config.json"
    original = Config(chunk_size=2048, storage_root=Path("files"))
    original.save(path)
    assert Config.from_file(path) == original


def test_engine_config():
    engine_config = Config(chunk_size=2048, storage_root=Path("x")).engine_config()
    assert engine_config.chunk_size == 2048
    assert engine_config.storage_root == Path("x")
