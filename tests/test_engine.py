import hashlib

import pytest

from chunkdl.exceptions import InvalidSequenceError, StorageIOError
from chunkdl.transfer.engine import EngineConfig, TransferEngine
from chunkdl.transfer.protocol import (
    ChunkRequest, ChunkResult, EndResult, ErrorKind, ErrorResult, NotFoundResult,
)


def req(filename, seq, type_="request"):
    return ChunkRequest(type=type_, filename=filename, sequence=seq)


@pytest.mark.parametrize("name", [
    "../secret", "/etc/passwd", "a\\b", "", "   ", None, "sub/file.txt", "..", "a\x00b",
])
def test_validate_filename_rejects(engine, name):
    assert not engine.validate_filename(name)


@pytest.mark.parametrize("name", ["report_2024.csv", "test_50MB.bin", ".hidden", "a.b.c"])
def test_validate_filename_accepts(engine, name):
    assert engine.validate_filename(name)


def test_file_exists_only_for_regular_files(engine, storage_root, make_file):
    make_file("data.bin", 10)
    (storage_root / "folder").mkdir()

    assert engine.file_exists("data.bin")
    assert not engine.file_exists("folder")
    assert not engine.file_exists("missing.bin")


def test_file_size_of_vanished_file_raises(engine):
    with pytest.raises(StorageIOError):
        engine.file_size("gone.bin")


@pytest.mark.asyncio
async def test_read_chunk_positions(engine, make_file):
    data = make_file("data.bin", 2500)

    assert await engine.read_chunk("data.bin", 0) == data[:1000]
    assert await engine.read_chunk("data.bin", 2) == data[2000:]


@pytest.mark.asyncio
async def test_read_chunk_past_end_raises(engine, make_file):
    make_file("data.bin", 1000)
    with pytest.raises(InvalidSequenceError):
        await engine.read_chunk("data.bin", 1)


@pytest.mark.asyncio
async def test_compute_checksum_streams_whole_file(storage_root, make_file):
    engine = TransferEngine(EngineConfig(storage_root=storage_root, chunk_size=1000,
                                         checksum_buffer_size=7))
    data = make_file("data.bin", 5000)

    checksum = await engine.compute_checksum("data.bin")

    assert checksum == hashlib.sha256(data).hexdigest()
    assert len(checksum) == 64
    assert checksum == checksum.lower()


@pytest.mark.asyncio
async def test_full_transfer_reassembles(engine, make_file):
    data = make_file("data.bin", 3500)

    received = b""
    seq = 0
    while True:
        result = await engine.handle(req("data.bin", seq))
        if isinstance(result, EndResult):
            break
        assert isinstance(result, ChunkResult)
        assert result.sequence == seq
        received += result.payload
        assert result.sent_bytes == len(received)
        seq += 1

    assert seq == 4
    assert received == data
    assert result.total_size == 3500
    assert result.sequence == -1
    assert result.checksum == hashlib.sha256(received).hexdigest()


@pytest.mark.asyncio
async def test_million_byte_file(storage_root, make_file):
    engine = TransferEngine(EngineConfig(storage_root=storage_root, chunk_size=500_000))
    data = make_file("big.bin", 1_000_000)

    first = await engine.handle(req("big.bin", 0))
    second = await engine.handle(req("big.bin", 1))
    end = await engine.handle(req("big.bin", 2))

    assert len(first.payload) == 500_000 and first.sent_bytes == 500_000
    assert len(second.payload) == 500_000 and second.sent_bytes == 1_000_000
    assert isinstance(end, EndResult)
    assert end.total_size == 1_000_000
    assert end.checksum == hashlib.sha256(data).hexdigest()


@pytest.mark.asyncio
async def test_empty_file_ends_immediately(engine, make_file):
    make_file("empty.bin", 0)

    result = await engine.handle(req("empty.bin", 0))

    assert isinstance(result, EndResult)
    assert result.total_size == 0
    assert result.checksum == hashlib.sha256(b"").hexdigest()


@pytest.mark.asyncio
async def test_sequence_far_past_end_still_ends(engine, make_file):
    make_file("data.bin", 1500)
    assert isinstance(await engine.handle(req("data.bin", 99)), EndResult)


@pytest.mark.asyncio
async def test_repeated_sequence_is_served_again(engine, make_file):
    make_file("data.bin", 1500)
    a = await engine.handle(req("data.bin", 1))
    b = await engine.handle(req("data.bin", 1))
    assert a == b


@pytest.mark.asyncio
async def test_wrong_type_is_protocol_error(engine, make_file):
    make_file("data.bin", 10)

    result = await engine.handle(req("data.bin", 0, type_="upload"))

    assert isinstance(result, ErrorResult)
    assert result.kind is ErrorKind.PROTOCOL
    assert "upload" in result.message


@pytest.mark.asyncio
async def test_negative_sequence_is_protocol_error(engine, make_file):
    make_file("data.bin", 10)
    result = await engine.handle(req("data.bin", -1))
    assert isinstance(result, ErrorResult)
    assert result.kind is ErrorKind.PROTOCOL


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["../secret", "/etc/passwd", "a\\b", "", None])
async def test_unsafe_filename_is_validation_error(engine, name):
    result = await engine.handle(req(name, 0))
    assert isinstance(result, ErrorResult)
    assert result.kind is ErrorKind.VALIDATION
    assert result.is_client_error


@pytest.mark.asyncio
@pytest.mark.parametrize("seq", [0, 1, 50])
async def test_missing_file_is_not_found(engine, seq):
    assert await engine.handle(req("nope.bin", seq)) == NotFoundResult("nope.bin")


@pytest.mark.asyncio
async def test_directory_is_not_found(engine, storage_root):
    (storage_root / "folder").mkdir()
    assert isinstance(await engine.handle(req("folder", 0)), NotFoundResult)


@pytest.mark.asyncio
async def test_io_failure_becomes_error_result(engine, make_file, monkeypatch):
    make_file("data.bin", 2000)

    async def broken(filename, offset, length):
        raise StorageIOError("disk on fire")

    monkeypatch.setattr(engine.store, "read_range", broken)

    result = await engine.handle(req("data.bin", 0))

    assert isinstance(result, ErrorResult)
    assert result.kind is ErrorKind.IO
    assert not result.is_client_error
    assert "disk on fire" in result.message


@pytest.mark.asyncio
async def test_truncated_read_becomes_error_result(engine, make_file, monkeypatch):
    make_file("data.bin", 2000)
    real_size = engine.store.size

    # Planned against a larger size than the file really has
    monkeypatch.setattr(engine.store, "size", lambda name: real_size(name) + 500)

    result = await engine.handle(req("data.bin", 2))

    assert isinstance(result, ErrorResult)
    assert result.kind is ErrorKind.IO
    assert "Short read" in result.message


@pytest.mark.asyncio
async def test_checksum_reflects_file_at_completion(engine, storage_root, make_file):
    make_file("data.bin", 1500)
    first = await engine.handle(req("data.bin", 0))

    replaced = b"x" * 1500
    (storage_root / "data.bin").write_bytes(replaced)
    end = await engine.handle(req("data.bin", 2))

    assert isinstance(first, ChunkResult)
    assert end.checksum == hashlib.sha256(replaced).hexdigest()


@pytest.mark.asyncio
async def test_file_replaced_by_directory_after_existence_check(
        engine, storage_root, make_file, monkeypatch):
    make_file("data.bin", 2000)
    real_exists = engine.file_exists

    def swap_after_check(filename):
        found = real_exists(filename)
        (storage_root / filename).unlink()
        (storage_root / filename).mkdir()
        return found

    monkeypatch.setattr(engine, "file_exists", swap_after_check)

    result = await engine.handle(req("data.bin", 0))

    assert isinstance(result, ErrorResult)
    assert result.kind is ErrorKind.IO
    assert "Not a regular file" in result.message


@pytest.mark.asyncio
async def test_file_vanishing_after_existence_check(engine, storage_root, make_file, monkeypatch):
    make_file("data.bin", 2000)
    real_exists = engine.file_exists

    def delete_after_check(filename):
        found = real_exists(filename)
        (storage_root / filename).unlink()
        return found

    monkeypatch.setattr(engine, "file_exists", delete_after_check)

    result = await engine.handle(req("data.bin", 1))

    assert isinstance(result, ErrorResult)
    assert result.kind is ErrorKind.IO


@pytest.mark.asyncio
async def test_read_chunk_of_directory_raises(engine, storage_root, make_file):
    make_file("data.bin", 2000)
    assert len(await engine.read_chunk("data.bin", 0)) == 1000

    (storage_root / "data.bin").unlink()
    (storage_root / "data.bin").mkdir()

    with pytest.raises(StorageIOError, match="Not a regular file"):
        await engine.read_chunk("data.bin", 0)


@pytest.mark.asyncio
async def test_read_chunk_after_real_truncation_raises(engine, storage_root, make_file):
    data = make_file("data.bin", 2500)
    assert await engine.read_chunk("data.bin", 2) == data[2000:]

    with open(storage_root / "data.bin", "r+b") as f:
        f.truncate(1500)

    with pytest.raises(StorageIOError):
        await engine.read_chunk("data.bin", 2)
    assert await engine.read_chunk("data.bin", 1) == data[1000:1500]
