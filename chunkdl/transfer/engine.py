"""
Transfer Engine

Turns one decoded request into one result. Stateless: nothing about a
client's progress is remembered between calls.

Request Flow:
1. type != "request"            -> ErrorResult(PROTOCOL)
2. seq < 0                      -> ErrorResult(PROTOCOL)
3. unsafe filename              -> ErrorResult(VALIDATION)
4. not a regular file           -> NotFoundResult
5. seq * chunk_size >= size     -> EndResult with SHA-256 of the file now
6. otherwise                    -> ChunkResult for [offset, offset + length)
Any failure in 5-6              -> ErrorResult(IO)

Consistency:
File size is re-read on every call and the checksum is only computed
when the End message is built. If the file changes mid-transfer the
client may receive bytes that do not hash to the final checksum; the
client detects this by verifying, and the server does not try to
prevent it.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from ..file.planner import ChunkPlanner, CHUNK_SIZE
from ..file.storage import FileStore, CHECKSUM_BUFFER_SIZE
from .protocol import (
    ChunkRequest, ChunkResult, EndResult, ErrorKind, ErrorResult,
    NotFoundResult, RequestType, TransferResult,
)

logger = logging.getLogger(__name__)

# Substrings that may never appear in a requested filename
FORBIDDEN_NAME_PARTS = ('..', '/', '\\', '\x00')


@dataclass(frozen=True)
class EngineConfig:
    """Process-wide settings the engine is built with. Never mutated."""
    storage_root: Path = Path('./server-files')
    chunk_size: int = CHUNK_SIZE
    checksum_buffer_size: int = CHECKSUM_BUFFER_SIZE


class TransferEngine:
    """
    Serves sequential fixed-size chunks of files under one storage root.

    Features:
    - Path-traversal-safe filename validation
    - Positioned chunk reads, fresh file size on every call
    - SHA-256 checksum computed when the transfer completes
    - Every failure returned as a result, never raised
    """

    def __init__(self, config: EngineConfig = None):
        self.config = config or EngineConfig()
        self.planner = ChunkPlanner(self.config.chunk_size)
        self.store = FileStore(
            self.config.storage_root,
            checksum_buffer_size=self.config.checksum_buffer_size,
        )

    @property
    def chunk_size(self) -> int:
        return self.planner.chunk_size

    # === Checks ===

    def validate_filename(self, filename: Optional[str]) -> bool:
        """
        Check that a name can only mean a direct child of the storage root.

        Rejects None, empty and blank names, and anything containing
        '..', a path separator or a NUL byte.
        """
        if not isinstance(filename, str) or not filename.strip():
            return False
        return not any(part in filename for part in FORBIDDEN_NAME_PARTS)

    def file_exists(self, filename: str) -> bool:
        """True iff the name resolves to a regular file."""
        return self.store.is_regular_file(filename)

    def file_size(self, filename: str) -> int:
        """Size in bytes; raises StorageIOError if the file went away."""
        return self.store.size(filename)

    # === I/O ===

    async def read_chunk(self, filename: str, sequence: int) -> bytes:
        """Read chunk `sequence` of a file using its current size."""
        payload, _ = await self._read_chunk(filename, sequence)
        return payload

    async def _read_chunk(self, filename: str, sequence: int) -> Tuple[bytes, int]:
        """Read a chunk, returning it with the file size it was planned against."""
        file_size = self.store.size(filename)
        offset, length = self.planner.chunk_bounds(sequence, file_size)
        payload = await self.store.read_range(filename, offset, length)
        return payload, file_size

    async def compute_checksum(self, filename: str) -> str:
        """SHA-256 hex digest of the whole file as it is right now."""
        return await self.store.sha256_hex(filename)

    # === Request Handling ===

    async def handle(self, request: ChunkRequest) -> TransferResult:
        """
        Process one download request.

        Returns:
            ChunkResult, EndResult, NotFoundResult or ErrorResult
        """
        if request.type != RequestType.REQUEST.value:
            logger.warning(f"Rejected request type: {request.type!r}")
            return ErrorResult(
                f"Invalid request type: {request.type}", ErrorKind.PROTOCOL
            )

        if request.sequence < 0:
            logger.warning(f"Rejected negative sequence: {request.sequence}")
            return ErrorResult(
                f"Invalid sequence: {request.sequence}", ErrorKind.PROTOCOL
            )

        filename = request.filename
        if not self.validate_filename(filename):
            logger.warning(f"Rejected filename: {filename!r}")
            return ErrorResult("Invalid filename", ErrorKind.VALIDATION)

        if not self.file_exists(filename):
            logger.debug(f"Not found: {filename}")
            return NotFoundResult(filename)

        try:
            return await self._serve(filename, request.sequence)
        except Exception as e:
            logger.error(f"Error serving {filename} seq={request.sequence}: {e}",
                         exc_info=True)
            return ErrorResult(f"Server error: {e}", ErrorKind.IO)

    async def _serve(self, filename: str, sequence: int) -> TransferResult:
        file_size = self.file_size(filename)

        if self.planner.is_complete(sequence, file_size):
            checksum = await self.compute_checksum(filename)
            logger.info(f"Transfer complete: {filename} ({file_size:,} bytes) "
                        f"sha256={checksum[:16]}...")
            return EndResult(filename=filename, total_size=file_size,
                             checksum=checksum)

        payload, planned_size = await self._read_chunk(filename, sequence)
        sent_bytes = self.planner.cumulative_sent(sequence, planned_size)

        logger.info(f"seq={sequence:<4d} | sent={sent_bytes:>14,} / {planned_size:>14,}"
                    f" | {filename}")

        return ChunkResult(
            filename=filename,
            sequence=sequence,
            payload=payload,
            sent_bytes=sent_bytes,
        )
