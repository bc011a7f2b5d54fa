"""
File Store

Design Decision: Storage Strategy
==================================

Options Considered:
1. Arbitrary paths supplied by the client
   - Flexible, but every request is a path-traversal risk

2. Index table mapping opaque ids to paths
   - Safe, but needs a registry and a publish step

3. Single flat storage root, filenames are direct children
   - No registry, files are served as soon as they are copied in
   - Safe as long as names never carry separators or '..'

Decision: Single flat storage root
- Name validation happens in the engine BEFORE any call into this module
- This module only joins names onto the root and performs I/O

Storage Layout:
```
server-files/         # storage root (configurable)
├── report_2024.csv
└── test_50MB.bin
```

Read Strategy:
- Chunks: positioned read (seek + read) of exactly one range
- Checksum: sequential buffered scan of the whole file, bounded memory
Every read opens its own handle and closes it before returning, so
concurrent requests for the same file never share state.
"""

import hashlib
import logging
from pathlib import Path

import aiofiles

from ..exceptions import StorageIOError

logger = logging.getLogger(__name__)

# Digest read buffer: 8KB
CHECKSUM_BUFFER_SIZE = 8 * 1024


class FileStore:
    """
    Read-only access to files directly under one storage root.

    Provides:
    - Name -> path resolution
    - Regular-file existence and size checks
    - Positioned range reads
    - Streaming SHA-256 of whole files
    """

    def __init__(self, root: Path, checksum_buffer_size: int = CHECKSUM_BUFFER_SIZE):
        """
        Initialize the file store.

        Args:
            root: Directory all served files live in
            checksum_buffer_size: Read buffer for whole-file digests
        """
        if checksum_buffer_size <= 0:
            raise ValueError(
                f"checksum_buffer_size must be positive, got {checksum_buffer_size}"
            )
        self.root = Path(root)
        self.checksum_buffer_size = checksum_buffer_size

    def ensure_root(self):
        """Create the storage root if it doesn't exist."""
        self.root.mkdir(parents=True, exist_ok=True)

    def resolve(self, filename: str) -> Path:
        """Get filesystem path for a (pre-validated) filename."""
        return self.root / filename

    def is_regular_file(self, filename: str) -> bool:
        """True iff the name resolves to an existing regular file."""
        try:
            return self.resolve(filename).is_file()
        except OSError:
            return False

    def size(self, filename: str) -> int:
        """
        Size of the file in bytes.

        Raises:
            StorageIOError: if the file vanished or is no longer a regular file
        """
        path = self.resolve(filename)
        try:
            if not path.is_file():
                raise StorageIOError(f"Not a regular file: {filename}")
            return path.stat().st_size
        except OSError as e:
            raise StorageIOError(f"Cannot stat {filename}: {e}") from e

    async def read_range(self, filename: str, offset: int, length: int) -> bytes:
        """
        Read exactly `length` bytes starting at `offset`.

        Raises:
            StorageIOError: on open/seek/read failure or short read
        """
        path = self.resolve(filename)
        logger.debug(f"read {filename} [{offset}, {offset + length})")
        try:
            async with aiofiles.open(path, 'rb') as f:
                await f.seek(offset)
                data = await f.read(length)
        except OSError as e:
            raise StorageIOError(f"Cannot read {filename}: {e}") from e

        if len(data) != length:
            raise StorageIOError(
                f"Short read on {filename}: expected {length} bytes at "
                f"offset {offset}, got {len(data)}"
            )
        return data

    async def sha256_hex(self, filename: str) -> str:
        """
        Compute SHA-256 of the entire file.

        Streams through a fixed-size buffer, so memory use does not
        grow with file size.

        Returns:
            64-character lowercase hex digest
        """
        hasher = hashlib.sha256()
        path = self.resolve(filename)

        try:
            async with aiofiles.open(path, 'rb') as f:
                while True:
                    block = await f.read(self.checksum_buffer_size)
                    if not block:
                        break
                    hasher.update(block)
        except OSError as e:
            raise StorageIOError(f"Cannot checksum {filename}: {e}") from e

        return hasher.hexdigest()


def sha256_file_sync(path: Path, buffer_size: int = CHECKSUM_BUFFER_SIZE) -> str:
    """Compute SHA-256 hex digest of a local file (synchronous)."""
    hasher = hashlib.sha256()

    with open(path, 'rb') as f:
        while True:
            block = f.read(buffer_size)
            if not block:
                break
            hasher.update(block)

    return hasher.hexdigest()
