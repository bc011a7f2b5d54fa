"""
Chunk Downloader (client side)

Design Decision: Download Strategy
===================================

Options Considered:
1. Parallel chunk requests
   - Faster on high-latency links
   - The server reports cumulative progress assuming in-order delivery

2. Sequential requests, one chunk in flight
   - Matches the protocol's sentBytes contract exactly
   - Resume point is just "how many full chunks are on disk"

Decision: Sequential download with local resume
- Request seq 0, 1, 2, ... until the End message arrives
- Write each chunk at seq * chunk_size in `<output>.part`
- On restart, truncate `.part` to a chunk boundary and continue
- Verify SHA-256 of the reassembled file against the End checksum
- Only a verified file is moved to the final path

Retry Policy:
| Response         | Action                                  |
|------------------|-----------------------------------------|
| 200 chunk / end  | continue / finish                       |
| 400              | ProtocolError, no retry                 |
| 404              | FileNotFoundInStoreError, no retry      |
| 5xx / network    | re-request the same seq, then give up   |
"""

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import requests

from ..exceptions import (
    ChecksumMismatchError, FileNotFoundInStoreError, ProtocolError,
    StorageIOError,
)
from ..file.planner import CHUNK_SIZE
from ..file.storage import sha256_file_sync
from .protocol import END_SEQUENCE, ResponseType, decode_payload, request_body

logger = logging.getLogger(__name__)

DOWNLOAD_PATH = '/api/download'
PART_SUFFIX = '.part'


@dataclass
class DownloadProgress:
    """Track download progress for display."""
    filename: str
    chunk_size: int
    bytes_received: int = 0
    chunks_received: int = 0
    resumed_from: int = 0
    total_size: Optional[int] = None
    checksum: Optional[str] = None
    start_time: float = field(default_factory=time.time)
    phase: str = 'initializing'  # 'initializing', 'downloading', 'verifying', 'complete', 'failed'

    @property
    def progress_percent(self) -> Optional[float]:
        """Percentage done, once the total is known."""
        if self.total_size is None:
            return None
        if self.total_size == 0:
            return 100.0
        return self.bytes_received / self.total_size * 100

    @property
    def elapsed_seconds(self) -> float:
        """Time elapsed since start."""
        return time.time() - self.start_time

    @property
    def speed_bytes_per_sec(self) -> float:
        """Download speed for this session (resumed bytes excluded)."""
        elapsed = self.elapsed_seconds
        if elapsed == 0:
            return 0
        return (self.bytes_received - self.resumed_from) / elapsed

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'filename': self.filename,
            'chunk_size': self.chunk_size,
            'bytes_received': self.bytes_received,
            'chunks_received': self.chunks_received,
            'resumed_from': self.resumed_from,
            'total_size': self.total_size,
            'checksum': self.checksum,
            'progress_percent': self.progress_percent,
            'speed_bytes_per_sec': self.speed_bytes_per_sec,
            'elapsed_seconds': self.elapsed_seconds,
            'phase': self.phase,
        }


# Progress callback type
ProgressCallback = Callable[[DownloadProgress], None]


class ChunkDownloader:
    """
    Downloads one file from a chunk server, sequence by sequence.

    `session` may be any object with a requests-compatible
    `post(url, json=..., timeout=...)`; a requests.Session is created
    when none is given.
    """

    def __init__(self, server_url: str, chunk_size: int = CHUNK_SIZE,
                 session=None, timeout: float = 30.0, max_retries: int = 3):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.server_url = server_url.rstrip('/')
        self.chunk_size = chunk_size
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_retries = max_retries

    @property
    def download_url(self) -> str:
        return f"{self.server_url}{DOWNLOAD_PATH}"

    def close(self):
        """Close the underlying HTTP session."""
        self.session.close()

    # === Single request ===

    def request_sequence(self, filename: str, sequence: int) -> Dict[str, Any]:
        """
        Request one sequence, retrying server errors.

        Returns:
            The decoded response envelope

        Raises:
            ProtocolError: on 400 or a malformed response
            FileNotFoundInStoreError: on 404
            StorageIOError: when server errors persist past max_retries
        """
        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                response = self.session.post(
                    self.download_url,
                    json=request_body(filename, sequence),
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                logger.warning(f"seq={sequence} attempt {attempt}/{attempts} failed: {e}")
                last_error = e
                continue

            if response.status_code == 404:
                raise FileNotFoundInStoreError(f"File not found on server: {filename}")

            body = self._json(response)

            if response.status_code == 400:
                raise ProtocolError(body.get('data') or "Request rejected")

            if response.status_code >= 500:
                message = body.get('data') or f"HTTP {response.status_code}"
                logger.warning(f"seq={sequence} attempt {attempt}/{attempts}: {message}")
                last_error = StorageIOError(message)
                continue

            if response.status_code != 200:
                raise ProtocolError(f"Unexpected HTTP status {response.status_code}")

            if body.get('type') != ResponseType.RESPONSE.value:
                raise ProtocolError(f"Unexpected response type: {body.get('type')!r}")

            return body

        if isinstance(last_error, StorageIOError):
            raise last_error
        raise StorageIOError(
            f"seq={sequence} failed after {attempts} attempts: {last_error}"
        ) from last_error

    @staticmethod
    def _json(response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            if response.status_code >= 500:
                return {}
            raise ProtocolError(f"Non-JSON response (HTTP {response.status_code})")
        return body

    # === Whole file ===

    def download(self, filename: str, output_path: Path = None,
                 progress_callback: ProgressCallback = None) -> Path:
        """
        Download a file, resuming from `<output>.part` if present.

        Args:
            filename: Name of the file under the server's storage root
            output_path: Where to save (default: ./<filename>)
            progress_callback: Called after every chunk and phase change

        Returns:
            Path to the verified file
        """
        output_path = Path(output_path) if output_path else Path(filename)
        part_path = output_path.with_name(output_path.name + PART_SUFFIX)

        sequence = self._prepare_part_file(part_path)
        progress = DownloadProgress(
            filename=filename,
            chunk_size=self.chunk_size,
            bytes_received=sequence * self.chunk_size,
            resumed_from=sequence * self.chunk_size,
            phase='downloading',
        )
        if sequence:
            logger.info(f"Resuming {filename} at seq={sequence} "
                        f"({progress.resumed_from:,} bytes on disk)")
        self._notify(progress_callback, progress)

        try:
            checksum, total_size = self._fetch_all(
                filename, part_path, sequence, progress, progress_callback
            )
        except Exception:
            progress.phase = 'failed'
            self._notify(progress_callback, progress)
            raise

        progress.phase = 'verifying'
        progress.checksum = checksum
        progress.total_size = total_size
        self._notify(progress_callback, progress)

        try:
            self._verify(part_path, total_size, checksum)
        except ChecksumMismatchError:
            # Bad bytes on disk would poison the next resume
            part_path.unlink()
            progress.phase = 'failed'
            self._notify(progress_callback, progress)
            raise

        os.replace(part_path, output_path)
        progress.phase = 'complete'
        self._notify(progress_callback, progress)
        logger.info(f"Saved {filename} to {output_path} ({total_size:,} bytes)")

        return output_path

    def _fetch_all(self, filename: str, part_path: Path, sequence: int,
                   progress: DownloadProgress,
                   progress_callback: Optional[ProgressCallback]):
        with open(part_path, 'r+b') as out:
            while True:
                body = self.request_sequence(filename, sequence)
                seq = body.get('seq')

                if seq == END_SEQUENCE:
                    return str(body.get('data', '')), int(body.get('sentBytes', 0))

                if seq != sequence:
                    raise ProtocolError(f"Asked for seq={sequence}, got seq={seq}")

                payload = decode_payload(body.get('data', ''))
                offset = sequence * self.chunk_size
                expected = offset + len(payload)
                if not payload or body.get('sentBytes') != expected:
                    raise ProtocolError(
                        f"seq={sequence}: sentBytes={body.get('sentBytes')} but "
                        f"chunk ends at {expected}; check the chunk size matches the server"
                    )

                out.seek(offset)
                out.write(payload)

                progress.bytes_received = expected
                progress.chunks_received += 1
                self._notify(progress_callback, progress)
                logger.debug(f"seq={sequence} received {len(payload):,} bytes")

                sequence += 1

    def _prepare_part_file(self, part_path: Path) -> int:
        """Create or trim the partial file; return the sequence to resume at."""
        if not part_path.exists():
            part_path.parent.mkdir(parents=True, exist_ok=True)
            part_path.touch()
            return 0

        sequence = part_path.stat().st_size // self.chunk_size
        with open(part_path, 'r+b') as f:
            f.truncate(sequence * self.chunk_size)
        return sequence

    @staticmethod
    def _verify(part_path: Path, total_size: int, checksum: str):
        actual_size = part_path.stat().st_size
        if actual_size != total_size:
            raise ChecksumMismatchError(
                f"Size mismatch: have {actual_size:,} bytes, server reports {total_size:,}"
            )

        actual = sha256_file_sync(part_path)
        if actual != checksum.lower():
            raise ChecksumMismatchError(
                f"Checksum mismatch: expected {checksum}, got {actual}"
            )

    @staticmethod
    def _notify(callback: Optional[ProgressCallback], progress: DownloadProgress):
        if callback:
            try:
                callback(progress)
            except Exception as e:
                logger.error(f"Progress callback failed: {e}")
