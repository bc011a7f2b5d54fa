"""
Chunk Planner

Design Decision: Chunk Size
===========================

Options Considered:
| Size    | Pros                          | Cons                           |
|---------|-------------------------------|--------------------------------|
| 64KB    | Fine-grained resume points    | Many round trips per file      |
| 500KB   | Good balance for JSON+base64  | -                              |
| 4MB     | Few round trips               | ~5.3MB base64 bodies, coarse   |

Decision: 500KB (512,000 bytes)
- Each chunk travels base64-encoded inside a JSON body (~4/3 growth)
- Small enough that a failed request is cheap to repeat
- Large enough that a 50MB file is ~100 requests

The chunk size is NOT negotiated on the wire. Client and server must
agree on it out-of-band; changing it invalidates in-flight resumes.

Sequencing:
```
offset(seq)   = seq * chunk_size
complete(seq) = offset(seq) >= file_size
length(seq)   = min(chunk_size, file_size - offset(seq))
sent(seq)     = offset(seq) + length(seq)
```
Example: 1,000,000 byte file, 500,000 byte chunks
  seq=0 -> bytes [0, 500000)         sent=500000
  seq=1 -> bytes [500000, 1000000)   sent=1000000
  seq=2 -> complete (End + checksum)
"""

from typing import Tuple

from ..exceptions import InvalidSequenceError

# Chunk size: 500KB
CHUNK_SIZE = 500 * 1024  # 512,000 bytes


class ChunkPlanner:
    """
    Pure arithmetic over (sequence, chunk size, file size).

    No I/O happens here. Python integers do not overflow, so very
    large files at high sequence numbers are handled exactly.
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size

    def chunk_count(self, file_size: int) -> int:
        """Number of chunks for a file; also the first 'complete' sequence."""
        return (file_size + self.chunk_size - 1) // self.chunk_size

    def is_complete(self, sequence: int, file_size: int) -> bool:
        """True once the sequence points at or past the end of the file."""
        return sequence * self.chunk_size >= file_size

    def chunk_bounds(self, sequence: int, file_size: int) -> Tuple[int, int]:
        """
        Get byte range for a specific chunk.

        Raises:
            InvalidSequenceError: if the sequence is negative or already
                past the end of the file (check is_complete() first)

        Returns:
            (offset, length) tuple
        """
        if sequence < 0:
            raise InvalidSequenceError(f"Negative sequence: {sequence}")

        offset = sequence * self.chunk_size
        if offset >= file_size:
            raise InvalidSequenceError(
                f"Sequence {sequence} starts at offset {offset}, "
                f"past end of {file_size} byte file"
            )

        length = min(self.chunk_size, file_size - offset)
        return offset, length

    def cumulative_sent(self, sequence: int, file_size: int) -> int:
        """Bytes the client holds after receiving chunks 0..sequence in order."""
        offset, length = self.chunk_bounds(sequence, file_size)
        return offset + length
