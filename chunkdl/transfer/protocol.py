"""
Chunked Download Protocol

Design Decision: Wire Format
============================

Options Considered:
1. Raw bytes with HTTP Range headers
   - Efficient, but checksum and progress need side channels

2. Custom TCP framing
   - Full control, but needs its own server and client stack

3. JSON envelope over HTTP POST, base64 payload
   - One shape for every message, easy to debug with curl
   - ~33% size overhead on chunk bodies

Decision: JSON envelope over HTTP POST
- Same five fields in every request and response
- The End message reuses `data` for the checksum, so integrity
  verification needs no extra endpoint

Message Format:
```
Request:  {"type": "request",  "filename": "a.bin", "seq": 3,  "data": ""}
Chunk:    {"type": "response", "filename": "a.bin", "seq": 3,
           "data": "<base64>", "sentBytes": 2048000}
End:      {"type": "response", "filename": "a.bin", "seq": -1,
           "data": "<sha256 hex>", "sentBytes": <file size>}
Error:    {"type": "error",    "filename": "", "seq": -1,
           "data": "<message>", "sentBytes": 0}
```

The server keeps no session. Each request names its own sequence, so
a client resumes by simply asking for the next sequence it needs.
"""

import base64
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from ..exceptions import (
    ChecksumMismatchError,
    FileNotFoundInStoreError,
    InvalidSequenceError,
    ProtocolError,
    StorageIOError,
    TransferError,
    ValidationError,
)

# Sequence number carried by End and Error messages
END_SEQUENCE = -1


class RequestType(Enum):
    """Request message types."""
    REQUEST = "request"


class ResponseType(Enum):
    """Response message types."""
    RESPONSE = "response"
    ERROR = "error"


class ErrorKind(Enum):
    """Which side is at fault for an error result."""
    PROTOCOL = "protocol"      # malformed request
    VALIDATION = "validation"  # unsafe filename
    IO = "io"                  # server-side failure


@dataclass(frozen=True)
class ChunkRequest:
    """A decoded download request. Lives for one call only."""
    type: str
    filename: Optional[str]
    sequence: int


@dataclass(frozen=True)
class ChunkResult:
    """One chunk of file data (raw bytes, not yet encoded)."""
    filename: str
    sequence: int
    payload: bytes
    sent_bytes: int


@dataclass(frozen=True)
class EndResult:
    """End of transfer: no chunk body, the whole-file checksum instead."""
    filename: str
    total_size: int
    checksum: str

    @property
    def sequence(self) -> int:
        return END_SEQUENCE


@dataclass(frozen=True)
class NotFoundResult:
    """The name is valid but nothing servable exists under it."""
    filename: str


@dataclass(frozen=True)
class ErrorResult:
    """A failure with a human-readable message."""
    message: str
    kind: ErrorKind = ErrorKind.IO

    @property
    def is_client_error(self) -> bool:
        return self.kind in (ErrorKind.PROTOCOL, ErrorKind.VALIDATION)


TransferResult = Union[ChunkResult, EndResult, NotFoundResult, ErrorResult]


def encode_payload(payload: bytes) -> str:
    """Base64-encode chunk bytes for the JSON body."""
    return base64.b64encode(payload).decode('ascii')


def decode_payload(data: str) -> bytes:
    """Decode a chunk's base64 body back into bytes."""
    try:
        return base64.b64decode(data.encode('ascii'), validate=True)
    except (ValueError, UnicodeEncodeError) as e:
        raise ProtocolError(f"Invalid base64 chunk data: {e}") from e


def from_wire(body: Dict[str, Any]) -> ChunkRequest:
    """
    Build a ChunkRequest from a decoded JSON request body.

    Field values are passed through as-is; judging them is the
    engine's job. Only structurally unusable bodies raise here.
    """
    if not isinstance(body, dict):
        raise ProtocolError("Request body must be a JSON object")

    seq = body.get('seq', 0)
    if isinstance(seq, bool) or not isinstance(seq, int):
        raise ProtocolError(f"Invalid seq: {seq!r}")

    filename = body.get('filename')
    if filename is not None and not isinstance(filename, str):
        raise ProtocolError("Invalid filename")

    return ChunkRequest(
        type=str(body.get('type', '')),
        filename=filename,
        sequence=seq,
    )


def to_wire(result: Union[ChunkResult, EndResult, ErrorResult]) -> Dict[str, Any]:
    """Serialize a result to the JSON response envelope."""
    if isinstance(result, ChunkResult):
        return {
            'type': ResponseType.RESPONSE.value,
            'filename': result.filename,
            'seq': result.sequence,
            'data': encode_payload(result.payload),
            'sentBytes': result.sent_bytes,
        }
    if isinstance(result, EndResult):
        return {
            'type': ResponseType.RESPONSE.value,
            'filename': result.filename,
            'seq': END_SEQUENCE,
            'data': result.checksum,
            'sentBytes': result.total_size,
        }
    if isinstance(result, ErrorResult):
        return {
            'type': ResponseType.ERROR.value,
            'filename': '',
            'seq': END_SEQUENCE,
            'data': result.message,
            'sentBytes': 0,
        }
    raise TypeError(f"Result has no wire form: {type(result).__name__}")


def request_body(filename: str, sequence: int) -> Dict[str, Any]:
    """Build a request envelope (client side)."""
    return {
        'type': RequestType.REQUEST.value,
        'filename': filename,
        'seq': sequence,
        'data': '',
    }


__all__ = [
    'END_SEQUENCE',
    'RequestType',
    'ResponseType',
    'ErrorKind',
    'ChunkRequest',
    'ChunkResult',
    'EndResult',
    'NotFoundResult',
    'ErrorResult',
    'TransferResult',
    'encode_payload',
    'decode_payload',
    'from_wire',
    'to_wire',
    'request_body',
    'TransferError',
    'ProtocolError',
    'ValidationError',
    'FileNotFoundInStoreError',
    'StorageIOError',
    'InvalidSequenceError',
    'ChecksumMismatchError',
]
