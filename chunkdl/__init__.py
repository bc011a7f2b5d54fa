"""
chunkdl - Chunked, resumable file downloads over HTTP

A client requests sequential fixed-size chunks of a named file; the
server answers with base64 chunk data, then an end-of-transfer message
carrying the file's SHA-256, or an error.
"""

__version__ = "1.0.0"

from .exceptions import (
    TransferError, ProtocolError, ValidationError, FileNotFoundInStoreError,
    StorageIOError, InvalidSequenceError, ChecksumMismatchError,
)
from .file import ChunkPlanner, FileStore, CHUNK_SIZE
from .transfer import (
    ChunkRequest, ChunkResult, EndResult, ErrorResult, NotFoundResult,
    TransferEngine, EngineConfig, ChunkDownloader, DownloadProgress,
)
from .config import Config, load_config

__all__ = [
    '__version__',
    'TransferError',
    'ProtocolError',
    'ValidationError',
    'FileNotFoundInStoreError',
    'StorageIOError',
    'InvalidSequenceError',
    'ChecksumMismatchError',
    'ChunkPlanner',
    'FileStore',
    'CHUNK_SIZE',
    'ChunkRequest',
    'ChunkResult',
    'EndResult',
    'ErrorResult',
    'NotFoundResult',
    'TransferEngine',
    'EngineConfig',
    'ChunkDownloader',
    'DownloadProgress',
    'Config',
    'load_config',
]
