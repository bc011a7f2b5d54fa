"""
Transfer Module - Chunked Download Protocol

Request/response types, the server-side engine and the client downloader.
"""

from .protocol import (
    ChunkRequest, ChunkResult, EndResult, ErrorResult, NotFoundResult,
    ErrorKind, END_SEQUENCE, to_wire, from_wire,
)
from .engine import TransferEngine, EngineConfig
from .downloader import ChunkDownloader, DownloadProgress

__all__ = [
    'ChunkRequest',
    'ChunkResult',
    'EndResult',
    'ErrorResult',
    'NotFoundResult',
    'ErrorKind',
    'END_SEQUENCE',
    'to_wire',
    'from_wire',
    'TransferEngine',
    'EngineConfig',
    'ChunkDownloader',
    'DownloadProgress',
]
