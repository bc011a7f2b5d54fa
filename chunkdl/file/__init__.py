"""
File Module - Chunk Planning and Storage Access

This module handles file-level operations for the chunked download server.
"""

from .planner import ChunkPlanner, CHUNK_SIZE
from .storage import FileStore, CHECKSUM_BUFFER_SIZE, sha256_file_sync

__all__ = [
    'ChunkPlanner',
    'CHUNK_SIZE',
    'FileStore',
    'CHECKSUM_BUFFER_SIZE',
    'sha256_file_sync',
]
