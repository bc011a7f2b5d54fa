"""
API Module - REST API for the Chunk Server

Provides the HTTP endpoint that carries the chunked download protocol.
"""

from .rest import create_app, create_app_from_config, run_api_server

__all__ = ['create_app', 'create_app_from_config', 'run_api_server']
