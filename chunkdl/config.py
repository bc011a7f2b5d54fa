"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import dataclasses
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .file.planner import CHUNK_SIZE
from .file.storage import CHECKSUM_BUFFER_SIZE
from .transfer.engine import EngineConfig

ENV_PREFIX = 'CHUNKDL_'


@dataclass(frozen=True)
class Config:
    """
    Chunk server / client configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (CHUNKDL_*)
    2. Config file (config.json)
    3. Default values

    Instances are immutable; loaders build a new one.
    """
    # Network
    host: str = '0.0.0.0'
    port: int = 8080

    # Storage
    storage_root: Path = field(default_factory=lambda: Path('./server-files'))

    # Protocol (must match between client and server)
    chunk_size: int = CHUNK_SIZE
    checksum_buffer_size: int = CHECKSUM_BUFFER_SIZE

    # Client
    server_url: str = 'http://localhost:8080'
    request_timeout: float = 30.0
    max_retries: int = 3

    # Logging
    log_level: str = 'INFO'

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.checksum_buffer_size <= 0:
            raise ValueError(
                f"checksum_buffer_size must be positive, got {self.checksum_buffer_size}"
            )
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {self.request_timeout}")
        if not 0 < self.port < 65536:
            raise ValueError(f"port out of range: {self.port}")
        if not isinstance(self.storage_root, Path):
            object.__setattr__(self, 'storage_root', Path(self.storage_root))

    @classmethod
    def from_env(cls, base: 'Config' = None) -> 'Config':
        """Load configuration from environment variables (and .env)."""
        load_dotenv()

        config = base or cls()
        updates = {}

        def env(name: str) -> Optional[str]:
            return os.getenv(ENV_PREFIX + name)

        # Network
        if env('HOST'):
            updates['host'] = env('HOST')
        if env('PORT'):
            updates['port'] = int(env('PORT'))

        # Storage
        if env('STORAGE_ROOT'):
            updates['storage_root'] = Path(env('STORAGE_ROOT'))

        # Protocol
        if env('CHUNK_SIZE'):
            updates['chunk_size'] = int(env('CHUNK_SIZE'))
        if env('CHECKSUM_BUFFER_SIZE'):
            updates['checksum_buffer_size'] = int(env('CHECKSUM_BUFFER_SIZE'))

        # Client
        if env('SERVER_URL'):
            updates['server_url'] = env('SERVER_URL')
        if env('REQUEST_TIMEOUT'):
            updates['request_timeout'] = float(env('REQUEST_TIMEOUT'))
        if env('MAX_RETRIES'):
            updates['max_retries'] = int(env('MAX_RETRIES'))

        # Logging
        if env('LOG_LEVEL'):
            updates['log_level'] = env('LOG_LEVEL').upper()

        return dataclasses.replace(config, **updates)

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")

        if 'storage_root' in data:
            data['storage_root'] = Path(data['storage_root'])

        return cls(**data)

    def engine_config(self) -> EngineConfig:
        """The subset of settings the TransferEngine is built from."""
        return EngineConfig(
            storage_root=self.storage_root,
            chunk_size=self.chunk_size,
            checksum_buffer_size=self.checksum_buffer_size,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'host': self.host,
            'port': self.port,
            'storage_root': str(self.storage_root),
            'chunk_size': self.chunk_size,
            'checksum_buffer_size': self.checksum_buffer_size,
            'server_url': self.server_url,
            'request_timeout': self.request_timeout,
            'max_retries': self.max_retries,
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    config = Config()

    if config_path and Path(config_path).exists():
        config = Config.from_file(config_path)

    return Config.from_env(base=config)


# Example config file template
EXAMPLE_CONFIG = """
{
  "host": "0.0.0.0",
  "port": 8080,
  "storage_root": "./server-files",
  "chunk_size": 512000,
  "checksum_buffer_size": 8192,
  "server_url": "http://localhost:8080",
  "request_timeout": 30.0,
  "max_retries": 3,
  "log_level": "INFO"
}
"""


if __name__ == "__main__":
    print("Example configuration file (config.json):")
    print(EXAMPLE_CONFIG)
