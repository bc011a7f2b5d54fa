"""
Error Taxonomy

Every failure the core can produce is one of these. The engine converts
them into result objects at its boundary, and the client maps HTTP
statuses back onto the same classes.

| Exception                 | Wire status | Client retries? |
|---------------------------|-------------|-----------------|
| ProtocolError             | 400         | no              |
| ValidationError           | 400         | no              |
| FileNotFoundInStoreError  | 404         | no              |
| StorageIOError            | 500         | same sequence   |
| InvalidSequenceError      | 500         | same sequence   |
"""


class TransferError(Exception):
    """Base class for all chunked-transfer failures."""


class ProtocolError(TransferError):
    """Malformed or wrong-typed request."""


class ValidationError(TransferError):
    """Filename failed the storage-root safety checks."""


class FileNotFoundInStoreError(TransferError):
    """Requested name is not a regular file under the storage root."""


class StorageIOError(TransferError):
    """Read, seek or digest failure after validation passed."""


class InvalidSequenceError(StorageIOError):
    """Chunk bounds requested for a sequence at or past end of file."""


class ChecksumMismatchError(TransferError):
    """Reassembled file does not hash to the checksum in the End message."""
