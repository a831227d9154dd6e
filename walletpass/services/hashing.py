"""
Hashed bundle entries.

Every file that ends up in a pass bundle (except manifest.json and signature)
is read fully into memory and hashed with SHA-1; the hex digest goes into the
manifest.
"""
import asyncio
import hashlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from walletpass.core.errors import PassIOError

logger = logging.getLogger(__name__)

Source = Union[bytes, bytearray, memoryview, str, os.PathLike]


@dataclass(frozen=True)
class ResourceEntry:
    """A file to be written into the bundle at an archive-relative path."""
    path: str
    data: bytes


@dataclass(frozen=True)
class HashedEntry(ResourceEntry):
    hash: str


def get_buffer_hash(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def hash_entry(path: str, data: bytes) -> HashedEntry:
    data = bytes(data)
    return HashedEntry(path=path, data=data, hash=get_buffer_hash(data))


def read_and_hash_file(file_path: Union[str, os.PathLike], path: str) -> HashedEntry:
    """
    Read a file and return its content and hash.

    Args:
        file_path: Location of the file on disk
        path: Archive-relative name of the entry

    Raises:
        PassIOError: If the file does not exist or cannot be read
    """
    try:
        data = Path(file_path).read_bytes()
    except OSError as e:
        logger.error(f"Failed to read bundle resource {file_path}: {e}")
        raise PassIOError(f"Cannot read {path} from {file_path}: {e.strerror or e}", str(file_path)) from e
    return hash_entry(path, data)


def produce(path: str, source: Source) -> HashedEntry:
    """Hash an in-memory buffer or a file on disk under the given archive path."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return hash_entry(path, source)
    return read_and_hash_file(source, path)


async def produce_async(path: str, source: Source) -> HashedEntry:
    """Like produce(), but file reads run in a worker thread."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return hash_entry(path, source)
    return await asyncio.to_thread(read_and_hash_file, source, path)
