"""
Atomic publication of streamed content into the local cache.

Content is written to a temp file next to the target and renamed into place,
so a reader of the target path only ever sees complete files.
"""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import IO, Iterable, Union

__all__ = ["write_stream_atomically", "ByteStream", "CHUNK_SIZE", "TEMP_PREFIX"]

logger = logging.getLogger(__name__)

# Streaming I/O constants
CHUNK_SIZE = 1024 * 1024  # 1 MiB
TEMP_PREFIX = ".blob.tmp."

# Type alias for byte streams (file-like or iterable)
ByteStream = Union[IO[bytes], Iterable[bytes]]


def write_stream_atomically(target_path: Path, bytestream: ByteStream) -> int:
    """
    Stream content to file with atomic write.

    The temp file is created in the target's directory so the final
    rename never crosses filesystems. On success the rename replaces any
    previous file at the target. On any failure before the rename the
    temp file is removed and the target is left untouched.

    Args:
        target_path: Final path for the file
        bytestream: Content stream (file-like with read() or iterable of bytes)

    Returns:
        Number of bytes written

    Raises:
        OSError: If file operations fail
        Exception: Whatever the stream raises while being read
    """
    target_path = Path(target_path)

    # Ensure parent directory exists
    target_path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=target_path.parent)
    temp_path = Path(temp_name)
    written = 0

    try:
        with os.fdopen(fd, "wb") as out:
            # Handle file-like objects with read()
            if hasattr(bytestream, "read"):
                while True:
                    chunk = bytestream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    out.write(chunk)
                    written += len(chunk)
            else:
                # Handle iterables of bytes
                for chunk in bytestream:
                    out.write(chunk)
                    written += len(chunk)

            # Ensure data is written to disk
            out.flush()
            os.fsync(out.fileno())

        # Atomic rename to final location
        os.replace(temp_path, target_path)

    except BaseException:
        # Clean up temp file on any error, including interrupts
        try:
            temp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to remove temp file {temp_path}: {e}")
        raise

    return written
