"""Local disk storage for uploaded files."""

import os
from pathlib import Path
from typing import BinaryIO

import structlog

from .exceptions import FileTooLargeError

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 1024 * 1024


class LocalFileStorage:
    """Stores blobs under one root directory, addressed by stored name."""

    def __init__(self, root: str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, stored_name: str) -> Path:
        # stored names are generated server side; refuse anything path-like
        if os.path.basename(stored_name) != stored_name or stored_name in ("", ".", ".."):
            raise ValueError(f"Invalid stored file name: {stored_name!r}")
        return self.root / stored_name

    def save(self, stored_name: str, source: BinaryIO, max_bytes: int) -> int:
        """Copy ``source`` to disk in chunks and return the byte count.

        Aborts and removes the partial file once ``max_bytes`` is exceeded.
        """
        path = self.path_for(stored_name)
        written = 0
        with open(path, "wb") as out:
            while True:
                chunk = source.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    break
                out.write(chunk)

        if written > max_bytes:
            path.unlink(missing_ok=True)
            raise FileTooLargeError(
                "File exceeds the upload size limit",
                details={"maxSizeBytes": max_bytes},
            )

        logger.debug("file_stored", stored_name=stored_name, size_bytes=written)
        return written

    def exists(self, stored_name: str) -> bool:
        return self.path_for(stored_name).is_file()

    def delete(self, stored_name: str) -> bool:
        path = self.path_for(stored_name)
        if not path.is_file():
            return False
        path.unlink()
        return True
