"""Log file ingestion service."""

import codecs
import io
import os
from datetime import datetime
from pathlib import Path
from typing import Iterator, Tuple

from ..core.exceptions import InvalidLogFileError
from ..models import FileMetadata


ENCODING = "utf-8"


class IngestionError(InvalidLogFileError):
    """A log file could not be loaded from disk."""
    pass


def iter_text_lines(data: bytes, encoding: str = ENCODING) -> Iterator[str]:
    """Yield decoded lines from a byte payload without line terminators.

    Lines end at ``\\n``, ``\\r\\n`` or ``\\r``. Malformed byte sequences are
    replaced rather than raising, so one bad byte only affects its own line.

    Args:
        data: Raw file content
        encoding: Text encoding of the content

    Yields:
        One string per line
    """
    stream = io.TextIOWrapper(io.BytesIO(data), encoding=encoding, errors="replace", newline=None)
    try:
        for line in stream:
            yield line[:-1] if line.endswith("\n") else line
    finally:
        stream.close()


class LogFileIngester:
    """Loads CSV access-log exports from disk for submission to the scheduler."""

    MAX_FILE_SIZE_BYTES = 100 * 1024 * 1024

    def validate_file(self, file_path: Path) -> FileMetadata:
        """Check that a path points at a readable, non-empty log file of acceptable size.

        Raises:
            IngestionError: Describing the first check that failed
        """
        if not file_path.exists():
            raise IngestionError(f"Log file not found: {file_path}")
        if not file_path.is_file():
            raise IngestionError(f"Not a regular file: {file_path}")
        if not os.access(file_path, os.R_OK):
            raise IngestionError(f"Permission denied reading log file: {file_path}")

        size = file_path.stat().st_size
        if size == 0:
            raise IngestionError(f"Log file is empty: {file_path}")
        if size > self.MAX_FILE_SIZE_BYTES:
            raise IngestionError(
                f"Log file exceeds {self.MAX_FILE_SIZE_BYTES // (1024 * 1024)}MB "
                f"({size / (1024 * 1024):.1f}MB): {file_path}"
            )

        return FileMetadata(file_path=file_path, file_size=size, encoding=self._detect_encoding(file_path))

    def _detect_encoding(self, file_path: Path) -> str:
        """Report ``utf-8-sig`` for files starting with a BOM, ``utf-8`` otherwise.

        The BOM itself is left in the payload; the lexer strips it.
        """
        with open(file_path, "rb") as f:
            head = f.read(len(codecs.BOM_UTF8))
        return "utf-8-sig" if head == codecs.BOM_UTF8 else ENCODING

    def read_file(self, file_path: Path) -> Tuple[bytes, FileMetadata]:
        """Read a validated log file into memory for submission.

        Args:
            file_path: Path to the log file

        Returns:
            Tuple of (raw bytes, FileMetadata)

        Raises:
            IngestionError: If validation or reading fails
        """
        metadata = self.validate_file(file_path)

        try:
            data = file_path.read_bytes()
        except OSError as e:
            raise IngestionError(f"I/O error reading file {file_path}: {str(e)}")

        metadata.ingestion_end = datetime.now()
        return data, metadata
