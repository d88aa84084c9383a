"""
File access for DBF tables.

The codec itself works on byte buffers only; this module reads and writes
those buffers and supplies today's date as the last update date.
"""

import datetime
import logging
import os
import stat
import tempfile
from typing import Optional

from dbf_table import DBFTable, decode, encode


logger = logging.getLogger(__name__)


def dbf_filename(filename: str) -> str:
    """Append the .DBF extension if the name has none."""
    if not filename.upper().endswith('.DBF'):
        filename = filename + '.DBF'
    return filename


def read_dbf(filename: str, strict: bool = False) -> DBFTable:
    """
    Read and decode a DBF file.

    Args:
        filename: The path to the DBF file (with or without extension)
        strict: Reject blank numeric fields instead of reading them as 0

    Returns:
        The decoded table
    """
    filename = dbf_filename(filename)
    with open(filename, "rb") as f:
        data = f.read()

    logger.debug(f"Read {len(data)} bytes from {filename}")
    return decode(data, strict)


def _target_mode(filename: str) -> int:
    """Permission bits for the written file: the existing file's, else 0666 less the umask."""
    try:
        return stat.S_IMODE(os.stat(filename).st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_dbf(filename: str, table: DBFTable, today: Optional[datetime.date] = None) -> str:
    """
    Encode a table and write it to a DBF file.

    The file is written to a temporary name in the same directory and then
    moved into place, so an existing file is left untouched on failure.
    An existing file keeps its permission bits; a new one gets 0666 less
    the process umask, as open() would give it.

    Args:
        filename: The path to the DBF file (with or without extension)
        table: The table to write
        today: Last update date; defaults to the current date

    Returns:
        The path written
    """
    filename = dbf_filename(filename)
    if today is None:
        today = datetime.date.today()

    data = encode(table, today)

    mode = _target_mode(filename)
    directory = os.path.dirname(os.path.abspath(filename))
    fd, temp_path = tempfile.mkstemp(prefix='.dbf-', suffix='.tmp', dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        # mkstemp creates 0600; give the file the mode open() would have
        os.chmod(temp_path, mode)
        os.replace(temp_path, filename)
    except BaseException:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise

    logger.debug(f"Wrote {len(data)} bytes to {filename}")
    return filename


__all__ = ['dbf_filename', 'read_dbf', 'write_dbf']
