"""
Header codec for dBase (.DBF) files.

The fixed 32-byte header at the start of every table:

    0       version byte
    1-3     last update date (year - 1900, month 1-12, day)
    4-7     record count (uint32, little endian)
    8-9     header size in bytes (uint16, little endian)
    10-11   record size in bytes (uint16, little endian)
    12-31   reserved, zero filled
"""

import datetime
import logging
import struct
from dataclasses import dataclass
from typing import Optional, Sequence

from dbf_errors import MalformedHeaderError, UnrepresentableYearError


logger = logging.getLogger(__name__)

# Constants
DBF_HEADER_SIZE = 32
DBF_FIELD_DESCRIPTOR_SIZE = 32
DBF_FIELD_TERMINATOR = 0x0D
DBF_EOF_MARKER = 0x1A
DBF_VERSION_DBASE3 = 0x03
DBF_MIN_YEAR = 1900
DBF_MAX_YEAR = 1900 + 255


@dataclass
class DBFHeader:
    """Represents the fixed header of a DBF file."""
    version: int = DBF_VERSION_DBASE3  # dBase version, 0x03 for dBase III
    last_updated: Optional[datetime.date] = None  # None if stored bytes are not a date
    record_count: int = 0  # Number of records
    header_size: int = 0  # Bytes from file start to the first record
    record_size: int = 0  # Bytes per record, delete flag included


def header_size_for(fields: Sequence) -> int:
    """Header size for a field list: fixed header, descriptors, terminator."""
    return DBF_HEADER_SIZE + len(fields) * DBF_FIELD_DESCRIPTOR_SIZE + 1


def record_size_for(fields: Sequence) -> int:
    """Record size for a field list: delete flag plus every field width."""
    return 1 + sum(field.storage_size for field in fields)


def _decode_date(year_offset: int, month: int, day: int) -> Optional[datetime.date]:
    try:
        return datetime.date(DBF_MIN_YEAR + year_offset, month, day)
    except ValueError:
        logger.warning(
            f"Header date bytes ({year_offset}, {month}, {day}) are not a valid date"
        )
        return None


def decode_header(data: bytes) -> DBFHeader:
    """
    Decode the fixed 32-byte header.

    Args:
        data: The whole file buffer (only the first 32 bytes are read)

    Returns:
        The decoded DBFHeader

    Raises:
        MalformedHeaderError: If the buffer is shorter than 32 bytes
    """
    if len(data) < DBF_HEADER_SIZE:
        raise MalformedHeaderError(
            f"Header needs {DBF_HEADER_SIZE} bytes, buffer has {len(data)}", 0
        )

    header = DBFHeader()
    header.version = data[0]
    header.last_updated = _decode_date(data[1], data[2], data[3])
    header.record_count = struct.unpack_from("<L", data, 4)[0]
    header.header_size = struct.unpack_from("<H", data, 8)[0]
    header.record_size = struct.unpack_from("<H", data, 10)[0]

    logger.debug(
        f"Header: version 0x{header.version:02X}, {header.record_count} records, "
        f"header {header.header_size} bytes, record {header.record_size} bytes"
    )
    return header


def encode_header(
    fields: Sequence,
    records: Sequence,
    last_updated: datetime.date,
    version: int = DBF_VERSION_DBASE3,
) -> bytes:
    """
    Encode the fixed 32-byte header.

    Record count, header size and record size are derived from the field
    and record lists; nothing is taken from a previously decoded header.

    Args:
        fields: Field descriptors, in table order
        records: The records to be written
        last_updated: Date stored as the last update date
        version: Version byte

    Returns:
        32 header bytes

    Raises:
        UnrepresentableYearError: If last_updated is outside 1900-2155
    """
    year = last_updated.year
    if year < DBF_MIN_YEAR or year > DBF_MAX_YEAR:
        raise UnrepresentableYearError(
            f"Year {year} cannot be stored, valid range is {DBF_MIN_YEAR}-{DBF_MAX_YEAR}"
        )

    buf = bytearray(DBF_HEADER_SIZE)
    buf[0] = version
    buf[1] = year - DBF_MIN_YEAR
    buf[2] = last_updated.month
    buf[3] = last_updated.day
    struct.pack_into("<L", buf, 4, len(records))
    struct.pack_into("<H", buf, 8, header_size_for(fields))
    struct.pack_into("<H", buf, 10, record_size_for(fields))
    return bytes(buf)


__all__ = [
    'DBFHeader',
    'DBF_HEADER_SIZE', 'DBF_FIELD_DESCRIPTOR_SIZE', 'DBF_FIELD_TERMINATOR',
    'DBF_EOF_MARKER', 'DBF_VERSION_DBASE3', 'DBF_MIN_YEAR', 'DBF_MAX_YEAR',
    'header_size_for', 'record_size_for',
    'decode_header', 'encode_header',
]
