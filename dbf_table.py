"""
Table codec for dBase (.DBF) files.

Combines the header, field descriptor and record codecs into a single
decode/encode pair over in-memory buffers:

    header (32) | descriptors (32 x N) | 0x0D | records | 0x1A

The header is always derived from the table's current fields and records
when encoding; a header read from a file is never written back.
"""

import datetime
import logging
from dataclasses import dataclass, field as dataclass_field
from typing import Any, Dict, List, Optional

from dbf_errors import RecordFieldMismatchError
from dbf_fields import (
    DBFField, decode_field_descriptors, encode_field_descriptors, validate_fields,
)
from dbf_header import (
    DBF_EOF_MARKER, DBF_HEADER_SIZE, DBF_VERSION_DBASE3, DBFHeader,
    decode_header, encode_header, header_size_for, record_size_for,
)
from dbf_records import DBFRecord, decode_records, encode_records


logger = logging.getLogger(__name__)


@dataclass
class DBFTable:
    """
    In-memory DBF table.

    Attributes:
        fields: Field descriptors; their order fixes the record layout
        records: Rows in file order
        version: Version byte written on encode
        last_updated: Date read from the decoded header, informational only
    """
    fields: List[DBFField] = dataclass_field(default_factory=list)
    records: List[DBFRecord] = dataclass_field(default_factory=list)
    version: int = DBF_VERSION_DBASE3
    last_updated: Optional[datetime.date] = None

    @property
    def field_names(self) -> List[str]:
        return [field.name for field in self.fields]

    def add_record(self, values: Dict[str, Any], deleted: bool = False) -> DBFRecord:
        """
        Append a record built from a name -> value mapping.

        The values are stored in field order.

        Raises:
            RecordFieldMismatchError: If the keys differ from the field names
        """
        names = self.field_names
        if set(values) != set(names):
            raise RecordFieldMismatchError(
                f"Record keys {sorted(values)} do not match fields {names}",
                len(self.records),
            )
        record = DBFRecord(values={name: values[name] for name in names}, deleted=deleted)
        self.records.append(record)
        return record

    def active_records(self) -> List[DBFRecord]:
        """Records not flagged as deleted."""
        return [record for record in self.records if not record.deleted]

    def pack(self) -> "DBFTable":
        """Return a copy of the table without deleted records."""
        return DBFTable(
            fields=list(self.fields),
            records=[
                DBFRecord(values=dict(record.values), deleted=False)
                for record in self.active_records()
            ],
            version=self.version,
            last_updated=self.last_updated,
        )

    def header_for(self, last_updated: datetime.date) -> DBFHeader:
        """The header encode() would write for this table."""
        return DBFHeader(
            version=self.version,
            last_updated=last_updated,
            record_count=len(self.records),
            header_size=header_size_for(self.fields),
            record_size=record_size_for(self.fields),
        )


def decode(data: bytes, strict: bool = False) -> DBFTable:
    """
    Decode a whole DBF buffer.

    Args:
        data: The file contents
        strict: Reject blank numeric fields instead of reading them as 0

    Returns:
        The decoded DBFTable

    Raises:
        DBFDecodeError: The first problem found, with its byte offset
    """
    data = bytes(data)
    header = decode_header(data)

    # Only trust the declared header size as a bound when it is plausible
    limit = header.header_size if header.header_size > DBF_HEADER_SIZE else None
    fields = decode_field_descriptors(data, limit)
    if header.header_size > header_size_for(fields):
        logger.warning(
            f"Header size {header.header_size} exceeds the "
            f"{header_size_for(fields)} bytes {len(fields)} fields need"
        )

    records = decode_records(data, fields, header, strict)

    return DBFTable(
        fields=fields,
        records=records,
        version=header.version,
        last_updated=header.last_updated,
    )


def encode(table: DBFTable, last_updated: datetime.date) -> bytes:
    """
    Encode a table into a DBF buffer.

    Fields and records are validated before any bytes are produced.

    Args:
        table: The table to encode
        last_updated: Date stored in the header

    Returns:
        The complete file contents, EOF marker included

    Raises:
        DBFEncodeError: Invalid field definitions or record values
    """
    validate_fields(table.fields)
    record_bytes = encode_records(table.records, table.fields)
    header_bytes = encode_header(table.fields, table.records, last_updated, table.version)
    descriptor_bytes = encode_field_descriptors(table.fields)

    data = b''.join([header_bytes, descriptor_bytes, record_bytes, bytes([DBF_EOF_MARKER])])
    logger.debug(
        f"Encoded {len(table.fields)} fields and {len(table.records)} records "
        f"into {len(data)} bytes"
    )
    return data


__all__ = ['DBFTable', 'decode', 'encode']
