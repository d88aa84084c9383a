"""
Record codec for dBase (.DBF) files.

Records are fixed width. Each starts with a delete flag byte ('*' deleted,
' ' active) followed by every field's bytes in descriptor order, each field
taking exactly its declared length.
"""

import datetime
import logging
import math
import re
from dataclasses import dataclass, field as dataclass_field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from dbf_errors import (
    InvalidDateFieldError, InvalidDeletionFlagError, InvalidFieldValueError,
    InvalidLogicalFieldError, InvalidNumericFieldError, MalformedHeaderError,
    NumberDoesNotFitError, RecordFieldMismatchError, TruncatedRecordAreaError,
    ValueTooLongError,
)
from dbf_fields import DBFField, FieldType
from dbf_header import DBFHeader, header_size_for, record_size_for


logger = logging.getLogger(__name__)

# Constants
DBF_RECORD_ACTIVE = 0x20
DBF_RECORD_DELETED = 0x2A
DBF_ENCODING = 'latin-1'
DBF_FILL_CHARS = ' \x00'
DBF_BLANK_DATE = b' ' * 8

_LOGICAL_TRUE = frozenset('TtYy')
_LOGICAL_FALSE = frozenset('FfNn')
_LOGICAL_UNKNOWN = frozenset(' ?')
_NUMBER_PATTERN = re.compile(r'[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)')


@dataclass
class DBFRecord:
    """A table row: field values by name plus the delete flag."""
    values: Dict[str, Any] = dataclass_field(default_factory=dict)
    deleted: bool = False

    def __getitem__(self, name: str) -> Any:
        return self.values[name]


# =============================================================================
# Decoding
# =============================================================================

def _decode_numeric(text: str, offset: Optional[int], strict: bool):
    text = text.strip(DBF_FILL_CHARS).strip()
    if not text:
        if strict:
            raise InvalidNumericFieldError("Numeric field is blank", offset)
        return 0
    if not _NUMBER_PATTERN.fullmatch(text):
        raise InvalidNumericFieldError(f"Invalid numeric value {text!r}", offset)
    if '.' in text:
        return float(text)
    return int(text)


def _decode_logical(text: str, offset: Optional[int]) -> Optional[bool]:
    flag = text[:1] or ' '
    if flag in _LOGICAL_TRUE:
        return True
    if flag in _LOGICAL_FALSE:
        return False
    if flag in _LOGICAL_UNKNOWN:
        return None
    raise InvalidLogicalFieldError(f"Invalid logical value {flag!r}", offset)


def _decode_date(text: str, offset: Optional[int]) -> Optional[datetime.date]:
    if not text.strip(DBF_FILL_CHARS):
        return None
    if len(text) != 8 or not (text.isascii() and text.isdigit()):
        raise InvalidDateFieldError(f"Invalid date value {text!r}", offset)
    try:
        return datetime.date(int(text[0:4]), int(text[4:6]), int(text[6:8]))
    except ValueError:
        raise InvalidDateFieldError(f"Invalid calendar date {text!r}", offset) from None


def decode_value(field: DBFField, raw: bytes, offset: Optional[int] = None, strict: bool = False) -> Any:
    """
    Decode one field's bytes.

    Args:
        field: The field descriptor
        raw: Exactly the field's bytes
        offset: Absolute offset of raw in the buffer, for error reporting
        strict: Reject blank numeric fields instead of reading them as 0

    Returns:
        str, int/float, bool/None or date/None depending on the field type
    """
    text = raw.decode(DBF_ENCODING)

    if field.field_type == FieldType.CHARACTER:
        return text.rstrip(DBF_FILL_CHARS).strip()
    if field.field_type == FieldType.NUMERIC:
        return _decode_numeric(text, offset, strict)
    if field.field_type == FieldType.LOGICAL:
        return _decode_logical(text, offset)
    return _decode_date(text, offset)


def decode_records(
    data: bytes,
    fields: Sequence[DBFField],
    header: DBFHeader,
    strict: bool = False,
) -> List[DBFRecord]:
    """
    Decode the record area.

    Args:
        data: The whole file buffer
        fields: Field descriptors, in table order
        header: The decoded header (record count, header and record size)
        strict: Reject blank numeric fields instead of reading them as 0

    Returns:
        Records in file order

    Raises:
        MalformedHeaderError: If the declared sizes cannot hold the fields
        TruncatedRecordAreaError: If the buffer ends inside the record area
        DBFDecodeError: Any invalid flag or field value
    """
    if header.header_size < header_size_for(fields):
        raise MalformedHeaderError(
            f"Header size {header.header_size} is smaller than the "
            f"{header_size_for(fields)} bytes {len(fields)} fields need", 8
        )
    needed = record_size_for(fields)
    if header.record_size < needed:
        raise MalformedHeaderError(
            f"Record size {header.record_size} is smaller than the "
            f"{needed} bytes the fields need", 10
        )
    if header.record_size > needed:
        logger.warning(
            f"Record size {header.record_size} exceeds the {needed} bytes "
            f"the fields need; trailing bytes are ignored"
        )

    end = header.header_size + header.record_count * header.record_size
    if end > len(data):
        raise TruncatedRecordAreaError(
            f"{header.record_count} records need {end} bytes, buffer has {len(data)}",
            len(data),
        )

    records = []
    for i in range(header.record_count):
        offset = header.header_size + i * header.record_size

        flag = data[offset]
        if flag == DBF_RECORD_DELETED:
            deleted = True
        elif flag == DBF_RECORD_ACTIVE:
            deleted = False
        else:
            raise InvalidDeletionFlagError(
                f"Invalid delete flag 0x{flag:02X} in record {i}", offset
            )
        offset += 1

        values = {}
        for field in fields:
            raw = data[offset:offset + field.length]
            values[field.name] = decode_value(field, raw, offset, strict)
            offset += field.length

        records.append(DBFRecord(values=values, deleted=deleted))

    logger.debug(f"Decoded {len(records)} records")
    return records


# =============================================================================
# Encoding
# =============================================================================

def _number_digits(field: DBFField, value: Any, record_index: Optional[int]) -> str:
    # bool is an int subclass but never a number here
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidFieldValueError(
            f"Numeric field needs a number, got {type(value).__name__}",
            record_index, field.name,
        )

    if isinstance(value, int):
        return str(abs(value))

    finite = math.isfinite(value) if isinstance(value, float) else value.is_finite()
    if not finite:
        raise InvalidFieldValueError(
            f"Numeric field needs a finite number, got {value}",
            record_index, field.name,
        )
    if isinstance(value, float):
        if value.is_integer():
            # 42.0 is stored as 42
            return format(Decimal(repr(abs(value))).to_integral_value(), 'f')
        return format(Decimal(repr(abs(value))), 'f')
    return format(abs(value), 'f')


def format_number(field: DBFField, value: Any, record_index: Optional[int] = None) -> str:
    """
    Render a number in unpadded fixed-point notation, sign included.

    Raises:
        InvalidFieldValueError: If value is not a finite int, float or Decimal
    """
    digits = _number_digits(field, value, record_index)
    sign = '-' if value < 0 else ''
    return sign + digits


def _number_text(field: DBFField, value: Any, record_index: Optional[int]) -> str:
    text = format_number(field, value, record_index)
    if len(text) > field.length:
        raise NumberDoesNotFitError(
            f"{value} needs {len(text)} characters, field width is {field.length}",
            record_index, field.name,
        )
    if text.startswith('-'):
        return '-' + text[1:].rjust(field.length - 1, '0')
    return text.rjust(field.length, '0')


def encode_value(field: DBFField, value: Any, record_index: Optional[int] = None) -> bytes:
    """
    Encode one value into exactly the field's declared width.

    Args:
        field: The field descriptor
        value: The value; its type must match the field type
        record_index: Record position, for error reporting

    Returns:
        field.storage_size bytes

    Character values may not start or end with whitespace or NULs, since
    decoding trims them and the value would not read back unchanged.
    Integral floats are stored without a fraction and read back as int.
    """
    field_type = field.field_type

    if field_type == FieldType.CHARACTER:
        if not isinstance(value, str):
            raise InvalidFieldValueError(
                f"Character field needs a str, got {type(value).__name__}",
                record_index, field.name,
            )
        if value != value.rstrip(DBF_FILL_CHARS).strip():
            raise InvalidFieldValueError(
                f"Value {value!r} has leading or trailing blanks", record_index, field.name
            )
        try:
            encoded = value.encode(DBF_ENCODING)
        except UnicodeEncodeError:
            raise InvalidFieldValueError(
                f"Value {value!r} is not {DBF_ENCODING} text", record_index, field.name
            ) from None
        if len(encoded) > field.length:
            raise ValueTooLongError(
                f"Value is {len(encoded)} bytes, field width is {field.length}",
                record_index, field.name,
            )
        return encoded.ljust(field.length, b' ')

    if field_type == FieldType.NUMERIC:
        return _number_text(field, value, record_index).encode('ascii')

    if field_type == FieldType.LOGICAL:
        if value is True:
            return b'T'
        if value is False:
            return b'F'
        if value is None:
            return b'?'
        raise InvalidFieldValueError(
            f"Logical field needs True, False or None, got {type(value).__name__}",
            record_index, field.name,
        )

    if value is None:
        return DBF_BLANK_DATE
    if not isinstance(value, datetime.date):
        raise InvalidFieldValueError(
            f"Date field needs a date or None, got {type(value).__name__}",
            record_index, field.name,
        )
    return f"{value.year:04d}{value.month:02d}{value.day:02d}".encode('ascii')


def encode_record(record: DBFRecord, fields: Sequence[DBFField], record_index: Optional[int] = None) -> bytes:
    """
    Encode one record, delete flag included.

    Raises:
        RecordFieldMismatchError: If the record's keys differ from the field names
        DBFEncodeError: Any value that cannot be stored in its field
    """
    names = [field.name for field in fields]
    if set(record.values) != set(names):
        missing = [name for name in names if name not in record.values]
        extra = [name for name in record.values if name not in names]
        raise RecordFieldMismatchError(
            f"Record keys do not match fields (missing {missing}, unexpected {extra})",
            record_index,
        )

    parts = [bytes([DBF_RECORD_DELETED if record.deleted else DBF_RECORD_ACTIVE])]
    for field in fields:
        parts.append(encode_value(field, record.values[field.name], record_index))
    return b''.join(parts)


def encode_records(records: Sequence[DBFRecord], fields: Sequence[DBFField]) -> bytes:
    """
    Encode the record area.

    Every record is encoded before anything is returned, so an invalid
    record anywhere in the list produces an error and no output.
    """
    encoded = [encode_record(record, fields, i) for i, record in enumerate(records)]
    logger.debug(f"Encoded {len(encoded)} records")
    return b''.join(encoded)


__all__ = [
    'DBFRecord',
    'DBF_RECORD_ACTIVE', 'DBF_RECORD_DELETED', 'DBF_ENCODING',
    'decode_value', 'decode_records',
    'format_number', 'encode_value', 'encode_record', 'encode_records',
]
