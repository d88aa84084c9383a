"""
Field descriptor codec for dBase (.DBF) files.

Field descriptors follow the fixed header, 32 bytes each, and the array is
terminated by a single 0x0D byte. Descriptor layout:

    0-10    field name, NUL padded ASCII
    11      type code ('C', 'N', 'L' or 'D')
    12-15   field data address (always zero on disk)
    16      declared length
    17      storage size of the field type
    18-30   reserved, zero filled
    31      index flag (always zero)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import List, Optional, Sequence, Tuple

from dbf_errors import (
    DuplicateFieldDescriptorError, DuplicateFieldNameError, FieldDefinitionError,
    FieldNameTooLongError, InvalidFieldLengthError, InvalidFieldNameError,
    TruncatedDescriptorArrayError, UnknownFieldTypeError,
)
from dbf_header import (
    DBF_FIELD_DESCRIPTOR_SIZE, DBF_FIELD_TERMINATOR, DBF_HEADER_SIZE,
    header_size_for, record_size_for,
)


logger = logging.getLogger(__name__)

DBF_MAX_FIELD_NAME = 10
DBF_MAX_UINT16 = 0xFFFF


class FieldType(str, Enum):
    """Field types supported by the codec, valued by their type code."""
    CHARACTER = 'C'
    NUMERIC = 'N'
    LOGICAL = 'L'
    DATE = 'D'

    @property
    def code(self) -> str:
        return self.value


# Storage size per type, written at descriptor offset 17.
# Also the maximum declared length for C and N, and the only one for L and D.
FIELD_TYPE_SIZES = MappingProxyType({
    FieldType.CHARACTER: 254,
    FieldType.NUMERIC: 18,
    FieldType.LOGICAL: 1,
    FieldType.DATE: 8,
})

_FIXED_LENGTH_TYPES = frozenset({FieldType.LOGICAL, FieldType.DATE})


@dataclass(frozen=True)
class DBFField:
    """Represents a column/field in a DBF table."""
    name: str  # Field name (max 10 chars)
    field_type: FieldType
    length: int  # Declared width in bytes

    def __post_init__(self):
        # Accept plain type codes such as 'C'
        if not isinstance(self.field_type, FieldType):
            object.__setattr__(self, 'field_type', FieldType(self.field_type))

    @property
    def storage_size(self) -> int:
        """Bytes the field occupies inside a record."""
        return self.length


def validate_field(field: DBFField) -> None:
    """
    Check a single field definition.

    Raises:
        InvalidFieldNameError: Empty name or not printable ASCII
        FieldNameTooLongError: Name longer than 10 bytes
        InvalidFieldLengthError: Length not allowed for the type
    """
    name = field.name
    if not name:
        raise InvalidFieldNameError("Field name is empty")
    if not name.isascii() or not name.isprintable() or ' ' in name:
        raise InvalidFieldNameError(
            f"Field name {name!r} must be printable ASCII without spaces",
            field_name=name,
        )
    if len(name.encode('ascii')) > DBF_MAX_FIELD_NAME:
        raise FieldNameTooLongError(
            f"Field name is longer than {DBF_MAX_FIELD_NAME} bytes", field_name=name
        )

    size = FIELD_TYPE_SIZES[field.field_type]
    if field.field_type in _FIXED_LENGTH_TYPES:
        if field.length != size:
            raise InvalidFieldLengthError(
                f"{field.field_type.name} fields must have length {size}, got {field.length}",
                field_name=name,
            )
    elif field.length < 1 or field.length > size:
        raise InvalidFieldLengthError(
            f"{field.field_type.name} fields must have length 1-{size}, got {field.length}",
            field_name=name,
        )


def validate_fields(fields: Sequence[DBFField]) -> None:
    """
    Check a whole field list before encoding.

    Raises:
        FieldDefinitionError: Any invalid field, or duplicate names
    """
    seen = set()
    for field in fields:
        validate_field(field)
        if field.name in seen:
            raise DuplicateFieldNameError("Duplicate field name", field_name=field.name)
        seen.add(field.name)

    if header_size_for(fields) > DBF_MAX_UINT16:
        raise FieldDefinitionError(f"Too many fields ({len(fields)}) for one header")
    if record_size_for(fields) > DBF_MAX_UINT16:
        raise InvalidFieldLengthError(
            f"Record size {record_size_for(fields)} exceeds {DBF_MAX_UINT16} bytes"
        )


def decode_field_descriptor(data: bytes, offset: int) -> DBFField:
    """
    Decode the 32-byte descriptor starting at offset.

    Raises:
        UnknownFieldTypeError: If the type code is not C, N, L or D
    """
    # Field names are NUL padded; anything after the first NUL is filler
    raw_name = data[offset:offset + 11].split(b'\x00', 1)[0]
    name = raw_name.decode('latin-1').rstrip()

    type_code = chr(data[offset + 11])
    try:
        field_type = FieldType(type_code)
    except ValueError:
        raise UnknownFieldTypeError(
            f"Unknown field type {type_code!r} for field {name!r}", offset + 11
        ) from None

    return DBFField(name=name, field_type=field_type, length=data[offset + 16])


def decode_field_descriptors(data: bytes, limit: Optional[int] = None) -> List[DBFField]:
    """
    Decode the descriptor array that follows the fixed header.

    Args:
        data: The whole file buffer
        limit: Byte offset the array must end before (the declared header
            size); defaults to the end of the buffer

    Returns:
        Field descriptors in table order

    Raises:
        TruncatedDescriptorArrayError: If no 0x0D terminator is found
        UnknownFieldTypeError: If a descriptor has an unsupported type
        DuplicateFieldDescriptorError: If two descriptors share a name
    """
    bound = len(data) if limit is None else min(limit, len(data))
    fields = []
    seen = set()
    offset = DBF_HEADER_SIZE

    while True:
        if offset >= bound:
            raise TruncatedDescriptorArrayError(
                "Field descriptor terminator 0x0D not found", offset
            )
        if data[offset] == DBF_FIELD_TERMINATOR:
            break
        if offset + DBF_FIELD_DESCRIPTOR_SIZE > bound:
            raise TruncatedDescriptorArrayError(
                "Field descriptor cut short", offset
            )
        field = decode_field_descriptor(data, offset)
        if field.name in seen:
            raise DuplicateFieldDescriptorError(
                f"Duplicate field name {field.name!r}", offset
            )
        seen.add(field.name)
        fields.append(field)
        offset += DBF_FIELD_DESCRIPTOR_SIZE

    logger.debug(f"Decoded {len(fields)} field descriptors")
    return fields


def encode_field_descriptor(field: DBFField) -> bytes:
    """
    Encode one field as a 32-byte descriptor.

    Raises:
        FieldNameTooLongError: If the name exceeds 10 bytes
    """
    try:
        name_bytes = field.name.encode('ascii')
    except UnicodeEncodeError:
        raise InvalidFieldNameError(
            "Field name must be ASCII", field_name=field.name
        ) from None
    if len(name_bytes) > DBF_MAX_FIELD_NAME:
        raise FieldNameTooLongError(
            f"Field name is longer than {DBF_MAX_FIELD_NAME} bytes", field_name=field.name
        )

    buf = bytearray(DBF_FIELD_DESCRIPTOR_SIZE)
    buf[:len(name_bytes)] = name_bytes
    buf[11] = ord(field.field_type.code)
    buf[16] = field.length
    buf[17] = FIELD_TYPE_SIZES[field.field_type]
    return bytes(buf)


def encode_field_descriptors(fields: Sequence[DBFField]) -> bytes:
    """Encode the descriptor array, terminator included."""
    parts = [encode_field_descriptor(field) for field in fields]
    parts.append(bytes([DBF_FIELD_TERMINATOR]))
    return b''.join(parts)


def format_field_spec(field: DBFField) -> str:
    """
    Build a field specification string (e.g., 'C(30)' or 'L(1)').
    """
    return f"{field.field_type.code}({field.length})"


def parse_field_spec(spec: str) -> Tuple[FieldType, int]:
    """
    Parse a field specification string.

    Args:
        spec: Field specification string (e.g., 'C(30)' or 'N(5)')

    Returns:
        Tuple of (field_type, length)

    Raises:
        UnknownFieldTypeError: If the type letter is not C, N, L or D
        FieldDefinitionError: If the string is not TYPE(LENGTH)
    """
    spec = spec.strip()
    paren_start = spec.find('(')
    paren_end = spec.find(')')

    if paren_start != 1 or paren_end != len(spec) - 1 or paren_end <= paren_start + 1:
        raise FieldDefinitionError(f"Malformed field spec {spec!r}")

    try:
        field_type = FieldType(spec[0].upper())
    except ValueError:
        raise UnknownFieldTypeError(f"Unknown field type in spec {spec!r}") from None

    content = spec[paren_start + 1:paren_end].strip()
    if not (content.isascii() and content.isdigit()):
        raise FieldDefinitionError(f"Malformed field length in spec {spec!r}")

    return (field_type, int(content))


__all__ = [
    'FieldType', 'DBFField', 'FIELD_TYPE_SIZES', 'DBF_MAX_FIELD_NAME',
    'validate_field', 'validate_fields',
    'decode_field_descriptor', 'decode_field_descriptors',
    'encode_field_descriptor', 'encode_field_descriptors',
    'format_field_spec', 'parse_field_spec',
]
