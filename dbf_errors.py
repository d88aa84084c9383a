"""
DBF codec error hierarchy.

Every error raised by the codec derives from DBFError, so callers can catch
the whole family with a single except clause:

    try:
        table = decode(data)
    except DBFError as e:
        print(f"Error: {e}")

Hierarchy
---------
DBFError (base)
├── DBFDecodeError - malformed input buffer, carries the byte offset
│   ├── MalformedHeaderError
│   ├── TruncatedDescriptorArrayError
│   ├── UnknownFieldTypeError
│   ├── DuplicateFieldDescriptorError
│   ├── InvalidDeletionFlagError
│   ├── InvalidNumericFieldError
│   ├── InvalidLogicalFieldError
│   ├── InvalidDateFieldError
│   └── TruncatedRecordAreaError
└── DBFEncodeError - table cannot be represented, carries record/field
    ├── FieldDefinitionError
    │   ├── FieldNameTooLongError
    │   ├── InvalidFieldNameError
    │   ├── DuplicateFieldNameError
    │   └── InvalidFieldLengthError
    ├── ValueTooLongError
    ├── NumberDoesNotFitError
    ├── InvalidFieldValueError
    ├── RecordFieldMismatchError
    └── UnrepresentableYearError
"""

from typing import Optional


class DBFError(Exception):
    """Base exception for all DBF codec errors."""
    pass


# =============================================================================
# Decode errors
# =============================================================================

class DBFDecodeError(DBFError):
    """
    Base exception for errors found while decoding a buffer.

    Attributes:
        message: The error description
        offset: Absolute byte offset in the input buffer (optional)
    """

    def __init__(self, message: str, offset: Optional[int] = None):
        self.message = message
        self.offset = offset
        super().__init__(self._format())

    def _format(self) -> str:
        if self.offset is None:
            return self.message
        return f"{self.message} at byte offset {self.offset}"


class MalformedHeaderError(DBFDecodeError):
    """The fixed 32-byte header is missing or inconsistent."""
    pass


class TruncatedDescriptorArrayError(DBFDecodeError):
    """The buffer ended before the 0x0D descriptor terminator."""
    pass


class UnknownFieldTypeError(DBFDecodeError):
    """A field descriptor carries a type code outside C, N, L, D."""
    pass


class DuplicateFieldDescriptorError(DBFDecodeError):
    """Two field descriptors carry the same name."""
    pass


class InvalidDeletionFlagError(DBFDecodeError):
    """A record's first byte is neither '*' nor ' '."""
    pass


class InvalidNumericFieldError(DBFDecodeError):
    """A numeric field does not hold a signed decimal number."""
    pass


class InvalidLogicalFieldError(DBFDecodeError):
    """A logical field holds a byte that is not T/F/Y/N/?/space."""
    pass


class InvalidDateFieldError(DBFDecodeError):
    """A date field is not CCYYMMDD or not a real calendar date."""
    pass


class TruncatedRecordAreaError(DBFDecodeError):
    """The buffer is shorter than the record count declares."""
    pass


# =============================================================================
# Encode errors
# =============================================================================

class DBFEncodeError(DBFError):
    """
    Base exception for errors found while encoding a table.

    Attributes:
        message: The error description
        record_index: Zero-based index of the offending record (optional)
        field_name: Name of the offending field (optional)
    """

    def __init__(
        self,
        message: str,
        record_index: Optional[int] = None,
        field_name: Optional[str] = None,
    ):
        self.message = message
        self.record_index = record_index
        self.field_name = field_name
        super().__init__(self._format())

    def _format(self) -> str:
        parts = []
        if self.record_index is not None:
            parts.append(f"record {self.record_index}")
        if self.field_name is not None:
            parts.append(f"field '{self.field_name}'")
        if not parts:
            return self.message
        return f"{', '.join(parts)}: {self.message}"


class FieldDefinitionError(DBFEncodeError):
    """Base exception for invalid field descriptors."""
    pass


class FieldNameTooLongError(FieldDefinitionError):
    """A field name exceeds 10 bytes once encoded."""
    pass


class InvalidFieldNameError(FieldDefinitionError):
    """A field name is empty or not printable ASCII."""
    pass


class DuplicateFieldNameError(FieldDefinitionError):
    """Two fields in the same table share a name."""
    pass


class InvalidFieldLengthError(FieldDefinitionError):
    """A declared length is not allowed for the field type."""
    pass


class ValueTooLongError(DBFEncodeError):
    """A character value is longer than the field."""
    pass


class NumberDoesNotFitError(DBFEncodeError):
    """A formatted number (sign included) is wider than the field."""
    pass


class InvalidFieldValueError(DBFEncodeError):
    """A value's type does not match the field's declared type."""
    pass


class RecordFieldMismatchError(DBFEncodeError):
    """A record's keys differ from the table's field names."""
    pass


class UnrepresentableYearError(DBFEncodeError):
    """A header date falls outside 1900-2155."""
    pass


__all__ = [
    'DBFError', 'DBFDecodeError', 'DBFEncodeError',
    'MalformedHeaderError', 'TruncatedDescriptorArrayError',
    'UnknownFieldTypeError', 'DuplicateFieldDescriptorError',
    'InvalidDeletionFlagError',
    'InvalidNumericFieldError', 'InvalidLogicalFieldError',
    'InvalidDateFieldError', 'TruncatedRecordAreaError',
    'FieldDefinitionError', 'FieldNameTooLongError', 'InvalidFieldNameError',
    'DuplicateFieldNameError', 'InvalidFieldLengthError',
    'ValueTooLongError', 'NumberDoesNotFitError', 'InvalidFieldValueError',
    'RecordFieldMismatchError', 'UnrepresentableYearError',
]
