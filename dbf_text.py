"""
Pipe-delimited text exchange for DBF tables.

The text format:
- Line 1: Field names separated by pipes (|)
- Line 2: Field specifications separated by pipes (|), e.g. C(30)|N(5)
- Line 3+: Data rows separated by pipes (|)

Dates are written as YYYYMMDD, logicals as T, F or ?, numbers in
fixed-point notation and missing dates as empty strings. Deleted records are not exported.
"""

import datetime
import logging
from typing import Any, Optional

from dbf_errors import InvalidFieldValueError, RecordFieldMismatchError
from dbf_fields import DBFField, FieldType, format_field_spec, parse_field_spec
from dbf_io import dbf_filename, read_dbf, write_dbf
from dbf_records import DBF_ENCODING, DBFRecord, decode_value, format_number
from dbf_table import DBFTable


logger = logging.getLogger(__name__)

TEXT_SEPARATOR = '|'


def _render_value(field: DBFField, value: Any, record_index: int) -> str:
    if field.field_type == FieldType.LOGICAL:
        return {True: 'T', False: 'F'}.get(value, '?')
    if field.field_type == FieldType.DATE:
        if value is None:
            return ''
        return f"{value.year:04d}{value.month:02d}{value.day:02d}"

    if field.field_type == FieldType.NUMERIC:
        return format_number(field, value, record_index)

    text = str(value)
    if TEXT_SEPARATOR in text:
        raise InvalidFieldValueError(
            f"Value {text!r} contains the separator {TEXT_SEPARATOR!r}",
            record_index, field.name,
        )
    return text


def _parse_value(field: DBFField, text: str, record_index: int, strict: bool) -> Any:
    if field.field_type == FieldType.CHARACTER:
        return text
    try:
        raw = text.encode(DBF_ENCODING)
    except UnicodeEncodeError:
        raise InvalidFieldValueError(
            f"Value {text!r} is not {DBF_ENCODING} text", record_index, field.name
        ) from None
    return decode_value(field, raw, None, strict)


def export_text(table: DBFTable) -> str:
    """
    Render a table in the pipe-delimited text format.

    Args:
        table: The table to export

    Returns:
        The text, one line per active record after the two header lines
    """
    lines = [
        TEXT_SEPARATOR.join(table.field_names),
        TEXT_SEPARATOR.join(format_field_spec(field) for field in table.fields),
    ]
    for index, record in enumerate(table.records):
        if record.deleted:
            continue
        lines.append(TEXT_SEPARATOR.join(
            _render_value(field, record.values[field.name], index)
            for field in table.fields
        ))
    return '\n'.join(lines) + '\n'


def import_text(text: str, strict: bool = False) -> DBFTable:
    """
    Build a table from the pipe-delimited text format.

    Values are parsed with the same rules used for record bytes.

    Args:
        text: The text to import
        strict: Reject blank numeric values instead of reading them as 0

    Returns:
        A new table holding every data row
    """
    lines = text.splitlines()
    if len(lines) < 2:
        raise ValueError("Text must have at least 2 lines (field names and specs)")

    field_names = [name.strip() for name in lines[0].strip().split(TEXT_SEPARATOR)]
    field_specs = [spec.strip() for spec in lines[1].strip().split(TEXT_SEPARATOR)]
    if len(field_names) != len(field_specs):
        raise ValueError("Number of field names must match number of field specs")

    fields = []
    for name, spec in zip(field_names, field_specs):
        field_type, length = parse_field_spec(spec)
        fields.append(DBFField(name=name, field_type=field_type, length=length))

    table = DBFTable(fields=fields)
    for line in lines[2:]:
        line = line.strip()
        if not line:
            continue

        row_values = [value.strip() for value in line.split(TEXT_SEPARATOR)]
        if len(row_values) != len(fields):
            raise RecordFieldMismatchError(
                f"Row has {len(row_values)} values, table has {len(fields)} fields",
                len(table.records),
            )

        values = {
            field.name: _parse_value(field, value, len(table.records), strict)
            for field, value in zip(fields, row_values)
        }
        table.records.append(DBFRecord(values=values))

    logger.debug(f"Imported {len(fields)} fields and {len(table.records)} records")
    return table


def export_dbf_to_text(filename: str) -> str:
    """
    Export a DBF file to a .TXT file next to it.

    Args:
        filename: DBF filename (with or without extension)

    Returns:
        The text filename written
    """
    dbf_name = dbf_filename(filename)
    txt_name = dbf_name[:-4] + '.TXT'

    table = read_dbf(dbf_name)
    with open(txt_name, 'w', encoding=DBF_ENCODING, newline='\n') as f:
        f.write(export_text(table))
    return txt_name


def import_dbf_from_text(filename: str, today: Optional[datetime.date] = None) -> str:
    """
    Create a DBF file from a .TXT file next to it.

    Args:
        filename: Text filename (with or without the .TXT extension)
        today: Last update date; defaults to the current date

    Returns:
        The DBF filename written
    """
    txt_name = filename if filename.upper().endswith('.TXT') else filename + '.TXT'
    with open(txt_name, 'r', encoding=DBF_ENCODING) as f:
        table = import_text(f.read())
    return write_dbf(txt_name[:-4], table, today)


__all__ = [
    'TEXT_SEPARATOR',
    'export_text', 'import_text',
    'export_dbf_to_text', 'import_dbf_from_text',
]
