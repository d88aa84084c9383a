"""
Test file for whole-table encoding and decoding.
Checks the complete file layout and decode/encode round trips.
"""

import datetime
import struct
import unittest

from dbf_errors import (
    DBFDecodeError, DuplicateFieldDescriptorError, DuplicateFieldNameError,
    MalformedHeaderError, RecordFieldMismatchError, TruncatedDescriptorArrayError,
    UnrepresentableYearError, ValueTooLongError,
)
from dbf_fields import DBFField, FieldType, encode_field_descriptor
from dbf_header import decode_header
from dbf_records import DBFRecord
from dbf_table import DBFTable, decode, encode


TODAY = datetime.date(2026, 10, 18)


def sample_table():
    """Table with one field of every type and three records."""
    table = DBFTable(fields=[
        DBFField(name="ID", field_type=FieldType.NUMERIC, length=5),
        DBFField(name="NAME", field_type=FieldType.CHARACTER, length=20),
        DBFField(name="BIRTHDATE", field_type=FieldType.DATE, length=8),
        DBFField(name="SALARY", field_type=FieldType.NUMERIC, length=10),
        DBFField(name="ACTIVE", field_type=FieldType.LOGICAL, length=1),
    ])
    table.add_record({"ID": 1, "NAME": "Alice Smith", "BIRTHDATE": datetime.date(1980, 2, 29),
                      "SALARY": 52000.5, "ACTIVE": True})
    table.add_record({"ID": 2, "NAME": "Bob", "BIRTHDATE": None,
                      "SALARY": -12, "ACTIVE": None}, deleted=True)
    table.add_record({"ID": 3, "NAME": "", "BIRTHDATE": datetime.date(2001, 12, 1),
                      "SALARY": 0, "ACTIVE": False})
    return table


class TestDBFTableLayout(unittest.TestCase):
    """Test cases for the encoded file layout."""

    def test_complete_file_structure(self):
        """Test header, descriptors, terminator, records and EOF marker."""
        table = sample_table()
        data = encode(table, TODAY)

        header_size = 32 + 5 * 32 + 1
        record_size = 1 + 5 + 20 + 8 + 10 + 1
        self.assertEqual(struct.unpack("<H", data[8:10])[0], header_size)
        self.assertEqual(struct.unpack("<H", data[10:12])[0], record_size)
        self.assertEqual(struct.unpack("<L", data[4:8])[0], 3)
        self.assertEqual(data[header_size - 1], 0x0D)
        self.assertEqual(len(data), header_size + 3 * record_size + 1)
        self.assertEqual(data[-1], 0x1A)

        # Second record keeps its delete flag
        self.assertEqual(data[header_size + record_size], 0x2A)
        self.assertEqual(data[header_size], 0x20)

    def test_header_date(self):
        """Test that the supplied date is stored in the header."""
        data = encode(sample_table(), TODAY)
        self.assertEqual(data[1:4], bytes([126, 10, 18]))

    def test_empty_table(self):
        """Test a table with fields but no records."""
        table = DBFTable(fields=[DBFField("ID", FieldType.NUMERIC, 5)])
        data = encode(table, TODAY)

        self.assertEqual(len(data), 32 + 32 + 1 + 1)
        self.assertEqual(data[-2:], b'\x0D\x1A')

        decoded = decode(data)
        self.assertEqual(decoded.fields, table.fields)
        self.assertEqual(decoded.records, [])

    def test_deterministic(self):
        """Test that the same content and date produce identical bytes."""
        self.assertEqual(encode(sample_table(), TODAY), encode(sample_table(), TODAY))

    def test_header_derived_not_stale(self):
        """Test that a decoded table re-encodes with recomputed sizes."""
        table = decode(encode(sample_table(), TODAY))
        table.fields.append(DBFField("CODE", FieldType.CHARACTER, 4))
        for record in table.records:
            record.values["CODE"] = "X1"
        table.records.pop()

        header = decode_header(encode(table, TODAY))
        self.assertEqual(header, table.header_for(TODAY))
        self.assertEqual(header.header_size, 32 + 6 * 32 + 1)
        self.assertEqual(header.record_size, 1 + 5 + 20 + 8 + 10 + 1 + 4)
        self.assertEqual(header.record_count, 2)


class TestDBFTableRoundTrip(unittest.TestCase):
    """Test cases for decode(encode(table))."""

    def test_round_trip(self):
        """Test that fields, values and delete flags survive a round trip."""
        table = sample_table()
        decoded = decode(encode(table, TODAY))

        self.assertEqual(decoded.fields, table.fields)
        self.assertEqual(decoded.records, table.records)
        self.assertEqual(decoded.version, 0x03)
        self.assertEqual(decoded.last_updated, TODAY)

    def test_reencode_is_byte_identical(self):
        """Test that re-encoding a decoded file gives the same bytes."""
        data = encode(sample_table(), TODAY)
        self.assertEqual(encode(decode(data), TODAY), data)

    def test_version_preserved(self):
        """Test that the version byte of a decoded file is written back."""
        table = sample_table()
        table.version = 0x04
        data = encode(decode(encode(table, TODAY)), TODAY)
        self.assertEqual(data[0], 0x04)

    def test_scenario_age(self):
        """Test the AGE N(3) = 42 scenario."""
        table = DBFTable(fields=[DBFField("AGE", FieldType.NUMERIC, 3)])
        table.add_record({"AGE": 42})
        data = encode(table, TODAY)

        self.assertEqual(data[32 + 32 + 1:-1], b" 042")
        self.assertEqual(decode(data).records[0]["AGE"], 42)

    def test_scenario_name(self):
        """Test the NAME C(5) = 'Al' scenario."""
        table = DBFTable(fields=[DBFField("NAME", FieldType.CHARACTER, 5)])
        table.add_record({"NAME": "Al"})
        data = encode(table, TODAY)

        self.assertEqual(data[32 + 32 + 1:-1], b" Al   ")
        self.assertEqual(decode(data).records[0]["NAME"], "Al")


class TestDBFTableErrors(unittest.TestCase):
    """Test cases for errors surfaced by the table codec."""

    def test_encode_validates_fields(self):
        """Test that invalid field lists are rejected."""
        table = DBFTable(fields=[
            DBFField("ID", FieldType.NUMERIC, 5),
            DBFField("ID", FieldType.NUMERIC, 5),
        ])
        with self.assertRaises(DuplicateFieldNameError):
            encode(table, TODAY)

    def test_encode_rejects_bad_records(self):
        """Test that a bad value fails the encode."""
        table = sample_table()
        table.records[1].values["NAME"] = "x" * 21
        with self.assertRaises(ValueTooLongError):
            encode(table, TODAY)

    def test_encode_rejects_bad_year(self):
        """Test that the header year must fit one byte."""
        with self.assertRaises(UnrepresentableYearError):
            encode(sample_table(), datetime.date(2200, 1, 1))

    def test_add_record_checks_keys(self):
        """Test that add_record refuses records with the wrong keys."""
        table = sample_table()
        with self.assertRaises(RecordFieldMismatchError):
            table.add_record({"ID": 4})
        self.assertEqual(len(table.records), 3)

    def test_decode_truncated_descriptors(self):
        """Test that a file cut inside the descriptors fails."""
        data = encode(sample_table(), TODAY)
        with self.assertRaises(TruncatedDescriptorArrayError):
            decode(data[:100])

    def test_decode_duplicate_field_names(self):
        """Test that two descriptors named A fail instead of merging values."""
        descriptor = encode_field_descriptor(DBFField("A", FieldType.CHARACTER, 2))
        header = bytes([0x03, 126, 10, 18]) + struct.pack("<LHH", 1, 97, 5) + bytes(20)
        data = header + descriptor + descriptor + b"\x0D" + b" xxyy" + b"\x1A"

        with self.assertRaises(DuplicateFieldDescriptorError) as ctx:
            decode(data)
        self.assertEqual(ctx.exception.offset, 64)

    def test_decode_short_buffer(self):
        """Test that an empty buffer fails with a header error."""
        with self.assertRaises(MalformedHeaderError):
            decode(b"")

    def test_decode_errors_share_base(self):
        """Test that every decode failure is a DBFDecodeError with an offset."""
        data = bytearray(encode(sample_table(), TODAY))
        data[32 + 11] = ord('M')
        with self.assertRaises(DBFDecodeError) as ctx:
            decode(bytes(data))
        self.assertEqual(ctx.exception.offset, 32 + 11)

    def test_decode_strict_blank_numeric(self):
        """Test the strict switch for blank numeric fields."""
        table = DBFTable(fields=[DBFField("AGE", FieldType.NUMERIC, 3)])
        table.add_record({"AGE": 1})
        data = bytearray(encode(table, TODAY))
        data[32 + 32 + 1 + 1:32 + 32 + 1 + 4] = b"   "

        self.assertEqual(decode(bytes(data)).records[0]["AGE"], 0)
        with self.assertRaises(DBFDecodeError):
            decode(bytes(data), strict=True)


class TestDBFTableHelpers(unittest.TestCase):
    """Test cases for table helper methods."""

    def test_field_names(self):
        """Test that field names come back in table order."""
        self.assertEqual(sample_table().field_names,
                         ["ID", "NAME", "BIRTHDATE", "SALARY", "ACTIVE"])

    def test_pack(self):
        """Test that pack drops deleted records and leaves the original alone."""
        table = sample_table()
        packed = table.pack()

        self.assertEqual([record["ID"] for record in packed.records], [1, 3])
        self.assertEqual(len(table.records), 3)
        self.assertEqual(packed.fields, table.fields)

    def test_active_records(self):
        """Test that active_records skips deleted ones."""
        self.assertEqual([r["ID"] for r in sample_table().active_records()], [1, 3])

    def test_add_record_orders_values(self):
        """Test that values are stored in field order."""
        table = DBFTable(fields=[
            DBFField("A", FieldType.CHARACTER, 1),
            DBFField("B", FieldType.CHARACTER, 1),
        ])
        record = table.add_record({"B": "2", "A": "1"})
        self.assertEqual(list(record.values), ["A", "B"])
        self.assertIsInstance(record, DBFRecord)


if __name__ == "__main__":
    unittest.main()
