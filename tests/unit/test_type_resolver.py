import unittest

import pyarrow

from TCLIService import ttypes

from hs2client.exc import FetchError, OperationError
from hs2client.type_resolver import (
    ColumnVariant,
    TypeCache,
    column_length,
    decode_arrow_table,
    decode_rows,
    declared_type_id,
    resolve_type_cache,
    type_tag,
)


def row_set(*columns):
    return ttypes.TRowSet(startRowOffset=0, rows=[], columns=list(columns))


class TypeResolverTests(unittest.TestCase):
    def test_every_union_member_is_recognised(self):
        columns = [
            ttypes.TColumn(boolVal=ttypes.TBoolColumn(values=[True], nulls=b"")),
            ttypes.TColumn(byteVal=ttypes.TByteColumn(values=[1], nulls=b"")),
            ttypes.TColumn(i16Val=ttypes.TI16Column(values=[2], nulls=b"")),
            ttypes.TColumn(i32Val=ttypes.TI32Column(values=[3], nulls=b"")),
            ttypes.TColumn(i64Val=ttypes.TI64Column(values=[4], nulls=b"")),
            ttypes.TColumn(doubleVal=ttypes.TDoubleColumn(values=[5.5], nulls=b"")),
            ttypes.TColumn(stringVal=ttypes.TStringColumn(values=["6"], nulls=b"")),
            ttypes.TColumn(binaryVal=ttypes.TBinaryColumn(values=[b"7"], nulls=b"")),
        ]

        type_cache = resolve_type_cache(row_set(*columns))

        self.assertEqual(list(type_cache), list(ColumnVariant))
        self.assertEqual(
            decode_rows(type_cache, columns),
            [(True, 1, 2, 3, 4, 5.5, "6", b"7")],
        )

    def test_empty_and_null_only_columns_are_classified_by_the_member_set(self):
        columns = [
            ttypes.TColumn(stringVal=ttypes.TStringColumn(values=["", ""], nulls=b"\x03")),
            ttypes.TColumn(i64Val=ttypes.TI64Column(values=[], nulls=b"")),
        ]

        type_cache = resolve_type_cache(row_set(*columns))

        self.assertEqual(type_cache, TypeCache([ColumnVariant.STRING, ColumnVariant.I64]))
        self.assertEqual(column_length(type_cache, columns), 2)
        self.assertEqual(column_length(type_cache, columns, position=1), 0)

    def test_column_without_exactly_one_member_is_rejected(self):
        pages = [
            row_set(ttypes.TColumn()),
            row_set(
                ttypes.TColumn(
                    i32Val=ttypes.TI32Column(values=[1], nulls=b""),
                    stringVal=ttypes.TStringColumn(values=["1"], nulls=b""),
                )
            ),
            row_set(),
            None,
        ]
        for page in pages:
            with self.subTest(page=page):
                with self.assertRaises(FetchError):
                    resolve_type_cache(page)

    def test_declared_type_mismatch_is_logged_and_wire_variant_kept(self):
        columns = [
            ttypes.TColumn(i32Val=ttypes.TI32Column(values=[1], nulls=b"")),
            ttypes.TColumn(stringVal=ttypes.TStringColumn(values=["1.5"], nulls=b"")),
        ]

        with self.assertLogs("hs2client.type_resolver", level="WARNING") as cm:
            type_cache = resolve_type_cache(
                row_set(*columns),
                declared_types=[ttypes.TTypeId.BIGINT_TYPE, ttypes.TTypeId.DECIMAL_TYPE],
            )

        self.assertEqual(len(cm.output), 1)
        self.assertIn("BIGINT_TYPE", cm.output[0])
        self.assertEqual(list(type_cache), [ColumnVariant.I32, ColumnVariant.STRING])

    def test_nulls_bitfield_turns_values_into_none(self):
        columns = [
            ttypes.TColumn(
                i32Val=ttypes.TI32Column(values=list(range(10)), nulls=bytes([0b00000101, 0b10]))
            )
        ]
        type_cache = resolve_type_cache(row_set(*columns))

        self.assertEqual(
            [row[0] for row in decode_rows(type_cache, columns)],
            [None, 1, None, 3, 4, 5, 6, 7, 8, None],
        )

    def test_short_nulls_bitfield_leaves_remaining_values(self):
        columns = [
            ttypes.TColumn(stringVal=ttypes.TStringColumn(values=["a", "b"], nulls=b""))
        ]
        type_cache = resolve_type_cache(row_set(*columns))

        self.assertEqual(decode_rows(type_cache, columns), [("a",), ("b",)])

    def test_pages_that_do_not_fit_the_cache_are_rejected(self):
        type_cache = TypeCache([ColumnVariant.I32, ColumnVariant.STRING])
        i32 = ttypes.TColumn(i32Val=ttypes.TI32Column(values=[1, 2], nulls=b""))
        short_string = ttypes.TColumn(stringVal=ttypes.TStringColumn(values=["a"], nulls=b""))
        bad_pages = {
            "missing column": [i32],
            "short column": [i32, short_string],
            "swapped columns": [short_string, i32],
            "long column": [
                i32,
                ttypes.TColumn(
                    stringVal=ttypes.TStringColumn(values=["a", "b", "c", "d"], nulls=b"")
                ),
            ],
        }
        for name, columns in bad_pages.items():
            with self.subTest(name):
                with self.assertRaises(FetchError):
                    decode_rows(type_cache, columns)

    def test_decode_arrow_table_types_columns_after_variants(self):
        type_cache = TypeCache([ColumnVariant.I64, ColumnVariant.BOOL])
        columns = [
            ttypes.TColumn(i64Val=ttypes.TI64Column(values=[10, 0], nulls=b"\x02")),
            ttypes.TColumn(boolVal=ttypes.TBoolColumn(values=[True, False], nulls=b"")),
        ]

        table = decode_arrow_table(type_cache, columns, ["n", "flag"])

        self.assertEqual(
            table.schema,
            pyarrow.schema([("n", pyarrow.int64()), ("flag", pyarrow.bool_())]),
        )
        self.assertEqual(table.to_pydict(), {"n": [10, None], "flag": [True, False]})


class TypeTagTests(unittest.TestCase):
    @staticmethod
    def _primitive(type_id, qualifiers=None):
        return ttypes.TTypeDesc(
            types=[
                ttypes.TTypeEntry(
                    primitiveEntry=ttypes.TPrimitiveTypeEntry(
                        type=type_id,
                        typeQualifiers=qualifiers
                        and ttypes.TTypeQualifiers(qualifiers=qualifiers),
                    )
                )
            ]
        )

    def test_primitive_types_drop_type_suffix(self):
        self.assertEqual(type_tag(self._primitive(ttypes.TTypeId.INT_TYPE)), "int")
        self.assertEqual(type_tag(self._primitive(ttypes.TTypeId.STRING_TYPE)), "string")
        self.assertEqual(
            type_tag(self._primitive(ttypes.TTypeId.TIMESTAMP_TYPE)), "timestamp"
        )

    def test_qualifiers_are_appended(self):
        decimal = self._primitive(
            ttypes.TTypeId.DECIMAL_TYPE,
            {
                "precision": ttypes.TTypeQualifierValue(i32Value=10),
                "scale": ttypes.TTypeQualifierValue(i32Value=2),
            },
        )
        varchar = self._primitive(
            ttypes.TTypeId.VARCHAR_TYPE,
            {"characterMaximumLength": ttypes.TTypeQualifierValue(i32Value=64)},
        )

        self.assertEqual(type_tag(decimal), "decimal(10,2)")
        self.assertEqual(type_tag(varchar), "varchar(64)")

    def test_complex_types(self):
        array = ttypes.TTypeDesc(
            types=[
                ttypes.TTypeEntry(arrayEntry=ttypes.TArrayTypeEntry(objectTypePtr=1)),
                ttypes.TTypeEntry(
                    primitiveEntry=ttypes.TPrimitiveTypeEntry(type=ttypes.TTypeId.INT_TYPE)
                ),
            ]
        )
        user_defined = ttypes.TTypeDesc(
            types=[
                ttypes.TTypeEntry(
                    userDefinedTypeEntry=ttypes.TUserDefinedTypeEntry(
                        typeClassName="com.example.Point"
                    )
                )
            ]
        )

        self.assertEqual(type_tag(array), "array")
        self.assertIsNone(declared_type_id(array))
        self.assertEqual(type_tag(user_defined), "com.example.Point")

    def test_unrecognised_entry_is_rejected(self):
        with self.assertRaises(OperationError):
            type_tag(ttypes.TTypeDesc(types=[ttypes.TTypeEntry()]))


if __name__ == "__main__":
    unittest.main()
