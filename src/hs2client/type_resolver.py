"""
Column type resolution for column based result pages.

A TRowSet page carries one TColumn per result column. TColumn is a union: the
server sets exactly one member (boolVal, i32Val, stringVal, ...) depending on the
SQL type of the column, and the member holds the values of that column for the
page together with a nulls bitfield.

The variant used by every column is resolved once per operation, from the first
page, into a TypeCache. Later pages are decoded by looking up the cached variant of
each column instead of inspecting the union again.
"""

import logging
from enum import Enum
from typing import Iterator, List, Optional, Sequence

import pyarrow

from TCLIService import ttypes

from hs2client.exc import FetchError, OperationError
from hs2client.utils import null_mask

logger = logging.getLogger(__name__)


class ColumnVariant(Enum):
    """The members of the TColumn union, valued by their Thrift field name"""

    BOOL = "boolVal"
    BYTE = "byteVal"
    I16 = "i16Val"
    I32 = "i32Val"
    I64 = "i64Val"
    DOUBLE = "doubleVal"
    STRING = "stringVal"
    BINARY = "binaryVal"

    @property
    def arrow_type(self) -> pyarrow.DataType:
        return _VARIANT_TO_ARROW_TYPE[self]


_VARIANT_TO_ARROW_TYPE = {
    ColumnVariant.BOOL: pyarrow.bool_(),
    ColumnVariant.BYTE: pyarrow.int8(),
    ColumnVariant.I16: pyarrow.int16(),
    ColumnVariant.I32: pyarrow.int32(),
    ColumnVariant.I64: pyarrow.int64(),
    ColumnVariant.DOUBLE: pyarrow.float64(),
    ColumnVariant.STRING: pyarrow.string(),
    ColumnVariant.BINARY: pyarrow.binary(),
}

# The variant a declared primitive type normally travels in. Types missing here
# (decimal, timestamp, date, complex types, ...) are serialized as strings.
_TYPE_ID_TO_VARIANT = {
    ttypes.TTypeId.BOOLEAN_TYPE: ColumnVariant.BOOL,
    ttypes.TTypeId.TINYINT_TYPE: ColumnVariant.BYTE,
    ttypes.TTypeId.SMALLINT_TYPE: ColumnVariant.I16,
    ttypes.TTypeId.INT_TYPE: ColumnVariant.I32,
    ttypes.TTypeId.BIGINT_TYPE: ColumnVariant.I64,
    ttypes.TTypeId.FLOAT_TYPE: ColumnVariant.DOUBLE,
    ttypes.TTypeId.DOUBLE_TYPE: ColumnVariant.DOUBLE,
    ttypes.TTypeId.BINARY_TYPE: ColumnVariant.BINARY,
}


def expected_variant(type_id) -> ColumnVariant:
    return _TYPE_ID_TO_VARIANT.get(type_id, ColumnVariant.STRING)


class TypeCache:
    """Immutable position -> ColumnVariant mapping for one operation"""

    __slots__ = ("_variants",)

    def __init__(self, variants: Sequence[ColumnVariant]):
        self._variants = tuple(variants)

    def __len__(self):
        return len(self._variants)

    def __getitem__(self, position: int) -> ColumnVariant:
        return self._variants[position]

    def __iter__(self) -> Iterator[ColumnVariant]:
        return iter(self._variants)

    def __eq__(self, other):
        return isinstance(other, TypeCache) and self._variants == other._variants

    def __hash__(self):
        return hash(self._variants)

    def __repr__(self):
        return "TypeCache({})".format([v.value for v in self._variants])


def _set_variants(t_col) -> List[ColumnVariant]:
    return [v for v in ColumnVariant if getattr(t_col, v.value, None) is not None]


def resolve_type_cache(row_set, declared_types: Optional[Sequence] = None) -> TypeCache:
    """
    Build the TypeCache of an operation from one page.

    :param row_set: The TRowSet of a FetchResults response.
    :param declared_types: TTypeIds of the columns as reported by the result set
        metadata, if they are known. Used to flag columns whose wire variant differs
        from the one their declared type normally uses; the wire variant wins.
    """
    if row_set is None or not row_set.columns:
        raise FetchError("Page carries no column based results: {}".format(row_set))

    variants = []
    for position, t_col in enumerate(row_set.columns):
        set_variants = _set_variants(t_col)
        if len(set_variants) != 1:
            raise FetchError(
                "Column {} must carry exactly one value container, found {}".format(
                    position, [v.value for v in set_variants]
                )
            )
        variant = set_variants[0]

        if declared_types is not None and position < len(declared_types):
            declared = declared_types[position]
            if declared is not None and expected_variant(declared) != variant:
                logger.warning(
                    "Column %s is declared as %s but arrives as %s",
                    position,
                    ttypes.TTypeId._VALUES_TO_NAMES.get(declared, declared),
                    variant.value,
                )
        variants.append(variant)

    type_cache = TypeCache(variants)
    logger.debug("Resolved type cache %s", type_cache)
    return type_cache


def _container(type_cache: TypeCache, columns, position: int):
    variant = type_cache[position]
    container = getattr(columns[position], variant.value, None)
    if container is None:
        raise FetchError(
            "Column {} does not carry {} values as cached for this operation".format(
                position, variant.value
            )
        )
    return container


def column_length(type_cache: TypeCache, columns, position: int = 0) -> int:
    """Number of values the page holds for one column, read through the cached variant"""
    if not columns:
        raise FetchError("Page carries no columns")
    return len(_container(type_cache, columns, position).values)


def decode_column(container) -> list:
    values = list(container.values)
    mask = null_mask(container.nulls, len(values))
    return [None if is_null else value for value, is_null in zip(values, mask)]


def _decode_columns(type_cache: TypeCache, columns) -> List[list]:
    if columns is None or len(columns) != len(type_cache):
        raise FetchError(
            "Page has {} columns, expected {}".format(
                0 if columns is None else len(columns), len(type_cache)
            )
        )
    decoded = [
        decode_column(_container(type_cache, columns, position))
        for position in range(len(type_cache))
    ]
    n_rows = len(decoded[0])
    for position, values in enumerate(decoded):
        if len(values) != n_rows:
            raise FetchError(
                "Column {} has {} values, expected {}".format(
                    position, len(values), n_rows
                )
            )
    return decoded


def decode_rows(type_cache: TypeCache, columns) -> List[tuple]:
    """Decode a column based page into row-major tuples"""
    return list(zip(*_decode_columns(type_cache, columns)))


def decode_arrow_table(type_cache: TypeCache, columns, names: Sequence[str]):
    """Decode a column based page into a pyarrow Table typed after the cached variants"""
    decoded = _decode_columns(type_cache, columns)
    return pyarrow.Table.from_arrays(
        [
            pyarrow.array(values, type=variant.arrow_type)
            for values, variant in zip(decoded, type_cache)
        ],
        names=list(names),
    )


def declared_type_id(type_desc):
    """The primitive TTypeId of a column, or None for complex types"""
    entry = type_desc.types[0]
    if entry.primitiveEntry:
        return entry.primitiveEntry.type
    return None


def type_tag(type_desc) -> str:
    """Display name of the declared type of a column, e.g. int, decimal(10,2), array"""
    entry = type_desc.types[0]

    if entry.primitiveEntry:
        name = ttypes.TTypeId._VALUES_TO_NAMES[entry.primitiveEntry.type]
        # Drop _TYPE suffix
        cleaned_type = (name[:-5] if name.endswith("_TYPE") else name).lower()

        type_qualifiers = entry.primitiveEntry.typeQualifiers
        qualifiers = type_qualifiers.qualifiers if type_qualifiers else None
        if qualifiers:
            if "precision" in qualifiers and "scale" in qualifiers:
                cleaned_type += "({},{})".format(
                    qualifiers["precision"].i32Value, qualifiers["scale"].i32Value
                )
            elif "characterMaximumLength" in qualifiers:
                cleaned_type += "({})".format(
                    qualifiers["characterMaximumLength"].i32Value
                )
        return cleaned_type

    for attr, tag in (
        ("arrayEntry", "array"),
        ("mapEntry", "map"),
        ("structEntry", "struct"),
        ("unionEntry", "union"),
    ):
        if getattr(entry, attr):
            return tag
    if entry.userDefinedTypeEntry:
        return entry.userDefinedTypeEntry.typeClassName

    raise OperationError("Thrift protocol error: unrecognised type entry {}".format(entry))
