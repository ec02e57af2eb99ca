"""Printing and comparison of values by type tag.

A value does not know the Python type of its elements; ``basic_kinds``
maps every type tag to the functions of the element family that
handles it. Comparisons never coerce across number types: a Python
``int`` only equals integer elements, a ``float`` only float elements,
a ``complex`` only complex elements, and numpy scalars and arrays only
elements of exactly their kind and width."""

from collections import namedtuple
from collections.abc import Mapping

import numpy as np

from .codec import (
    TypeTag,
    complex64,
    complex128,
    float32,
    float64,
    int8,
    int16,
    int32,
    int64,
    same_width,
    uint8,
    uint16,
    uint32,
    uint64,
    )
from .errors import UnsupportedComparison, UnsupportedType
from .value import Value


class Kind(namedtuple("Kind", ["tag", "element", "format", "equals",
                               "native"])):
    """Handler of one type tag.

    ``format(value, kind, kinds)`` returns text, ``equals(value, kind,
    native, kinds)`` compares against a native object and ``native(value,
    kind, kinds)`` returns a numpy or dict rendition of the value."""

    def __init__(self, *args, **kwargs):
        validate_kind(self)


def validate_kind(kind):
    if not isinstance(kind.tag, TypeTag):
        raise TypeError("Kind has an invalid 'tag' field: %s" % (kind.tag,))
    for field in ("format", "equals", "native"):
        if not callable(getattr(kind, field)):
            raise TypeError(
                "Kind has a non-callable '%s' field: %s" %
                (field, getattr(kind, field)))


def validate_kinds(kinds):
    """Check that *kinds* handles every tag except ``NONE`` exactly
    once."""
    seen = set()
    for kind in kinds:
        if kind.tag in seen:
            raise ValueError("Tag %s is handled twice." % kind.tag.name)
        seen.add(kind.tag)
    missing = set(TypeTag) - seen - set([TypeTag.NONE])
    if missing:
        raise ValueError(
            "No kind handles %s." %
            ", ".join(sorted(tag.name for tag in missing)))


def find_kind(tag, kinds=None):
    if kinds is None:
        kinds = basic_kinds
    for kind in kinds:
        if kind.tag == tag:
            return kind
    raise UnsupportedType("No handler for values of type %s." % tag.name)


def format_value(value, kinds=None):
    """Render *value* as text."""
    kind = find_kind(value.data_type(), kinds)
    return kind.format(value, kind, kinds)


def equals(value, native, kinds=None):
    """Test whether *value* holds the same data as the Python or numpy
    object *native*.

    Mismatched types compare unequal. Comparing an empty value, a value
    whose tag has no kind, a map with a non-mapping, or a number with a
    mapping or a non-numeric object raises UnsupportedComparison."""
    if value.is_empty():
        raise UnsupportedComparison("Cannot compare an empty value.")
    if isinstance(native, Value):
        return value == native
    try:
        kind = find_kind(value.data_type(), kinds)
    except UnsupportedType as e:
        raise UnsupportedComparison(
            "Cannot compare a %s value." % value.data_type().name) from e
    return kind.equals(value, kind, native, kinds)


def to_native(value, kinds=None):
    """Return *value* as a numpy scalar, a read-only numpy array viewing
    the value's buffer, or a dict of converted children."""
    kind = find_kind(value.data_type(), kinds)
    return kind.native(value, kind, kinds)


_numbers = (int, float, complex, np.number)
_booleans = (bool, np.bool_)
_sequences = (list, tuple, np.ndarray)


def _is_number(obj):
    return isinstance(obj, _numbers) and not isinstance(obj, _booleans)


def _reject(value, native):
    raise UnsupportedComparison(
        "Cannot compare a %s value with %s." %
        (value.data_type().name, type(native).__name__))


def _accepts(element, native):
    """Test whether number *native* may equal items of *element*."""
    if isinstance(native, np.generic):
        return same_width(element, native.dtype)
    kind = element.dtype.kind
    if isinstance(native, int):
        return kind in "iu"
    if isinstance(native, float):
        return kind == "f"
    if isinstance(native, complex):
        return kind == "c"
    return False


def _item_equals(element, item, native):
    if not (_is_number(native) and _accepts(element, native)):
        return False
    if isinstance(native, np.generic):
        native = native.item()
    return item.item() == native


def format_scalar(value, kind, kinds):
    return str(value.buffer.payload_as(kind.element)[0])


def format_vector(value, kind, kinds):
    view = value.buffer.payload_as(kind.element)
    return "[%s]" % ", ".join(str(item) for item in view)


def format_map(value, kind, kinds):
    entries = ", ".join(
        "%s: %s" % (key, format_value(child, kinds))
        for (key, child) in value.items())
    return "{ %s }" % entries


def equals_scalar(value, kind, native, kinds):
    if _is_number(native):
        item = value.buffer.payload_as(kind.element)[0]
        return _item_equals(kind.element, item, native)
    if isinstance(native, _sequences):
        return False
    _reject(value, native)


def equals_vector(value, kind, native, kinds):
    view = value.buffer.payload_as(kind.element)
    if isinstance(native, np.ndarray):
        if native.ndim != 1 or not same_width(kind.element, native.dtype):
            return False
        return bool(np.array_equal(view, native))
    if isinstance(native, (list, tuple)):
        if len(native) != len(view):
            return False
        return all(_item_equals(kind.element, item, other)
                   for (item, other) in zip(view, native))
    if _is_number(native):
        return False
    _reject(value, native)


def equals_map(value, kind, native, kinds):
    if not isinstance(native, Mapping):
        _reject(value, native)
    if set(value.keys()) != set(native.keys()):
        return False
    return all(equals(child, native[key], kinds)
               for (key, child) in value.items())


def native_scalar(value, kind, kinds):
    return value.buffer.payload_as(kind.element)[0]


def native_vector(value, kind, kinds):
    return value.buffer.payload_as(kind.element)


def native_map(value, kind, kinds):
    return dict((key, to_native(child, kinds))
                for (key, child) in value.items())


basic_kinds = (
    Kind(TypeTag.SCALAR_FLOAT32, float32,
         format_scalar, equals_scalar, native_scalar),
    Kind(TypeTag.SCALAR_FLOAT64, float64,
         format_scalar, equals_scalar, native_scalar),
    Kind(TypeTag.SCALAR_COMPLEX64, complex64,
         format_scalar, equals_scalar, native_scalar),
    Kind(TypeTag.SCALAR_COMPLEX128, complex128,
         format_scalar, equals_scalar, native_scalar),
    Kind(TypeTag.SCALAR_INT8, int8,
         format_scalar, equals_scalar, native_scalar),
    Kind(TypeTag.SCALAR_INT16, int16,
         format_scalar, equals_scalar, native_scalar),
    Kind(TypeTag.SCALAR_INT32, int32,
         format_scalar, equals_scalar, native_scalar),
    Kind(TypeTag.SCALAR_INT64, int64,
         format_scalar, equals_scalar, native_scalar),
    Kind(TypeTag.SCALAR_UINT8, uint8,
         format_scalar, equals_scalar, native_scalar),
    Kind(TypeTag.SCALAR_UINT16, uint16,
         format_scalar, equals_scalar, native_scalar),
    Kind(TypeTag.SCALAR_UINT32, uint32,
         format_scalar, equals_scalar, native_scalar),
    Kind(TypeTag.SCALAR_UINT64, uint64,
         format_scalar, equals_scalar, native_scalar),
    Kind(TypeTag.VECTOR_FLOAT32, float32,
         format_vector, equals_vector, native_vector),
    Kind(TypeTag.VECTOR_FLOAT64, float64,
         format_vector, equals_vector, native_vector),
    Kind(TypeTag.VECTOR_COMPLEX64, complex64,
         format_vector, equals_vector, native_vector),
    Kind(TypeTag.VECTOR_COMPLEX128, complex128,
         format_vector, equals_vector, native_vector),
    Kind(TypeTag.VECTOR_INT8, int8,
         format_vector, equals_vector, native_vector),
    Kind(TypeTag.VECTOR_INT16, int16,
         format_vector, equals_vector, native_vector),
    Kind(TypeTag.VECTOR_INT32, int32,
         format_vector, equals_vector, native_vector),
    Kind(TypeTag.VECTOR_INT64, int64,
         format_vector, equals_vector, native_vector),
    Kind(TypeTag.VECTOR_UINT8, uint8,
         format_vector, equals_vector, native_vector),
    Kind(TypeTag.VECTOR_UINT16, uint16,
         format_vector, equals_vector, native_vector),
    Kind(TypeTag.VECTOR_UINT32, uint32,
         format_vector, equals_vector, native_vector),
    Kind(TypeTag.VECTOR_UINT64, uint64,
         format_vector, equals_vector, native_vector),
    # Map entries live beside the header, not in its payload.
    Kind(TypeTag.MAP_HEADER_STRING, None,
         format_map, equals_map, native_map),
    )

validate_kinds(basic_kinds)
