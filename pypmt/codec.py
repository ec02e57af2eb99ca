"""Framed blocks: type tags, numeric element types and the block codec.

A block is laid out as::

    <little-endian 32-bit unsigned size of everything after it>
    <unsigned byte type tag>
    <payload>

and the payload is interpreted according to the tag alone."""

from collections import namedtuple
from enum import IntEnum
from struct import Struct

import numpy as np

from .errors import (
    InvalidBuffer,
    StreamTruncated,
    TypeMismatch,
    UninitializedBuffer,
    UnsupportedType,
    )


class StreamStruct(Struct):
    """Subclass of ``struct.Struct`` with methods to write and read
    binary data with file-like objects."""

    def pack_write(self, fp, *args):
        """Pack values into a writeable file-like object *fp* according
        to the compiled format and return the number of bytes
        written."""
        string = self.pack(*args)
        fp.write(string)
        return len(string)

    def unpack_read(self, fp):
        """Unpack bytes from a readable file-like object *fp* according
        to the compiled format. This method raises StreamTruncated if
        not enough bytes can be read from *fp*."""
        string = fp.read(self.size)
        if len(string) != self.size:
            raise StreamTruncated(
                "Expected %d bytes but only %d could be read." %
                (self.size, len(string)))
        return self.unpack(string)


# Pre-compiled Struct instances. Everything is little-endian.
size_struct = StreamStruct('<I')
tag_struct = StreamStruct('<B')
prefix_struct = StreamStruct('<IB')
count_struct = StreamStruct('<I')


# Size prefix plus tag, the smallest valid block.
MIN_BLOCK_SIZE = prefix_struct.size


class TypeTag(IntEnum):
    """Type codes, stored as one unsigned byte after the size prefix."""

    NONE = 0
    SCALAR_FLOAT32 = 1
    SCALAR_FLOAT64 = 2
    SCALAR_COMPLEX64 = 3
    SCALAR_COMPLEX128 = 4
    SCALAR_INT8 = 5
    SCALAR_INT16 = 6
    SCALAR_INT32 = 7
    SCALAR_INT64 = 8
    SCALAR_UINT8 = 9
    SCALAR_UINT16 = 10
    SCALAR_UINT32 = 11
    SCALAR_UINT64 = 12
    VECTOR_FLOAT32 = 13
    VECTOR_FLOAT64 = 14
    VECTOR_COMPLEX64 = 15
    VECTOR_COMPLEX128 = 16
    VECTOR_INT8 = 17
    VECTOR_INT16 = 18
    VECTOR_INT32 = 19
    VECTOR_INT64 = 20
    VECTOR_UINT8 = 21
    VECTOR_UINT16 = 22
    VECTOR_UINT32 = 23
    VECTOR_UINT64 = 24
    MAP_HEADER_STRING = 25


class Element(namedtuple("Element",
                         ["name", "dtype", "scalar_tag", "vector_tag"])):
    """Numeric element type shared by one scalar tag and one vector
    tag. *dtype* is the little-endian numpy dtype of the payload."""

    @property
    def itemsize(self):
        return self.dtype.itemsize


float32 = Element("float32", np.dtype("<f4"),
                  TypeTag.SCALAR_FLOAT32, TypeTag.VECTOR_FLOAT32)
float64 = Element("float64", np.dtype("<f8"),
                  TypeTag.SCALAR_FLOAT64, TypeTag.VECTOR_FLOAT64)
complex64 = Element("complex64", np.dtype("<c8"),
                    TypeTag.SCALAR_COMPLEX64, TypeTag.VECTOR_COMPLEX64)
complex128 = Element("complex128", np.dtype("<c16"),
                     TypeTag.SCALAR_COMPLEX128, TypeTag.VECTOR_COMPLEX128)
int8 = Element("int8", np.dtype("i1"),
               TypeTag.SCALAR_INT8, TypeTag.VECTOR_INT8)
int16 = Element("int16", np.dtype("<i2"),
                TypeTag.SCALAR_INT16, TypeTag.VECTOR_INT16)
int32 = Element("int32", np.dtype("<i4"),
                TypeTag.SCALAR_INT32, TypeTag.VECTOR_INT32)
int64 = Element("int64", np.dtype("<i8"),
                TypeTag.SCALAR_INT64, TypeTag.VECTOR_INT64)
uint8 = Element("uint8", np.dtype("u1"),
                TypeTag.SCALAR_UINT8, TypeTag.VECTOR_UINT8)
uint16 = Element("uint16", np.dtype("<u2"),
                 TypeTag.SCALAR_UINT16, TypeTag.VECTOR_UINT16)
uint32 = Element("uint32", np.dtype("<u4"),
                 TypeTag.SCALAR_UINT32, TypeTag.VECTOR_UINT32)
uint64 = Element("uint64", np.dtype("<u8"),
                 TypeTag.SCALAR_UINT64, TypeTag.VECTOR_UINT64)

elements = (
    float32, float64, complex64, complex128,
    int8, int16, int32, int64,
    uint8, uint16, uint32, uint64,
    )

_elements_by_name = dict((e.name, e) for e in elements)
_elements_by_tag = dict(
    [(e.scalar_tag, e) for e in elements] +
    [(e.vector_tag, e) for e in elements])
scalar_tags = frozenset(e.scalar_tag for e in elements)
vector_tags = frozenset(e.vector_tag for e in elements)


# Kinds of source data that each kind of element may be built from.
# Float and complex results are then checked for exactness.
_accepted_kinds = {"i": "iu", "u": "iu", "f": "iuf", "c": "iufc"}


def is_scalar(tag):
    return tag in scalar_tags


def element_of(tag):
    """Return the Element whose scalar or vector tag is *tag*."""
    try:
        return _elements_by_tag[tag]
    except KeyError:
        raise TypeMismatch(
            "Tag %s does not carry numeric elements." % TypeTag(tag).name)


def element_for(obj):
    """Resolve *obj* to an Element. *obj* may be an Element, an
    element name such as ``"int32"``, or anything ``numpy.dtype``
    accepts."""
    if isinstance(obj, Element):
        return obj
    if isinstance(obj, str) and obj in _elements_by_name:
        return _elements_by_name[obj]
    try:
        dtype = np.dtype(obj)
    except TypeError:
        raise UnsupportedType("%r does not name an element type." % (obj,))
    for element in elements:
        if same_width(element, dtype):
            return element
    raise UnsupportedType("Data type %s has no element type." % dtype)


def same_width(element, dtype):
    """Test whether numpy *dtype* holds the same kind and width of
    number as *element*, ignoring byte order."""
    return (dtype.kind == element.dtype.kind and
            dtype.itemsize == element.dtype.itemsize)


def coerce(data, element, ndim):
    """Convert *data* to an array of *element* with *ndim* dimensions.

    Integer elements only accept integer data within their range; float
    elements accept integer and float data; complex elements accept any
    numeric data. Float and complex data must be exactly representable
    in *element*. This function raises TypeMismatch for any other data
    and ValueError for out of range integers."""
    source = np.asarray(data)
    if source.ndim != ndim:
        raise TypeMismatch(
            "Expected %d-dimensional data for %s, got %d dimensions." %
            (ndim, element.name, source.ndim))
    if source.size == 0:
        return source.astype(element.dtype)
    if source.dtype.kind not in _accepted_kinds[element.dtype.kind]:
        raise TypeMismatch(
            "Data of type %s can not be stored as %s without loss of "
            "information." % (source.dtype, element.name))
    if element.dtype.kind in "iu":
        info = np.iinfo(element.dtype)
        if int(source.min()) < info.min or int(source.max()) > info.max:
            raise ValueError(
                "Integer must be in the range of %s." % element.name)
        return source.astype(element.dtype)
    with np.errstate(over="ignore"):
        result = source.astype(element.dtype)
    if not _exactly_represented(result, source):
        raise TypeMismatch(
            "Data must be exactly representable as %s." % element.name)
    return result


def _exactly_represented(result, source):
    """Test whether *result* holds every number of *source* unchanged.
    NaN is considered equal to itself."""
    if source.dtype.kind in "iu":
        # Integers must survive the trip back to their own type.
        values = result.real
        if not np.isfinite(values).all():
            return False
        with np.errstate(invalid="ignore"):
            return bool(np.array_equal(values.astype(source.dtype), source))
    return bool(np.array_equal(result, source, equal_nan=True))


def encode(tag, data=None):
    """Encode *data* as a framed block with type tag *tag*.

    ``NONE`` takes no data, scalar tags take one number, vector tags
    take a one-dimensional sequence and ``MAP_HEADER_STRING`` takes the
    number of map entries."""
    try:
        tag = TypeTag(tag)
    except ValueError:
        raise UnsupportedType("Unrecognized type code %r." % (tag,))
    if tag == TypeTag.NONE:
        payload = b""
    elif tag == TypeTag.MAP_HEADER_STRING:
        if int(data) != data:
            raise TypeError(
                "Count must be coercible to int without loss of "
                "information.")
        if not (data >= 0 and data <= 0xffffffff):
            raise ValueError("Count must be in the range of uint32.")
        payload = count_struct.pack(data)
    elif is_scalar(tag):
        payload = coerce(data, element_of(tag), 0).tobytes()
    else:
        payload = coerce(data, element_of(tag), 1).tobytes()
    return prefix_struct.pack(tag_struct.size + len(payload), tag) + payload


def encode_map_header(count):
    return encode(TypeTag.MAP_HEADER_STRING, count)


def decode_tag(block):
    """Read the type tag of a framed *block*."""
    if len(block) < MIN_BLOCK_SIZE:
        raise InvalidBuffer(
            "Block of %d bytes is shorter than the %d byte header." %
            (len(block), MIN_BLOCK_SIZE))
    code = block[size_struct.size]
    try:
        return TypeTag(code)
    except ValueError:
        raise UnsupportedType("Unrecognized type code %d." % code)


def decode_payload(block, element):
    """Return a read-only numpy view of the payload of *block* as items
    of *element*. No bytes are copied."""
    tag = decode_tag(block)
    if tag not in (element.scalar_tag, element.vector_tag):
        raise TypeMismatch(
            "Cannot view a %s payload as %s." % (tag.name, element.name))
    count = (len(block) - MIN_BLOCK_SIZE) // element.itemsize
    return np.frombuffer(block, dtype=element.dtype, count=count,
                         offset=MIN_BLOCK_SIZE)


def validate_block(block):
    """Check the size prefix and payload length of *block* and return
    its tag."""
    tag = decode_tag(block)
    size = size_struct.unpack_from(block)[0]
    if size != len(block) - size_struct.size:
        raise InvalidBuffer(
            "Size prefix %d does not match the %d bytes that follow it." %
            (size, len(block) - size_struct.size))
    length = len(block) - MIN_BLOCK_SIZE
    if tag == TypeTag.NONE:
        valid = length == 0
    elif tag == TypeTag.MAP_HEADER_STRING:
        valid = length == count_struct.size
    elif is_scalar(tag):
        valid = length == element_of(tag).itemsize
    else:
        valid = length % element_of(tag).itemsize == 0
    if not valid:
        raise InvalidBuffer(
            "Payload of %d bytes is not valid for %s." % (length, tag.name))
    return tag


class TypedBuffer(object):
    """Owner of one immutable framed block.

    A buffer constructed without bytes is uninitialized: ``tag()`` and
    the payload accessors raise UninitializedBuffer. Views returned by
    ``payload_as()`` and ``view()`` alias the block and are read-only,
    so a buffer can be shared freely between values."""

    __slots__ = ("_data", "_tag")

    def __init__(self, data=b""):
        data = bytes(data)
        self._tag = validate_block(data) if data else None
        self._data = data

    @classmethod
    def encode(cls, tag, data=None):
        """Encode *data* with *tag* and take ownership of the block."""
        return cls(encode(tag, data))

    def tag(self):
        if self._tag is None:
            raise UninitializedBuffer("Cannot read the tag of an empty buffer.")
        return self._tag

    def payload_as(self, element):
        """Return a zero-copy view of the payload as items of
        *element*, raising TypeMismatch unless *element* matches the
        tag."""
        self.tag()
        return decode_payload(self._data, element_for(element))

    def view(self):
        """Return a zero-copy view of the payload as items of the
        buffer's own element type."""
        return decode_payload(self._data, element_of(self.tag()))

    def header_count(self):
        """Return the entry count stored in a map header."""
        tag = self.tag()
        if tag != TypeTag.MAP_HEADER_STRING:
            raise TypeMismatch("A %s buffer has no entry count." % tag.name)
        return count_struct.unpack_from(self._data, MIN_BLOCK_SIZE)[0]

    def raw_payload(self):
        self.tag()
        return memoryview(self._data)[MIN_BLOCK_SIZE:]

    def size(self):
        """Number of bytes in the block, including the size prefix."""
        return len(self._data)

    def raw_bytes(self):
        return self._data

    def __eq__(self, other):
        if not isinstance(other, TypedBuffer):
            return NotImplemented
        return self._data == other._data

    def __hash__(self):
        return hash(self._data)

    def __repr__(self):
        if self._tag is None:
            return "TypedBuffer()"
        return "TypedBuffer(tag=%s, size=%d)" % (self._tag.name, self.size())
