"""Serialization of values to and from byte streams.

Every value is written as its framed block. A map is written as its
header block followed by one entry per key, in sorted key order::

    <little-endian 32-bit unsigned length of the key>
    <as many UTF-8 bytes as indicated by the length>
    <the child value, recursively>

Reading is bounded by ``Limits`` so that a corrupt or hostile stream is
rejected before anything large is allocated."""

import io
import logging
from collections import namedtuple

from .codec import MIN_BLOCK_SIZE, TypedBuffer, TypeTag, size_struct, tag_struct
from .errors import (
    CountMismatch,
    InvalidBuffer,
    ResourceLimitExceeded,
    StreamTruncated,
    )
from .value import Value


logger = logging.getLogger(__name__)


# The smallest map entry: an empty key followed by a block with no
# payload.
MIN_ENTRY_SIZE = size_struct.size + MIN_BLOCK_SIZE


class Limits(namedtuple("Limits", ["max_depth", "max_count",
                                   "max_key_length", "max_frame_size"])):
    """Safety bounds applied while reading and writing values.

    *max_depth* bounds map nesting (the outermost value is at depth 0),
    *max_count* the entries declared by one map header, *max_key_length*
    the bytes of one key and *max_frame_size* the bytes of one block."""

    def __init__(self, *args, **kwargs):
        validate_limits(self)


def validate_limits(limits):
    for (field, bound) in zip(limits._fields, limits):
        if not isinstance(bound, int) or isinstance(bound, bool):
            raise TypeError(
                "Limits has an invalid '%s' field: %r" % (field, bound))
        if bound < 0:
            raise ValueError(
                "Limits has a negative '%s' field: %d" % (field, bound))


default_limits = Limits(
    max_depth=64,
    max_count=1 << 20,
    max_key_length=1 << 16,
    max_frame_size=1 << 30,
    )


def serialize(value, fp, limits=None):
    """Serialize *value* to a writeable file-like object *fp*, flushing
    the output buffer after write, and return the number of bytes
    written.

    Nothing written before an error is rolled back; treat *fp* as
    corrupt if this function raises."""
    if limits is None:
        limits = default_limits
    else:
        validate_limits(limits)
    length = _serialize(value, fp, limits, 0)
    fp.flush()
    return length


def _serialize(value, fp, limits, depth):
    if depth > limits.max_depth:
        raise ResourceLimitExceeded(
            "Values nest deeper than the limit of %d." % limits.max_depth)
    buffer = value.buffer
    items = list(value.items()) if value.is_map() else []
    tag = buffer.tag()
    if tag == TypeTag.MAP_HEADER_STRING and buffer.header_count() != len(items):
        raise CountMismatch(
            "Map header declares %d entries but %d are present." %
            (buffer.header_count(), len(items)))
    fp.write(buffer.raw_bytes())
    length = buffer.size()
    logger.debug("Wrote %s block of %d bytes at depth %d",
                 tag.name, length, depth)
    for (key, child) in items:
        raw = key.encode("utf_8")
        length += size_struct.pack_write(fp, len(raw))
        fp.write(raw)
        length += len(raw)
        length += _serialize(child, fp, limits, depth + 1)
    return length


def deserialize(fp, limits=None):
    """Deserialize a value from a readable file-like object *fp*.

    This function raises StreamTruncated if *fp* ends inside the value
    and ResourceLimitExceeded if the value declares more than *limits*
    allows. No partially read value is ever returned."""
    if limits is None:
        limits = default_limits
    else:
        validate_limits(limits)
    return _deserialize(fp, limits, 0)


def _deserialize(fp, limits, depth):
    if depth > limits.max_depth:
        raise ResourceLimitExceeded(
            "Values nest deeper than the limit of %d." % limits.max_depth)
    size = size_struct.unpack_read(fp)[0]
    return _read_value(fp, size, limits, depth)


def _read_value(fp, size, limits, depth):
    """Read the rest of a value whose size prefix *size* has already
    been consumed from *fp*."""
    if size > limits.max_frame_size:
        raise ResourceLimitExceeded(
            "Block of %d bytes exceeds the limit of %d." %
            (size, limits.max_frame_size))
    if size < tag_struct.size:
        raise InvalidBuffer("Block of %d bytes cannot hold a tag." % size)
    _require(fp, size)
    body = fp.read(size)
    if len(body) != size:
        raise StreamTruncated(
            "Block declares %d bytes but only %d could be read." %
            (size, len(body)))
    buffer = TypedBuffer(size_struct.pack(size) + body)
    tag = buffer.tag()
    logger.debug("Read %s block of %d bytes at depth %d",
                 tag.name, buffer.size(), depth)
    if tag != TypeTag.MAP_HEADER_STRING:
        return Value(buffer)

    count = buffer.header_count()
    if count > limits.max_count:
        raise ResourceLimitExceeded(
            "Map declares %d entries, more than the limit of %d." %
            (count, limits.max_count))
    _require(fp, count * MIN_ENTRY_SIZE)
    value = Value.map()
    for _ in range(count):
        key = _read_key(fp, limits)
        child = _deserialize(fp, limits, depth + 1)
        if key in value:
            # Last write wins.
            logger.warning("Duplicate map key %r, keeping the last value", key)
        value[key] = child
    return value


def _read_key(fp, limits):
    length = size_struct.unpack_read(fp)[0]
    if length > limits.max_key_length:
        raise ResourceLimitExceeded(
            "Map key of %d bytes exceeds the limit of %d." %
            (length, limits.max_key_length))
    raw = fp.read(length)
    if len(raw) != length:
        raise StreamTruncated(
            "Map key declares %d bytes but only %d could be read." %
            (length, len(raw)))
    try:
        return raw.decode("utf_8")
    except UnicodeDecodeError as e:
        raise InvalidBuffer("Map key is not valid UTF-8: %r" % raw) from e


def remaining(fp):
    """Return the number of bytes left in a seekable file-like object
    *fp*, or None if that can not be known without reading."""
    seekable = getattr(fp, "seekable", None)
    if seekable is None or not seekable():
        return None
    position = fp.tell()
    end = fp.seek(0, io.SEEK_END)
    fp.seek(position)
    return end - position


def _require(fp, size):
    available = remaining(fp)
    if available is not None and available < size:
        raise StreamTruncated(
            "Stream promises %d more bytes but only %d remain." %
            (size, available))


def dumps(value, limits=None):
    """Serialize *value* to a ``bytes`` instance."""
    fp = io.BytesIO()
    serialize(value, fp, limits)
    return fp.getvalue()


def loads(data, limits=None):
    """Deserialize a value from the bytes-like object *data*, which must
    hold exactly one value."""
    fp = io.BytesIO(data)
    value = deserialize(fp, limits)
    trailing = fp.read()
    if trailing:
        raise InvalidBuffer(
            "%d unexpected bytes follow the value." % len(trailing))
    return value


def iterload(fp, limits=None):
    """Generator function that deserializes values from a readable
    file-like object *fp*.

    The returned iterator stops when *fp* ends between two values and
    raises StreamTruncated when it ends inside one."""
    if limits is None:
        limits = default_limits
    else:
        validate_limits(limits)
    while True:
        prefix = fp.read(size_struct.size)
        if not prefix:
            return
        if len(prefix) != size_struct.size:
            raise StreamTruncated(
                "Expected %d bytes but only %d could be read." %
                (size_struct.size, len(prefix)))
        size = size_struct.unpack(prefix)[0]
        yield _read_value(fp, size, limits, 0)


def iterdump(fp, limits=None):
    """Coroutine function that serializes values to a writeable
    file-like object *fp*, flushing the output buffer after each value
    is written.

    This function returns the coroutine after "priming" it by calling
    ``next()`` on it once.
    """
    def _write_values():
        while True:
            value = (yield)
            serialize(value, fp, limits)
    cr = _write_values()
    next(cr)
    return cr
