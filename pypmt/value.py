"""Value handles.

A Value is in exactly one of three states:

- empty: no data at all;
- buffered: a scalar or vector held in a shared TypedBuffer;
- mapped: string keys mapped to child Values, held in a shared
  MapEntries.

Copying a Value copies the handle, never the data. Buffers are
immutable, so sharing them is harmless, but a map mutated through one
handle changes for every handle that shares it. Values do no locking;
callers that share a map between threads must serialize access
themselves."""

from collections import namedtuple
from collections.abc import Mapping, MutableMapping

import numpy as np

from .codec import (
    TypedBuffer,
    TypeTag,
    complex128,
    element_for,
    encode_map_header,
    float64,
    int64,
    )
from .errors import (
    CountMismatch,
    TypeMismatch,
    UninitializedValue,
    UnsupportedType,
    )


Buffered = namedtuple("Buffered", ["buffer"])
Mapped = namedtuple("Mapped", ["entries"])


class MapEntries(MutableMapping):
    """Children of a map Value, iterated in sorted key order.

    The header buffer always records the current number of entries."""

    def __init__(self, items=()):
        self._items = {}
        self._header = None
        self.update(items)
        self._sync_header()

    def header(self):
        """Return the ``MAP_HEADER_STRING`` buffer for these entries."""
        return self._header

    def _sync_header(self):
        count = len(self._items)
        if self._header is None or self._header.header_count() != count:
            self._header = TypedBuffer(encode_map_header(count))

    def __getitem__(self, key):
        return self._items[key]

    def __setitem__(self, key, value):
        if not isinstance(key, str):
            raise TypeError(
                "Map keys must be str, not %s." % type(key).__name__)
        value = Value.from_native(value)
        if value.is_empty():
            raise UninitializedValue(
                "Cannot store an empty value under key %r." % key)
        self._items[key] = value
        self._sync_header()

    def __delitem__(self, key):
        del self._items[key]
        self._sync_header()

    def __iter__(self):
        return iter(sorted(self._items))

    def __len__(self):
        return len(self._items)

    def __repr__(self):
        return "MapEntries(%r)" % (sorted(self._items),)


Native = namedtuple("Native", ["type", "build"])


def _share_value(obj):
    return obj._state


def _wrap_buffer(obj):
    # A map header alone can only stand for an empty map. NONE buffers
    # are kept as they are; they round-trip but cannot be formatted or
    # compared.
    if obj.tag() == TypeTag.MAP_HEADER_STRING:
        if obj.header_count() != 0:
            raise CountMismatch(
                "Map header declares %d entries but none are present." %
                obj.header_count())
        return Mapped(MapEntries())
    return Buffered(obj)


def _reject_boolean(obj):
    raise UnsupportedType("Booleans have no value representation.")


def _build_map(obj):
    return Mapped(MapEntries(obj))


def _build_numpy_scalar(obj):
    element = element_for(obj.dtype)
    return Buffered(TypedBuffer.encode(element.scalar_tag, obj))


def _scalar_builder(element):
    def build(obj):
        return Buffered(TypedBuffer.encode(element.scalar_tag, obj))
    return build


def _build_vector(obj):
    array = np.asarray(obj)
    if array.ndim != 1:
        raise UnsupportedType(
            "Only one-dimensional sequences can become vectors, got %d "
            "dimensions." % array.ndim)
    if array.dtype.kind not in "iufc":
        raise UnsupportedType(
            "Sequences of %s have no vector representation." % array.dtype)
    element = element_for(array.dtype)
    return Buffered(TypedBuffer.encode(element.vector_tag, array))


# Tried in order; the first entry whose type matches builds the state.
# numpy.bool_ and numpy.float64 must be caught before bool, int and
# float, of which they are (or behave like) subclasses.
natives = (
    Native(TypedBuffer, _wrap_buffer),
    Native((bool, np.bool_), _reject_boolean),
    Native(Mapping, _build_map),
    Native(np.generic, _build_numpy_scalar),
    Native(int, _scalar_builder(int64)),
    Native(float, _scalar_builder(float64)),
    Native(complex, _scalar_builder(complex128)),
    Native((np.ndarray, list, tuple), _build_vector),
    )


def _state_for(obj):
    if isinstance(obj, Value):
        return _share_value(obj)
    for native in natives:
        if isinstance(obj, native.type):
            return native.build(obj)
    raise UnsupportedType(
        "Object of type %s is not representable as a value." %
        type(obj).__name__)


class Value(object):
    """Shared handle to a scalar, vector or map.

    ``Value()`` is empty. ``Value(obj)`` is ``Value.from_native(obj)``;
    in particular ``Value(other_value)`` is a second handle to the same
    data, as is ``copy.copy(value)``."""

    __slots__ = ("_state",)

    def __init__(self, obj=None):
        self._state = None if obj is None else _state_for(obj)

    @classmethod
    def from_native(cls, obj):
        """Build a value from a Python or numpy object.

        ``int``, ``float`` and ``complex`` become int64, float64 and
        complex128 scalars; numpy scalars keep their type; lists, tuples
        and one-dimensional arrays become vectors; mappings with str
        keys become maps whose children are converted recursively."""
        value = cls()
        value._state = _state_for(obj)
        return value

    @classmethod
    def scalar(cls, obj, element):
        """Build a scalar of the given *element* type."""
        element = element_for(element)
        return cls(TypedBuffer.encode(element.scalar_tag, obj))

    @classmethod
    def vector(cls, obj, element):
        """Build a vector of the given *element* type."""
        element = element_for(element)
        return cls(TypedBuffer.encode(element.vector_tag, obj))

    @classmethod
    def map(cls, mapping=()):
        value = cls()
        value._state = Mapped(MapEntries(mapping))
        return value

    def _require(self):
        if self._state is None:
            raise UninitializedValue("Cannot use the data of an empty value.")
        return self._state

    def data_type(self):
        state = self._state
        if state is None:
            raise UninitializedValue(
                "Cannot get the data type of an empty value.")
        if isinstance(state, Mapped):
            return TypeTag.MAP_HEADER_STRING
        return state.buffer.tag()

    def is_empty(self):
        return self._state is None

    def is_map(self):
        return isinstance(self._state, Mapped)

    @property
    def buffer(self):
        """The TypedBuffer written for this value; a map's header."""
        state = self._require()
        if isinstance(state, Mapped):
            return state.entries.header()
        return state.buffer

    @property
    def entries(self):
        state = self._require()
        if not isinstance(state, Mapped):
            raise TypeMismatch(
                "A %s value has no map entries." % self.data_type().name)
        return state.entries

    def keys(self):
        return self.entries.keys()

    def items(self):
        return self.entries.items()

    def values(self):
        return self.entries.values()

    def __getitem__(self, key):
        return self.entries[key]

    def __setitem__(self, key, value):
        self.entries[key] = value

    def __delitem__(self, key):
        del self.entries[key]

    def __contains__(self, key):
        return key in self.entries

    def __iter__(self):
        return iter(self.entries)

    def __len__(self):
        return len(self.entries)

    def __bool__(self):
        return self._state is not None

    def copy(self):
        """Return a new handle sharing this value's data."""
        return Value(self)

    __copy__ = copy

    def __eq__(self, other):
        if not isinstance(other, Value):
            return NotImplemented
        mine, theirs = self._state, other._state
        if mine is theirs:
            return True
        if mine is None or theirs is None:
            return False
        if isinstance(mine, Mapped) or isinstance(theirs, Mapped):
            if not (isinstance(mine, Mapped) and isinstance(theirs, Mapped)):
                return False
            return dict(mine.entries.items()) == dict(theirs.entries.items())
        return mine.buffer == theirs.buffer

    __hash__ = None

    def __str__(self):
        from .dispatch import format_value
        return format_value(self)

    def __repr__(self):
        if self._state is None:
            return "Value()"
        return "Value(tag=%s)" % self.data_type().name
