"""
=====
PyPMT
=====

Polymorphic values are scalars, vectors and string-keyed maps that
carry their own type in a compact binary encoding.

Blocks
------

Every scalar and vector is stored in a block (everything is
little-endian and unpadded):

    <32-bit unsigned size of the rest of the block>
    <unsigned byte type code>
    <payload>

Type codes
----------

===== =================== =========================================
Code  Type                Payload
===== =================== =========================================
0     None                nothing
1-12  Scalar              one element
13-24 Vector              as many elements as fit in the payload
25    Map header          <32-bit unsigned number of entries>
===== =================== =========================================

Scalar and vector codes follow the same order of element types:
float32, float64, complex64, complex128, int8, int16, int32, int64,
uint8, uint16, uint32 and uint64. So 1 is a float32 scalar, 19 is an
int32 vector and 24 is a uint64 vector.

Maps
----

A map is its header block followed by one entry per key, in sorted key
order:

    <32-bit unsigned length of the key>
    <as many UTF-8 bytes as indicated by the length>
    <the value, which is a block or another map>
"""

from .version import __version__
from .codec import Element, TypedBuffer, TypeTag, elements
from .dispatch import equals, format_value, to_native
from .errors import (
    CountMismatch,
    InvalidBuffer,
    PmtError,
    ResourceLimitExceeded,
    StreamTruncated,
    TypeMismatch,
    UninitializedBuffer,
    UninitializedValue,
    UnsupportedComparison,
    UnsupportedType,
    )
from .value import MapEntries, Value
from .wire import (
    Limits,
    default_limits,
    deserialize,
    dumps,
    iterdump,
    iterload,
    loads,
    serialize,
    )
