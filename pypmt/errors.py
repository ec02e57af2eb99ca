"""Exceptions raised by pypmt.

Every exception derives from ``PmtError`` and from the builtin exception
that best describes it, so callers that already catch ``ValueError``,
``TypeError`` or ``EOFError`` around their I/O keep working."""


class PmtError(Exception):
    """Base class of all pypmt errors."""
    pass


class UninitializedValue(PmtError, ValueError):
    """An operation needed the data of an empty Value."""
    pass


class UninitializedBuffer(PmtError, ValueError):
    """An operation needed the bytes of an empty TypedBuffer."""
    pass


class InvalidBuffer(PmtError, ValueError):
    """A framed block is malformed: bad size prefix, payload length or
    key encoding."""
    pass


class TypeMismatch(PmtError, TypeError):
    """A typed accessor was used with a type that does not match the
    stored tag."""
    pass


class UnsupportedType(PmtError, TypeError):
    """A tag or native object has no representation."""
    pass


class UnsupportedComparison(PmtError, TypeError):
    """A Value was compared with an object it can never be equal to."""
    pass


class StreamTruncated(PmtError, EOFError):
    """Fewer bytes were available than a length field promised."""
    pass


class CountMismatch(PmtError, ValueError):
    """A map header disagrees with the number of entries."""
    pass


class ResourceLimitExceeded(PmtError, ValueError):
    """A declared size, count or nesting depth exceeds a configured
    bound."""
    pass
