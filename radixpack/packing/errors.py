"""Errors raised while building descriptors and packing values."""


class PackingError(RuntimeError):
    """Base class for all packing errors."""


class UnsupportedShape(PackingError):
    """Raised when a descriptor cannot be built for a shape."""


class WidthOverflow(UnsupportedShape):
    """Raised when a shape needs more bits than the requested maximum width."""


class OutOfRange(PackingError):
    """Raised when a packed code is outside ``[0, possibilities)``."""


class WrongVariant(PackingError):
    """Raised when a union code does not belong to the requested variant."""


class InvalidValue(PackingError):
    """Raised when a value does not belong to the shape being packed."""


class InvalidTag(InvalidValue):
    """Raised when an enum member or union tag is not part of the declared set."""


class UnknownField(PackingError):
    """Raised when field access names a field that does not exist."""
