"""Value containers used by union, nested optional and non-exhaustive enum descriptors."""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Generic, Self, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Variant:
    """A tagged union value: the variant ``tag`` and its payload ``value``."""

    tag: str
    value: Any = None


@dataclass(frozen=True)
class Some(Generic[T]):
    """A present value of an optional whose child can itself be ``None``.

    ``Optional(Optional(uint3))`` holds ``None``, ``Some(None)`` and
    ``Some(n)``. Optionals over any other child hold bare values.
    """

    value: T


class OpenIntEnum(IntEnum):
    """Base class for non-exhaustive integer enums.

    Values that are not declared members are still accepted and come back as
    pseudo-members (``_name_`` is ``None``) carrying the raw integer, so any
    bit pattern of the underlying type can round-trip.

    Subclasses declare the underlying type with a non-member attribute:

    Example:
        class Status(OpenIntEnum):
            radixpack_type = nonmember("uint8")
            OK = 0
            ERROR = 1
    """

    @classmethod
    def _missing_(cls, value: object) -> Self | None:
        if not isinstance(value, int) or isinstance(value, bool):
            return None
        pseudo_member = int.__new__(cls, value)
        pseudo_member._name_ = None
        pseudo_member._value_ = value
        return pseudo_member

    @property
    def is_known(self) -> bool:
        """True when this is a declared member rather than a raw value."""
        return self._name_ is not None
